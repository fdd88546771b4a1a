"""No server-side memory.

The frontend keeps the whole conversation and sends it with every request.
The server only decides how much of it the model gets to see: a trailing
window of the most recent turns, oldest first.
"""

from __future__ import annotations

from typing import List, Sequence, TypeVar


DEFAULT_HISTORY_WINDOW = 30

T = TypeVar("T")


def window_history(history: Sequence[T], limit: int = DEFAULT_HISTORY_WINDOW) -> List[T]:
    if limit <= 0:
        return []
    return list(history[-limit:])
