"""Read-only credential store.

Users are created once, before the app accepts connections, and are never
mutated afterwards. Call sites depend on ``UserRepository`` only so that a
persistent implementation can be dropped in later.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import bcrypt

from config.settings import Settings


logger = logging.getLogger("june.auth")


@dataclass(frozen=True)
class User:
    id: str
    display_name: str
    pin_hash: str
    created_at: datetime


def normalize_user_id(name: str) -> str:
    return name.strip().lower()


def hash_pin(pin: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_pin(pin: str, pin_hash: str) -> bool:
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash.
        return False


class UserRepository(ABC):
    @abstractmethod
    def get(self, user_id: str) -> Optional[User]:
        """Return the user with this id, or None."""

    @abstractmethod
    def count(self) -> int:
        """Number of known users."""


class InMemoryUserStore(UserRepository):
    def __init__(self, users: Iterable[User]) -> None:
        table = {}
        for user in users:
            if user.id in table:
                raise ValueError(f"duplicate user id: {user.id}")
            table[user.id] = user
        self._users: Mapping[str, User] = MappingProxyType(table)

    def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def count(self) -> int:
        return len(self._users)


def seed_default_store(settings: Settings) -> InMemoryUserStore:
    """Build the store holding the single default account."""
    name = settings.default_user_name.strip()
    user = User(
        id=normalize_user_id(name),
        display_name=name,
        pin_hash=hash_pin(settings.default_user_pin, rounds=settings.bcrypt_rounds),
        created_at=datetime.now(timezone.utc),
    )
    logger.info("Default user initialized: %s", user.id)
    return InMemoryUserStore([user])
