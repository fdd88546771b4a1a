from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from companion.core.memory import window_history
from config.settings import Settings


logger = logging.getLogger("june.companion")

FALLBACK_REPLY = "I'm having trouble thinking right now. Can you try again?"


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class CompletionResult:
    text: Optional[str] = None
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def build_chat_model(settings: Settings) -> BaseChatModel:
    if not settings.google_api_key:
        raise RuntimeError(
            "GOOGLE_API_KEY not set. Please configure it in environment or .env"
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
        timeout=settings.ai_timeout_seconds,
        max_retries=1,
    )


def to_lc_messages(turns: Iterable[Mapping[str, Any]]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for item in turns:
        role = (item.get("role") or "").lower()
        content = item.get("content") or ""
        if role in ("assistant", "ai", "bot"):
            messages.append(AIMessage(content=content))
        else:
            # Unknown roles (including "system") are sent as user turns
            messages.append(HumanMessage(content=content))
    return messages


def _reply_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content.strip()
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type", "text") == "text":
            parts.append(str(part.get("text") or ""))
    return "".join(parts).strip()


def _is_rate_limited(exc: BaseException) -> bool:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("status_code", "code", "status"):
            value = getattr(current, attr, None)
            if value == 429 or str(value) in {"429", "RESOURCE_EXHAUSTED"}:
                return True
        if type(current).__name__ in {"ResourceExhausted", "RateLimitError"}:
            return True
        current = current.__cause__ or current.__context__
    return False


class CompanionAgent:
    """Forwards one chat turn to the completion model.

    Provider failures never escape ``complete``; they come back as a
    ``CompletionResult`` carrying a ``FailureKind``.
    """

    def __init__(self, settings: Settings, model: Optional[BaseChatModel] = None) -> None:
        self._settings = settings
        self._model = model

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            self._model = build_chat_model(self._settings)
        return self._model

    def assemble(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, Any]],
        current_turns: Sequence[Mapping[str, Any]],
    ) -> List[BaseMessage]:
        context = window_history(history, self._settings.history_window)
        return [
            SystemMessage(content=system_prompt),
            *to_lc_messages(context),
            *to_lc_messages(current_turns),
        ]

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, Any]],
        current_turns: Sequence[Mapping[str, Any]],
    ) -> CompletionResult:
        messages = self.assemble(system_prompt, history, current_turns)
        logger.info(
            "Completion request: model=%s context_messages=%s",
            self._settings.gemini_model,
            len(messages) - 1,
        )
        try:
            model = self.model
            reply = await asyncio.wait_for(
                model.ainvoke(messages),
                timeout=self._settings.ai_timeout_seconds,
            )
        except Exception as exc:
            if _is_rate_limited(exc):
                logger.warning("Completion provider rate limited: %s", exc)
                return CompletionResult(failure=FailureKind.RATE_LIMITED)
            logger.exception("Completion provider failed: %s", exc)
            return CompletionResult(failure=FailureKind.PROVIDER_ERROR)

        text = _reply_text(reply)
        if not text:
            logger.warning("Completion provider returned no content")
            text = FALLBACK_REPLY
        return CompletionResult(text=text)
