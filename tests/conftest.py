from __future__ import annotations

from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage, BaseMessage

from app.main import create_app
from config.settings import Settings


TEST_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"


class RecordingChatModel:
    """Stands in for the Gemini chat model and keeps every prompt it gets."""

    def __init__(self, reply: str = "Hey Parvathy, good to see you!", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[List[BaseMessage]] = []

    async def ainvoke(self, messages, *args, **kwargs):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("TRUST_PROXY", "1")
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("DEFAULT_USER_NAME", raising=False)
    monkeypatch.delenv("DEFAULT_USER_PIN", raising=False)
    monkeypatch.delenv("HISTORY_WINDOW", raising=False)
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    return Settings()


@pytest.fixture
def chat_model() -> RecordingChatModel:
    return RecordingChatModel()


@pytest.fixture
def client(settings, chat_model):
    app = create_app(settings=settings, chat_model=chat_model)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    resp = client.post("/api/auth/login", json={"name": "Parvathy", "pin": "4321"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}
