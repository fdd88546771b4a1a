from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt


logger = logging.getLogger("june.auth")


class InvalidToken(Exception):
    """Token failed verification. The cause is deliberately not exposed."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    name: str
    expires_at: datetime


class TokenIssuer:
    """Signs and verifies stateless bearer tokens (HMAC JWT)."""

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
    ) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret
        self._ttl = ttl
        self._algorithm = algorithm

    def issue(self, user_id: str, name: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "name": name,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp"]},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Token rejected: %s", type(exc).__name__)
            raise InvalidToken() from exc

        user_id = payload.get("userId")
        name = payload.get("name")
        if not isinstance(user_id, str) or not isinstance(name, str):
            logger.debug("Token rejected: missing identity claims")
            raise InvalidToken()

        return TokenClaims(
            user_id=user_id,
            name=name,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
