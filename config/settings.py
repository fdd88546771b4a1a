from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.port: int = int(os.getenv("PORT", "3001"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

        self.jwt_secret: str = os.getenv(
            "JWT_SECRET", "change-this-to-a-secure-random-string"
        )
        self.jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expires_days: int = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
        self.bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

        self.default_user_name: str = os.getenv("DEFAULT_USER_NAME", "Parvathy")
        self.default_user_pin: str = os.getenv("DEFAULT_USER_PIN", "4321")

        self.google_api_key: Optional[str] = os.getenv("GOOGLE_API_KEY") or None
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.8"))
        self.max_output_tokens: int = int(os.getenv("MODEL_MAX_TOKENS", "300"))
        self.ai_timeout_seconds: float = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))
        self.history_window: int = int(os.getenv("HISTORY_WINDOW", "30"))

        # One proxy hop in front of the app (load balancer / serverless edge).
        self.trust_proxy: bool = _env_flag("TRUST_PROXY", "1")
        self.cors_origins: List[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "").split(",")
            if origin.strip()
        ]
        self.cors_origin_regex: str = os.getenv(
            "CORS_ORIGIN_REGEX",
            r"https?://(localhost|127\.0\.0\.1)(:\d+)?|https://([a-z0-9-]+\.)*vercel\.app",
        )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"prod", "production"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
