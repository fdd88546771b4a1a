"""Error taxonomy for the HTTP surface.

Every error a route raises on purpose is an ``ApiError``; the app renders
all of them as ``{"error": message}`` with the matching status code.
"""

from __future__ import annotations

from typing import Dict, Optional


class ApiError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers


class ValidationError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class RateLimitError(ApiError):
    status_code = 429


class UpstreamError(ApiError):
    status_code = 500
