from __future__ import annotations

from fastapi import Request

from app.errors import AuthError
from auth.tokens import InvalidToken, TokenClaims


def bearer_token(request: Request) -> str:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_user(request: Request) -> TokenClaims:
    """Dependency guarding protected routes.

    Attaches the verified claims to ``request.state.user``.
    """
    token = bearer_token(request)
    if not token:
        raise AuthError("Access token required", status_code=401)

    try:
        claims = request.app.state.tokens.verify(token)
    except InvalidToken:
        raise AuthError("Invalid or expired token", status_code=403) from None

    request.state.user = claims
    return claims
