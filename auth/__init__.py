"""
The `auth` package holds everything needed to identify a caller.

Contents
--------
- store
    Read-only user table seeded at startup, bcrypt PIN hashing.

- tokens
    `TokenIssuer` that signs and verifies bearer JWTs.

- gate
    `require_user` FastAPI dependency guarding protected routes.
"""
