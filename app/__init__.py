"""
The `app` package is the HTTP surface of the June backend.

Contents
--------
- main
    `create_app` factory, request/response models and the routes:
        * GET  /api/health
        * POST /api/auth/login
        * POST /api/ai/chat

- rate_limit
    Fixed-window per-client limiters (general API and AI chat).

- errors
    `ApiError` hierarchy rendered as `{"error": message}` bodies.
"""
