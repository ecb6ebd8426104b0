"""Bearer token guard for operator endpoints."""

from __future__ import annotations

import hmac

from fastapi import Request


def extract_bearer_token(request: Request) -> str | None:
    """Token from an `Authorization: Bearer <token>` header, if present."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:]


def verify_bearer(request: Request, expected: str) -> bool:
    """Constant-time token check. An empty `expected` disables the guard."""
    if not expected:
        return True
    token = extract_bearer_token(request)
    if token is None:
        return False
    return hmac.compare_digest(token, expected)
