"""
Local session tokens.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256, the same
envelope as OAuth state tokens but keyed by ``config.session_secret``.
Login and password handling live outside this service; it only verifies.
"""

from __future__ import annotations

import time

from fastapi import HTTPException, status

from config.settings import config
from utils.signing import decode_payload, encode_signed, signature_matches, split_signed


def create_session_token(user_id: str, expires_in: int | None = None) -> str:
    """Create a signed token containing ``user_id`` and expiry."""
    ttl = expires_in if expires_in is not None else config.session_expiry_seconds
    return encode_signed(config.session_secret, {"user_id": str(user_id), "exp": int(time.time()) + ttl})


def verify_session_token(token: str) -> str:
    """
    Verify token and return ``user_id``.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        encoded, signature = split_signed(token)
        if not signature_matches(config.session_secret, encoded, signature):
            raise ValueError("bad signature")
        payload = decode_payload(encoded)
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        user_id = payload.get("user_id")
        if not user_id:
            raise ValueError("missing user_id")
        return str(user_id)
    except (ValueError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        )
