"""
HMAC-SHA256 signing for self-contained ``base64(JSON).hexsig`` tokens.

Used by OAuth state tokens and local session tokens.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from base64 import b64decode, b64encode
from typing import Any, Dict, Tuple


def sign(secret: str, encoded_payload: str) -> str:
    """Hex HMAC-SHA256 of the *encoded* payload string."""
    return hmac.new(secret.encode(), encoded_payload.encode(), hashlib.sha256).hexdigest()


def encode_signed(secret: str, payload: Dict[str, Any]) -> str:
    encoded = b64encode(json.dumps(payload, separators=(",", ":")).encode()).decode()
    return f"{encoded}.{sign(secret, encoded)}"


def split_signed(token: str) -> Tuple[str, str]:
    """Split into (payload, signature). Raises ``ValueError`` unless exactly two parts."""
    parts = token.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError("expected exactly two dot-separated parts")
    return parts[0], parts[1]


def signature_matches(secret: str, encoded_payload: str, signature: str) -> bool:
    """Constant-time check of *signature* against the expected HMAC."""
    return hmac.compare_digest(sign(secret, encoded_payload).encode(), signature.encode())


def decode_payload(encoded_payload: str) -> Dict[str, Any]:
    """Decode the base64 JSON object. Raises ``ValueError`` on any decode failure."""
    raw = b64decode(encoded_payload, validate=True)
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("payload is not a JSON object")
    return payload
