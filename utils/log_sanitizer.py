"""
Redact credential-looking values before they reach a log line.
"""

from __future__ import annotations

from typing import Any

_SENSITIVE_KEYS = (
    "password",
    "accesstoken",
    "refreshtoken",
    "token",
    "secret",
    "authorization",
    "cookie",
    "sessionid",
)
_MAX_DEPTH = 10


def _is_sensitive(key: str) -> bool:
    normalised = key.lower().replace("_", "").replace("-", "")
    return any(s in normalised for s in _SENSITIVE_KEYS)


def sanitize_for_logging(obj: Any, depth: int = 0) -> Any:
    """Copy of *obj* with values under sensitive keys replaced by ``[REDACTED]``."""
    if depth > _MAX_DEPTH:
        return "[MAX_DEPTH]"
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_logging(item, depth + 1) for item in obj]
    if isinstance(obj, dict):
        return {
            key: "[REDACTED]" if _is_sensitive(str(key)) else sanitize_for_logging(value, depth + 1)
            for key, value in obj.items()
        }
    return str(obj)
