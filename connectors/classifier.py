"""
Error classifier: decides whether a provider failure means the stored
credentials are permanently gone.

Only the ``invalid_grant`` family is irrecoverable without new consent:

* an ``invalid_grant`` error code or message,
* a 400 answer from Google's token endpoint,
* a message like "Token has been expired or revoked".

Other auth-shaped failures (401, "unauthorized", "token") are transient.
Cancellations and timeouts are always transient.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Optional

import httpx

from connectors.errors import DriveAuthError, ErrorKind, ProviderError

_REVOKED_MESSAGE = re.compile(r"token.*(?:revoked|expired)", re.IGNORECASE)
_AUTH_MESSAGE = re.compile(r"unauthori[sz]ed|token", re.IGNORECASE)
_TRANSIENT_STATUSES = {401, 403, 408, 429, 500, 502, 503, 504}
_TOKEN_ENDPOINT_HOST = "oauth2.googleapis.com"


def _status_of(err: BaseException) -> Optional[int]:
    if isinstance(err, ProviderError):
        return err.status_code
    if isinstance(err, httpx.HTTPStatusError):
        return err.response.status_code
    code = getattr(err, "code", None) or getattr(err, "status_code", None)
    return code if isinstance(code, int) else None


def _error_code_of(err: BaseException) -> Optional[str]:
    if isinstance(err, ProviderError):
        return err.error_code
    if isinstance(err, httpx.HTTPStatusError):
        try:
            body: Any = err.response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
    return None


def _from_token_endpoint(err: BaseException) -> bool:
    if isinstance(err, ProviderError):
        return err.endpoint == "token"
    if isinstance(err, httpx.HTTPStatusError):
        return err.request.url.host == _TOKEN_ENDPOINT_HOST
    return False


def is_revocation(err: BaseException) -> bool:
    message = str(err)
    if _error_code_of(err) == "invalid_grant" or "invalid_grant" in message:
        return True
    if _status_of(err) == 400 and _from_token_endpoint(err):
        return True
    return bool(_REVOKED_MESSAGE.search(message))


def classify_error(err: BaseException) -> ErrorKind:
    # Already-typed auth errors belong to whichever account raised them.
    if isinstance(err, DriveAuthError):
        return ErrorKind.UNRELATED
    if isinstance(err, (asyncio.CancelledError, TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TRANSIENT
    if is_revocation(err):
        return ErrorKind.PERMANENT_REVOCATION
    if isinstance(err, httpx.TransportError):
        return ErrorKind.TRANSIENT
    if _status_of(err) in _TRANSIENT_STATUSES or _AUTH_MESSAGE.search(str(err)):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNRELATED
