"""
OAuth state tokens: issue / verify signed authorization-flow state, and the
nonce ledger that makes each state single-use.

Wire format: ``base64(JSON{userId, csrfToken, timestamp, nonce, meta?})``
``"." hex(HMAC-SHA256(base64 payload))``.  Nothing is stored server-side
except the consumed-nonce marker.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from config.settings import config
from connectors.errors import (
    MalformedToken,
    MissingFields,
    ReplayedNonce,
    SignatureMismatch,
    StateExpired,
    StateVerificationError,
)
from connectors.schemas import AuthFlowState
from utils.signing import decode_payload, encode_signed, signature_matches, split_signed

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("userId", "csrfToken", "nonce")


def _now_ms() -> int:
    return int(time.time() * 1000)


class StateTokenCodec:
    """Signs and verifies :class:`AuthFlowState` blobs. Verification has no side effects."""

    def __init__(
        self,
        secret: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._secret = secret or config.oauth_state_secret
        self._ttl_ms = (ttl_seconds if ttl_seconds is not None else config.oauth_state_ttl_seconds) * 1000
        self._clock = clock

    def issue(self, user_id: str, meta: Optional[Dict[str, Any]] = None) -> str:
        state = AuthFlowState(
            user_id=str(user_id),
            csrf_token=secrets.token_hex(32),
            timestamp=self._clock(),
            nonce=secrets.token_hex(16),
            meta=meta,
        )
        return encode_signed(self._secret, state.to_wire())

    def verify(self, signed_state: str) -> AuthFlowState:
        """
        Return the parsed state, or raise a :class:`StateVerificationError`
        subclass.  Checks run in order: format, signature, decoding, age,
        required fields.
        """
        try:
            encoded, signature = split_signed(signed_state or "")
        except ValueError as exc:
            raise MalformedToken(str(exc)) from exc

        if not signature_matches(self._secret, encoded, signature):
            raise SignatureMismatch("signature does not match payload")

        try:
            payload = decode_payload(encoded)
        except ValueError as exc:
            raise MalformedToken(f"undecodable payload: {exc}") from exc

        timestamp = payload.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise MalformedToken("timestamp missing or not numeric")

        age = self._clock() - timestamp
        if age > self._ttl_ms:
            raise StateExpired(f"state is {age} ms old (max {self._ttl_ms} ms)")

        missing = [name for name in _REQUIRED_FIELDS if not payload.get(name)]
        if missing:
            raise MissingFields("missing " + ", ".join(missing))

        try:
            return AuthFlowState.model_validate(payload)
        except ValidationError as exc:
            raise MalformedToken(f"invalid state fields: {exc.error_count()} error(s)") from exc


class NonceLedger:
    """
    Process-wide record of consumed nonces.

    Entries older than ``retention_seconds`` are swept lazily on the next
    call; retention must stay longer than the state TTL so a nonce is
    remembered for as long as its state could still verify.
    """

    def __init__(
        self,
        retention_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._retention = retention_seconds if retention_seconds is not None else config.nonce_retention_seconds
        self._clock = clock
        self._consumed: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def check_and_consume(self, nonce: str) -> bool:
        """True for the first caller with *nonce*, False for every later one."""
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._retention:
                self._sweep(now)
            if nonce in self._consumed:
                return False
            self._consumed[nonce] = now
            return True

    def _sweep(self, now: float) -> None:
        cutoff = now - self._retention
        stale = [n for n, at in self._consumed.items() if at <= cutoff]
        for n in stale:
            del self._consumed[n]
        self._last_sweep = now
        if stale:
            logger.debug("Swept %d consumed OAuth nonces", len(stale))

    def clear(self) -> None:
        with self._lock:
            self._consumed.clear()
            self._last_sweep = self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)


def verify_and_consume(codec: StateTokenCodec, ledger: NonceLedger, signed_state: str) -> AuthFlowState:
    """Callback-time check: verify the state, then burn its nonce exactly once."""
    try:
        state = codec.verify(signed_state)
        if not ledger.check_and_consume(state.nonce):
            raise ReplayedNonce("nonce already consumed")
    except StateVerificationError as exc:
        logger.warning("Rejected OAuth state: %s", exc.kind)
        raise
    return state


state_codec = StateTokenCodec()
nonce_ledger = NonceLedger()
