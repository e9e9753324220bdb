"""
Tests for provider error classification.
"""

import asyncio

import httpx
import pytest

from connectors.classifier import classify_error
from connectors.errors import ErrorKind, ProviderError, TokenExpired


def _status_error(url, status_code, body):
    request = httpx.Request("POST", url)
    response = httpx.Response(status_code, json=body, request=request)
    return httpx.HTTPStatusError("failed", request=request, response=response)


class TestPermanentRevocation:
    def test_invalid_grant_code(self):
        err = ProviderError("bad", status_code=400, error_code="invalid_grant", endpoint="token")
        assert classify_error(err) is ErrorKind.PERMANENT_REVOCATION

    def test_invalid_grant_in_message(self):
        assert classify_error(RuntimeError("invalid_grant")) is ErrorKind.PERMANENT_REVOCATION

    def test_token_endpoint_400(self):
        err = ProviderError("HTTP 400: Bad Request", status_code=400, endpoint="token")
        assert classify_error(err) is ErrorKind.PERMANENT_REVOCATION

    def test_httpx_token_endpoint_invalid_grant_body(self):
        err = _status_error("https://oauth2.googleapis.com/token", 400, {"error": "invalid_grant"})
        assert classify_error(err) is ErrorKind.PERMANENT_REVOCATION

    @pytest.mark.parametrize(
        "message",
        ["Token has been expired or revoked.", "token was REVOKED by user", "Access TOKEN expired"],
    )
    def test_revoked_or_expired_message(self, message):
        assert classify_error(Exception(message)) is ErrorKind.PERMANENT_REVOCATION


class TestNotRevocation:
    def test_api_400_is_not_revocation(self):
        err = ProviderError("HTTP 400: Bad Request", status_code=400, endpoint="api")
        assert classify_error(err) is ErrorKind.UNRELATED

    @pytest.mark.parametrize("status_code", [401, 429, 503])
    def test_transient_statuses(self, status_code):
        err = ProviderError("nope", status_code=status_code, endpoint="api")
        assert classify_error(err) is ErrorKind.TRANSIENT

    def test_unauthorized_message_is_transient(self):
        assert classify_error(Exception("Unauthorized")) is ErrorKind.TRANSIENT

    @pytest.mark.parametrize(
        "err",
        [asyncio.CancelledError(), asyncio.TimeoutError(), TimeoutError("token expired"), httpx.ReadTimeout("slow")],
    )
    def test_cancellation_and_timeouts_never_revoke(self, err):
        assert classify_error(err) is ErrorKind.TRANSIENT

    def test_network_failure_is_transient(self):
        assert classify_error(httpx.ConnectError("refused")) is ErrorKind.TRANSIENT

    def test_typed_auth_error_passes_through(self):
        assert classify_error(TokenExpired("acc", "a@gmail.com")) is ErrorKind.UNRELATED

    def test_plain_failure_is_unrelated(self):
        assert classify_error(KeyError("size")) is ErrorKind.UNRELATED
