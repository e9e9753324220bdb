"""
Tests for log redaction.
"""

from utils.log_sanitizer import sanitize_for_logging


class TestSanitizeForLogging:
    def test_redacts_token_keys_in_any_spelling(self):
        out = sanitize_for_logging({"access_token": "a", "Refresh-Token": "r", "email": "x@gmail.com"})
        assert out == {"access_token": "[REDACTED]", "Refresh-Token": "[REDACTED]", "email": "x@gmail.com"}

    def test_nested_structures(self):
        out = sanitize_for_logging({"accounts": [{"id": 1, "refreshToken": "r"}], "error": {"client_secret": "s"}})
        assert out == {"accounts": [{"id": 1, "refreshToken": "[REDACTED]"}], "error": {"client_secret": "[REDACTED]"}}

    def test_depth_is_capped(self):
        deep = current = {}
        for _ in range(20):
            current["next"] = {}
            current = current["next"]
        out = sanitize_for_logging(deep)
        for _ in range(11):
            out = out["next"]
        assert out == "[MAX_DEPTH]"
