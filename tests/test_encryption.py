"""
Tests for token encryption at rest.
"""

import pytest
from cryptography.fernet import Fernet

from config.settings import config
from connectors import encryption
from connectors.encryption import decrypt_token, encrypt_token, is_encryption_enabled
from tests.factories import make_account, make_user


@pytest.fixture
def fernet_key(monkeypatch):
    monkeypatch.setattr(config, "token_encryption_key", Fernet.generate_key().decode())
    monkeypatch.setattr(encryption, "_initialised", False)


class TestEncryption:
    def test_plaintext_without_key(self):
        assert is_encryption_enabled() is False
        assert encrypt_token("abc") == "abc"
        assert encrypt_token(None) is None

    def test_round_trip_with_key(self, fernet_key):
        ciphertext = encrypt_token("ya29.secret")
        assert ciphertext != "ya29.secret"
        assert decrypt_token(ciphertext) == "ya29.secret"

    def test_legacy_plaintext_still_readable(self, fernet_key):
        assert decrypt_token("stored-before-encryption") == "stored-before-encryption"

    @pytest.mark.asyncio
    async def test_store_never_writes_plaintext(self, fernet_key, store, session_factory):
        user_id = await make_user(session_factory)
        account = await make_account(store, user_id, access="ya29.access", refresh="1//refresh")

        found = await store.find_by_id(account.account_id)
        assert found.access_token != "ya29.access"
        assert decrypt_token(found.access_token) == "ya29.access"
        assert decrypt_token(found.refresh_token) == "1//refresh"
