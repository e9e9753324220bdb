"""
Token encryption: Drive access / refresh tokens are Fernet-encrypted before
they reach ``linked_accounts``.

The key comes from ``config.token_encryption_key`` (env var:
``TOKEN_ENCRYPTION_KEY``).  Without a key, tokens are stored as plaintext and
a warning is logged once.  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None
_initialised = False


def _cipher() -> Optional[Fernet]:
    """Build the Fernet cipher on first use."""
    global _fernet, _initialised
    if _initialised:
        return _fernet

    key = config.token_encryption_key
    if not key:
        logger.warning("TOKEN_ENCRYPTION_KEY not set, Drive tokens will be stored as plaintext")
        _fernet = None
    else:
        _fernet = Fernet(key.encode())
        logger.info("Token encryption enabled (Fernet)")
    _initialised = True
    return _fernet


def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a token for storage. ``None`` stays ``None``."""
    if plaintext is None:
        return None
    cipher = _cipher()
    if cipher is None:
        return plaintext
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored token.

    Values written before encryption was enabled are not valid Fernet tokens
    and are returned unchanged.
    """
    if ciphertext is None:
        return None
    cipher = _cipher()
    if cipher is None:
        return ciphertext
    try:
        return cipher.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.debug("Stored token is not Fernet ciphertext; using it as-is")
        return ciphertext


def is_encryption_enabled() -> bool:
    return _cipher() is not None
