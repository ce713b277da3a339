"""
Security Utilities
Encryption of OAuth credentials stored for calendar integrations
"""

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .config import SECRET_KEY, TOKEN_ENCRYPTION_KEY

logger = logging.getLogger(__name__)

_cipher_suite: Optional[Fernet] = None


def _derive_key(secret: str) -> bytes:
    """Derive a valid Fernet key (32 url-safe base64 bytes) from an arbitrary secret"""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


def get_cipher_suite() -> Fernet:
    """Lazily build the Fernet cipher used for token encryption"""
    global _cipher_suite
    if _cipher_suite is None:
        key = TOKEN_ENCRYPTION_KEY.encode() if TOKEN_ENCRYPTION_KEY else _derive_key(SECRET_KEY)
        _cipher_suite = Fernet(key)
    return _cipher_suite


def encrypt_token(token: Optional[str]) -> Optional[str]:
    """Encrypt an OAuth token for storage"""
    if not token:
        return None
    return get_cipher_suite().encrypt(token.encode()).decode()


def decrypt_token(encrypted: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored OAuth token.

    Raises:
        ValueError: If the stored value was not produced by encrypt_token
    """
    if not encrypted:
        return None
    try:
        return get_cipher_suite().decrypt(encrypted.encode()).decode()
    except InvalidToken as e:
        logger.error("❌ Stored token could not be decrypted (wrong key or corrupted value)")
        raise ValueError("Stored token could not be decrypted") from e
