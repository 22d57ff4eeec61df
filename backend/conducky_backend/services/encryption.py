"""
Field-level encryption for sensitive incident text.

Values are Fernet tokens keyed from the configured passphrase. Anything
that is not a token (legacy plaintext, empty values) passes through
decrypt_field unchanged so that rows written before encryption stay
readable.
"""

from __future__ import annotations

import base64
import logging
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from conducky_backend.core.config import settings

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 32
KDF_ITERATIONS = 100_000
KDF_SALT = b"conducky-settings-salt-v1"
TEST_KEY = "test-encryption-key-32-characters-long!"
TOKEN_PREFIX = "gAAAAA"

# Fernet token layout: version (1) + timestamp (8) + IV (16) + ciphertext + HMAC (32)
TOKEN_VERSION = 0x80
TOKEN_OVERHEAD = 57
CIPHER_BLOCK = 16

WEAK_KEYS = frozenset(
    {
        "password",
        "12345678901234567890123456789012",
        "abcdefghijklmnopqrstuvwxyz123456",
        "conducky-dev-encryption-key-change-in-production",
    }
)


class EncryptionError(RuntimeError):
    pass


def validate_encryption_key(key: Optional[str], environment: str = "development") -> None:
    if not key:
        raise EncryptionError("CONDUCKY_ENCRYPTION_KEY is required for field encryption")
    if len(key) < MIN_KEY_LENGTH:
        raise EncryptionError(
            f"CONDUCKY_ENCRYPTION_KEY must be at least {MIN_KEY_LENGTH} characters long. Current length: {len(key)}"
        )
    if key in WEAK_KEYS:
        logger.warning("Using a default or weak encryption key; change it before going to production")
    if environment == "production" and ("dev" in key or "development" in key):
        raise EncryptionError("Production environments must not use development encryption keys")


@lru_cache(maxsize=4)
def _fernet_for(passphrase: str) -> Fernet:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA512(), length=32, salt=KDF_SALT, iterations=KDF_ITERATIONS)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8"))))


def _get_fernet() -> Fernet:
    key = settings.encryption_key
    if not key and settings.environment == "test":
        key = TEST_KEY
    validate_encryption_key(key, settings.environment)
    return _fernet_for(key)


def is_encrypted(value: Optional[str]) -> bool:
    """True only for values shaped like a Fernet token, so plaintext that happens to start like one is left alone."""
    if not value or not value.startswith(TOKEN_PREFIX):
        return False
    try:
        raw = base64.b64decode(value.encode("ascii"), altchars=b"-_", validate=True)
    except ValueError:
        return False
    if raw[0] != TOKEN_VERSION or len(raw) < TOKEN_OVERHEAD + CIPHER_BLOCK:
        return False
    return (len(raw) - TOKEN_OVERHEAD) % CIPHER_BLOCK == 0


def encrypt_field(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    return _get_fernet().encrypt(text.encode("utf-8")).decode("ascii")


def decrypt_field(value: Optional[str]) -> Optional[str]:
    if not is_encrypted(value):
        return value
    try:
        return _get_fernet().decrypt(value.encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        # Never include the ciphertext or key material in the message
        raise EncryptionError("Failed to decrypt field") from exc
