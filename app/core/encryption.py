"""
Field-level encryption for secrets stored in the database.

Values are encrypted with Fernet (AES-128-CBC + HMAC-SHA256) under a key
derived from settings.DATA_ENCRYPTION_KEY. Ciphertexts are randomized, so
equality lookups go through `lookup_digest()`, a keyed HMAC of the
plaintext stored beside the ciphertext.

Usage:
    from core.encryption import decrypt_optional, encrypt_optional

    token = encrypt_optional("acct_123")
    decrypt_optional(token)  # "acct_123"
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from core.exceptions import DecryptionError


@lru_cache(maxsize=4)
def _derive_key(secret: str) -> bytes:
    # Fernet wants a url-safe base64 32-byte key; any secret string is accepted
    return hashlib.sha256(secret.encode("utf-8")).digest()


def _secret() -> str:
    secret = getattr(settings, "DATA_ENCRYPTION_KEY", "")
    if not secret:
        raise ImproperlyConfigured("DATA_ENCRYPTION_KEY is not set")
    return secret


def get_fernet() -> Fernet:
    return Fernet(base64.urlsafe_b64encode(_derive_key(_secret())))


def encrypt_optional(value: str | None) -> str | None:
    """Encrypt a string; None and "" are stored as None."""
    if value is None or value == "":
        return None
    return get_fernet().encrypt(str(value).encode("utf-8")).decode("ascii")


def decrypt_optional(token: str | None) -> str | None:
    """
    Decrypt a value written by encrypt_optional.

    Raises:
        DecryptionError: Wrong key, tampered or non-encrypted value
    """
    if not token:
        return None
    try:
        return get_fernet().decrypt(token.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError) as e:
        raise DecryptionError("Stored value could not be decrypted") from e


def lookup_digest(value: str | None) -> str | None:
    """Deterministic keyed digest of a plaintext, for exact-match queries."""
    if value is None or value == "":
        return None
    return hmac.new(
        _derive_key(_secret()),
        str(value).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
