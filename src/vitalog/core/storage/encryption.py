"""Fernet encryption for reading notes at rest.

Numeric reading fields stay unencrypted so the store can range-filter and
sort them. The free-text notes a user attaches to a reading are the one
field that may hold arbitrary personal detail, so they are encrypted.
"""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

from vitalog.core.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class EncryptionError(StorageUnavailableError):
    """Raised when a key is unusable or a token cannot be decrypted.

    Surfaces to callers as ``storage_unavailable``: the stored notes cannot
    be read with the configured key.
    """


class FieldEncryptor:
    """Encrypts and decrypts text fields with Fernet symmetric encryption.

    Empty text maps to an empty token and back, so readings without notes
    cost nothing.

    Usage::

        encryptor = FieldEncryptor(key="...")
        token = encryptor.encrypt("after a long walk")
        encryptor.decrypt(token)  # "after a long walk"
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Args:
            key: A valid Fernet key string. Generate one with
                :meth:`generate_key`.

        Raises:
            EncryptionError: If the key is empty or invalid.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.strip().encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, text: str) -> str:
        """Encrypt text to a Fernet token string ("" stays "")."""
        if not text:
            return ""
        return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        """Decrypt a token produced by :meth:`encrypt`.

        Raises:
            EncryptionError: If the token is invalid or the key is wrong.
        """
        if not token:
            return ""
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded 32-byte Fernet key."""
        return Fernet.generate_key().decode("utf-8")
