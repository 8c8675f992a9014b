"""Encryption of stored provider API keys."""

from __future__ import annotations

import logging
import os

from cryptography.fernet import Fernet, InvalidToken

__all__ = ["KeyCipher", "KeyDecryptionError"]

_logger = logging.getLogger(__name__)


class KeyDecryptionError(Exception):
    """Raised when a stored API key cannot be decrypted."""

    def __init__(self) -> None:
        super().__init__("stored API key could not be decrypted")


class KeyCipher:
    """Symmetric cipher for API keys kept in the database."""

    def __init__(self, secret: str | bytes) -> None:
        key = secret.encode() if isinstance(secret, str) else secret
        self._fernet = Fernet(key)

    @classmethod
    def from_env(cls) -> KeyCipher:
        """Create a cipher from ``API_KEY_SECRET``.

        A random key is generated when the variable is missing; keys stored
        with it cannot be read after a restart.
        """
        secret = os.getenv("API_KEY_SECRET")
        if not secret:
            _logger.warning("API_KEY_SECRET not set; using an ephemeral key")
            return cls(Fernet.generate_key())
        return cls(secret)

    def encrypt_api_key(self, api_key: str) -> bytes:
        """Return the ciphertext for *api_key*."""
        return self._fernet.encrypt(api_key.encode())

    def decrypt_api_key(self, encrypted: bytes) -> str:
        """Return the plaintext key.

        Raises
        ------
        KeyDecryptionError
            If the token was not produced with this cipher's secret or has
            been tampered with.
        """
        try:
            return self._fernet.decrypt(encrypted).decode()
        except InvalidToken as exc:
            raise KeyDecryptionError from exc
