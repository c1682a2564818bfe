"""
Storage-level encryption helpers.

Wraps :mod:`core.crypto` to encrypt individual JSON string fields. The
caller is responsible for key management; keys are never written to disk
through this module.
"""

import base64
from typing import Optional

from cryptography.exceptions import InvalidTag

from core import crypto
from storage.errors import StoreLocked


class FieldEncryptor:
    """Encrypt / decrypt individual string fields using AES-256-GCM."""

    def __init__(self, key: bytes, salt: bytes) -> None:
        """
        Args:
            key:  32-byte AES key derived with :func:`core.crypto.derive_key`.
            salt: The salt *key* was derived with; persisted next to the data.
        """
        if len(key) != crypto.KEY_SIZE:
            raise ValueError("Key must be 32 bytes.")
        self._key = key
        self.salt = salt

    @classmethod
    def from_password(cls, password: str, salt: Optional[bytes] = None) -> "FieldEncryptor":
        """Derive a key from *password*, generating a fresh salt when none is given."""
        salt = salt if salt is not None else crypto.generate_salt()
        return cls(crypto.derive_key(password, salt), salt)

    def encrypt_field(self, plaintext: str) -> str:
        """Return a URL-safe base64 blob of the encrypted *plaintext*."""
        blob = crypto.seal(plaintext.encode("utf-8"), self._key)
        return base64.urlsafe_b64encode(blob).decode("ascii")

    def decrypt_field(self, encoded: str) -> str:
        """
        Decrypt a blob produced by :meth:`encrypt_field`.

        Raises:
            storage.errors.StoreLocked: Wrong password, or the blob was tampered with.
        """
        try:
            blob = base64.urlsafe_b64decode(encoded.encode("ascii"))
            return crypto.open_sealed(blob, self._key).decode("utf-8")
        except (InvalidTag, ValueError) as exc:
            raise StoreLocked("Cannot decrypt account file: wrong password?") from exc
