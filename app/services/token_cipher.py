"""Symmetric encryption and fingerprinting for stored OAuth tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Encrypt tokens with a derived Fernet key and fingerprint them with HMAC.

    Fernet ciphertexts are randomised, so equality checks against stored
    tokens go through :meth:`fingerprint` instead.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._fingerprint_key = hashlib.sha256(b"fingerprint:" + digest).digest()

    def encrypt(self, plaintext: str) -> str:
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def fingerprint(self, value: str) -> str:
        """Deterministic keyed digest used for uniqueness and compare-and-set."""
        return hmac.new(self._fingerprint_key, value.encode("utf-8"), hashlib.sha256).hexdigest()


__all__ = ["TokenCipherService"]
