"""Encryption of provider API keys at rest.

Blobs are ``nonce:authTag:ciphertext``, each component hex encoded, sealed
with AES-256-GCM under a key derived from the configured secret with scrypt.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..core.exceptions import DecryptionError

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


def derive_key(secret: str, salt: str) -> bytes:
    """Derive a 256-bit key from a passphrase."""
    kdf = Scrypt(salt=salt.encode("utf-8"), length=KEY_SIZE, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class CredentialVault:
    """Encrypts and decrypts provider credentials."""

    def __init__(self, secret: str, salt: str = "flowwatch") -> None:
        self._aead = AESGCM(derive_key(secret, salt))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, blob: str) -> str:
        parts = blob.split(":") if blob else []
        if len(parts) != 3:
            raise DecryptionError("malformed credential blob")

        try:
            nonce, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError:
            raise DecryptionError("credential blob is not hex encoded") from None

        if len(tag) != TAG_SIZE or len(nonce) < 8:
            raise DecryptionError("malformed credential blob")

        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            raise DecryptionError("authentication tag mismatch (wrong key or tampered data)") from None

        return plaintext.decode("utf-8")
