"""Tests for API key encryption."""

import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from flowwatch.core.exceptions import DecryptionError
from flowwatch.services.credential_vault import CredentialVault, derive_key


def test_roundtrip(vault):
    blob = vault.encrypt("n8n_api_1234")

    assert vault.decrypt(blob) == "n8n_api_1234"


def test_blob_format(vault):
    nonce, tag, ciphertext = vault.encrypt("abc").split(":")

    assert len(bytes.fromhex(nonce)) == 12
    assert len(bytes.fromhex(tag)) == 16
    assert len(bytes.fromhex(ciphertext)) == 3


def test_fresh_nonce_per_encryption(vault):
    assert vault.encrypt("same") != vault.encrypt("same")


def test_wrong_key_is_rejected(vault):
    blob = vault.encrypt("secret")
    other = CredentialVault("another-secret", "test-salt")

    with pytest.raises(DecryptionError) as exc_info:
        other.decrypt(blob)

    assert "authentication tag" in exc_info.value.message


def test_tampered_ciphertext_is_rejected(vault):
    nonce, tag, ciphertext = vault.encrypt("secret").split(":")
    flipped = format(int(ciphertext[:2], 16) ^ 0x01, "02x") + ciphertext[2:]

    with pytest.raises(DecryptionError):
        vault.decrypt(f"{nonce}:{tag}:{flipped}")


@pytest.mark.parametrize("blob", ["", "abc", "a:b", "zz:zz:zz", "00:11:22", "a:b:c:d"])
def test_malformed_blobs(vault, blob):
    with pytest.raises(DecryptionError):
        vault.decrypt(blob)


def test_sixteen_byte_iv_is_accepted():
    key = derive_key("test-secret", "test-salt")
    iv = os.urandom(16)
    sealed = AESGCM(key).encrypt(iv, b"legacy-key", None)
    blob = f"{iv.hex()}:{sealed[-16:].hex()}:{sealed[:-16].hex()}"

    assert CredentialVault("test-secret", "test-salt").decrypt(blob) == "legacy-key"
