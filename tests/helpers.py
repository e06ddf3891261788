"""Helpers shared by the field encryption tests."""

import os
from datetime import datetime, timezone
from typing import Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from fieldcrypt.encryption import EncryptionVersion, Envelope


def flip_bit(hex_value: str, bit: int) -> str:
    """Flip a single bit of a hex-encoded value."""
    raw = bytearray(bytes.fromhex(hex_value))
    raw[bit // 8] ^= 1 << (bit % 8)
    return raw.hex()


def write_legacy_envelope(
    plaintext: str,
    key: bytes,
    iv: Optional[bytes] = None,
    encrypted_at: Optional[datetime] = None
) -> Envelope:
    """Produce a version 1 (AES-256-CBC) envelope the way older releases did."""
    iv = iv or os.urandom(16)
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend()).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return Envelope(
        ciphertext=ciphertext.hex(),
        iv=iv.hex(),
        version=EncryptionVersion.LEGACY,
        encrypted_at=encrypted_at or datetime.now(timezone.utc),
    )


def classified_record(data_type: str, **fields) -> dict:
    """Build a stored classified record around ready-made field values."""
    record = dict(fields)
    record["_encryption"] = {
        "encrypted": True,
        "encryptedAt": "2024-01-01T00:00:00Z",
        "dataType": data_type,
        "algorithm": "aes-256-gcm",
        "keyVersion": 2,
    }
    return record
