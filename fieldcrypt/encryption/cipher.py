"""Field-level Encryption with AES-256-GCM

This module implements authenticated encryption of single field values.
Every call draws a fresh 96-bit nonce, and every envelope it writes is
version 2. Version 1 envelopes are read through the legacy adapter.
"""

import asyncio
import binascii
import functools
import logging
import os
from typing import Any, Mapping, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from fieldcrypt.exceptions import DecryptionError, UnsupportedVersionError
from .indexing import IndexHasher
from .keys import EnvironmentKeyProvider, KeyProvider
from .legacy import LegacyCipherAdapter
from .models import (
    CURRENT_IV_BYTES,
    DataClassification,
    EncryptionVersion,
    Envelope,
    utcnow,
)

logger = logging.getLogger(__name__)

EnvelopeLike = Union[Envelope, Mapping[str, Any]]


class CipherEngine:
    """Authenticated field encryption handler"""

    algorithm = "AES-256-GCM"
    version = EncryptionVersion.CURRENT

    def __init__(
        self,
        key_provider: Optional[KeyProvider] = None,
        legacy_adapter: Optional[LegacyCipherAdapter] = None,
        index_hasher: Optional[IndexHasher] = None
    ):
        self.key_provider = key_provider or EnvironmentKeyProvider()
        self.legacy_adapter = legacy_adapter or LegacyCipherAdapter(self.key_provider)
        self.index_hasher = index_hasher or IndexHasher()

    def encrypt(self, plaintext: str, classification: DataClassification) -> Envelope:
        """Encrypt a single value

        Args:
            plaintext: Value to encrypt
            classification: Sensitivity label, used for logging context only

        Returns:
            Version 2 envelope
        """
        if not isinstance(plaintext, str):
            raise TypeError("CipherEngine.encrypt expects a string plaintext")
        classification = DataClassification(classification)

        key = self.key_provider.get_key()

        # 96-bit nonce, never reused
        nonce = os.urandom(CURRENT_IV_BYTES)

        cipher = Cipher(
            algorithms.AES(key),
            modes.GCM(nonce),
            backend=default_backend()
        )
        encryptor = cipher.encryptor()
        ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()

        envelope = Envelope(
            ciphertext=ciphertext.hex(),
            iv=nonce.hex(),
            auth_tag=encryptor.tag.hex(),
            version=self.version,
            encrypted_at=utcnow(),
        )

        logger.debug(
            "Data encrypted",
            extra={
                "classification": classification.value,
                "encryption_version": int(self.version),
            }
        )
        return envelope

    def decrypt(self, envelope: EnvelopeLike, classification: DataClassification) -> str:
        """Decrypt an envelope

        Args:
            envelope: Envelope or its stored dictionary form
            classification: Sensitivity label, used for logging context only

        Returns:
            Decrypted plaintext
        """
        envelope = Envelope.coerce(envelope)
        classification = DataClassification(classification)

        if envelope.version is EncryptionVersion.CURRENT:
            plaintext = self._decrypt_current(envelope)
        elif envelope.version is EncryptionVersion.LEGACY:
            plaintext = self.legacy_adapter.decrypt(envelope)
        else:
            raise UnsupportedVersionError(envelope.version)

        logger.debug(
            "Data decrypted",
            extra={
                "classification": classification.value,
                "encryption_version": int(envelope.version),
            }
        )
        return plaintext

    def _decrypt_current(self, envelope: Envelope) -> str:
        key = self.key_provider.get_key()
        ciphertext = binascii.unhexlify(envelope.ciphertext)
        nonce = binascii.unhexlify(envelope.iv)
        tag = binascii.unhexlify(envelope.auth_tag)

        cipher = Cipher(
            algorithms.AES(key),
            modes.GCM(nonce, tag),
            backend=default_backend()
        )
        decryptor = cipher.decryptor()

        try:
            plaintext = decryptor.update(ciphertext) + decryptor.finalize()
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError):
            logger.warning(
                "Authenticated decryption failed",
                extra={"encryption_version": int(envelope.version)}
            )
            raise DecryptionError() from None

    async def encrypt_async(self, plaintext: str, classification: DataClassification) -> Envelope:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.encrypt, plaintext, classification)
        )

    async def decrypt_async(self, envelope: EnvelopeLike, classification: DataClassification) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.decrypt, envelope, classification)
        )

    def hash_for_indexing(self, plaintext: str) -> str:
        return self.index_hasher.hash_for_indexing(plaintext)
