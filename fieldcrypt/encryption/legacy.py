"""Legacy Cipher Adapter

Read-only support for version 1 envelopes written with AES-256-CBC and a
128-bit IV. The format carries no authentication tag, so corrupted
ciphertext usually decrypts to garbage instead of failing. Nothing in this
package writes version 1 envelopes.
"""

import binascii
import logging

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from fieldcrypt.exceptions import DecryptionError
from .keys import KeyProvider
from .models import Envelope, EncryptionVersion

logger = logging.getLogger(__name__)

BLOCK_SIZE_BITS = 128


class LegacyCipherAdapter:
    """Decrypt-only AES-256-CBC handler"""

    algorithm = "AES-256-CBC"

    def __init__(self, key_provider: KeyProvider):
        self.key_provider = key_provider

    def decrypt(self, envelope: Envelope) -> str:
        """Decrypt a version 1 envelope

        Args:
            envelope: Legacy envelope

        Returns:
            Decrypted plaintext
        """
        if envelope.version is not EncryptionVersion.LEGACY:
            raise ValueError("LegacyCipherAdapter only handles version 1 envelopes")

        key = self.key_provider.get_key()
        ciphertext = binascii.unhexlify(envelope.ciphertext)
        iv = binascii.unhexlify(envelope.iv)

        cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
        decryptor = cipher.decryptor()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()

        try:
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            # Length, padding and encoding failures all surface the same way
            logger.warning(
                "Legacy decryption failed",
                extra={"encryption_version": int(envelope.version)},
            )
            raise DecryptionError() from None
