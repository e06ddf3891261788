"""Encryption Errors

Error taxonomy for field-level encryption. Every failure raised by the
cipher layer is one of these types.
"""


class EncryptionError(Exception):
    """Base class for field encryption errors"""


class MissingKeyError(EncryptionError):
    """Master key is absent or malformed"""


class MalformedEnvelopeError(EncryptionError):
    """Envelope failed structural validation"""


class UnsupportedVersionError(MalformedEnvelopeError):
    """Envelope version is neither legacy nor current"""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Unsupported encryption version: {version!r}")


class DecryptionError(EncryptionError):
    """Envelope could not be decrypted

    The message is intentionally fixed. Details about which component
    failed verification are only logged server-side.
    """

    MESSAGE = "Failed to decrypt sensitive data"

    def __init__(self):
        super().__init__(self.MESSAGE)
