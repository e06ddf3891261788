"""Master Key Providers

Resolve the single 256-bit master key used by the cipher engine. Physical
key rotation is a deployment operation; there is no API here to change the
key of a running process.
"""

import binascii
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Optional, Union

from fieldcrypt.config import EncryptionSettings, get_settings
from fieldcrypt.exceptions import MissingKeyError

logger = logging.getLogger(__name__)

KEY_BYTES = 32
KEY_ENV_VAR = "ENCRYPTION_KEY"


def decode_key(material: Union[str, bytes], source: str = KEY_ENV_VAR) -> bytes:
    """Decode and validate 256-bit key material

    Args:
        material: Raw key bytes or a 64-character hex string
        source: Name reported in errors; the key itself is never echoed

    Returns:
        32-byte key
    """
    if isinstance(material, bytes):
        key = material
    else:
        try:
            key = binascii.unhexlify(material.strip())
        except (binascii.Error, ValueError):
            raise MissingKeyError(f"{source} must be a hex-encoded string") from None

    if len(key) != KEY_BYTES:
        raise MissingKeyError(
            f"{source} must decode to {KEY_BYTES} bytes ({KEY_BYTES * 2} hex characters)"
        )
    return key


def generate_encryption_key() -> str:
    """Generate a new hex-encoded 256-bit key for deployment"""
    return secrets.token_hex(KEY_BYTES)


class KeyProvider(ABC):
    """Source of the master encryption key"""

    @abstractmethod
    def get_key(self) -> bytes:
        """Return the 32-byte master key or raise MissingKeyError"""


class StaticKeyProvider(KeyProvider):
    """Key supplied explicitly at construction time"""

    def __init__(self, key: Union[str, bytes]):
        self._key = decode_key(key, source="static key")

    def get_key(self) -> bytes:
        return self._key

    def __repr__(self) -> str:
        return "StaticKeyProvider(<redacted>)"


class EnvironmentKeyProvider(KeyProvider):
    """Key read once from process configuration"""

    def __init__(self, settings: Optional[EncryptionSettings] = None):
        self._settings = settings
        self._key: Optional[bytes] = None
        self._lock = threading.Lock()

    def get_key(self) -> bytes:
        if self._key is None:
            with self._lock:
                if self._key is None:
                    self._key = self._load()
        return self._key

    def _load(self) -> bytes:
        settings = self._settings or get_settings()
        raw = settings.encryption_key
        if not raw or not raw.strip():
            logger.critical("Encryption key is not configured", extra={"variable": KEY_ENV_VAR})
            raise MissingKeyError(f"{KEY_ENV_VAR} environment variable is required")

        key = decode_key(raw)
        logger.info("Encryption key loaded", extra={"variable": KEY_ENV_VAR})
        return key

    def __repr__(self) -> str:
        return "EnvironmentKeyProvider()"
