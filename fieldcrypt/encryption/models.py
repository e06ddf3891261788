"""Envelope Data Model

Versioned at-rest representation of an encrypted field value, plus the
classification labels callers attach to it.
"""

import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional

from fieldcrypt.exceptions import MalformedEnvelopeError, UnsupportedVersionError

CURRENT_IV_BYTES = 12
LEGACY_IV_BYTES = 16
AUTH_TAG_BYTES = 16

# Wire keys
CIPHERTEXT_KEY = "ciphertext"
LEGACY_CIPHERTEXT_KEY = "encryptedValue"
IV_KEY = "iv"
AUTH_TAG_KEY = "authTag"
VERSION_KEY = "encryptionVersion"
LEGACY_VERSION_KEY = "version"
ENCRYPTED_AT_KEY = "encryptedAt"


class DataClassification(Enum):
    """Sensitivity tiers"""
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


class EncryptionVersion(IntEnum):
    """Envelope format versions"""
    LEGACY = 1   # AES-256-CBC, no integrity
    CURRENT = 2  # AES-256-GCM

    @classmethod
    def parse(cls, value: Any) -> "EncryptionVersion":
        """Accept integers and all-digit strings only; floats are never truncated"""
        if isinstance(value, str) and value.isascii() and value.isdigit():
            number = int(value)
        elif isinstance(value, int) and not isinstance(value, bool):
            number = value
        else:
            raise UnsupportedVersionError(value)
        try:
            return cls(number)
        except ValueError:
            raise UnsupportedVersionError(value) from None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise MalformedEnvelopeError(f"Invalid encryptedAt timestamp: {value!r}") from None
    else:
        raise MalformedEnvelopeError("encryptedAt must be an ISO-8601 string")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        raise MalformedEnvelopeError(f"encryptedAt out of range: {value!r}") from None


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _hex_length(name: str, value: Any) -> int:
    if not isinstance(value, str):
        raise MalformedEnvelopeError(f"{name} must be a hex string")
    try:
        return len(binascii.unhexlify(value))
    except (binascii.Error, ValueError):
        raise MalformedEnvelopeError(f"{name} is not valid hex") from None


@dataclass(frozen=True)
class Envelope:
    """Encrypted field value with the metadata needed to decrypt it"""
    ciphertext: str
    iv: str
    version: EncryptionVersion
    auth_tag: Optional[str] = None
    encrypted_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        version = EncryptionVersion.parse(self.version)
        object.__setattr__(self, "version", version)
        object.__setattr__(self, "encrypted_at", parse_timestamp(self.encrypted_at))

        _hex_length(CIPHERTEXT_KEY, self.ciphertext)
        iv_bytes = _hex_length(IV_KEY, self.iv)

        if version is EncryptionVersion.CURRENT:
            if iv_bytes != CURRENT_IV_BYTES:
                raise MalformedEnvelopeError(
                    f"iv must be {CURRENT_IV_BYTES} bytes for version {int(version)}"
                )
            if self.auth_tag is None or _hex_length(AUTH_TAG_KEY, self.auth_tag) != AUTH_TAG_BYTES:
                raise MalformedEnvelopeError(f"authTag must be {AUTH_TAG_BYTES} bytes")
        else:
            if iv_bytes != LEGACY_IV_BYTES:
                raise MalformedEnvelopeError(
                    f"iv must be {LEGACY_IV_BYTES} bytes for version {int(version)}"
                )

    @property
    def is_legacy(self) -> bool:
        return self.version is EncryptionVersion.LEGACY

    @property
    def needs_migration(self) -> bool:
        return self.version < EncryptionVersion.CURRENT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the storage wire format"""
        return {
            CIPHERTEXT_KEY: self.ciphertext,
            IV_KEY: self.iv,
            AUTH_TAG_KEY: self.auth_tag or "",
            VERSION_KEY: int(self.version),
            ENCRYPTED_AT_KEY: format_timestamp(self.encrypted_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Envelope":
        """Parse the storage wire format

        Accepts envelopes written with the earlier ``encryptedValue`` and
        ``version`` key names.
        """
        if not isinstance(data, Mapping):
            raise MalformedEnvelopeError("Envelope must be a mapping")

        ciphertext = data.get(CIPHERTEXT_KEY, data.get(LEGACY_CIPHERTEXT_KEY))
        version = data.get(VERSION_KEY, data.get(LEGACY_VERSION_KEY))
        if ciphertext is None or version is None or IV_KEY not in data or ENCRYPTED_AT_KEY not in data:
            raise MalformedEnvelopeError("Envelope is missing required fields")

        version = EncryptionVersion.parse(version)
        auth_tag = data.get(AUTH_TAG_KEY) or None
        if version is EncryptionVersion.LEGACY:
            # Legacy envelopes carry no tag; anything stored there is ignored
            auth_tag = None

        return cls(
            ciphertext=ciphertext,
            iv=data[IV_KEY],
            version=version,
            auth_tag=auth_tag,
            encrypted_at=data[ENCRYPTED_AT_KEY],
        )

    @classmethod
    def coerce(cls, value: Any) -> "Envelope":
        if isinstance(value, cls):
            return value
        return cls.from_dict(value)

    @staticmethod
    def looks_like_envelope(value: Any) -> bool:
        """Structural check used when scanning records for encrypted fields"""
        if isinstance(value, Envelope):
            return True
        if not isinstance(value, Mapping):
            return False
        has_ciphertext = CIPHERTEXT_KEY in value or LEGACY_CIPHERTEXT_KEY in value
        has_version = VERSION_KEY in value or LEGACY_VERSION_KEY in value
        return has_ciphertext and has_version and IV_KEY in value
