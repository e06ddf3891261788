"""Field Encryption

Versioned field-level authenticated encryption for sensitive data at rest.
"""

from .encryption import (
    CipherEngine,
    DataClassification,
    Envelope,
    EncryptionVersion,
    EnvironmentKeyProvider,
    FieldClassifier,
    IndexHasher,
    KeyProvider,
    LegacyCipherAdapter,
    Migrator,
    RotationPolicy,
    StaticKeyProvider,
)
from .exceptions import (
    EncryptionError,
    MissingKeyError,
    MalformedEnvelopeError,
    UnsupportedVersionError,
    DecryptionError,
)
from .maintenance import ReencryptionPass, ReencryptionStats

__all__ = [
    # Encryption
    'CipherEngine',
    'DataClassification',
    'Envelope',
    'EncryptionVersion',
    'EnvironmentKeyProvider',
    'FieldClassifier',
    'IndexHasher',
    'KeyProvider',
    'LegacyCipherAdapter',
    'Migrator',
    'RotationPolicy',
    'StaticKeyProvider',

    # Errors
    'EncryptionError',
    'MissingKeyError',
    'MalformedEnvelopeError',
    'UnsupportedVersionError',
    'DecryptionError',

    # Maintenance
    'ReencryptionPass',
    'ReencryptionStats',
]

__version__ = "2.0.0"
