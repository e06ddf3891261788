"""Encryption Module

Versioned field-level authenticated encryption, legacy format support,
migration, rotation and searchable index hashing.
"""

from .models import DataClassification, EncryptionVersion, Envelope
from .keys import KeyProvider, EnvironmentKeyProvider, StaticKeyProvider, generate_encryption_key
from .cipher import CipherEngine
from .legacy import LegacyCipherAdapter
from .migration import Migrator, RotationPolicy
from .indexing import IndexHasher, hash_for_indexing
from .rules import RuleTable, SensitivityRule
from .classifier import (
    FieldClassifier,
    DecryptedRecord,
    Decrypted,
    StillEncrypted,
    ENCRYPTION_METADATA_KEY,
)

__all__ = [
    'DataClassification',
    'EncryptionVersion',
    'Envelope',
    'KeyProvider',
    'EnvironmentKeyProvider',
    'StaticKeyProvider',
    'generate_encryption_key',
    'CipherEngine',
    'LegacyCipherAdapter',
    'Migrator',
    'RotationPolicy',
    'IndexHasher',
    'hash_for_indexing',
    'RuleTable',
    'SensitivityRule',
    'FieldClassifier',
    'DecryptedRecord',
    'Decrypted',
    'StillEncrypted',
    'ENCRYPTION_METADATA_KEY',
]
