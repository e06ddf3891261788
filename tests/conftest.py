"""Pytest configuration and fixtures for field encryption tests."""

from typing import Callable

import pytest

from fieldcrypt.audit import EncryptionAuditLogger
from fieldcrypt.config import get_settings
from fieldcrypt.encryption import (
    CipherEngine,
    Envelope,
    FieldClassifier,
    Migrator,
    StaticKeyProvider,
    generate_encryption_key,
)
from tests.helpers import write_legacy_envelope


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def key_hex() -> str:
    return generate_encryption_key()


@pytest.fixture
def key_bytes(key_hex: str) -> bytes:
    return bytes.fromhex(key_hex)


@pytest.fixture
def key_provider(key_hex: str) -> StaticKeyProvider:
    return StaticKeyProvider(key_hex)


@pytest.fixture
def engine(key_provider: StaticKeyProvider) -> CipherEngine:
    return CipherEngine(key_provider)


@pytest.fixture
def other_engine() -> CipherEngine:
    """Engine holding a different key."""
    return CipherEngine(StaticKeyProvider(generate_encryption_key()))


@pytest.fixture
def legacy_envelope(key_bytes: bytes) -> Callable[..., Envelope]:
    """Factory for version 1 envelopes under the test key."""
    def factory(plaintext: str, **kwargs) -> Envelope:
        return write_legacy_envelope(plaintext, key_bytes, **kwargs)
    return factory


@pytest.fixture
def audit_logger() -> EncryptionAuditLogger:
    return EncryptionAuditLogger()


@pytest.fixture
def classifier(engine: CipherEngine, audit_logger: EncryptionAuditLogger) -> FieldClassifier:
    return FieldClassifier(engine, audit_logger=audit_logger)


@pytest.fixture
def migrator(engine: CipherEngine) -> Migrator:
    return Migrator(engine)
