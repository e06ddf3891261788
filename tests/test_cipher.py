"""Tests for authenticated field encryption."""

import dataclasses
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from fieldcrypt.encryption import (
    CipherEngine,
    DataClassification,
    EncryptionVersion,
    Envelope,
    LegacyCipherAdapter,
    StaticKeyProvider,
)
from fieldcrypt.encryption.keys import KeyProvider
from fieldcrypt.exceptions import DecryptionError, MissingKeyError, UnsupportedVersionError
from tests.helpers import flip_bit

PLAINTEXT = "sensitive-test-data-123"
CLASSIFICATION = DataClassification.CONFIDENTIAL


class TestEncrypt:
    """Test envelope production."""

    def test_produces_current_envelope(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)

        assert envelope.version is EncryptionVersion.CURRENT
        assert len(bytes.fromhex(envelope.iv)) == 12
        assert len(bytes.fromhex(envelope.auth_tag)) == 16
        assert envelope.ciphertext != PLAINTEXT.encode("utf-8").hex()
        assert envelope.encrypted_at is not None

    def test_ciphertext_never_contains_plaintext(self, engine):
        data = engine.encrypt(PLAINTEXT, CLASSIFICATION).to_dict()

        assert PLAINTEXT not in str(data)

    def test_rejects_non_string(self, engine):
        with pytest.raises(TypeError):
            engine.encrypt(b"bytes", CLASSIFICATION)

    def test_accepts_classification_value(self, engine):
        envelope = engine.encrypt(PLAINTEXT, "restricted")

        assert engine.decrypt(envelope, "restricted") == PLAINTEXT

    def test_missing_key_propagates(self):
        provider = Mock(spec=KeyProvider)
        provider.get_key.side_effect = MissingKeyError("ENCRYPTION_KEY environment variable is required")

        with pytest.raises(MissingKeyError):
            CipherEngine(provider).encrypt(PLAINTEXT, CLASSIFICATION)

    def test_nonce_uniqueness(self, engine):
        """Repeated encryption of the same value never reuses a nonce."""
        envelopes = [engine.encrypt(PLAINTEXT, CLASSIFICATION) for _ in range(10000)]

        assert len({envelope.iv for envelope in envelopes}) == 10000
        assert len({envelope.ciphertext for envelope in envelopes}) == 10000


class TestDecrypt:
    """Test decryption and tamper detection."""

    @pytest.mark.parametrize("classification", list(DataClassification))
    @pytest.mark.parametrize("plaintext", [
        PLAINTEXT,
        "",
        "ünïcødé ✓ 秘密",
        "x" * 10000,
    ])
    def test_round_trip(self, engine, plaintext, classification):
        envelope = engine.encrypt(plaintext, classification)

        assert engine.decrypt(envelope, classification) == plaintext

    def test_decrypts_stored_dictionary(self, engine):
        stored = engine.encrypt(PLAINTEXT, CLASSIFICATION).to_dict()

        assert engine.decrypt(stored, CLASSIFICATION) == PLAINTEXT

    def test_decryption_is_deterministic(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)

        assert engine.decrypt(envelope, CLASSIFICATION) == engine.decrypt(envelope, CLASSIFICATION)

    def test_classification_is_not_bound_to_ciphertext(self, engine):
        """Classification is audit context only; any label decrypts."""
        envelope = engine.encrypt(PLAINTEXT, DataClassification.RESTRICTED)

        assert engine.decrypt(envelope, DataClassification.PUBLIC) == PLAINTEXT

    def test_every_ciphertext_bit_flip_detected(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)
        bits = len(bytes.fromhex(envelope.ciphertext)) * 8

        for bit in range(bits):
            tampered = dataclasses.replace(envelope, ciphertext=flip_bit(envelope.ciphertext, bit))
            with pytest.raises(DecryptionError):
                engine.decrypt(tampered, CLASSIFICATION)

    def test_every_auth_tag_bit_flip_detected(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)

        for bit in range(128):
            tampered = dataclasses.replace(envelope, auth_tag=flip_bit(envelope.auth_tag, bit))
            with pytest.raises(DecryptionError):
                engine.decrypt(tampered, CLASSIFICATION)

    def test_every_iv_bit_flip_detected(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)

        for bit in range(96):
            tampered = dataclasses.replace(envelope, iv=flip_bit(envelope.iv, bit))
            with pytest.raises(DecryptionError):
                engine.decrypt(tampered, CLASSIFICATION)

    def test_random_auth_tag_rejected(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)
        tampered = dataclasses.replace(envelope, auth_tag="ab" * 16)

        with pytest.raises(DecryptionError):
            engine.decrypt(tampered, CLASSIFICATION)

    def test_wrong_key_rejected(self, engine, other_engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)

        with pytest.raises(DecryptionError):
            other_engine.decrypt(envelope, CLASSIFICATION)

    def test_failure_is_opaque(self, engine):
        """The error reveals nothing about which component failed."""
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)
        bad_tag = dataclasses.replace(envelope, auth_tag=flip_bit(envelope.auth_tag, 0))
        bad_body = dataclasses.replace(envelope, ciphertext=flip_bit(envelope.ciphertext, 0))

        errors = []
        for tampered in (bad_tag, bad_body):
            with pytest.raises(DecryptionError) as exc_info:
                engine.decrypt(tampered, CLASSIFICATION)
            errors.append(exc_info.value)

        assert str(errors[0]) == str(errors[1]) == DecryptionError.MESSAGE
        for error in errors:
            assert error.__cause__ is None
            assert error.__suppress_context__


class TestVersionDispatch:
    """Test dispatch strictly on the envelope version."""

    def test_legacy_envelopes_use_legacy_path(self, key_provider, legacy_envelope):
        legacy = Mock(spec=LegacyCipherAdapter)
        legacy.decrypt.return_value = "from-legacy"
        engine = CipherEngine(key_provider, legacy_adapter=legacy)
        envelope = legacy_envelope(PLAINTEXT)

        assert engine.decrypt(envelope, CLASSIFICATION) == "from-legacy"
        legacy.decrypt.assert_called_once_with(envelope)

    def test_current_envelopes_skip_legacy_path(self, key_provider):
        legacy = Mock(spec=LegacyCipherAdapter)
        engine = CipherEngine(key_provider, legacy_adapter=legacy)

        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)
        engine.decrypt(envelope, CLASSIFICATION)

        legacy.decrypt.assert_not_called()

    def test_unknown_version_fails_before_any_cipher(self, key_hex):
        provider = Mock(wraps=StaticKeyProvider(key_hex))
        legacy = Mock(spec=LegacyCipherAdapter)
        engine = CipherEngine(provider, legacy_adapter=legacy)
        stored = engine.encrypt(PLAINTEXT, CLASSIFICATION).to_dict()
        provider.get_key.reset_mock()

        with pytest.raises(UnsupportedVersionError):
            engine.decrypt(dict(stored, encryptionVersion=99), CLASSIFICATION)

        provider.get_key.assert_not_called()
        legacy.decrypt.assert_not_called()

    def test_new_writes_are_never_legacy(self, engine):
        for classification in DataClassification:
            assert engine.encrypt(PLAINTEXT, classification).version is EncryptionVersion.CURRENT


class TestConcurrency:
    """Test independent concurrent calls."""

    def test_parallel_round_trips(self, engine):
        values = [f"value-{i}" for i in range(200)]

        def round_trip(value):
            return engine.decrypt(engine.encrypt(value, CLASSIFICATION), CLASSIFICATION)

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(round_trip, values))

        assert results == values

    @pytest.mark.asyncio
    async def test_async_wrappers(self, engine):
        envelope = await engine.encrypt_async(PLAINTEXT, CLASSIFICATION)

        assert isinstance(envelope, Envelope)
        assert await engine.decrypt_async(envelope, CLASSIFICATION) == PLAINTEXT

    @pytest.mark.asyncio
    async def test_async_failure_propagates(self, engine):
        envelope = engine.encrypt(PLAINTEXT, CLASSIFICATION)
        tampered = dataclasses.replace(envelope, auth_tag=flip_bit(envelope.auth_tag, 5))

        with pytest.raises(DecryptionError):
            await engine.decrypt_async(tampered, CLASSIFICATION)


def test_hash_for_indexing_delegates(engine):
    assert engine.hash_for_indexing("x") == engine.index_hasher.hash_for_indexing("x")
