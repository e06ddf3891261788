"""Envelope Migration and Rotation

Upgrade legacy envelopes to the current scheme and flag envelopes old
enough to be re-encrypted. Persisting the replacement envelope is the
caller's job.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from fieldcrypt.config import EncryptionSettings, get_settings
from .cipher import CipherEngine, EnvelopeLike
from .models import DataClassification, EncryptionVersion, Envelope, utcnow

logger = logging.getLogger(__name__)

DEFAULT_ROTATION_DAYS = 90


class Migrator:
    """Re-encrypts envelopes under the current scheme

    ``source_engine`` decrypts existing envelopes and defaults to
    ``engine``. Supplying an engine built on the previous key turns
    ``reencrypt`` into a logical key rotation.
    """

    def __init__(self, engine: CipherEngine, source_engine: Optional[CipherEngine] = None):
        self.engine = engine
        self.source_engine = source_engine or engine

    @staticmethod
    def needs_migration(envelope: EnvelopeLike) -> bool:
        return Envelope.coerce(envelope).needs_migration

    def migrate_to_v2(
        self,
        envelope: EnvelopeLike,
        classification: DataClassification = DataClassification.CONFIDENTIAL
    ) -> Envelope:
        """Upgrade a legacy envelope

        Args:
            envelope: Envelope to upgrade
            classification: Sensitivity label for the new envelope

        Returns:
            The input unchanged when already current, otherwise a new
            version 2 envelope
        """
        envelope = Envelope.coerce(envelope)
        if envelope.version >= EncryptionVersion.CURRENT:
            return envelope

        plaintext = self.source_engine.legacy_adapter.decrypt(envelope)
        migrated = self.engine.encrypt(plaintext, classification)

        logger.info(
            "Envelope migrated",
            extra={
                "from_version": int(envelope.version),
                "to_version": int(migrated.version),
                "classification": DataClassification(classification).value,
            }
        )
        return migrated

    def reencrypt(
        self,
        envelope: EnvelopeLike,
        classification: DataClassification = DataClassification.CONFIDENTIAL
    ) -> Envelope:
        """Decrypt with the source engine and encrypt with a fresh nonce"""
        plaintext = self.source_engine.decrypt(envelope, classification)
        refreshed = self.engine.encrypt(plaintext, classification)

        logger.info(
            "Envelope re-encrypted",
            extra={"classification": DataClassification(classification).value}
        )
        return refreshed


class RotationPolicy:
    """Age-based re-encryption policy"""

    def __init__(
        self,
        max_age: timedelta = timedelta(days=DEFAULT_ROTATION_DAYS),
        clock: Callable[[], datetime] = utcnow
    ):
        if max_age <= timedelta(0):
            raise ValueError("max_age must be positive")
        self.max_age = max_age
        self.clock = clock

    @classmethod
    def from_days(cls, days: int) -> "RotationPolicy":
        return cls(max_age=timedelta(days=days))

    @classmethod
    def from_settings(cls, settings: Optional[EncryptionSettings] = None) -> "RotationPolicy":
        settings = settings or get_settings()
        return cls.from_days(settings.key_rotation_days)

    def rotation_due_at(self, envelope: EnvelopeLike) -> datetime:
        return Envelope.coerce(envelope).encrypted_at + self.max_age

    def needs_rotation(self, envelope: EnvelopeLike) -> bool:
        # Age equal to the threshold is not yet due
        envelope = Envelope.coerce(envelope)
        return self.clock() - envelope.encrypted_at > self.max_age

    def days_until_rotation(self, envelope: EnvelopeLike) -> int:
        remaining = self.rotation_due_at(envelope) - self.clock()
        return max(remaining.days, 0)
