"""Re-encryption Pass

Background upgrade of stored classified records: legacy envelopes are
migrated to the current scheme and envelopes past their rotation age are
re-encrypted. Records are independent, so a pass interrupted part way can
simply be run again; records already current are skipped.

A record whose refresh fails is returned unchanged with its error recorded
and is never reported as updated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fieldcrypt.audit import AuditEventType, AuditSeverity, EncryptionAuditLogger
from fieldcrypt.encryption.classifier import ENCRYPTION_METADATA_KEY, is_classified_record, record_data_type
from fieldcrypt.encryption.migration import Migrator, RotationPolicy
from fieldcrypt.encryption.models import DataClassification, Envelope, format_timestamp, utcnow
from fieldcrypt.encryption.rules import RuleTable
from fieldcrypt.exceptions import DecryptionError, MalformedEnvelopeError

logger = logging.getLogger(__name__)


@dataclass
class ReencryptionStats:
    """Counters for a re-encryption pass"""
    total: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def success_rate(self) -> float:
        if not self.total:
            return 1.0
        return (self.total - self.errors) / self.total


@dataclass
class RecordRefresh:
    """Outcome of refreshing one record"""
    record: Dict[str, Any]
    migrated_fields: List[str] = field(default_factory=list)
    rotated_fields: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def updated(self) -> bool:
        return self.error is None and bool(self.migrated_fields or self.rotated_fields)


class ReencryptionPass:
    """Migrates and rotates the envelopes inside classified records"""

    def __init__(
        self,
        migrator: Migrator,
        policy: Optional[RotationPolicy] = None,
        rules: Optional[RuleTable] = None,
        audit_logger: Optional[EncryptionAuditLogger] = None,
        default_classification: DataClassification = DataClassification.CONFIDENTIAL
    ):
        self.migrator = migrator
        self.policy = policy or RotationPolicy.from_settings()
        self.rules = rules or RuleTable()
        self.audit_logger = audit_logger
        self.default_classification = default_classification

    def refresh_record(self, record: Mapping[str, Any]) -> RecordRefresh:
        """Refresh every envelope in a record

        Args:
            record: Classified record as stored

        Returns:
            RecordRefresh holding the new record, or the original record
            and an error name when any field failed
        """
        if not is_classified_record(record):
            return RecordRefresh(record=dict(record))

        data_type = record_data_type(record)
        refreshed = dict(record)
        migrated: List[str] = []
        rotated: List[str] = []

        try:
            for name, value in record.items():
                if name == ENCRYPTION_METADATA_KEY or not Envelope.looks_like_envelope(value):
                    continue

                envelope = Envelope.coerce(value)
                classification = self.rules.classify(name, data_type) or self.default_classification

                if envelope.needs_migration:
                    refreshed[name] = self.migrator.migrate_to_v2(envelope, classification).to_dict()
                    migrated.append(name)
                elif self.policy.needs_rotation(envelope):
                    refreshed[name] = self.migrator.reencrypt(envelope, classification).to_dict()
                    rotated.append(name)
        except (DecryptionError, MalformedEnvelopeError) as e:
            logger.error(
                "Record refresh failed",
                extra={"data_type": data_type, "error_type": type(e).__name__}
            )
            if self.audit_logger:
                self.audit_logger.record(
                    AuditEventType.REENCRYPTION_FAILED,
                    data_type=data_type,
                    success=False,
                    severity=AuditSeverity.ERROR,
                    error_type=type(e).__name__,
                )
            return RecordRefresh(record=dict(record), error=type(e).__name__)

        if migrated or rotated:
            refreshed[ENCRYPTION_METADATA_KEY] = dict(
                record[ENCRYPTION_METADATA_KEY],
                encryptedAt=format_timestamp(utcnow()),
            )

        if self.audit_logger:
            for name in migrated:
                self.audit_logger.record(AuditEventType.ENVELOPE_MIGRATED, data_type=data_type, field_name=name)
            for name in rotated:
                self.audit_logger.record(AuditEventType.ENVELOPE_ROTATED, data_type=data_type, field_name=name)

        return RecordRefresh(record=refreshed, migrated_fields=migrated, rotated_fields=rotated)

    def run(self, records: Iterable[Mapping[str, Any]]) -> Tuple[List[RecordRefresh], ReencryptionStats]:
        """Refresh a batch of records"""
        stats = ReencryptionStats()
        results: List[RecordRefresh] = []

        logger.info("Starting re-encryption pass")
        for record in records:
            stats.total += 1
            result = self.refresh_record(record)
            results.append(result)

            if result.error:
                stats.errors += 1
            elif result.updated:
                stats.updated += 1
            else:
                stats.skipped += 1

        logger.info(
            "Re-encryption pass completed",
            extra={
                "total": stats.total,
                "updated": stats.updated,
                "skipped": stats.skipped,
                "errors": stats.errors,
            }
        )
        return results, stats
