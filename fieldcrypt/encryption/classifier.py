"""Record Field Classification

Encrypts the sensitive fields of a flat record and reverses the process.
Sensitivity decisions come from the rule table in ``rules``; this module
only walks the record.

Record decryption is the one place in the package that catches per-field
decryption failures. A field that cannot be decrypted stays in its
encrypted form and is reported as ``StillEncrypted`` so callers can tell
it apart from fields that were restored.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from fieldcrypt.audit import AuditEventType, AuditSeverity, EncryptionAuditLogger
from fieldcrypt.exceptions import DecryptionError, MalformedEnvelopeError
from .cipher import CipherEngine
from .models import (
    DataClassification,
    EncryptionVersion,
    Envelope,
    format_timestamp,
    utcnow,
)
from .rules import RuleTable

logger = logging.getLogger(__name__)

ENCRYPTION_METADATA_KEY = "_encryption"


@dataclass(frozen=True)
class Decrypted:
    """Field restored to plaintext"""
    value: str


@dataclass(frozen=True)
class StillEncrypted:
    """Field left in its stored encrypted form"""
    envelope: Any
    reason: str


FieldOutcome = Union[Decrypted, StillEncrypted]


@dataclass
class DecryptedRecord:
    """Result of record decryption

    ``data`` holds the record with every restorable field replaced by its
    plaintext and the ``_encryption`` marker removed. Fields listed in
    ``failed_fields`` still hold their encrypted form.
    """
    data: Dict[str, Any]
    outcomes: Dict[str, FieldOutcome] = field(default_factory=dict)

    @property
    def failed_fields(self) -> List[str]:
        return [name for name, outcome in self.outcomes.items() if isinstance(outcome, StillEncrypted)]

    @property
    def decrypted_fields(self) -> List[str]:
        return [name for name, outcome in self.outcomes.items() if isinstance(outcome, Decrypted)]

    @property
    def is_complete(self) -> bool:
        return not self.failed_fields


def is_classified_record(record: Any) -> bool:
    if not isinstance(record, Mapping):
        return False
    metadata = record.get(ENCRYPTION_METADATA_KEY)
    return isinstance(metadata, Mapping) and metadata.get("encrypted") is True


def record_data_type(record: Mapping[str, Any]) -> Optional[str]:
    """Data type stored in a record's marker, or None when absent or not a string"""
    data_type = record[ENCRYPTION_METADATA_KEY].get("dataType")
    return data_type if isinstance(data_type, str) else None


class FieldClassifier:
    """Encrypts and decrypts sensitive record fields"""

    def __init__(
        self,
        engine: CipherEngine,
        rules: Optional[RuleTable] = None,
        audit_logger: Optional[EncryptionAuditLogger] = None,
        default_classification: DataClassification = DataClassification.CONFIDENTIAL
    ):
        self.engine = engine
        self.rules = rules or RuleTable()
        self.audit_logger = audit_logger
        self.default_classification = default_classification

    def classification_for(self, field_name: Any, data_type: Optional[str] = None) -> Optional[DataClassification]:
        if not isinstance(field_name, str) or field_name == ENCRYPTION_METADATA_KEY:
            return None
        return self.rules.classify(field_name, data_type)

    def should_encrypt_field(self, field_name: Any, data_type: Optional[str] = None) -> bool:
        return self.classification_for(field_name, data_type) is not None

    def encrypt_record(self, record: Mapping[str, Any], data_type: str) -> Dict[str, Any]:
        """Encrypt the sensitive fields of a record

        Args:
            record: Flat record
            data_type: Logical record type, selects the allow-list

        Returns:
            Copy of the record with sensitive string values replaced by
            stored envelopes and an ``_encryption`` metadata field
        """
        if not isinstance(record, Mapping):
            logger.warning("Skipping encryption of non-mapping record", extra={"data_type": data_type})
            return record

        classified: Dict[str, Any] = {}
        encrypted_fields = []

        for name, value in record.items():
            if name == ENCRYPTION_METADATA_KEY:
                continue

            classification = self.classification_for(name, data_type)
            # Only plain strings are encrypted; envelopes and other shapes pass through
            if classification is None or not isinstance(value, str):
                classified[name] = value
                continue

            envelope = self.engine.encrypt(value, classification)
            classified[name] = envelope.to_dict()
            encrypted_fields.append(name)

            if self.audit_logger:
                self.audit_logger.record(
                    AuditEventType.DATA_ENCRYPTED,
                    classification=classification,
                    data_type=data_type,
                    field_name=name,
                    encryption_version=int(envelope.version),
                )

        classified[ENCRYPTION_METADATA_KEY] = {
            "encrypted": True,
            "encryptedAt": format_timestamp(utcnow()),
            "dataType": data_type,
            "algorithm": self.engine.algorithm.lower(),
            "keyVersion": int(EncryptionVersion.CURRENT),
        }

        logger.info(
            "Record encrypted",
            extra={"data_type": data_type, "encrypted_field_count": len(encrypted_fields)}
        )
        return classified

    def decrypt_record(self, record: Mapping[str, Any]) -> DecryptedRecord:
        """Decrypt the encrypted fields of a classified record

        Records without an ``_encryption`` marker are returned as they are.
        A field that fails to decrypt is kept in its encrypted form and the
        remaining fields are still processed.
        """
        if not isinstance(record, Mapping):
            raise TypeError("decrypt_record expects a mapping")

        if not is_classified_record(record):
            return DecryptedRecord(data=dict(record))

        data_type = record_data_type(record)
        data: Dict[str, Any] = {}
        outcomes: Dict[str, FieldOutcome] = {}

        for name, value in record.items():
            if name == ENCRYPTION_METADATA_KEY:
                continue
            if not Envelope.looks_like_envelope(value):
                data[name] = value
                continue

            classification = self.classification_for(name, data_type) or self.default_classification
            outcome = self._decrypt_field(name, value, classification, data_type)
            outcomes[name] = outcome
            data[name] = outcome.value if isinstance(outcome, Decrypted) else value

        result = DecryptedRecord(data=data, outcomes=outcomes)
        if not result.is_complete:
            logger.warning(
                "Record partially decrypted",
                extra={"data_type": data_type, "failed_fields": result.failed_fields}
            )
        return result

    def _decrypt_field(
        self,
        name: str,
        value: Any,
        classification: DataClassification,
        data_type: Optional[str]
    ) -> FieldOutcome:
        try:
            plaintext = self.engine.decrypt(value, classification)
        except DecryptionError:
            return self._still_encrypted(name, value, "decryption_failed", classification, data_type)
        except MalformedEnvelopeError:
            return self._still_encrypted(name, value, "malformed_envelope", classification, data_type)

        if self.audit_logger:
            self.audit_logger.record(
                AuditEventType.DATA_DECRYPTED,
                classification=classification,
                data_type=data_type,
                field_name=name,
            )
        return Decrypted(plaintext)

    def _still_encrypted(
        self,
        name: str,
        value: Any,
        reason: str,
        classification: DataClassification,
        data_type: Optional[str]
    ) -> StillEncrypted:
        logger.warning(
            "Field left encrypted",
            extra={"field_name": name, "data_type": data_type, "reason": reason}
        )
        if self.audit_logger:
            self.audit_logger.record(
                AuditEventType.DECRYPTION_FAILED,
                classification=classification,
                data_type=data_type,
                field_name=name,
                success=False,
                severity=AuditSeverity.WARNING,
                reason=reason,
            )
        return StillEncrypted(envelope=value, reason=reason)
