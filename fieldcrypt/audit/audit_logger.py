"""Encryption Audit Logging

Structured audit events for field encryption activity. Events carry the
classification, data type and field name of the value involved, never the
value itself, and each event is sealed with a SHA-256 hash of its content.
"""

import hashlib
import json
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

AUDIT_LOGGER_NAME = "fieldcrypt.audit"


class AuditEventType(Enum):
    """Types of encryption audit events"""
    DATA_ENCRYPTED = "data.encrypted"
    DATA_DECRYPTED = "data.decrypted"
    DECRYPTION_FAILED = "data.decryption_failed"
    ENVELOPE_MIGRATED = "envelope.migrated"
    ENVELOPE_ROTATED = "envelope.rotated"
    REENCRYPTION_FAILED = "envelope.reencryption_failed"


class AuditSeverity(Enum):
    """Audit event severity levels"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_SEVERITY_LEVELS = {
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.ERROR: logging.ERROR,
}


@dataclass
class AuditEvent:
    """Audit event data structure"""
    event_type: AuditEventType
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    severity: AuditSeverity = AuditSeverity.INFO
    classification: Optional[str] = None
    data_type: Optional[str] = None
    field_name: Optional[str] = None
    encryption_version: Optional[int] = None
    success: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['event_type'] = self.event_type.value
        data['severity'] = self.severity.value
        return data

    def calculate_hash(self) -> str:
        """Calculate hash of event content"""
        data = self.to_dict()
        data.pop('hash', None)
        content = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(content.encode('utf-8')).hexdigest()

    def verify(self) -> bool:
        return self.hash is not None and self.hash == self.calculate_hash()


class EncryptionAuditLogger:
    """Records encryption audit events

    Events are written to the ``fieldcrypt.audit`` logger and the most
    recent ones are kept in memory for inspection.
    """

    def __init__(self, buffer_size: int = 1000, audit_logger: Optional[logging.Logger] = None):
        self._events: Deque[AuditEvent] = deque(maxlen=buffer_size)
        self._lock = threading.Lock()
        self._logger = audit_logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def log_event(self, event: AuditEvent) -> AuditEvent:
        """Seal and record an event"""
        event.hash = event.calculate_hash()
        with self._lock:
            self._events.append(event)

        self._logger.log(
            _SEVERITY_LEVELS[event.severity],
            event.event_type.value,
            extra={"audit": event.to_dict()}
        )
        return event

    def record(
        self,
        event_type: AuditEventType,
        classification: Optional[Any] = None,
        data_type: Optional[str] = None,
        field_name: Optional[str] = None,
        encryption_version: Optional[int] = None,
        success: bool = True,
        severity: AuditSeverity = AuditSeverity.INFO,
        **metadata: Any
    ) -> AuditEvent:
        if classification is not None and isinstance(classification, Enum):
            classification = classification.value
        return self.log_event(AuditEvent(
            event_type=event_type,
            severity=severity,
            classification=classification,
            data_type=data_type,
            field_name=field_name,
            encryption_version=encryption_version,
            success=success,
            metadata=metadata,
        ))

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def events_of_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def clear(self):
        with self._lock:
            self._events.clear()
