"""Audit Module

Audit trail for field encryption activity.
"""

from .audit_logger import (
    AuditEvent,
    AuditEventType,
    AuditSeverity,
    EncryptionAuditLogger,
)

__all__ = ['AuditEvent', 'AuditEventType', 'AuditSeverity', 'EncryptionAuditLogger']
