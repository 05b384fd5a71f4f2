"""Audit subsystem — JSONL trail of handled prompt requests."""

from haikuagent.audit.schemas import AuditEvent
from haikuagent.audit.schemas import AuditEventType
from haikuagent.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
