"""Audit subsystem — JSONL trail of extraction and retrieval events."""

from memlayers.audit.schemas import AuditEvent
from memlayers.audit.schemas import AuditEventType
from memlayers.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
