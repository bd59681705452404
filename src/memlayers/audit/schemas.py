"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Categories of auditable events."""

    EXTRACTION_QUEUED = "EXTRACTION_QUEUED"
    EXTRACTION_THROTTLED = "EXTRACTION_THROTTLED"
    EXTRACTION_COMPLETED = "EXTRACTION_COMPLETED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    CONTEXT_RETRIEVED = "CONTEXT_RETRIEVED"


class AuditEvent(BaseModel):
    """A single immutable audit log entry.

    ``source_chat_id`` and ``source_message_id`` point back at the message
    that caused the event, when there is one.
    """

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: AuditEventType
    owner_id: str | None = None
    source_chat_id: str | None = None
    source_message_id: str | None = None
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific data (counts, error messages).",
    )
