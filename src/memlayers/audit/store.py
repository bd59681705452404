"""JSONL audit trail for extraction and retrieval events.

One event per line. Message text never goes into an event; only ids,
counts and error types do.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from memlayers.audit.schemas import AuditEvent
from memlayers.audit.schemas import AuditEventType
from memlayers.config import AuditConfig
from memlayers.memory.schemas import ExtractionRequest

logger = logging.getLogger(__name__)


def _write_line(path: Path, line: str) -> None:
    with path.open("a", encoding="utf-8") as fh:
        fh.write(line)


def _parse_lines(path: Path, raw: str) -> Iterator[AuditEvent]:
    for line_no, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            yield AuditEvent.model_validate_json(line)
        except ValidationError:
            logger.warning("Skipping malformed audit line %d in %s", line_no, path)


class AuditLogger:
    """Append-only audit log; file I/O runs off the event loop."""

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._path = Path(config.file_path)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        if not self.config.enabled:
            return
        async with self._lock:
            await asyncio.to_thread(_write_line, self._path, event.model_dump_json() + "\n")

    async def log_extraction(
        self,
        event_type: AuditEventType,
        request: ExtractionRequest,
        **payload: object,
    ) -> None:
        """Record an extraction lifecycle event tagged with its source message."""
        await self.log(
            AuditEvent(
                event_type=event_type,
                owner_id=request.owner_id,
                source_chat_id=request.source_chat_id,
                source_message_id=request.source_message_id,
                payload=payload,
            )
        )

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        owner_id: str | None = None,
        since: float | None = None,
    ) -> list[AuditEvent]:
        """Events in file order, filtered by type, owner and minimum timestamp."""
        async with self._lock:
            if not self._path.exists():
                return []
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")

        def wanted(evt: AuditEvent) -> bool:
            return (
                (event_type is None or evt.event_type == event_type)
                and (owner_id is None or evt.owner_id == owner_id)
                and (since is None or evt.timestamp >= since)
            )

        return [evt for evt in _parse_lines(self._path, raw) if wanted(evt)]
