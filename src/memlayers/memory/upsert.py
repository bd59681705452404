"""Upsert engine — the only write path into a layer collection."""

from __future__ import annotations

import logging
from collections.abc import Callable

from memlayers.memory.fingerprint import memory_fingerprint
from memlayers.memory.layers import LayerRegistry
from memlayers.memory.layers import MemoryLayer
from memlayers.memory.schemas import MemoryRecord
from memlayers.memory.schemas import now_ms
from memlayers.memory.schemas import UpsertOutcome

logger = logging.getLogger(__name__)


class UpsertEngine:
    """Dedup-aware write of one memory item into one layer.

    A record is identified by ``(owner_id, fingerprint)`` inside its layer.
    A second sighting overwrites ``text``, ``abstract``, ``tags``,
    ``embedding`` and ``updated_at``; provenance and ``created_at`` keep
    their first-sighting values. Concurrent writes of the same fingerprint
    are not serialized: the last write wins.
    """

    def __init__(
        self,
        registry: LayerRegistry,
        *,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._registry = registry
        self._clock = clock or now_ms

    async def upsert(
        self,
        layer: MemoryLayer,
        owner_id: str,
        source_chat_id: str,
        source_message_id: str,
        text: str,
        abstract: str,
        tags: list[str],
        embedding: list[float],
    ) -> UpsertOutcome:
        collection = self._registry.collection(layer)
        # Abstract-only candidates are keyed by their abstract.
        fingerprint = memory_fingerprint(layer, text or abstract)
        now = self._clock()

        existing = await collection.find_by_owner_and_fingerprint(owner_id, fingerprint)
        if existing is not None:
            await collection.patch_by_id(
                existing.id,
                text=text,
                abstract=abstract,
                tags=list(tags),
                embedding=list(embedding),
                updated_at=now,
            )
            logger.debug(
                "Updated memory layer=%s owner=%s fingerprint=%s",
                layer.value,
                owner_id,
                fingerprint,
            )
            return UpsertOutcome.updated

        await collection.insert(
            MemoryRecord(
                owner_id=owner_id,
                source_chat_id=source_chat_id,
                source_message_id=source_message_id,
                text=text,
                abstract=abstract,
                tags=list(tags),
                embedding=list(embedding),
                fingerprint=fingerprint,
                created_at=now,
                updated_at=now,
            )
        )
        logger.debug(
            "Inserted memory layer=%s owner=%s fingerprint=%s",
            layer.value,
            owner_id,
            fingerprint,
        )
        return UpsertOutcome.inserted
