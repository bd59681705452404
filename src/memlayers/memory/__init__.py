"""Memory domain — layers, records, fingerprints and the upsert write path."""

from __future__ import annotations

from memlayers.memory.fingerprint import memory_fingerprint
from memlayers.memory.layers import LAYER_LABELS
from memlayers.memory.layers import LayerRegistry
from memlayers.memory.layers import MemoryLayer
from memlayers.memory.layers import parse_layer
from memlayers.memory.schemas import ExtractionRequest
from memlayers.memory.schemas import ExtractionRunResult
from memlayers.memory.schemas import MemoryCandidate
from memlayers.memory.schemas import MemoryRecord
from memlayers.memory.schemas import RetrievalQuery
from memlayers.memory.schemas import RetrievalResult
from memlayers.memory.schemas import RetrievedMemory
from memlayers.memory.schemas import ScoredRecord
from memlayers.memory.schemas import UpsertOutcome
from memlayers.memory.upsert import UpsertEngine

__all__ = [
    "ExtractionRequest",
    "ExtractionRunResult",
    "LAYER_LABELS",
    "LayerRegistry",
    "MemoryCandidate",
    "MemoryLayer",
    "MemoryRecord",
    "RetrievalQuery",
    "RetrievalResult",
    "RetrievedMemory",
    "ScoredRecord",
    "UpsertEngine",
    "UpsertOutcome",
    "memory_fingerprint",
    "parse_layer",
    "resolve_owner_id",
]


def resolve_owner_id(sender_id: str | int | None, chat_id: str | int) -> str:
    """Owner of a message's memories: the sender, else the chat itself.

    Channel posts and anonymous admins carry no sender identity.
    """
    owner = sender_id if sender_id is not None and sender_id != "" else chat_id
    return f"{owner}"
