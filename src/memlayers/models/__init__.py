"""Models domain — boundary payloads and responses."""

from __future__ import annotations

from memlayers.models.schemas import GetMemoryContextInput
from memlayers.models.schemas import InvalidPayload
from memlayers.models.schemas import MemoryContextResult
from memlayers.models.schemas import parse_get_memory_context
from memlayers.models.schemas import parse_submit_extraction
from memlayers.models.schemas import SubmitExtractionInput
from memlayers.models.schemas import SubmitExtractionResult
from memlayers.models.schemas import SubmitStatus

__all__ = [
    "GetMemoryContextInput",
    "InvalidPayload",
    "MemoryContextResult",
    "SubmitExtractionInput",
    "SubmitExtractionResult",
    "SubmitStatus",
    "parse_get_memory_context",
    "parse_submit_extraction",
]
