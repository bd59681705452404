"""Memory domain data models."""

from __future__ import annotations

import time
import uuid
from enum import Enum

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator

from memlayers.memory.layers import MemoryLayer


def now_ms() -> int:
    return int(time.time() * 1000)


class UpsertOutcome(str, Enum):
    """Result of one write through the upsert engine."""

    inserted = "inserted"
    updated = "updated"


class MemoryRecord(BaseModel):
    """A single stored memory inside one layer collection."""

    id: str = Field(
        default_factory=lambda: f"lm_{uuid.uuid4().hex}",
        description="Unique identifier, auto-generated as lm_{uuid4_hex}.",
    )
    owner_id: str = Field(description="Owner of the memory (sender, else chat).")
    source_chat_id: str = Field(description="Chat the memory was extracted from.")
    source_message_id: str = Field(description="Message the memory was extracted from.")
    text: str = Field(description="Verbatim extracted statement.")
    abstract: str = Field(default="", description="Short normalized summary.")
    tags: list[str] = Field(default_factory=list, description="Short labels.")
    embedding: list[float] = Field(default_factory=list, repr=False)
    fingerprint: str = Field(description="Dedup key within one owner and layer.")
    created_at: int = Field(
        default_factory=now_ms, description="Epoch milliseconds of first sighting."
    )
    updated_at: int = Field(
        default_factory=now_ms, description="Epoch milliseconds of last sighting."
    )


class ScoredRecord(BaseModel):
    """One vector-search hit."""

    record: MemoryRecord
    score: float


class MemoryCandidate(BaseModel):
    """One item proposed by the extraction provider.

    ``layer`` is kept as whatever string the model sent, or ``None`` when it
    is missing or not a string, so that such items are skipped instead of
    failing validation of the whole response.
    """

    layer: str | None = None
    text: str = ""
    abstract: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("layer", mode="before")
    @classmethod
    def _non_string_layer_is_unknown(cls, value: object) -> str | None:
        return value if isinstance(value, str) else None


class CandidateBatch(BaseModel):
    """Parsed extraction provider output."""

    items: list[MemoryCandidate] = Field(default_factory=list)


class ExtractionRequest(BaseModel):
    """Input of one extraction run. Never persisted."""

    owner_id: str = Field(min_length=1)
    source_chat_id: str
    source_message_id: str
    text: str
    context: str = ""


class ExtractionRunResult(BaseModel):
    """Outcome of one extraction run.

    ``inserted`` counts every accepted and written candidate, whether the
    write created a record or refreshed an existing one.
    """

    inserted: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class RetrievalQuery(BaseModel):
    """Input of one retrieval. Never persisted."""

    owner_id: str = Field(min_length=1)
    query: str


class RetrievedMemory(BaseModel):
    """One layer-tagged retrieval hit."""

    layer: MemoryLayer
    text: str
    abstract: str = ""
    tags: list[str] = Field(default_factory=list)
    score: float


class RetrievalResult(BaseModel):
    """Score-descending retrieval output."""

    items: list[RetrievedMemory] = Field(default_factory=list)
