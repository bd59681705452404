"""Pydantic models for the tool interface (submit_extraction, get_memory_context).

Input models validate boundary payloads before any engine code runs;
output models shape responses. FastMCP serializes them automatically.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from memlayers.memory.schemas import ExtractionRequest
from memlayers.memory.schemas import RetrievalQuery
from memlayers.memory.schemas import RetrievedMemory


class InvalidPayload(ValueError):
    """A boundary payload is missing fields or has wrong types."""

    def __init__(self, message: str, *, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> InvalidPayload:
        errors = exc.errors(include_url=False)
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = str(first.get("msg", "Invalid input"))
        if location:
            message = f"{location}: {message}"
        return cls(message, errors=errors)


class SubmitStatus(str, Enum):
    """Acknowledgement states of submit_extraction."""

    queued = "queued"
    throttled = "throttled"
    dropped = "dropped"
    disabled = "disabled"
    rejected = "rejected"


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class SubmitExtractionInput(BaseModel):
    """Input for submit_extraction. Strict: ids must already be strings."""

    model_config = ConfigDict(strict=True)

    owner_id: str = Field(min_length=1, description="Owner of the memories.")
    source_chat_id: str = Field(description="Chat the message belongs to.")
    source_message_id: str = Field(description="Message being mined for memories.")
    text: str = Field(description="Message text.")
    context: str = Field(default="", description="Recent-history excerpt.")

    def to_request(self) -> ExtractionRequest:
        return ExtractionRequest(**self.model_dump())


class GetMemoryContextInput(BaseModel):
    """Input for get_memory_context."""

    model_config = ConfigDict(strict=True)

    owner_id: str = Field(min_length=1, description="Owner whose memories are searched.")
    query: str = Field(description="Free-text query, usually the incoming message.")

    def to_query(self) -> RetrievalQuery:
        return RetrievalQuery(owner_id=self.owner_id, query=self.query)


def parse_submit_extraction(payload: object) -> SubmitExtractionInput:
    if not isinstance(payload, dict):
        raise InvalidPayload("Invalid extraction payload")
    try:
        return SubmitExtractionInput.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPayload.from_validation_error(exc) from exc


def parse_get_memory_context(payload: object) -> GetMemoryContextInput:
    if not isinstance(payload, dict):
        raise InvalidPayload("Invalid context payload")
    try:
        return GetMemoryContextInput.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPayload.from_validation_error(exc) from exc


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class SubmitExtractionResult(BaseModel):
    """Enqueue acknowledgement. Says nothing about the extraction's outcome."""

    status: SubmitStatus
    error_code: str | None = None
    message: str | None = None


class MemoryContextResult(BaseModel):
    """Ranked memories plus the rendered prompt block."""

    status: str = Field(default="ok", description="ok or error.")
    items: list[RetrievedMemory] = Field(default_factory=list)
    context: str = Field(default="", description="Prompt-insertable block.")
    error_code: str | None = None
    message: str | None = None
