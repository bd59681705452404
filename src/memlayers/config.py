"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
No env-var loading here — see ``memlayers.settings`` for that.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LLMConfig:
    """Chat-completion provider settings used for memory extraction."""

    provider: str = "openai"
    model: str = "openai/gpt-4o-mini"
    api_key: str | None = None
    base_url: str = "https://openrouter.ai/api/v1"
    temperature: float = 0.2
    max_tokens: int = 4096
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding provider settings shared by extraction and retrieval."""

    provider: str = "openai"
    model: str = "text-embedding-3-large"
    api_key: str | None = None
    base_url: str = "https://openrouter.ai/api/v1"
    dimensions: int = 1536
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ExtractionConfig:
    """Behaviour of the extraction orchestrator."""

    # False: the first per-item failure aborts the remaining items.
    isolate_item_failures: bool = False
    max_context_messages: int = 10


@dataclass(frozen=True)
class RetrievalConfig:
    """Fan-out retrieval parameters."""

    per_layer_limit: int = 3
    # Neo4j vector queries are not owner-filtered, so fetch more and filter.
    vector_oversample: int = 10
    timeout_seconds: float | None = None


@dataclass(frozen=True)
class RateGateConfig:
    """Per-owner extraction debounce."""

    min_interval_seconds: float = 0.0
    key_prefix: str = "memlayers:extract:last"


@dataclass(frozen=True)
class JobQueueConfig:
    """In-process fire-and-forget extraction queue."""

    worker_count: int = 2
    max_size: int = 1000
    max_attempts: int = 1


@dataclass(frozen=True)
class ContextConfig:
    """Rendering of retrieved memories into a prompt block."""

    max_chars: int = 0
    heading: str = "User Memory Context"


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "memlayers_audit.jsonl"
    enabled: bool = True
