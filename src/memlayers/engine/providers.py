"""Provider protocols for the external models.

Concrete adapters live in ``engine.llm_adapters`` and ``engine.embeddings``.
Tests use in-memory doubles that satisfy the same protocols.
"""

from __future__ import annotations

from typing import Protocol
from typing import runtime_checkable


class ProviderUnavailable(Exception):
    """Raised by adapters on non-success responses or transport failures."""


class ConfigurationError(ValueError):
    """Raised before any provider call when a provider cannot be configured."""


@runtime_checkable
class LLMAdapter(Protocol):
    """Chat-completion provider used for memory extraction."""

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        timeout_seconds: float = 30.0,
    ) -> str: ...


@runtime_checkable
class EmbeddingAdapter(Protocol):
    """Maps text to a fixed-dimension vector."""

    async def embed(self, text: str) -> list[float]: ...
