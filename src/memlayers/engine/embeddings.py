"""Embedding adapters and factory helpers."""

from __future__ import annotations

import asyncio

from memlayers.config import EmbeddingConfig
from memlayers.engine.llm_adapters import post_json
from memlayers.engine.providers import ConfigurationError
from memlayers.engine.providers import EmbeddingAdapter
from memlayers.engine.providers import ProviderUnavailable


class OpenAICompatibleEmbeddingAdapter(EmbeddingAdapter):
    """OpenAI-compatible ``/embeddings`` adapter."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        dimensions: int | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._dimensions = dimensions
        self._timeout_seconds = timeout_seconds

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embed_sync, text)

    def _embed_sync(self, text: str) -> list[float]:
        payload: dict = {"model": self._model, "input": text}
        if self._dimensions:
            payload["dimensions"] = self._dimensions
        data = post_json(
            f"{self._base_url}/embeddings",
            payload,
            api_key=self._api_key,
            timeout_seconds=self._timeout_seconds,
        )
        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderUnavailable(
                "provider response missing data[0].embedding"
            ) from exc
        if not isinstance(vector, list) or not vector:
            raise ProviderUnavailable("provider returned an empty embedding")
        if self._dimensions and len(vector) != self._dimensions:
            raise ProviderUnavailable(
                f"provider returned {len(vector)} dimensions, expected {self._dimensions}"
            )
        return [float(value) for value in vector]


def build_embedding_adapter(config: EmbeddingConfig) -> EmbeddingAdapter:
    """Create a concrete adapter from ``EmbeddingConfig``."""

    provider = config.provider.strip().lower()
    if provider == "openai":
        if not config.api_key:
            raise ConfigurationError(
                "embedding_config.api_key is required when provider='openai'"
            )
        return OpenAICompatibleEmbeddingAdapter(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            dimensions=config.dimensions,
            timeout_seconds=config.timeout_seconds,
        )
    raise ConfigurationError(
        f"Unsupported embedding_config.provider '{config.provider}'. "
        "Supported providers: openai."
    )
