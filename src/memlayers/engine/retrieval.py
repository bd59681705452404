"""Retrieval engine — fan-out similarity search and rank-merge across layers."""

from __future__ import annotations

import asyncio
import logging

from memlayers.config import RetrievalConfig
from memlayers.engine.providers import EmbeddingAdapter
from memlayers.memory.layers import LayerRegistry
from memlayers.memory.layers import MemoryLayer
from memlayers.memory.schemas import RetrievalQuery
from memlayers.memory.schemas import RetrievalResult
from memlayers.memory.schemas import RetrievedMemory
from memlayers.memory.store import LayerCollection
from memlayers.observability import timed

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Embeds a query once and searches every layer concurrently.

    Results are flattened, tagged with their layer and stable-sorted by
    score, highest first. Retrieval is all-or-nothing: an embedding failure
    or any single layer failure fails the whole call.
    """

    def __init__(
        self,
        registry: LayerRegistry,
        embedder: EmbeddingAdapter,
        *,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._registry = registry
        self._embedder = embedder
        self._config = config or RetrievalConfig()

    @property
    def max_results(self) -> int:
        return len(self._registry) * self._config.per_layer_limit

    async def retrieve(self, query: RetrievalQuery) -> RetrievalResult:
        with timed("retrieval_engine.retrieve"):
            if self._config.timeout_seconds is None:
                return await self._retrieve(query)
            return await asyncio.wait_for(
                self._retrieve(query), timeout=self._config.timeout_seconds
            )

    async def _retrieve(self, query: RetrievalQuery) -> RetrievalResult:
        vector = await self._embedder.embed(query.query)

        # gather() waits for every layer and re-raises the first failure.
        per_layer = await asyncio.gather(
            *(
                self._search_layer(layer, collection, query.owner_id, vector)
                for layer, collection in self._registry
            )
        )
        items = [item for matches in per_layer for item in matches]
        items.sort(key=lambda item: item.score, reverse=True)

        logger.debug(
            "Retrieved %d memories for owner=%s across %d layers",
            len(items),
            query.owner_id,
            len(per_layer),
        )
        return RetrievalResult(items=items[: self.max_results])

    async def _search_layer(
        self,
        layer: MemoryLayer,
        collection: LayerCollection,
        owner_id: str,
        vector: list[float],
    ) -> list[RetrievedMemory]:
        limit = self._config.per_layer_limit
        matches = await collection.vector_search(owner_id, vector, limit)
        return [
            RetrievedMemory(
                layer=layer,
                text=match.record.text,
                abstract=match.record.abstract,
                tags=list(match.record.tags),
                score=match.score,
            )
            for match in matches[:limit]
        ]
