"""Unit tests for the fan-out retrieval engine."""

from __future__ import annotations

import asyncio

import pytest

from memlayers.config import RetrievalConfig
from memlayers.engine.providers import ProviderUnavailable
from memlayers.engine.retrieval import RetrievalEngine
from memlayers.memory import MemoryLayer
from memlayers.memory import MemoryRecord
from memlayers.memory import RetrievalQuery
from memlayers.memory import ScoredRecord
from memlayers.observability import latency_metrics_snapshot


def _hit(text: str, score: float, *, abstract: str = "", tags=None) -> ScoredRecord:
    return ScoredRecord(
        record=MemoryRecord(
            owner_id="u1",
            source_chat_id="c1",
            source_message_id="m1",
            text=text,
            abstract=abstract,
            tags=tags or [],
            fingerprint="0",
        ),
        score=score,
    )


def _query(text: str = "what do I drink?") -> RetrievalQuery:
    return RetrievalQuery(owner_id="u1", query=text)


class TestRetrievalEngine:
    async def test_highest_score_first_across_layers(
        self, registry, collections, embedder
    ) -> None:
        collections[MemoryLayer.identities].scripted_hits = [_hit("Ana", 0.9)]
        collections[MemoryLayer.preferences].scripted_hits = [_hit("coffee", 0.95)]
        collections[MemoryLayer.experiences].scripted_hits = [_hit("Lisbon", 0.2)]
        for layer in (MemoryLayer.activities, MemoryLayer.contexts, MemoryLayer.personas):
            collections[layer].scripted_hits = []

        result = await RetrievalEngine(registry, embedder).retrieve(_query())

        assert [item.layer for item in result.items] == [
            MemoryLayer.preferences,
            MemoryLayer.identities,
            MemoryLayer.experiences,
        ]
        assert [item.score for item in result.items] == [0.95, 0.9, 0.2]

    async def test_per_layer_cap_bounds_the_merge(
        self, registry, collections, embedder
    ) -> None:
        for layer, collection in collections.items():
            collection.scripted_hits = [
                _hit(f"{layer.value}-{i}", 1.0 - i * 0.01) for i in range(5)
            ]

        engine = RetrievalEngine(registry, embedder)
        result = await engine.retrieve(_query())

        assert engine.max_results == 18
        assert len(result.items) == 18
        for layer in MemoryLayer:
            assert sum(1 for item in result.items if item.layer is layer) == 3
        scores = [item.score for item in result.items]
        assert scores == sorted(scores, reverse=True)

    async def test_searches_every_layer_once_with_one_embedding(
        self, registry, collections, embedder
    ) -> None:
        await RetrievalEngine(
            registry, embedder, config=RetrievalConfig(per_layer_limit=2)
        ).retrieve(_query("coffee?"))

        assert embedder.calls == ["coffee?"]
        vector = await embedder.embed("coffee?")
        for collection in collections.values():
            assert collection.search_calls == [("u1", vector, 2)]

    async def test_only_owner_records_returned(
        self, registry, collections, embedder
    ) -> None:
        prefs = collections[MemoryLayer.preferences]
        for owner in ("u1", "u2"):
            record = MemoryRecord(
                owner_id=owner,
                source_chat_id="c",
                source_message_id="m",
                text=f"{owner} loves coffee",
                embedding=await embedder.embed("coffee"),
                fingerprint=owner,
            )
            prefs.records[record.id] = record

        result = await RetrievalEngine(registry, embedder).retrieve(_query("coffee"))

        assert [item.text for item in result.items] == ["u1 loves coffee"]

    async def test_equal_scores_keep_layer_order(
        self, registry, collections, embedder
    ) -> None:
        collections[MemoryLayer.personas].scripted_hits = [_hit("p", 0.5)]
        collections[MemoryLayer.identities].scripted_hits = [_hit("i", 0.5)]

        result = await RetrievalEngine(registry, embedder).retrieve(_query())

        assert [item.text for item in result.items] == ["i", "p"]

    async def test_items_carry_abstract_and_tags(
        self, registry, collections, embedder
    ) -> None:
        collections[MemoryLayer.preferences].scripted_hits = [
            _hit("Loves coffee", 0.8, abstract="coffee", tags=["drink"])
        ]
        [item] = (await RetrievalEngine(registry, embedder).retrieve(_query())).items
        assert (item.text, item.abstract, item.tags) == ("Loves coffee", "coffee", ["drink"])

    async def test_embedding_failure_fails_retrieval(
        self, registry, collections, embedder
    ) -> None:
        embedder.fail_on.add("boom")

        with pytest.raises(ProviderUnavailable):
            await RetrievalEngine(registry, embedder).retrieve(_query("boom"))

        assert all(not c.search_calls for c in collections.values())

    async def test_single_layer_failure_fails_retrieval(
        self, registry, collections, embedder
    ) -> None:
        collections[MemoryLayer.contexts].fail_search = RuntimeError("index offline")

        with pytest.raises(RuntimeError, match="index offline"):
            await RetrievalEngine(registry, embedder).retrieve(_query())

    async def test_optional_deadline(self, registry, collections, embedder) -> None:
        class _Slow:
            async def vector_search(self, owner_id, vector, limit):
                await asyncio.sleep(5)
                return []

        collections[MemoryLayer.personas].vector_search = _Slow().vector_search
        engine = RetrievalEngine(
            registry, embedder, config=RetrievalConfig(timeout_seconds=0.05)
        )

        with pytest.raises(asyncio.TimeoutError):
            await engine.retrieve(_query())

    async def test_latency_counts_successes_and_failures(
        self, registry, collections, embedder
    ) -> None:
        engine = RetrievalEngine(registry, embedder)
        await engine.retrieve(_query())
        collections[MemoryLayer.contexts].fail_search = RuntimeError("index offline")
        with pytest.raises(RuntimeError):
            await engine.retrieve(_query())

        summary = latency_metrics_snapshot("retrieval_engine.")["retrieval_engine.retrieve"]
        assert summary["count"] == 2
        assert summary["error_count"] == 1
