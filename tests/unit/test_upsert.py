"""Unit tests for the upsert engine."""

from __future__ import annotations

from memlayers.memory import MemoryLayer
from memlayers.memory import UpsertEngine
from memlayers.memory import UpsertOutcome
from memlayers.memory.fingerprint import memory_fingerprint


class _Clock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


async def _write(engine, text="Likes coffee", **overrides):
    args = {
        "layer": MemoryLayer.preferences,
        "owner_id": "u1",
        "source_chat_id": "c1",
        "source_message_id": "m1",
        "text": text,
        "abstract": "coffee",
        "tags": ["drink"],
        "embedding": [1.0, 0.0],
    }
    args.update(overrides)
    return await engine.upsert(**args)


class TestUpsertEngine:
    async def test_first_write_inserts(self, registry, collections) -> None:
        clock = _Clock(1_000)
        engine = UpsertEngine(registry, clock=clock)

        outcome = await _write(engine)

        assert outcome is UpsertOutcome.inserted
        [record] = collections[MemoryLayer.preferences].records.values()
        assert record.id.startswith("lm_")
        assert record.owner_id == "u1"
        assert record.fingerprint == memory_fingerprint(MemoryLayer.preferences, "Likes coffee")
        assert record.created_at == record.updated_at == 1_000

    async def test_second_sighting_updates_in_place(self, registry, collections) -> None:
        clock = _Clock(1_000)
        engine = UpsertEngine(registry, clock=clock)
        await _write(engine)
        clock.now = 5_000

        outcome = await _write(
            engine,
            text="  likes COFFEE ",
            source_chat_id="c2",
            source_message_id="m2",
            abstract="coffee lover",
            tags=["drink", "morning"],
            embedding=[0.0, 1.0],
        )

        assert outcome is UpsertOutcome.updated
        [record] = collections[MemoryLayer.preferences].records.values()
        assert record.text == "  likes COFFEE "
        assert record.abstract == "coffee lover"
        assert record.tags == ["drink", "morning"]
        assert record.embedding == [0.0, 1.0]
        assert record.updated_at == 5_000
        # First-sighting fields are preserved.
        assert record.created_at == 1_000
        assert record.source_chat_id == "c1"
        assert record.source_message_id == "m1"

    async def test_owners_do_not_share_records(self, registry, collections) -> None:
        engine = UpsertEngine(registry)
        assert await _write(engine, owner_id="u1") is UpsertOutcome.inserted
        assert await _write(engine, owner_id="u2") is UpsertOutcome.inserted
        assert len(collections[MemoryLayer.preferences].records) == 2

    async def test_layers_do_not_share_records(self, registry, collections) -> None:
        engine = UpsertEngine(registry)
        await _write(engine, layer=MemoryLayer.preferences)
        await _write(engine, layer=MemoryLayer.activities)
        assert len(collections[MemoryLayer.preferences].records) == 1
        assert len(collections[MemoryLayer.activities].records) == 1

    async def test_abstract_only_item_is_keyed_by_abstract(self, registry, collections) -> None:
        engine = UpsertEngine(registry)
        await _write(engine, text="", abstract="Coffee")
        outcome = await _write(engine, text="", abstract="coffee ")
        assert outcome is UpsertOutcome.updated
        [record] = collections[MemoryLayer.preferences].records.values()
        assert record.fingerprint == memory_fingerprint(MemoryLayer.preferences, "coffee")
