"""Neo4j-backed layer collections.

Every layer lives under its own node label (``MemoryIdentities``,
``MemoryPreferences``, ...) with an identical property schema, a range
index on ``(owner_id, fingerprint)`` for dedup lookups and a cosine vector
index on ``embedding`` for similarity search.
"""

from __future__ import annotations

import re
from typing import Protocol

from neo4j import AsyncDriver

from memlayers.memory.layers import LAYER_LABELS
from memlayers.memory.layers import MemoryLayer
from memlayers.memory.schemas import MemoryRecord
from memlayers.memory.schemas import ScoredRecord


_ALLOWED_LABELS = set(LAYER_LABELS.values())
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _require_label(label: str) -> str:
    if label not in _ALLOWED_LABELS:
        msg = f"Invalid layer label: {label!r}"
        raise ValueError(msg)
    return label


def index_prefix(label: str) -> str:
    """``MemoryIdentities`` -> ``memory_identities``."""
    return _CAMEL_RE.sub("_", label).lower()


def vector_index_name(label: str) -> str:
    return f"{index_prefix(label)}_embedding"


# ---------------------------------------------------------------------------
# Collection protocol
# ---------------------------------------------------------------------------


class LayerCollection(Protocol):
    """Storage primitive for one layer."""

    async def find_by_owner_and_fingerprint(
        self, owner_id: str, fingerprint: str
    ) -> MemoryRecord | None: ...

    async def insert(self, record: MemoryRecord) -> str: ...

    async def patch_by_id(self, record_id: str, **updates: object) -> bool: ...

    async def vector_search(
        self, owner_id: str, vector: list[float], limit: int
    ) -> list[ScoredRecord]: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


def _layer_statements(label: str, dimensions: int) -> list[str]:
    prefix = index_prefix(label)
    return [
        f"CREATE CONSTRAINT {prefix}_unique_id IF NOT EXISTS "
        f"FOR (n:{label}) REQUIRE n.id IS UNIQUE",
        f"CREATE INDEX {prefix}_owner_fingerprint IF NOT EXISTS "
        f"FOR (n:{label}) ON (n.owner_id, n.fingerprint)",
        f"CREATE VECTOR INDEX {prefix}_embedding IF NOT EXISTS "
        f"FOR (n:{label}) ON (n.embedding) "
        "OPTIONS {indexConfig: {"
        f"`vector.dimensions`: {int(dimensions)}, "
        "`vector.similarity_function`: 'cosine'}}",
    ]


async def init_schema(driver: AsyncDriver, *, dimensions: int = 1536) -> None:
    """Create constraints and indexes for every layer (idempotent).

    Runs each statement in its own transaction; Neo4j rejects schema
    commands batched with other work.
    """
    async with driver.session() as session:
        for layer in MemoryLayer:
            for stmt in _layer_statements(LAYER_LABELS[layer], dimensions):
                await session.run(stmt)


# ---------------------------------------------------------------------------
# Neo4j collection
# ---------------------------------------------------------------------------


class Neo4jLayerCollection:
    """One layer collection stored as Neo4j nodes with a single label."""

    def __init__(
        self,
        driver: AsyncDriver,
        label: str,
        *,
        oversample: int = 10,
    ) -> None:
        self._driver = driver
        self._label = _require_label(label)
        self._index = vector_index_name(label)
        self._oversample = max(oversample, 1)

    @property
    def label(self) -> str:
        return self._label

    async def find_by_owner_and_fingerprint(
        self, owner_id: str, fingerprint: str
    ) -> MemoryRecord | None:
        query = (
            f"MATCH (n:{self._label} {{owner_id: $owner_id, fingerprint: $fingerprint}}) "
            "RETURN properties(n) AS props LIMIT 1"
        )
        async with self._driver.session() as session:
            result = await session.run(
                query, owner_id=owner_id, fingerprint=fingerprint
            )
            record = await result.single()
            if record is None:
                return None
            return MemoryRecord.model_validate(record["props"])

    async def insert(self, record: MemoryRecord) -> str:
        query = f"CREATE (n:{self._label} $props) RETURN n.id AS id"
        async with self._driver.session() as session:
            result = await session.run(query, props=record.model_dump())
            row = await result.single()
            return row["id"]

    async def patch_by_id(self, record_id: str, **updates: object) -> bool:
        query = (
            f"MATCH (n:{self._label} {{id: $id}}) SET n += $props "
            "RETURN count(n) AS cnt"
        )
        async with self._driver.session() as session:
            result = await session.run(query, id=record_id, props=updates)
            row = await result.single()
            return row["cnt"] > 0

    async def vector_search(
        self, owner_id: str, vector: list[float], limit: int
    ) -> list[ScoredRecord]:
        """Return up to *limit* nearest records owned by *owner_id*.

        The vector index is queried for ``limit * oversample`` candidates
        across all owners, then filtered to the owner.
        """
        if limit <= 0 or not vector:
            return []
        query = (
            "CALL db.index.vector.queryNodes($index, $candidates, $vector) "
            "YIELD node, score "
            "WHERE node.owner_id = $owner_id "
            "RETURN properties(node) AS props, score "
            "ORDER BY score DESC LIMIT $limit"
        )
        async with self._driver.session() as session:
            result = await session.run(
                query,
                index=self._index,
                candidates=limit * self._oversample,
                vector=vector,
                owner_id=owner_id,
                limit=limit,
            )
            rows = [row.data() async for row in result]
        return [
            ScoredRecord(
                record=MemoryRecord.model_validate(row["props"]),
                score=float(row["score"]),
            )
            for row in rows
        ]

    async def count(self, owner_id: str | None = None) -> int:
        """Number of records, optionally restricted to one owner."""
        if owner_id is None:
            query = f"MATCH (n:{self._label}) RETURN count(n) AS cnt"
            params: dict = {}
        else:
            query = f"MATCH (n:{self._label} {{owner_id: $owner_id}}) RETURN count(n) AS cnt"
            params = {"owner_id": owner_id}
        async with self._driver.session() as session:
            result = await session.run(query, **params)
            row = await result.single()
            return row["cnt"]
