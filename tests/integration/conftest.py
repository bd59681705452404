"""Integration fixtures — clean Neo4j and Redis around every test."""

from __future__ import annotations

import asyncio

import pytest
from neo4j import AsyncGraphDatabase

from memlayers.memory import LayerRegistry
from memlayers.memory.store import init_schema
from memlayers.memory.store import Neo4jLayerCollection

# Vectors in these tests are 4-dimensional.
DIMENSIONS = 4


@pytest.fixture(scope="session")
def _layer_schema_initialized(neo4j_container):
    """Create the per-layer indexes once per session."""

    async def _init():
        driver = AsyncGraphDatabase.driver(neo4j_container)
        try:
            await init_schema(driver, dimensions=DIMENSIONS)
            async with driver.session() as session:
                await session.run("CALL db.awaitIndexes(300)")
        finally:
            await driver.close()

    asyncio.run(_init())
    return True


@pytest.fixture()
async def clean_neo4j(neo4j_driver, _layer_schema_initialized):
    """Wipe all nodes before each test."""
    async with neo4j_driver.session() as session:
        await session.run("MATCH (n) DETACH DELETE n")
    yield neo4j_driver


@pytest.fixture()
async def clean_redis(redis_client):
    """Flush Redis around each test."""
    await redis_client.flushdb()
    yield redis_client
    await redis_client.flushdb()


@pytest.fixture()
def neo4j_registry(clean_neo4j) -> LayerRegistry:
    return LayerRegistry.build(
        lambda _layer, label: Neo4jLayerCollection(clean_neo4j, label, oversample=10)
    )
