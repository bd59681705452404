"""Unit test fixtures — in-memory backends and scripted providers.

Nothing here touches Docker, Neo4j, Redis or the network.
"""

from __future__ import annotations

import pytest
from fakes import FakeRedis
from fakes import InMemoryCollection
from fakes import KeywordEmbedder
from fakes import ScriptedLLM

from memlayers.memory import LayerRegistry
from memlayers.memory import MemoryLayer
from memlayers.observability import reset_latency_metrics


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_latency_metrics()
    yield
    reset_latency_metrics()


@pytest.fixture()
def collections() -> dict[MemoryLayer, InMemoryCollection]:
    return {layer: InMemoryCollection() for layer in MemoryLayer}


@pytest.fixture()
def registry(collections) -> LayerRegistry:
    return LayerRegistry(collections)


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture()
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()
