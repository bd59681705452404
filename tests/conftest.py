"""Root conftest — suite markers and session-scoped testcontainer fixtures.

Neo4j Community Edition and Redis 7 containers are started lazily, only
for tests that request them, and shared across the session. Without a
reachable Docker daemon those tests are skipped.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import time

import pytest
import redis as sync_redis
from dotenv import load_dotenv
from neo4j import AsyncGraphDatabase
from redis.asyncio import Redis
from testcontainers.core.container import DockerContainer

logger = logging.getLogger(__name__)

# Provider keys and URLs may come from a local .env; real env vars win.
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)


_SUITE_MARKERS = {"unit": pytest.mark.unit, "integration": pytest.mark.integration}
_TESTS_DIR = Path(__file__).resolve().parent


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Mark each test ``unit`` or ``integration`` from its directory under tests/."""
    for item in items:
        try:
            suite = Path(item.path).resolve().relative_to(_TESTS_DIR).parts[0]
        except (ValueError, IndexError):
            continue
        marker = _SUITE_MARKERS.get(suite)
        if marker is not None:
            item.add_marker(marker)


def _start(container: DockerContainer) -> DockerContainer:
    try:
        return container.start()
    except Exception as exc:
        pytest.skip(f"Docker unavailable: {exc}")


def _wait(ping, name: str, max_attempts: int = 30) -> None:
    for attempt in range(max_attempts):
        try:
            ping()
            return
        except Exception as exc:
            if attempt == max_attempts - 1:
                raise
            logger.debug(
                "%s not ready (attempt %d/%d): %s", name, attempt + 1, max_attempts, exc
            )
            time.sleep(1)


# ---------------------------------------------------------------------------
# Neo4j
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def neo4j_container():
    """Spin up a Neo4j Community container and yield its bolt URI."""
    container = _start(
        DockerContainer("neo4j:5-community")
        .with_exposed_ports(7687)
        .with_env("NEO4J_AUTH", "none")
    )
    try:
        uri = (
            f"bolt://{container.get_container_host_ip()}:"
            f"{container.get_exposed_port(7687)}"
        )

        def ping() -> None:
            async def check() -> None:
                driver = AsyncGraphDatabase.driver(uri)
                try:
                    await driver.verify_connectivity()
                finally:
                    await driver.close()

            asyncio.run(check())

        _wait(ping, "Neo4j")
        yield uri
    finally:
        container.stop()


@pytest.fixture()
async def neo4j_driver(neo4j_container):
    """Yield an async Neo4j driver connected to the test container."""
    driver = AsyncGraphDatabase.driver(neo4j_container)
    yield driver
    await driver.close()


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def redis_container():
    """Spin up a Redis 7 container and yield its URL."""
    container = _start(DockerContainer("redis:7-alpine").with_exposed_ports(6379))
    try:
        host = container.get_container_host_ip()
        port = container.get_exposed_port(6379)

        def ping() -> None:
            client = sync_redis.Redis(host=host, port=int(port))
            try:
                client.ping()
            finally:
                client.close()

        _wait(ping, "Redis")
        yield f"redis://{host}:{port}"
    finally:
        container.stop()


@pytest.fixture()
async def redis_client(redis_container):
    """Yield an async Redis client connected to the test container."""
    client = Redis.from_url(redis_container)
    yield client
    await client.aclose()
