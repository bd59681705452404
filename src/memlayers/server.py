"""memlayers — FastMCP server exposing the memory tools.

``submit_extraction`` acknowledges immediately and leaves the extraction to
the background queue; ``get_memory_context`` answers synchronously.
Call ``configure(...)`` (or run ``main()``) before using the tools.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from time import perf_counter

from fastmcp import FastMCP
from neo4j import AsyncDriver
from neo4j import AsyncGraphDatabase
from redis.asyncio import Redis  # type: ignore[import-untyped]

from memlayers.audit import AuditLogger
from memlayers.auth import create_auth
from memlayers.engine import build_embedding_adapter
from memlayers.engine import build_llm_adapter
from memlayers.engine import EmbeddingAdapter
from memlayers.engine import ExtractionEngine
from memlayers.engine import ExtractionQueue
from memlayers.engine import ExtractionRateGate
from memlayers.engine import LLMAdapter
from memlayers.engine import ProviderUnavailable
from memlayers.engine import RetrievalEngine
from memlayers.memory import LayerRegistry
from memlayers.memory import MemoryLayer
from memlayers.memory import UpsertEngine
from memlayers.memory.store import init_schema
from memlayers.memory.store import LayerCollection
from memlayers.memory.store import Neo4jLayerCollection
from memlayers.models.schemas import InvalidPayload
from memlayers.models.schemas import MemoryContextResult
from memlayers.models.schemas import parse_get_memory_context
from memlayers.models.schemas import parse_submit_extraction
from memlayers.models.schemas import SubmitExtractionResult
from memlayers.models.schemas import SubmitStatus
from memlayers.observability import event_counts_snapshot
from memlayers.observability import latency_metrics_snapshot
from memlayers.observability import record_latency
from memlayers.service import MemoryService
from memlayers.settings import load_settings
from memlayers.settings import Settings

logger = logging.getLogger(__name__)

mcp = FastMCP("memlayers", auth=create_auth())

# ---------------------------------------------------------------------------
# Service instance (set via configure())
# ---------------------------------------------------------------------------

_service: MemoryService | None = None
_graph_driver: AsyncDriver | None = None
_gate: ExtractionRateGate | None = None


async def configure(
    settings: Settings | None = None,
    *,
    llm_adapter: LLMAdapter | None = None,
    embedding_adapter: EmbeddingAdapter | None = None,
    collections: dict[MemoryLayer, LayerCollection] | None = None,
    redis: Redis | None = None,
) -> MemoryService:
    """Wire storage, providers, rate gate and queue into a ``MemoryService``.

    Providers are resolved before any connection is opened so a missing API
    key fails here rather than on the first tool call. ``collections`` and
    ``redis`` replace the Neo4j and Redis backends when given.
    """
    global _service, _graph_driver, _gate
    await shutdown()

    cfg = settings or Settings()
    llm = llm_adapter or build_llm_adapter(cfg.llm)
    embedder = embedding_adapter or build_embedding_adapter(cfg.embedding)

    if collections is None:
        _graph_driver = AsyncGraphDatabase.driver(cfg.neo4j_url)
        await init_schema(_graph_driver, dimensions=cfg.embedding.dimensions)
        driver = _graph_driver
        registry = LayerRegistry.build(
            lambda _layer, label: Neo4jLayerCollection(
                driver, label, oversample=cfg.retrieval.vector_oversample
            )
        )
    else:
        registry = LayerRegistry(collections)

    _gate = ExtractionRateGate(
        redis if redis is not None else Redis.from_url(cfg.redis_url),
        cfg.rate_gate,
    )
    extraction = ExtractionEngine(
        llm,
        embedder,
        UpsertEngine(registry),
        llm_config=cfg.llm,
        config=cfg.extraction,
    )
    queue = ExtractionQueue(extraction.extract, cfg.job_queue)
    service = MemoryService(
        _gate,
        queue,
        RetrievalEngine(registry, embedder, config=cfg.retrieval),
        context_config=cfg.context,
        extraction_config=cfg.extraction,
        audit_logger=AuditLogger(cfg.audit),
        enabled=cfg.enabled,
    )
    queue.on_success = service.on_extraction_completed
    queue.on_failure = service.on_extraction_failed
    _service = service
    return service


async def shutdown() -> None:
    """Stop the workers and close backend clients."""
    global _service, _graph_driver, _gate
    if _service is not None:
        await _service.queue.stop()
        _service = None
    if _gate is not None:
        try:
            await _gate.close()
        except RuntimeError:
            # Tests may reconfigure across event loops.
            logger.debug("Rate gate close failed", exc_info=True)
        _gate = None
    if _graph_driver is not None:
        try:
            await _graph_driver.close()
        except RuntimeError:
            logger.debug("Neo4j driver close failed", exc_info=True)
        _graph_driver = None


def _get_service() -> MemoryService:
    if _service is None:
        raise RuntimeError("Memory service not configured. Call configure() first.")
    return _service


def _submit_rejected(error_code: str, message: str) -> SubmitExtractionResult:
    return SubmitExtractionResult(
        status=SubmitStatus.rejected,
        error_code=error_code,
        message=message,
    )


def _context_error(error_code: str, message: str) -> MemoryContextResult:
    return MemoryContextResult(status="error", error_code=error_code, message=message)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool
async def submit_extraction(
    owner_id: str,
    source_chat_id: str,
    source_message_id: str,
    text: str,
    context: str = "",
) -> SubmitExtractionResult:
    """Queue a chat message for background memory extraction.

    Returns once the request is gated and queued; the extraction outcome is
    never reported back to the caller.

    Args:
        owner_id: User (or chat) the memories belong to.
        source_chat_id: Chat the message was posted in.
        source_message_id: Message being mined for memories.
        text: Message text.
        context: Recent conversation excerpt for the extractor.
    """
    start = perf_counter()
    ok = False
    try:
        service = _get_service()
        try:
            validated = parse_submit_extraction(
                {
                    "owner_id": owner_id,
                    "source_chat_id": source_chat_id,
                    "source_message_id": source_message_id,
                    "text": text,
                    "context": context,
                }
            )
        except InvalidPayload as exc:
            return _submit_rejected("validation_error", str(exc))

        status = await service.submit_extraction(validated.to_request())
        ok = True
        return SubmitExtractionResult(status=status)
    finally:
        record_latency(
            operation="mcp.submit_extraction",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def get_memory_context(owner_id: str, query: str) -> MemoryContextResult:
    """Return the owner's memories most similar to *query*.

    Args:
        owner_id: Owner whose memories are searched.
        query: Free-text query, usually the incoming message.
    """
    start = perf_counter()
    ok = False
    try:
        service = _get_service()
        try:
            validated = parse_get_memory_context({"owner_id": owner_id, "query": query})
        except InvalidPayload as exc:
            return _context_error("validation_error", str(exc))

        if not service.enabled:
            ok = True
            return MemoryContextResult()

        try:
            result = await service.retrieve(validated.to_query())
        except ProviderUnavailable as exc:
            logger.warning("Memory retrieval failed: provider unavailable: %s", exc)
            return _context_error("provider_unavailable", str(exc))
        except asyncio.TimeoutError:
            logger.warning("Memory retrieval timed out for owner %s", owner_id)
            return _context_error("retrieval_timeout", "Memory retrieval timed out.")
        except Exception as exc:
            logger.exception("Memory retrieval failed")
            return _context_error("retrieval_failed", str(exc))

        ok = True
        return MemoryContextResult(items=result.items, context=service.render(result))
    finally:
        record_latency(
            operation="mcp.get_memory_context",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def memory_metrics() -> dict:
    """Latency summaries, event counters and extraction queue stats."""
    queue_stats: dict[str, int] = {}
    if _service is not None:
        queue_stats = asdict(_service.queue.stats)
        queue_stats["pending"] = _service.queue.pending
    return {
        "latency": latency_metrics_snapshot(),
        "events": event_counts_snapshot(),
        "queue": queue_stats,
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _serve(settings: Settings) -> None:
    await configure(settings)
    try:
        await mcp.run_async()
    finally:
        await shutdown()


def main() -> None:
    """Run the memory server over stdio with settings from the environment."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_serve(load_settings()))


if __name__ == "__main__":
    main()
