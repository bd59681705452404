"""In-process fire-and-forget extraction queue.

``enqueue`` never waits for an extraction to run. Worker tasks pull
requests off an ``asyncio.Queue`` and call the handler; failures are logged
and reported through ``on_failure`` but never reach the enqueuer.
``ProviderUnavailable`` is retried up to ``max_attempts``; every other
failure is final on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass

from memlayers.config import JobQueueConfig
from memlayers.engine.providers import ProviderUnavailable
from memlayers.memory.schemas import ExtractionRequest
from memlayers.memory.schemas import ExtractionRunResult
from memlayers.observability import increment_event

logger = logging.getLogger(__name__)

ExtractionHandler = Callable[[ExtractionRequest], Awaitable[ExtractionRunResult]]


@dataclass
class QueueStats:
    """Counters since the queue was created."""

    enqueued: int = 0
    dropped: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0


class ExtractionQueue:
    """Bounded asyncio queue drained by a fixed pool of worker tasks."""

    def __init__(
        self,
        handler: ExtractionHandler,
        config: JobQueueConfig | None = None,
        *,
        on_success: Callable[[ExtractionRequest, ExtractionRunResult], Awaitable[None]]
        | None = None,
        on_failure: Callable[[ExtractionRequest, BaseException], Awaitable[None]]
        | None = None,
    ) -> None:
        self._handler = handler
        self._config = config or JobQueueConfig()
        self.on_success = on_success
        self.on_failure = on_failure
        self._queue: asyncio.Queue[ExtractionRequest] = asyncio.Queue(
            maxsize=self._config.max_size
        )
        self._workers: list[asyncio.Task] = []
        self.stats = QueueStats()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn the worker tasks. Needs a running event loop."""
        if self._workers:
            return
        for worker_id in range(max(self._config.worker_count, 1)):
            self._workers.append(
                asyncio.create_task(
                    self._worker(worker_id), name=f"memlayers_extraction_worker_{worker_id}"
                )
            )
        logger.info("Extraction queue started with %d workers", len(self._workers))

    @property
    def full(self) -> bool:
        return self._queue.full()

    def enqueue(self, request: ExtractionRequest) -> bool:
        """Queue *request* without waiting. Returns ``False`` when full."""
        if not self._workers:
            self.start()
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            self.drop(request)
            return False
        self.stats.enqueued += 1
        return True

    def drop(self, request: ExtractionRequest) -> None:
        """Count *request* as turned away because the queue is full."""
        self.stats.dropped += 1
        increment_event("extraction_queue.dropped")
        logger.warning(
            "Extraction queue full, dropping message=%s owner=%s",
            request.source_message_id,
            request.owner_id,
        )

    async def join(self) -> None:
        """Wait until every queued request has been processed (test helper)."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel workers. Requests still queued are discarded."""
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    async def _worker(self, worker_id: int) -> None:
        while True:
            request = await self._queue.get()
            try:
                await self._run(request)
            finally:
                self._queue.task_done()

    async def _run(self, request: ExtractionRequest) -> None:
        attempts = max(self._config.max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                result = await self._handler(request)
            except asyncio.CancelledError:
                raise
            except ProviderUnavailable as exc:
                if attempt < attempts:
                    self.stats.retried += 1
                    increment_event("extraction_queue.retried")
                    logger.warning(
                        "Extraction attempt %d/%d failed for message=%s: %s",
                        attempt,
                        attempts,
                        request.source_message_id,
                        exc,
                    )
                    continue
                await self._fail(request, exc)
                return
            except Exception as exc:
                await self._fail(request, exc)
                return
            self.stats.succeeded += 1
            if self.on_success is not None:
                await self._notify(self.on_success, request, result)
            return

    async def _fail(self, request: ExtractionRequest, exc: BaseException) -> None:
        self.stats.failed += 1
        increment_event("extraction_queue.failed")
        logger.error(
            "Extraction failed for message=%s owner=%s",
            request.source_message_id,
            request.owner_id,
            exc_info=exc,
        )
        if self.on_failure is not None:
            await self._notify(self.on_failure, request, exc)

    @staticmethod
    async def _notify(callback, *args) -> None:
        try:
            await callback(*args)
        except Exception:
            logger.exception("Extraction queue callback failed")
