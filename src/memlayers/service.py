"""Memory service — the two boundary operations and the host-side helpers.

``submit_extraction`` runs the rate gate and hands the request to the
extraction queue; it never waits for the extraction itself.
``retrieve`` runs a retrieval and ``render`` formats the prompt block.
``queue_extraction`` and ``build_memory_prompt`` are the host application's
entry points: they resolve the owner, build the context window, and turn a
failed retrieval into "no memory" instead of an error.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from memlayers.audit import AuditEvent
from memlayers.audit import AuditEventType
from memlayers.audit import AuditLogger
from memlayers.config import ContextConfig
from memlayers.config import ExtractionConfig
from memlayers.engine.jobs import ExtractionQueue
from memlayers.engine.prompt_builder import build_context_window
from memlayers.engine.prompt_builder import format_memory_context
from memlayers.engine.prompt_builder import message_to_text
from memlayers.engine.rate_gate import ExtractionRateGate
from memlayers.engine.retrieval import RetrievalEngine
from memlayers.memory import resolve_owner_id
from memlayers.memory.schemas import ExtractionRequest
from memlayers.memory.schemas import ExtractionRunResult
from memlayers.memory.schemas import RetrievalQuery
from memlayers.memory.schemas import RetrievalResult
from memlayers.models.schemas import SubmitStatus

logger = logging.getLogger(__name__)


class MemoryService:
    """Composes rate gate, extraction queue, retrieval and formatting."""

    def __init__(
        self,
        gate: ExtractionRateGate,
        queue: ExtractionQueue,
        retrieval: RetrievalEngine,
        *,
        context_config: ContextConfig | None = None,
        extraction_config: ExtractionConfig | None = None,
        audit_logger: AuditLogger | None = None,
        enabled: bool = True,
    ) -> None:
        self._gate = gate
        self._queue = queue
        self._retrieval = retrieval
        self._context_config = context_config or ContextConfig()
        self._extraction_config = extraction_config or ExtractionConfig()
        self._audit = audit_logger
        self.enabled = enabled

    @property
    def queue(self) -> ExtractionQueue:
        return self._queue

    # -- extraction --

    async def submit_extraction(self, request: ExtractionRequest) -> SubmitStatus:
        """Gate and enqueue *request*; returns the acknowledgement only.

        A full queue is checked before the rate gate so a dropped request
        does not use up the owner's extraction slot.
        """
        if not self.enabled:
            return SubmitStatus.disabled
        if self._queue.full:
            self._queue.drop(request)
            return SubmitStatus.dropped
        if not await self._gate.should_extract(request.owner_id):
            await self._log(AuditEventType.EXTRACTION_THROTTLED, request)
            return SubmitStatus.throttled
        if not self._queue.enqueue(request):
            return SubmitStatus.dropped
        await self._log(AuditEventType.EXTRACTION_QUEUED, request)
        return SubmitStatus.queued

    async def on_extraction_completed(
        self, request: ExtractionRequest, result: ExtractionRunResult
    ) -> None:
        await self._log(
            AuditEventType.EXTRACTION_COMPLETED,
            request,
            inserted=result.inserted,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors,
        )

    async def on_extraction_failed(
        self, request: ExtractionRequest, exc: BaseException
    ) -> None:
        await self._log(
            AuditEventType.EXTRACTION_FAILED,
            request,
            error_type=type(exc).__name__,
            error=str(exc),
        )

    # -- retrieval --

    async def retrieve(self, query: RetrievalQuery) -> RetrievalResult:
        """Ranked memories for *query*; failures propagate."""
        result = await self._retrieval.retrieve(query)
        if self._audit is not None:
            await self._audit.log(
                AuditEvent(
                    event_type=AuditEventType.CONTEXT_RETRIEVED,
                    owner_id=query.owner_id,
                    payload={"returned": len(result.items)},
                )
            )
        return result

    def render(self, result: RetrievalResult) -> str:
        return format_memory_context(
            result.items,
            self._context_config.max_chars,
            heading=self._context_config.heading,
        )

    # -- host helpers --

    async def queue_extraction(
        self,
        *,
        sender_id: str | int | None,
        chat_id: str | int,
        message_id: str | int,
        content: object,
        history: Sequence[object] = (),
    ) -> SubmitStatus:
        """Submit an inbound chat message for background extraction."""
        if not self.enabled:
            return SubmitStatus.disabled
        text = message_to_text(content)
        if not text:
            return SubmitStatus.rejected
        request = ExtractionRequest(
            owner_id=resolve_owner_id(sender_id, chat_id),
            source_chat_id=f"{chat_id}",
            source_message_id=f"{message_id}",
            text=text,
            context=build_context_window(
                history, self._extraction_config.max_context_messages
            ),
        )
        return await self.submit_extraction(request)

    async def build_memory_prompt(
        self,
        *,
        sender_id: str | int | None,
        chat_id: str | int,
        content: object,
    ) -> str:
        """Memory block for the host's system prompt, or ``""``.

        A failed retrieval is logged and yields ``""`` so the host answers
        without memory enrichment.
        """
        if not self.enabled:
            return ""
        query = message_to_text(content)
        if not query:
            return ""
        try:
            result = await self.retrieve(
                RetrievalQuery(owner_id=resolve_owner_id(sender_id, chat_id), query=query)
            )
        except Exception:
            logger.exception("Memory retrieval failed; continuing without memory")
            return ""
        return self.render(result)

    async def _log(
        self,
        event_type: AuditEventType,
        request: ExtractionRequest,
        **payload: object,
    ) -> None:
        if self._audit is None:
            return
        await self._audit.log_extraction(event_type, request, **payload)
