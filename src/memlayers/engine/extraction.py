"""Extraction orchestrator.

Turns one conversational message into layered memory records: asks the
chat model for candidates, validates the whole response, then embeds and
upserts each accepted candidate in the order the model returned them.
"""

from __future__ import annotations

import json
import logging
import re
from time import perf_counter

from pydantic import ValidationError

from memlayers.config import ExtractionConfig
from memlayers.config import LLMConfig
from memlayers.engine.prompt_builder import build_extraction_prompt
from memlayers.engine.prompt_builder import EXTRACTION_SYSTEM_PROMPT
from memlayers.engine.providers import EmbeddingAdapter
from memlayers.engine.providers import LLMAdapter
from memlayers.memory.layers import parse_layer
from memlayers.memory.schemas import CandidateBatch
from memlayers.memory.schemas import ExtractionRequest
from memlayers.memory.schemas import ExtractionRunResult
from memlayers.memory.schemas import MemoryCandidate
from memlayers.memory.schemas import UpsertOutcome
from memlayers.memory.upsert import UpsertEngine
from memlayers.observability import increment_event
from memlayers.observability import record_latency

logger = logging.getLogger(__name__)


class MalformedExtractionResponse(Exception):
    """The chat model's output does not parse into ``{"items": [...]}``."""


# Regex to strip Markdown code fences wrapping JSON output
_CODE_FENCE_RE = re.compile(
    r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$",
    re.DOTALL,
)


def parse_candidates(raw: str) -> list[MemoryCandidate]:
    """Parse raw model output into candidates.

    Empty output or an object without ``items`` yields no candidates.
    Anything else that is not ``{"items": [{layer, text, abstract, tags}]}``
    raises ``MalformedExtractionResponse``.
    """
    text = raw.strip()
    if not text:
        return []

    match = _CODE_FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()

    try:
        data = json.loads(text)
    except ValueError as exc:
        raise MalformedExtractionResponse(
            f"Failed to parse memory extraction response: {exc}"
        ) from exc

    if not isinstance(data, dict):
        raise MalformedExtractionResponse(
            "Memory extraction response must be a JSON object"
        )
    if data.get("items") is None:
        return []

    try:
        return CandidateBatch.model_validate({"items": data["items"]}).items
    except ValidationError as exc:
        raise MalformedExtractionResponse(
            f"Memory extraction items failed validation: {exc.error_count()} error(s)"
        ) from exc


class ExtractionEngine:
    """Orchestrates extraction, embedding and upsert for one message."""

    def __init__(
        self,
        llm: LLMAdapter,
        embedder: EmbeddingAdapter,
        upserter: UpsertEngine,
        *,
        llm_config: LLMConfig | None = None,
        config: ExtractionConfig | None = None,
    ) -> None:
        self._llm = llm
        self._embedder = embedder
        self._upserter = upserter
        self._llm_config = llm_config or LLMConfig()
        self._config = config or ExtractionConfig()

    async def extract(self, request: ExtractionRequest) -> ExtractionRunResult:
        """Extract, embed and upsert memories from *request*.

        ``ProviderUnavailable`` from the chat model and
        ``MalformedExtractionResponse`` propagate with nothing written.
        Candidates naming an unknown layer, or carrying neither text nor
        abstract, are skipped. A failure while embedding or writing one
        candidate aborts the run unless ``isolate_item_failures`` is set,
        in which case it is recorded in ``errors`` and the run continues.
        """
        start = perf_counter()
        ok = False
        try:
            raw = await self._llm.complete(
                build_extraction_prompt(request),
                system=EXTRACTION_SYSTEM_PROMPT,
                temperature=self._llm_config.temperature,
                max_tokens=self._llm_config.max_tokens,
                timeout_seconds=self._llm_config.timeout_seconds,
            )
            candidates = parse_candidates(raw)

            result = ExtractionRunResult()
            for index, candidate in enumerate(candidates):
                try:
                    outcome = await self._write_candidate(request, candidate)
                except Exception as exc:
                    if not self._config.isolate_item_failures:
                        raise
                    logger.warning(
                        "Extraction item %d failed for owner=%s: %s",
                        index,
                        request.owner_id,
                        exc,
                    )
                    result.errors.append(f"item {index}: {exc}")
                    continue

                if outcome is None:
                    result.skipped += 1
                    continue
                result.inserted += 1
                if outcome is UpsertOutcome.inserted:
                    result.created += 1
                else:
                    result.updated += 1

            logger.info(
                "Extracted memories owner=%s message=%s inserted=%d skipped=%d errors=%d",
                request.owner_id,
                request.source_message_id,
                result.inserted,
                result.skipped,
                len(result.errors),
            )
            increment_event("extraction.skipped", result.skipped)
            increment_event("extraction.item_errors", len(result.errors))
            ok = True
            return result
        finally:
            record_latency(
                operation="extraction_engine.extract",
                duration_ms=(perf_counter() - start) * 1000,
                ok=ok,
            )

    async def _write_candidate(
        self, request: ExtractionRequest, candidate: MemoryCandidate
    ) -> UpsertOutcome | None:
        layer = parse_layer(candidate.layer)
        if layer is None:
            logger.debug("Skipping candidate with unknown layer %r", candidate.layer)
            return None
        source_text = candidate.text or candidate.abstract
        if not source_text.strip():
            logger.debug("Skipping empty candidate in layer %s", layer.value)
            return None

        embedding = await self._embedder.embed(source_text)
        return await self._upserter.upsert(
            layer,
            request.owner_id,
            request.source_chat_id,
            request.source_message_id,
            candidate.text,
            candidate.abstract,
            candidate.tags,
            embedding,
        )
