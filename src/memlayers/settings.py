"""Environment-driven settings.

``config.py`` only holds defaults; this module maps ``MEMLAYERS_*`` (and the
provider's ``OPENROUTER_*``) environment variables onto those dataclasses.
A ``.env`` file is honoured, existing environment variables win.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from dotenv import load_dotenv

from memlayers.config import AuditConfig
from memlayers.config import ContextConfig
from memlayers.config import EmbeddingConfig
from memlayers.config import ExtractionConfig
from memlayers.config import JobQueueConfig
from memlayers.config import LLMConfig
from memlayers.config import RateGateConfig
from memlayers.config import RetrievalConfig
from memlayers.engine.providers import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _get(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_int(name: str, default: int) -> int:
    raw = _get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _get_float(name: str, default: float) -> float:
    raw = _get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _get_bool(name: str, default: bool) -> bool:
    raw = _get(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def get_auth_key() -> str | None:
    """Shared bearer secret protecting the memory tools."""
    return _get("MEMLAYERS_AUTH_KEY")


def get_auth_scopes() -> list[str] | None:
    raw = _get("MEMLAYERS_AUTH_SCOPES") or ""
    parsed = [scope.strip() for scope in raw.split(",") if scope.strip()]
    return parsed or None


# ---------------------------------------------------------------------------
# Subsystem configs
# ---------------------------------------------------------------------------


def _provider_api_key() -> str | None:
    return _get("MEMLAYERS_API_KEY") or _get("OPENROUTER_API_KEY")


def load_llm_config() -> LLMConfig:
    defaults = LLMConfig()
    return LLMConfig(
        provider=_get("MEMLAYERS_LLM_PROVIDER") or defaults.provider,
        model=_get("OPENROUTER_CHAT_MODEL") or defaults.model,
        api_key=_provider_api_key(),
        base_url=_get("MEMLAYERS_PROVIDER_BASE_URL") or defaults.base_url,
        temperature=_get_float("MEMLAYERS_LLM_TEMPERATURE", defaults.temperature),
        max_tokens=_get_int("MEMLAYERS_LLM_MAX_TOKENS", defaults.max_tokens),
        timeout_seconds=_get_float("MEMLAYERS_PROVIDER_TIMEOUT", defaults.timeout_seconds),
    )


def load_embedding_config() -> EmbeddingConfig:
    defaults = EmbeddingConfig()
    return EmbeddingConfig(
        provider=_get("MEMLAYERS_EMBEDDING_PROVIDER") or defaults.provider,
        model=_get("OPENROUTER_EMBEDDING_MODEL") or defaults.model,
        api_key=_provider_api_key(),
        base_url=_get("MEMLAYERS_PROVIDER_BASE_URL") or defaults.base_url,
        dimensions=_get_int("MEMLAYERS_EMBEDDING_DIMENSIONS", defaults.dimensions),
        timeout_seconds=_get_float("MEMLAYERS_PROVIDER_TIMEOUT", defaults.timeout_seconds),
    )


@dataclass(frozen=True)
class Settings:
    """Everything ``server.configure`` needs, resolved from the environment."""

    enabled: bool = True
    neo4j_url: str = "bolt://localhost:7687"
    redis_url: str = "redis://localhost:6379"
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    rate_gate: RateGateConfig = field(default_factory=RateGateConfig)
    job_queue: JobQueueConfig = field(default_factory=JobQueueConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)


def load_settings(dotenv_path: str | Path | None = None) -> Settings:
    """Resolve ``Settings`` from the process environment (and ``.env``)."""
    load_dotenv(dotenv_path=dotenv_path, override=False)

    defaults = Settings()
    extraction = ExtractionConfig(
        isolate_item_failures=_get_bool(
            "MEMLAYERS_ISOLATE_ITEM_FAILURES",
            defaults.extraction.isolate_item_failures,
        ),
        max_context_messages=_get_int(
            "MEMLAYERS_EXTRACTION_MAX_CONTEXT_MESSAGES",
            defaults.extraction.max_context_messages,
        ),
    )
    retrieval_timeout = _get("MEMLAYERS_RETRIEVAL_TIMEOUT")
    retrieval = RetrievalConfig(
        per_layer_limit=_get_int(
            "MEMLAYERS_RETRIEVAL_PER_LAYER_LIMIT", defaults.retrieval.per_layer_limit
        ),
        vector_oversample=_get_int(
            "MEMLAYERS_VECTOR_OVERSAMPLE", defaults.retrieval.vector_oversample
        ),
        timeout_seconds=(
            _get_float("MEMLAYERS_RETRIEVAL_TIMEOUT", 0.0) if retrieval_timeout else None
        ),
    )
    return Settings(
        enabled=_get_bool("MEMLAYERS_ENABLED", defaults.enabled),
        neo4j_url=_get("MEMLAYERS_NEO4J_URL") or defaults.neo4j_url,
        redis_url=_get("MEMLAYERS_REDIS_URL") or defaults.redis_url,
        llm=load_llm_config(),
        embedding=load_embedding_config(),
        extraction=extraction,
        retrieval=retrieval,
        rate_gate=RateGateConfig(
            min_interval_seconds=_get_float(
                "MEMLAYERS_EXTRACTION_MIN_INTERVAL_SECONDS",
                defaults.rate_gate.min_interval_seconds,
            ),
        ),
        job_queue=JobQueueConfig(
            worker_count=_get_int("MEMLAYERS_QUEUE_WORKERS", defaults.job_queue.worker_count),
            max_size=_get_int("MEMLAYERS_QUEUE_MAX_SIZE", defaults.job_queue.max_size),
            max_attempts=_get_int(
                "MEMLAYERS_QUEUE_MAX_ATTEMPTS", defaults.job_queue.max_attempts
            ),
        ),
        context=ContextConfig(
            max_chars=_get_int("MEMLAYERS_CONTEXT_MAX_CHARS", defaults.context.max_chars),
        ),
        audit=AuditConfig(
            file_path=_get("MEMLAYERS_AUDIT_FILE") or defaults.audit.file_path,
            enabled=_get_bool("MEMLAYERS_AUDIT_ENABLED", defaults.audit.enabled),
        ),
    )
