"""Engine domain — providers, extraction, retrieval, rate gate and job queue."""

from memlayers.engine.embeddings import build_embedding_adapter
from memlayers.engine.embeddings import OpenAICompatibleEmbeddingAdapter
from memlayers.engine.extraction import ExtractionEngine
from memlayers.engine.extraction import MalformedExtractionResponse
from memlayers.engine.extraction import parse_candidates
from memlayers.engine.jobs import ExtractionQueue
from memlayers.engine.jobs import QueueStats
from memlayers.engine.llm_adapters import build_llm_adapter
from memlayers.engine.llm_adapters import NoopLLMAdapter
from memlayers.engine.llm_adapters import OpenAICompatibleLLMAdapter
from memlayers.engine.prompt_builder import build_context_window
from memlayers.engine.prompt_builder import format_memory_context
from memlayers.engine.prompt_builder import merge_system_prompt
from memlayers.engine.prompt_builder import message_to_text
from memlayers.engine.providers import ConfigurationError
from memlayers.engine.providers import EmbeddingAdapter
from memlayers.engine.providers import LLMAdapter
from memlayers.engine.providers import ProviderUnavailable
from memlayers.engine.rate_gate import ExtractionRateGate
from memlayers.engine.retrieval import RetrievalEngine

__all__ = [
    "ConfigurationError",
    "EmbeddingAdapter",
    "ExtractionEngine",
    "ExtractionQueue",
    "ExtractionRateGate",
    "LLMAdapter",
    "MalformedExtractionResponse",
    "NoopLLMAdapter",
    "OpenAICompatibleEmbeddingAdapter",
    "OpenAICompatibleLLMAdapter",
    "ProviderUnavailable",
    "QueueStats",
    "RetrievalEngine",
    "build_context_window",
    "build_embedding_adapter",
    "build_llm_adapter",
    "format_memory_context",
    "merge_system_prompt",
    "message_to_text",
    "parse_candidates",
]
