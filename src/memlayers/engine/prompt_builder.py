"""Prompt construction on both sides of the memory engine.

Extraction side: the fixed system instruction and the user message sent
to the chat model. Retrieval side: rendering retrieved memories into a
block the host can append to its own system prompt, with a hard length cap.
"""

from __future__ import annotations

from collections.abc import Sequence

from memlayers.memory.layers import MemoryLayer
from memlayers.memory.schemas import ExtractionRequest
from memlayers.memory.schemas import RetrievedMemory

DEFAULT_CONTEXT_HEADING = "User Memory Context"

EXTRACTION_SYSTEM_PROMPT = (
    "You are a memory extraction service. Extract JSON memories grouped by layer: "
    + ", ".join(layer.value for layer in MemoryLayer)
    + '. Return strict JSON with key "items" as array of objects '
    "{layer, text, abstract, tags}. Only include meaningful user-specific facts."
)


def build_extraction_prompt(request: ExtractionRequest) -> str:
    """User message for one extraction call."""
    return f"Conversation message: {request.text}\nContext window:\n{request.context}"


# ---------------------------------------------------------------------------
# Host-side helpers
# ---------------------------------------------------------------------------


def message_to_text(content: object) -> str:
    """Plain text of a chat message body.

    Accepts a string or a list of content parts; only ``type == "text"``
    parts are kept.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            str(part.get("text", ""))
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        ]
        return " ".join(texts).strip()
    return ""


def build_context_window(history: Sequence[object], limit: int) -> str:
    """Render the last *limit* history entries as ``- <text>`` lines.

    Entries may be plain strings or ``{"content": ...}`` dicts; blank
    entries are dropped after slicing.
    """
    if limit <= 0 or not history:
        return ""
    lines: list[str] = []
    for item in list(history)[-limit:]:
        content = item.get("content") if isinstance(item, dict) else item
        text = message_to_text(content).strip()
        if text:
            lines.append(f"- {text}")
    return "\n".join(lines)


def format_memory_context(
    items: Sequence[RetrievedMemory],
    max_chars: int = 0,
    *,
    heading: str = DEFAULT_CONTEXT_HEADING,
) -> str:
    """Render retrieved memories as a prompt-insertable block.

    Each line shows the layer, the abstract (or the text when there is no
    abstract) and the tags. ``max_chars > 0`` truncates the block to
    exactly that many characters.
    """
    if not items:
        return ""
    lines = []
    for item in items:
        tags = f" [{', '.join(item.tags)}]" if item.tags else ""
        content = item.abstract or item.text
        lines.append(f"- ({item.layer.value}) {content}{tags}")
    block = f"{heading}:\n" + "\n".join(lines)
    if max_chars <= 0 or len(block) <= max_chars:
        return block
    return block[:max_chars]


def merge_system_prompt(base_prompt: str | None, memory_prompt: str) -> str | None:
    """Append the memory block to the host's system prompt."""
    if not memory_prompt:
        return base_prompt
    if not base_prompt:
        return memory_prompt
    return f"{base_prompt}\n\n{memory_prompt}"
