"""Unit tests for prompt construction and context rendering."""

from __future__ import annotations

import pytest

from memlayers.engine.prompt_builder import build_context_window
from memlayers.engine.prompt_builder import build_extraction_prompt
from memlayers.engine.prompt_builder import EXTRACTION_SYSTEM_PROMPT
from memlayers.engine.prompt_builder import format_memory_context
from memlayers.engine.prompt_builder import merge_system_prompt
from memlayers.engine.prompt_builder import message_to_text
from memlayers.memory import ExtractionRequest
from memlayers.memory import MemoryLayer
from memlayers.memory import RetrievedMemory


def _item(layer: MemoryLayer, text: str, *, abstract: str = "", tags=None, score=0.5):
    return RetrievedMemory(
        layer=layer, text=text, abstract=abstract, tags=tags or [], score=score
    )


class TestExtractionPrompt:
    def test_system_prompt_names_every_layer(self) -> None:
        for layer in MemoryLayer:
            assert layer.value in EXTRACTION_SYSTEM_PROMPT
        assert '"items"' in EXTRACTION_SYSTEM_PROMPT

    def test_user_message_layout(self) -> None:
        request = ExtractionRequest(
            owner_id="u",
            source_chat_id="c",
            source_message_id="m",
            text="hello",
            context="",
        )
        assert build_extraction_prompt(request) == (
            "Conversation message: hello\nContext window:\n"
        )


class TestFormatMemoryContext:
    def test_empty_items_render_nothing(self) -> None:
        assert format_memory_context([]) == ""

    def test_lines_prefer_abstract_and_show_tags(self) -> None:
        block = format_memory_context(
            [
                _item(MemoryLayer.preferences, "Loves coffee", abstract="coffee", tags=["drink", "am"]),
                _item(MemoryLayer.identities, "Name is Ana"),
            ]
        )
        assert block == (
            "User Memory Context:\n"
            "- (preferences) coffee [drink, am]\n"
            "- (identities) Name is Ana"
        )

    @pytest.mark.parametrize("max_chars", [1, 10, 25, 40])
    def test_truncates_to_exactly_max_chars(self, max_chars: int) -> None:
        items = [_item(MemoryLayer.contexts, "x" * 50) for _ in range(3)]
        block = format_memory_context(items, max_chars)
        assert len(block) == max_chars
        assert format_memory_context(items).startswith(block)

    def test_short_block_is_not_padded(self) -> None:
        items = [_item(MemoryLayer.personas, "formal")]
        full = format_memory_context(items)
        assert format_memory_context(items, len(full) + 100) == full

    def test_zero_max_chars_means_unbounded(self) -> None:
        items = [_item(MemoryLayer.contexts, "y" * 500)]
        assert len(format_memory_context(items, 0)) > 500

    def test_custom_heading(self) -> None:
        block = format_memory_context(
            [_item(MemoryLayer.personas, "formal")], heading="Known facts"
        )
        assert block.startswith("Known facts:\n")


class TestHostHelpers:
    def test_message_to_text_string(self) -> None:
        assert message_to_text("hi there") == "hi there"

    def test_message_to_text_keeps_only_text_parts(self) -> None:
        content = [
            {"type": "text", "text": "look at"},
            {"type": "image_url", "image_url": {"url": "http://x"}},
            {"type": "text", "text": "this"},
        ]
        assert message_to_text(content) == "look at this"

    def test_message_to_text_other_types(self) -> None:
        assert message_to_text(None) == ""
        assert message_to_text(42) == ""

    def test_context_window_keeps_last_entries(self) -> None:
        history = ["one", {"content": "two"}, {"content": "  "}, "three"]
        assert build_context_window(history, 3) == "- two\n- three"
        assert build_context_window(history, 10) == "- one\n- two\n- three"

    def test_context_window_disabled(self) -> None:
        assert build_context_window(["a", "b"], 0) == ""
        assert build_context_window([], 5) == ""

    def test_merge_system_prompt(self) -> None:
        assert merge_system_prompt("Be nice.", "Memory") == "Be nice.\n\nMemory"
        assert merge_system_prompt(None, "Memory") == "Memory"
        assert merge_system_prompt("Be nice.", "") == "Be nice."
        assert merge_system_prompt(None, "") is None
