"""Deterministic dedup key for memory records.

Not cryptographic. The 32-bit multiplicative fold is only used to bucket
records within one owner and layer; a collision merges two statements into
one record, which is accepted.
"""

from __future__ import annotations

from memlayers.memory.layers import MemoryLayer

_MASK_32 = 0xFFFFFFFF


def normalize_text(text: str) -> str:
    return text.strip().lower()


def _utf16_units(value: str) -> list[int]:
    data = value.encode("utf-16-le")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def fold_hash(value: str) -> int:
    """``h = h * 31 + unit`` over UTF-16 code units, wrapped to unsigned 32 bits."""
    h = 0
    for unit in _utf16_units(value):
        h = (h * 31 + unit) & _MASK_32
    return h


def memory_fingerprint(layer: MemoryLayer | str, text: str) -> str:
    """Fingerprint of ``layer + ":" + normalize(text)`` as a decimal string."""
    layer_name = layer.value if isinstance(layer, MemoryLayer) else layer
    return str(fold_hash(f"{layer_name}:{normalize_text(text)}"))
