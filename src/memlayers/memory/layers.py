"""Layer registry — the closed set of semantic layers and their storage handles."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from memlayers.memory.store import LayerCollection


class MemoryLayer(str, Enum):
    """Semantic category partitioning memory by kind of fact."""

    identities = "identities"
    preferences = "preferences"
    experiences = "experiences"
    activities = "activities"
    contexts = "contexts"
    personas = "personas"


# One storage collection (Neo4j label) per layer. Extend together with the enum.
LAYER_LABELS: dict[MemoryLayer, str] = {
    MemoryLayer.identities: "MemoryIdentities",
    MemoryLayer.preferences: "MemoryPreferences",
    MemoryLayer.experiences: "MemoryExperiences",
    MemoryLayer.activities: "MemoryActivities",
    MemoryLayer.contexts: "MemoryContexts",
    MemoryLayer.personas: "MemoryPersonas",
}

_KNOWN_LAYERS = {layer.value for layer in MemoryLayer}


def parse_layer(name: object) -> MemoryLayer | None:
    """Return the layer named *name*, or ``None`` when it is not a known layer."""
    if not isinstance(name, str) or name not in _KNOWN_LAYERS:
        return None
    return MemoryLayer(name)


class LayerRegistry:
    """Read-only mapping from every layer to its storage collection."""

    def __init__(self, collections: dict[MemoryLayer, LayerCollection]) -> None:
        missing = [layer.value for layer in MemoryLayer if layer not in collections]
        if missing:
            raise ValueError(f"No storage collection for layers: {', '.join(missing)}")
        self._collections = dict(collections)

    @classmethod
    def build(
        cls, factory: Callable[[MemoryLayer, str], LayerCollection]
    ) -> LayerRegistry:
        """Create one collection per layer with ``factory(layer, label)``."""
        return cls({layer: factory(layer, LAYER_LABELS[layer]) for layer in MemoryLayer})

    def collection(self, layer: MemoryLayer) -> LayerCollection:
        return self._collections[layer]

    def is_known(self, name: object) -> bool:
        return parse_layer(name) is not None

    def __iter__(self) -> Iterator[tuple[MemoryLayer, LayerCollection]]:
        # Enum declaration order, independent of construction order.
        return iter([(layer, self._collections[layer]) for layer in MemoryLayer])

    def __len__(self) -> int:
        return len(self._collections)
