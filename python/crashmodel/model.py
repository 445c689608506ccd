"""Layered reference model of pending and durable writes.

Each committed batch becomes one ``Layer``. A layer maps every key it
touches to either a value (set) or ``None`` (deleted); keys it does not
mention are untouched. A layer is ``written`` once the engine has been told
to make it durable. Durable layers always form a prefix of the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Iterator, Optional

Key = Hashable
Value = Any
Operation = tuple[Key, Optional[Value]]

# Marker for "no layer defines this key"; None already means deleted.
UNTOUCHED = object()


@dataclass
class Layer:
    values: dict[Key, Optional[Value]] = field(default_factory=dict)
    written: bool = False

    def copy(self) -> "Layer":
        return Layer(dict(self.values), self.written)


class Model:
    """Append-only sequence of layers, oldest first."""

    __slots__ = ("_layers",)

    def __init__(self, layers: Iterable[Layer] = ()) -> None:
        self._layers: list[Layer] = list(layers)

    @property
    def layers(self) -> list[Layer]:
        return self._layers

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __getitem__(self, index: int) -> Layer:
        return self._layers[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        return self._layers == other._layers

    def __repr__(self) -> str:
        return f"Model(layers={len(self._layers)}, durable={self.durable_count})"

    @property
    def durable_count(self) -> int:
        return sum(1 for layer in self._layers if layer.written)

    @property
    def pending_count(self) -> int:
        return len(self._layers) - self.durable_count

    def copy(self) -> "Model":
        return Model(layer.copy() for layer in self._layers)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def apply(self, operations: Iterable[Operation]) -> Layer:
        """
        Record one batch as a new pending layer.

        Later operations on the same key override earlier ones in the batch.
        ``None`` as the value records a deletion.
        """
        values: dict[Key, Optional[Value]] = {}
        for key, value in operations:
            values[key] = value
        layer = Layer(values)
        self._layers.append(layer)
        return layer

    def mark_durable(self) -> Optional[int]:
        """
        Mark the oldest pending layer as written.

        Returns the index of the layer marked, or None if every layer is
        already durable.
        """
        for i, layer in enumerate(self._layers):
            if not layer.written:
                layer.written = True
                return i
        return None

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def keys(self) -> list[Key]:
        """All keys defined by any layer, in ascending order."""
        seen: set[Key] = set()
        for layer in self._layers:
            seen.update(layer.values)
        return sorted(seen)

    def lookup(self, key: Key) -> tuple[Any, Optional[Layer]]:
        """
        Find the newest layer defining key.

        Returns (entry, layer); entry is UNTOUCHED and layer None when no
        layer defines the key.
        """
        for layer in reversed(self._layers):
            if key in layer.values:
                return layer.values[key], layer
        return UNTOUCHED, None

    def effective_state(self, stop: Optional[int] = None) -> dict[Key, Value]:
        """Last-write-wins fold of the first ``stop`` layers (all by default)."""
        layers = self._layers if stop is None else self._layers[:stop]
        state: dict[Key, Value] = {}
        for layer in layers:
            fold_layer(state, layer)
        return state


def fold_layer(state: dict[Key, Value], layer: Layer) -> None:
    """Apply one layer on top of a running state, in place."""
    for key, value in layer.values.items():
        if value is None:
            state.pop(key, None)
        else:
            state[key] = value


def apply_operations_on_model(operations: Iterable[Operation], model: Model) -> None:
    model.apply(operations)


def write_first_layer_to_disk(model: Model) -> None:
    model.mark_durable()
