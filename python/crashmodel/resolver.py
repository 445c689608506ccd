"""
Crash-consistency resolver.

After a simulated crash the engine reports its on-disk state. The resolver
looks for the longest history of the model that explains that state:

- the full model, before any layer is dropped (returned fully durable);
- any truncation ending on a written (durable) layer, newest first;
  trailing pending layers may always be lost, so they are dropped
  without a check;
- the empty model, which only explains an empty state.

The search walks the layers forward once with a running state rather than
cloning and popping, and copies only the layers it keeps.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Union

from crashmodel.model import Key, Model, Value, fold_layer

ObservedState = Union[Mapping[Key, Value], Iterable[tuple[Key, Value]]]


class CrashConsistencyError(Exception):
    """Raised when no prefix of the model matches the engine's state."""

    def __init__(self, observed: dict[Key, Value], layers: int, durable: int):
        self.observed = observed
        self.layers = layers
        self.durable = durable
        shown = sorted(observed.items())[:10]
        super().__init__(
            f"no consistent history: model has {layers} layers "
            f"({durable} durable), engine reported {len(observed)} keys: {shown}"
        )


def _as_state(observed: ObservedState) -> dict[Key, Value]:
    return dict(observed)


def consistent_length(model: Model, observed: ObservedState) -> Optional[int]:
    """
    Length of the longest candidate history matching observed, or None.
    """
    expected = _as_state(observed)
    best = 0 if not expected else None
    last = len(model) - 1
    state: dict[Key, Value] = {}
    for i, layer in enumerate(model):
        fold_layer(state, layer)
        if (layer.written or i == last) and state == expected:
            best = i + 1
    return best


def reconcile(model: Model, observed: ObservedState) -> Optional[Model]:
    """
    Reset the model to the engine's post-restart state.

    Args:
        model: The authoritative model. Not modified.
        observed: The engine's reported (key, value) pairs.

    Returns:
        A new Model holding the longest consistent history, or None if no
        history is consistent (a crash-consistency violation). When the
        full model matches, every returned layer is marked written: the
        engine kept all of them, so none is left for a later flush.
    """
    n = consistent_length(model, observed)
    if n is None:
        return None
    kept = Model(layer.copy() for layer in model.layers[:n])
    if n == len(model):
        for layer in kept:
            layer.written = True
    return kept


def reconcile_or_raise(model: Model, observed: ObservedState) -> Model:
    """Like reconcile(), but raise CrashConsistencyError instead of returning None."""
    expected = _as_state(observed)
    result = reconcile(model, expected)
    if result is None:
        raise CrashConsistencyError(expected, len(model), model.durable_count)
    return result


def attempt_to_reset_model_to_disk_state(
    model: Model, state: ObservedState
) -> Optional[Model]:
    return reconcile(model, state)
