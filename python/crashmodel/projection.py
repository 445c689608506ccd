"""Projections of the layered model onto what the engine must, may or need not report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from crashmodel._api import _encode
from crashmodel.model import UNTOUCHED, Key, Model, Operation, Value


@dataclass(frozen=True)
class Set:
    key: bytes
    value: bytes


@dataclass(frozen=True)
class Remove:
    key: bytes


EngineOperation = Union[Set, Remove]


@dataclass(frozen=True)
class Projection:
    required: list[tuple[Key, Value]]
    optional: list[tuple[Key, Value]]
    removed: list[Key]


def map_operation(operation: Operation) -> EngineOperation:
    """
    Translate a model operation into the engine's write vocabulary.

    Raises:
        TypeError: If the key or value is not bytes or an int.
        ValueError: If an int key or value is outside [0, 255].
    """
    key, value = operation
    if value is None:
        return Remove(_encode(key, "key"))
    return Set(_encode(key, "key"), _encode(value, "value"))


def model_required_content(model: Model) -> list[tuple[Key, Value]]:
    """Pairs the engine must report: keys whose newest definition is a set."""
    content = []
    for key in model.keys():
        entry, _ = model.lookup(key)
        if entry is not UNTOUCHED and entry is not None:
            content.append((key, entry))
    return content


def model_optional_content(model: Model) -> list[tuple[Key, Value]]:
    """Pairs the engine may report.

    Same definition as the required content; callers use it for the relaxed
    enumeration check.
    """
    content = []
    for key in model.keys():
        entry, _ = model.lookup(key)
        if entry is not UNTOUCHED and entry is not None:
            content.append((key, entry))
    return content


def model_removed_content(model: Model) -> list[Key]:
    """Keys whose newest definition is a deletion that was never made durable."""
    keys = []
    for key in model.keys():
        entry, layer = model.lookup(key)
        if layer is not None and entry is None and not layer.written:
            keys.append(key)
    return keys


def project(model: Model) -> Projection:
    return Projection(
        required=model_required_content(model),
        optional=model_optional_content(model),
        removed=model_removed_content(model),
    )
