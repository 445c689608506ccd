"""
crashmodel: model-based crash-consistency checking for key-value engines.

The checker keeps a layered model of every batch committed to a storage
engine and of which batches were forced durable. After a simulated crash
the engine's reported state is reconciled against the model:

- Layered model: one layer per batch, oldest first, durable layers a prefix
- Resolver: longest history of the model that explains the engine's state
- Projections: pairs the engine must report, may report, or may have lost
- Options: fuzz configuration -> concrete engine options
- Simulator: shared driver replaying actions against engine and model

Example:
    >>> from crashmodel import Model, reconcile
    >>>
    >>> model = Model()
    >>> _ = model.apply([(5, 9)])
    >>> model.mark_durable()
    0
    >>> _ = model.apply([(5, None)])
    >>> len(reconcile(model, {5: 9}))
    1

Thread Safety:
    None. Every operation is a synchronous in-place mutation or a pure
    function; callers run them strictly one after another.
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("crashmodel")
except Exception:
    __version__ = "0+unknown"

from crashmodel.model import (
    Layer,
    Model,
    apply_operations_on_model,
    write_first_layer_to_disk,
)
from crashmodel.options import (
    ColumnOptions,
    Compression,
    Config,
    EngineOptions,
    build_options,
    load_config,
)
from crashmodel.projection import (
    Projection,
    Remove,
    Set,
    map_operation,
    model_optional_content,
    model_removed_content,
    model_required_content,
    project,
)
from crashmodel.resolver import (
    CrashConsistencyError,
    attempt_to_reset_model_to_disk_state,
    reconcile,
    reconcile_or_raise,
)
from crashmodel.simulator import (
    DbSimulator,
    Engine,
    Flush,
    MismatchError,
    Restart,
    SimpleModelSimulator,
    SimulationStats,
    Transaction,
    actions_from_json,
    load_actions,
)

__all__ = [
    "__version__",
    # Model
    "Layer",
    "Model",
    "apply_operations_on_model",
    "write_first_layer_to_disk",
    # Options
    "ColumnOptions",
    "Compression",
    "Config",
    "EngineOptions",
    "build_options",
    "load_config",
    # Projections
    "Projection",
    "Remove",
    "Set",
    "map_operation",
    "model_optional_content",
    "model_removed_content",
    "model_required_content",
    "project",
    # Resolver
    "CrashConsistencyError",
    "attempt_to_reset_model_to_disk_state",
    "reconcile",
    "reconcile_or_raise",
    # Driver
    "DbSimulator",
    "Engine",
    "Flush",
    "MismatchError",
    "Restart",
    "SimpleModelSimulator",
    "SimulationStats",
    "Transaction",
    "actions_from_json",
    "load_actions",
]
