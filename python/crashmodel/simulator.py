"""
Model-checking driver shared by every model variant.

A run replays a sequence of actions against an engine and a model side by
side:

    Transaction(operations)  -- record a layer, commit to the engine
    Flush()                  -- engine.flush(), oldest pending layer durable
    Restart()                -- close + reopen, reconcile model to disk state

After every action the engine is checked against the model projections.
A reconcile failure raises CrashConsistencyError; any other disagreement
raises MismatchError. Both are written to the audit trail before being
re-raised.
"""

from __future__ import annotations

import abc
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence, TextIO, Union, runtime_checkable

from crashmodel import projection, resolver
from crashmodel._api import _encode
from crashmodel.model import Key, Model, Operation, Value, apply_operations_on_model, write_first_layer_to_disk
from crashmodel.options import Config, EngineOptions, build_options
from crashmodel.projection import EngineOperation
from crashmodel.resolver import CrashConsistencyError


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transaction:
    operations: tuple[Operation, ...]


@dataclass(frozen=True)
class Flush:
    pass


@dataclass(frozen=True)
class Restart:
    pass


Action = Union[Transaction, Flush, Restart]


def _parse_byte(v: Any) -> Any:
    if v is None or (isinstance(v, int) and not isinstance(v, bool)):
        return v
    raise ValueError(f"operation keys and values must be int or null, not {v!r}")


def actions_from_json(raw: Any) -> list[Action]:
    """
    Parse the JSON replay format.

        [{"op": "transaction", "operations": [[5, 9], [5, null]]},
         {"op": "flush"},
         {"op": "restart"}]

    Raises:
        ValueError: Unknown op or malformed entry.
    """
    if not isinstance(raw, list):
        raise ValueError("action script must be a JSON list")
    actions: list[Action] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict) or "op" not in entry:
            raise ValueError(f"action {i}: expected an object with an 'op' field")
        op = entry["op"]
        if op == "transaction":
            ops = []
            for pair in entry.get("operations", []):
                try:
                    k, v = pair
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"action {i}: operations must be [key, value] pairs") from exc
                ops.append((_parse_byte(k), _parse_byte(v)))
            actions.append(Transaction(tuple(ops)))
        elif op == "flush":
            actions.append(Flush())
        elif op == "restart":
            actions.append(Restart())
        else:
            raise ValueError(f"action {i}: unknown op {op!r}")
    return actions


def load_actions(path: Path) -> list[Action]:
    with Path(path).open(encoding="utf-8") as f:
        return actions_from_json(json.load(f))


# ---------------------------------------------------------------------------
# Engine capability
# ---------------------------------------------------------------------------

@runtime_checkable
class Engine(Protocol):
    """
    Black-box storage engine under test.

    Keys and values are the bytes produced by map_operation().
    """

    def commit(self, operations: Sequence[EngineOperation]) -> None:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...

    def get(self, key: bytes) -> Optional[bytes]:
        ...

    def items(self) -> list[tuple[bytes, bytes]]:
        ...


EngineFactory = Callable[[EngineOptions], Engine]


# ---------------------------------------------------------------------------
# Operation Log (JSONL)
# ---------------------------------------------------------------------------

class OperationLog:
    """
    JSONL audit trail of one simulate() run.

    Records are numbered even when no path is given, so sequence numbers
    stay stable whether or not the trail is written.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self._file: Optional[TextIO] = open(path, "w", encoding="utf-8") if path else None
        self._seq = 0

    def log(self, op: str, **fields: Any) -> None:
        self._seq += 1
        if self._file is None:
            return
        record = {"seq": self._seq, "t": time.time(), "op": op, **fields}
        self._file.write(json.dumps(record, default=str) + "\n")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


# ---------------------------------------------------------------------------
# Errors and stats
# ---------------------------------------------------------------------------

class MismatchError(Exception):
    """The engine disagreed with the model projections after an action."""


@dataclass
class SimulationStats:
    transactions: int = 0
    flushes: int = 0
    restarts: int = 0
    verifications: int = 0
    reverted_layers: int = 0
    final_layers: int = 0
    final_durable: int = 0

    def to_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


# ---------------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------------

class DbSimulator(abc.ABC):
    """
    What a model variant has to provide for the shared driver.

    Subclasses implement the model side; simulate() owns the engine side
    and the order in which the capabilities are used.
    """

    @abc.abstractmethod
    def new_model(self) -> Any:
        ...

    @abc.abstractmethod
    def build_options(self, config: Config, path: Path) -> EngineOptions:
        ...

    @abc.abstractmethod
    def apply_operations_on_model(self, operations: Iterable[Operation], model: Any) -> None:
        ...

    @abc.abstractmethod
    def write_first_layer_to_disk(self, model: Any) -> None:
        ...

    @abc.abstractmethod
    def attempt_to_reset_model_to_disk_state(
        self, model: Any, state: Sequence[tuple[Key, Value]]
    ) -> Optional[Any]:
        ...

    @abc.abstractmethod
    def map_operation(self, operation: Operation) -> EngineOperation:
        ...

    @abc.abstractmethod
    def model_required_content(self, model: Any) -> list[tuple[Key, Value]]:
        ...

    @abc.abstractmethod
    def model_optional_content(self, model: Any) -> list[tuple[Key, Value]]:
        ...

    @abc.abstractmethod
    def model_removed_content(self, model: Any) -> list[Key]:
        ...

    def model_len(self, model: Any) -> int:
        return len(model)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def simulate(
        self,
        config: Config,
        actions: Iterable[Action],
        open_engine: EngineFactory,
        *,
        path: Union[str, Path],
        log_path: Optional[Union[str, Path]] = None,
        verbose: bool = False,
    ) -> SimulationStats:
        """
        Replay actions against a freshly opened engine and the model.

        Returns:
            SimulationStats for the run.

        Raises:
            CrashConsistencyError: A restart left the engine in a state no
                history of the model explains.
            MismatchError: The engine disagreed with the model projections.
        """
        options = self.build_options(config, Path(path))
        stats = SimulationStats()
        model = self.new_model()
        engine: Optional[Engine] = None
        oplog = OperationLog(log_path)
        try:
            oplog.log(op="open", config=config.to_dict(), options=options.to_dict())
            engine = open_engine(options)
            for step, action in enumerate(actions):
                if isinstance(action, Transaction):
                    self.apply_operations_on_model(action.operations, model)
                    engine.commit([self.map_operation(op) for op in action.operations])
                    stats.transactions += 1
                    if verbose:
                        print(f"  [{step}] transaction({len(action.operations)} ops)")
                    oplog.log(op="transaction", step=step, n=len(action.operations))
                elif isinstance(action, Flush):
                    engine.flush()
                    self.write_first_layer_to_disk(model)
                    stats.flushes += 1
                    if verbose:
                        print(f"  [{step}] flush()")
                    oplog.log(op="flush", step=step)
                elif isinstance(action, Restart):
                    engine.close()
                    engine = None
                    engine = open_engine(options)
                    state = self._decoded_state(engine, model)
                    stats.restarts += 1
                    oplog.log(op="restart", step=step, keys=len(state))
                    before = self.model_len(model)
                    reset = self.attempt_to_reset_model_to_disk_state(model, state)
                    if reset is None:
                        observed = dict(state)
                        durable = getattr(model, "durable_count", 0)
                        raise CrashConsistencyError(observed, before, durable)
                    model = reset
                    reverted = before - self.model_len(model)
                    stats.reverted_layers += reverted
                    if verbose:
                        print(f"  [{step}] restart() -> kept {self.model_len(model)}, reverted {reverted}")
                    oplog.log(
                        op="reconcile", step=step,
                        kept=self.model_len(model), reverted=reverted,
                    )
                else:
                    raise TypeError(f"unknown action {action!r}")

                self.check_db_and_model_are_equals(engine, model, context=f"step {step}")
                stats.verifications += 1
                oplog.log(op="verify", ok=True, step=step)
        except (CrashConsistencyError, MismatchError) as e:
            oplog.log(op="FATAL", type=type(e).__name__, error=str(e))
            raise
        finally:
            if engine is not None:
                engine.close()
            stats.final_layers = self.model_len(model)
            stats.final_durable = getattr(model, "durable_count", 0)
            oplog.log(op="summary", **stats.to_dict())
            oplog.close()
        return stats

    def _decoded_state(self, engine: Engine, model: Any) -> list[tuple[Key, Value]]:
        """Engine items translated back into model keys/values."""
        return [(self.decode(k), self.decode(v)) for k, v in engine.items()]

    def decode(self, raw: bytes) -> Any:
        return raw

    def check_db_and_model_are_equals(self, engine: Engine, model: Any, context: str = "") -> None:
        """
        Verify the engine against the model projections.

        Required pairs must be readable; enumerated pairs must be optional
        content, except removed keys, which may linger.
        """
        for key, value in self.model_required_content(model):
            encoded = self.map_operation((key, value))
            got = engine.get(encoded.key)
            if got != encoded.value:
                raise MismatchError(
                    f"{context}: key {key!r}: expected {encoded.value!r}, got {got!r}"
                )

        optional = {}
        for kv in self.model_optional_content(model):
            encoded = self.map_operation(kv)
            optional[encoded.key] = encoded.value
        removed = {self.map_operation((k, None)).key for k in self.model_removed_content(model)}
        for k, v in engine.items():
            if k in removed:
                continue
            if k not in optional:
                raise MismatchError(f"{context}: engine reports unexpected key {k!r} = {v!r}")
            if optional[k] != v:
                raise MismatchError(
                    f"{context}: key {k!r}: expected {optional[k]!r}, got {v!r}"
                )


# ---------------------------------------------------------------------------
# Simple model: no reference counting
# ---------------------------------------------------------------------------

class SimpleModelSimulator(DbSimulator):
    """Checks a sequence of batches and restarts against the layered model."""

    def new_model(self) -> Model:
        return Model()

    def build_options(self, config: Config, path: Path) -> EngineOptions:
        return build_options(config, path)

    def apply_operations_on_model(self, operations: Iterable[Operation], model: Model) -> None:
        apply_operations_on_model(operations, model)

    def write_first_layer_to_disk(self, model: Model) -> None:
        write_first_layer_to_disk(model)

    def attempt_to_reset_model_to_disk_state(
        self, model: Model, state: Sequence[tuple[Key, Value]]
    ) -> Optional[Model]:
        return resolver.attempt_to_reset_model_to_disk_state(model, state)

    def map_operation(self, operation: Operation) -> EngineOperation:
        return projection.map_operation(operation)

    def model_required_content(self, model: Model) -> list[tuple[Key, Value]]:
        return projection.model_required_content(model)

    def model_optional_content(self, model: Model) -> list[tuple[Key, Value]]:
        return projection.model_optional_content(model)

    def model_removed_content(self, model: Model) -> list[Key]:
        return projection.model_removed_content(model)

    def _decoded_state(self, engine: Engine, model: Model) -> list[tuple[Key, Value]]:
        """
        Engine items translated back into the model's own keys and values.

        Ints and bytes both reach the engine as bytes, so the encodings of
        everything the model recorded decide which form comes back. Bytes
        the model never wrote fall back to decode().
        """
        keys: dict[bytes, Key] = {}
        values: dict[bytes, Value] = {}
        for layer in model:
            for key, value in layer.values.items():
                keys[_encode(key, "key")] = key
                if value is not None:
                    values[_encode(value, "value")] = value
        return [
            (keys.get(k, self.decode(k)), values.get(v, self.decode(v)))
            for k, v in engine.items()
        ]

    def decode(self, raw: bytes) -> Any:
        # Single-byte alphabet: b"\x05" -> 5.
        if len(raw) == 1:
            return raw[0]
        return raw
