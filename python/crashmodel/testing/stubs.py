from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from crashmodel.options import EngineOptions
from crashmodel.projection import EngineOperation, Remove, Set


@dataclass
class MemoryDisk:
    """What survives a close: durable pairs plus batches not yet flushed."""

    durable: dict[bytes, bytes] = field(default_factory=dict)
    pending: list[list[EngineOperation]] = field(default_factory=list)


def _apply(state: dict[bytes, bytes], operations: Sequence[EngineOperation]) -> None:
    for op in operations:
        if isinstance(op, Set):
            state[op.key] = op.value
        elif isinstance(op, Remove):
            state.pop(op.key, None)
        else:
            raise TypeError(f"unknown engine operation {op!r}")


class MemoryEngine:
    """
    Deterministic engine stub used by tests and the replay CLI.

    Intent:
    - commit() queues a batch; reads see every committed batch.
    - flush() makes the oldest queued batch durable, one batch per call.
    - close() is a crash: queued batches are dropped unless the store
      was created with keep_pending=True (a log replayed on reopen).
    """

    def __init__(self, options: EngineOptions, disk: MemoryDisk, *, keep_pending: bool = False):
        if len(options.columns) != 1:
            raise ValueError("MemoryEngine supports exactly one column")
        self.options = options
        self._disk = disk
        self._keep_pending = keep_pending
        self.closed = False
        self._live = dict(disk.durable)
        for batch in disk.pending:
            _apply(self._live, batch)

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("engine is closed")

    def commit(self, operations: Sequence[EngineOperation]) -> None:
        self._check_open()
        batch = list(operations)
        self._disk.pending.append(batch)
        _apply(self._live, batch)

    def flush(self) -> None:
        self._check_open()
        if self._disk.pending:
            self._persist(self._disk.pending.pop(0))

    def _persist(self, batch: list[EngineOperation]) -> None:
        _apply(self._disk.durable, batch)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._keep_pending:
            while self._disk.pending:
                self._persist(self._disk.pending.pop(0))
        else:
            self._disk.pending.clear()

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open()
        return self._live.get(key)

    def items(self) -> list[tuple[bytes, bytes]]:
        self._check_open()
        return sorted(self._live.items())


class LossyFlushEngine(MemoryEngine):
    """Broken engine: flushed removes never reach the disk; sets do."""

    def _persist(self, batch: list[EngineOperation]) -> None:
        _apply(self._disk.durable, [op for op in batch if isinstance(op, Set)])


class MemoryStore:
    """Opens engines over per-path in-memory disks, so reopening sees old data."""

    def __init__(self, *, keep_pending: bool = False, engine_cls: type = MemoryEngine):
        self._disks: dict[Path, MemoryDisk] = {}
        self._keep_pending = keep_pending
        self._engine_cls = engine_cls
        self.opens = 0

    def disk(self, path) -> MemoryDisk:
        return self._disks.setdefault(Path(path), MemoryDisk())

    def open(self, options: EngineOptions) -> MemoryEngine:
        self.opens += 1
        return self._engine_cls(options, self.disk(options.path), keep_pending=self._keep_pending)
