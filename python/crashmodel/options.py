"""Engine configuration: fuzz-level Config and the concrete EngineOptions."""

from __future__ import annotations

import enum
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional


class Compression(enum.Enum):
    NONE = "none"
    SNAPPY = "snappy"
    LZ4 = "lz4"


_CONFIG_KEYS = ("compression", "btree_index")


@dataclass(frozen=True)
class Config:
    compression: Compression = Compression.NONE
    btree_index: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Config":
        """
        Build a Config from a JSON-style dict.

        Raises:
            TypeError: raw is not a dict, or btree_index is not a bool.
            ValueError: Unknown key or unknown compression name.
        """
        if not isinstance(raw, dict):
            raise TypeError(f"config must be a dict, not {type(raw).__name__}")
        for key in raw:
            if key not in _CONFIG_KEYS:
                raise ValueError(f"Unknown key {key!r} in config")
        compression = raw.get("compression", Compression.NONE.value)
        if isinstance(compression, Compression):
            comp = compression
        else:
            try:
                comp = Compression(str(compression).lower())
            except ValueError:
                names = ", ".join(c.value for c in Compression)
                raise ValueError(
                    f"Unknown compression {compression!r} (expected one of: {names})"
                ) from None
        btree_index = raw.get("btree_index", False)
        if not isinstance(btree_index, bool):
            raise TypeError("btree_index must be bool")
        return cls(compression=comp, btree_index=btree_index)

    def to_dict(self) -> dict[str, Any]:
        return {"compression": self.compression.value, "btree_index": self.btree_index}


def load_config(config_path: Path) -> Config:
    with Path(config_path).open(encoding="utf-8") as f:
        raw = json.load(f)
    return Config.from_dict(raw)


@dataclass(frozen=True)
class ColumnOptions:
    compression: Compression = Compression.NONE
    btree_index: bool = False


@dataclass(frozen=True)
class EngineOptions:
    path: Path
    columns: tuple[ColumnOptions, ...]
    sync_wal: bool = True
    sync_data: bool = True
    stats: bool = True
    salt: Optional[bytes] = None
    compression_threshold: dict[int, int] = field(default_factory=dict)
    always_flush: bool = False
    with_background_thread: bool = True

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["path"] = str(self.path)
        out["columns"] = [
            {"compression": c.compression.value, "btree_index": c.btree_index}
            for c in self.columns
        ]
        return out


def build_options(config: Config, path: Path) -> EngineOptions:
    """
    Concrete engine options for a model-checking run.

    One column carrying the config's compression and index choice. No
    background thread and always_flush, so durability only happens on
    explicit flushes; WAL and data files are synced; stats are off.
    """
    return EngineOptions(
        path=Path(path),
        columns=(
            ColumnOptions(
                compression=config.compression,
                btree_index=config.btree_index,
            ),
        ),
        sync_wal=True,
        sync_data=True,
        stats=False,
        salt=None,
        compression_threshold={},
        always_flush=True,
        with_background_thread=False,
    )
