"""
Tests for Config parsing and build_options.
"""

import json
from pathlib import Path

import pytest

from crashmodel import ColumnOptions, Compression, Config, EngineOptions, build_options, load_config


# =============================================================================
# Category 1: build_options
# =============================================================================


class TestBuildOptions:
    """Fuzz config -> concrete engine options."""

    @pytest.mark.parametrize("compression", list(Compression))
    @pytest.mark.parametrize("btree_index", [False, True])
    def test_single_column_carries_config(self, compression, btree_index):
        """One column with the config's compression and index choice."""
        opts = build_options(Config(compression, btree_index), Path("/tmp/db"))
        assert opts.columns == (ColumnOptions(compression, btree_index),)

    def test_durability_fully_explicit(self):
        """No background thread, always_flush, synced WAL and data."""
        opts = build_options(Config(), "/tmp/db")
        assert opts.with_background_thread is False
        assert opts.always_flush is True
        assert opts.sync_wal is True
        assert opts.sync_data is True

    def test_stats_and_salt_off(self):
        """Statistics disabled, no salt, no per-column thresholds."""
        opts = build_options(Config(), "/tmp/db")
        assert opts.stats is False
        assert opts.salt is None
        assert opts.compression_threshold == {}

    def test_path_is_path(self):
        """str paths are normalised to Path."""
        opts = build_options(Config(), "/tmp/db")
        assert opts.path == Path("/tmp/db")

    def test_defaults_differ_from_checker_options(self):
        """The plain EngineOptions defaults are not the checking preset."""
        plain = EngineOptions(path=Path("x"), columns=(ColumnOptions(),))
        assert plain.with_background_thread is True
        assert build_options(Config(), "x") != plain

    def test_to_dict_is_json(self):
        """to_dict output serialises."""
        opts = build_options(Config(Compression.LZ4, True), "/tmp/db")
        out = json.loads(json.dumps(opts.to_dict()))
        assert out["columns"] == [{"compression": "lz4", "btree_index": True}]
        assert out["path"] == str(Path("/tmp/db"))


# =============================================================================
# Category 2: Config parsing
# =============================================================================


class TestConfigFromDict:
    """Config.from_dict validation."""

    def test_defaults(self):
        """Empty dict is the default config."""
        assert Config.from_dict({}) == Config(Compression.NONE, False)

    def test_round_trip_fields(self):
        """Known keys are read."""
        cfg = Config.from_dict({"compression": "Snappy", "btree_index": True})
        assert cfg == Config(Compression.SNAPPY, True)
        assert cfg.to_dict() == {"compression": "snappy", "btree_index": True}

    def test_unknown_key_rejected(self):
        """Unknown keys raise ValueError."""
        with pytest.raises(ValueError, match="Unknown key.*bogus"):
            Config.from_dict({"bogus": 1})

    def test_unknown_compression_rejected(self):
        """Unknown compression names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown compression"):
            Config.from_dict({"compression": "zstd"})

    def test_btree_index_must_be_bool(self):
        """btree_index=1 is rejected."""
        with pytest.raises(TypeError, match="btree_index must be bool"):
            Config.from_dict({"btree_index": 1})

    def test_not_dict_rejected(self):
        """A list is not a config."""
        with pytest.raises(TypeError, match="config must be a dict"):
            Config.from_dict(["lz4"])

    def test_load_config(self, tmp_path):
        """load_config reads JSON from disk."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"compression": "lz4"}), encoding="utf-8")
        assert load_config(path) == Config(Compression.LZ4, False)
