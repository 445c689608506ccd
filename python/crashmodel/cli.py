"""
Replay a recorded action script through the crash-consistency checker.

The script is run against the in-memory reference engine and the layered
model; every restart is reconciled and every step verified.

Usage:
    python -m crashmodel ACTIONS.json [--config=PATH] [--compression=lz4]
                         [--btree-index] [--keep-pending] [--log=PATH] [--verbose]

Exit status:
    0  every step verified
    2  crash-consistency violation or mismatch
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from crashmodel.options import Compression, Config, load_config
from crashmodel.resolver import CrashConsistencyError
from crashmodel.simulator import MismatchError, SimpleModelSimulator, load_actions
from crashmodel.testing.stubs import LossyFlushEngine, MemoryEngine, MemoryStore


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="crashmodel",
        description="Replay an action script and check crash consistency against the layered model",
    )
    parser.add_argument("actions", type=Path, help="JSON action script")
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON engine config (compression, btree_index)")
    parser.add_argument("--compression", choices=[c.value for c in Compression], default=None,
                        help="Override the config's compression")
    parser.add_argument("--btree-index", action="store_true", default=None,
                        help="Override the config's index choice")
    parser.add_argument("--db-path", type=Path, default=Path("crashmodel-db"),
                        help="Engine path handed to the options (default: crashmodel-db)")
    parser.add_argument("--keep-pending", action="store_true",
                        help="Reference engine replays unflushed batches on reopen")
    parser.add_argument("--lossy-flush", action="store_true",
                        help="Reference engine loses flushed removes (expect a violation)")
    parser.add_argument("--log", type=str, default=None,
                        help="JSONL audit trail path (default: none)")
    parser.add_argument("--verbose", action="store_true",
                        help="Print every action")
    args = parser.parse_args(argv)
    if not args.actions.exists():
        parser.error(f"action script not found: {args.actions}")
    if args.config is not None and not args.config.exists():
        parser.error(f"config not found: {args.config}")
    return args


def _resolve_config(args: argparse.Namespace) -> Config:
    raw = load_config(args.config).to_dict() if args.config is not None else {}
    if args.compression is not None:
        raw["compression"] = args.compression
    if args.btree_index is not None:
        raw["btree_index"] = args.btree_index
    return Config.from_dict(raw)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = _resolve_config(args)
        actions = load_actions(args.actions)
    except (ValueError, TypeError, json.JSONDecodeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    engine_cls = LossyFlushEngine if args.lossy_flush else MemoryEngine
    store = MemoryStore(keep_pending=args.keep_pending, engine_cls=engine_cls)
    simulator = SimpleModelSimulator()

    print(f"crashmodel replay | actions={len(actions)} | config={config.to_dict()}")
    print("=" * 64)
    exit_code = 0
    stats = None
    try:
        stats = simulator.simulate(
            config,
            actions,
            store.open,
            path=args.db_path,
            log_path=args.log,
            verbose=args.verbose,
        )
    except (CrashConsistencyError, MismatchError) as e:
        print(f"\nFATAL {type(e).__name__}: {e}")
        exit_code = 2
    print("=" * 64)
    if stats is not None:
        print(
            f"SUMMARY: {stats.transactions} transactions | {stats.flushes} flushes | "
            f"{stats.restarts} restarts | {stats.reverted_layers} reverted layers"
        )
        print(f"Final model: {stats.final_layers} layers ({stats.final_durable} durable)")
    else:
        print("SUMMARY: FAILED")
    print("=" * 64)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
