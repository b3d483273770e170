from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .config import STORE_BACKENDS, SnapshotConfig
from .errors import ConfigurationError
from .pipeline import handler


def parse_args(argv: Optional[list[str]] = None) -> SnapshotConfig:
    """Read settings from the environment, then apply command line overrides."""
    p = argparse.ArgumentParser(description="CoinGecko market snapshot feed")
    p.add_argument("--store", choices=STORE_BACKENDS, default=None, help="Store backend (env SNAPSHOT_STORE)")
    p.add_argument("--duckdb", type=Path, default=None, help="Path to DuckDB file for the duckdb store")
    p.add_argument("--table", type=str, default=None, help="Snapshot table name (default: snapshot)")
    p.add_argument("--conflict-key", type=str, default=None, help="Upsert conflict column (default: id)")
    p.add_argument("--page-size", type=int, default=None, help="Records per API page (default: 250)")
    p.add_argument("--target", type=int, default=None, help="Records to keep per snapshot (default: 1250)")
    p.add_argument("--batch-size", type=int, default=None, help="Records per upsert call (default: 200)")
    p.add_argument("--vs-currency", type=str, default=None, help="Quote currency (default: usd)")
    p.add_argument("--persist-dir", type=Path, default=None, help="Directory root for raw pull artifacts")
    p.add_argument("--dataset", type=str, default=None, help="Dataset slug directory for artifacts")
    p.add_argument("--env-file", type=Path, default=None, help="Load settings from this .env file")
    p.add_argument("--dry-run", action="store_true", help="Do not write to the store")
    p.add_argument("--debug", action="store_true", help="Verbose logging")
    args = p.parse_args(argv)

    if args.env_file is not None:
        load_dotenv(args.env_file)
    else:
        load_dotenv(".env")

    return SnapshotConfig.from_env().with_overrides(
        store_backend=args.store,
        duckdb_path=args.duckdb,
        table=args.table,
        conflict_key=args.conflict_key,
        page_size=args.page_size,
        target=args.target,
        batch_size=args.batch_size,
        vs_currency=args.vs_currency,
        persist_dir=args.persist_dir,
        dataset_slug=args.dataset,
        dry_run=args.dry_run or None,
        debug=args.debug or None,
    )


def main(argv: Optional[list[str]] = None) -> int:
    try:
        cfg = parse_args(argv)
        outcome = handler(cfg)
    except ConfigurationError as e:
        print(f"[ERROR] configuration: {e}", file=sys.stderr)
        return 2
    print(json.dumps(outcome.to_dict()))
    return 0 if outcome.ok else 3


if __name__ == "__main__":
    raise SystemExit(main())
