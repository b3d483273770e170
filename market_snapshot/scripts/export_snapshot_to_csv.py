#!/usr/bin/env python3
"""
Export the stored CoinGecko snapshot from a DuckDB table to CSV.

Usage examples:
  python -m market_snapshot.scripts.export_snapshot_to_csv \
    --duckdb data/snapshot.duckdb --table snapshot \
    --out data/coingecko_snapshot.csv --overwrite

Notes:
  - One column per record field, plus upserted_at (UTC-naive)
  - Rows sorted by market_cap_rank when present, else by key
  - By default prevents overwriting unless --overwrite is passed
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from market_snapshot.coingecko.store import DuckDBStore


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Export snapshot table from DuckDB to CSV")
    parser.add_argument("--duckdb", type=Path, required=True, help="Path to DuckDB file")
    parser.add_argument("--table", default="snapshot", help="Snapshot table name")
    parser.add_argument("--conflict-key", default="id", help="Key column of the snapshot table")
    parser.add_argument("--out", type=Path, required=True, help="Output CSV path")
    parser.add_argument("--overwrite", action="store_true", help="Allow overwriting existing output file")
    args = parser.parse_args(argv)

    out_path: Path = args.out
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if out_path.exists() and not args.overwrite:
        print(f"[ERROR] Output exists: {out_path}. Pass --overwrite to replace.", file=sys.stderr)
        return 2

    store = DuckDBStore(args.duckdb, args.table, args.conflict_key)
    store.ensure_table()
    df = store.read_snapshot()
    if df.empty:
        print("[WARN] No rows in snapshot table; writing empty CSV with header.")
    elif "market_cap_rank" in df.columns:
        df = df.sort_values("market_cap_rank", kind="mergesort", na_position="last").reset_index(drop=True)

    df.to_csv(out_path, index=False)
    print(f"Wrote {len(df):,} rows to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
