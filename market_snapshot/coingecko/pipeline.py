from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .api import CoinGeckoSource, MarketRecord, as_page
from .config import SnapshotConfig
from .errors import MalformedPage, PersistenceError
from .persistence import PersistConfig, now_utc_run_id, write_raw_snapshot
from .store import open_store
from .validation import validate_snapshot


@dataclass(frozen=True)
class SnapshotResult:
    fetched: int
    duplicates: List[object]
    upserted: int
    batches: int
    raw_path: Optional[Path] = None


@dataclass(frozen=True)
class RunOutcome:
    ok: bool
    count: int
    message: str

    def to_dict(self) -> dict:
        if self.ok:
            return {"message": self.message, "count": self.count}
        return {"error": self.message}


def accumulate_pages(fetch: Callable[[int], object], target: int, debug: bool = False) -> List[MarketRecord]:
    """Fetch pages 1, 2, ... until target records are held or the source runs dry.

    A page that is empty, not a list, or not decodable ends the loop quietly.
    The result is trimmed to exactly target and never padded.
    """
    rows: List[MarketRecord] = []
    page = 1
    while len(rows) < target:
        try:
            page_rows = as_page(fetch(page))
        except MalformedPage as e:
            print(f"[WARN] {e}; treating as end of data")
            break
        if not page_rows:
            if debug:
                print(f"[INFO] page={page} empty; source exhausted")
            break
        rows.extend(page_rows)
        print(f"[INFO] fetched page={page} rows={len(page_rows)} total={len(rows)}")
        page += 1
    return rows[:target]


def chunk(records: Sequence[MarketRecord], size: int) -> List[List[MarketRecord]]:
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [list(records[i : i + size]) for i in range(0, len(records), size)]


def upsert_batches(store, batches: Sequence[Sequence[MarketRecord]], table: str, dry_run: bool = False) -> int:
    """Send batches one at a time, in order. The first failure stops the run."""
    written = 0
    n = len(batches)
    for i, batch in enumerate(batches, start=1):
        if dry_run:
            print(f"[DRY-RUN] Would upsert batch {i}/{n} rows={len(batch)} table={table}")
            written += len(batch)
            continue
        try:
            store.upsert(batch)
        except PersistenceError as e:
            raise PersistenceError(f"batch {i}/{n}: {e}") from e
        written += len(batch)
        print(f"[INFO] upserted batch {i}/{n} rows={len(batch)} table={table}")
    return written


def run_snapshot(cfg: SnapshotConfig, source, store) -> SnapshotResult:
    """Fetch, trim, dedupe and upsert one snapshot. Raises on the first failure."""
    records = accumulate_pages(source.fetch_page, cfg.target, debug=cfg.debug)

    raw_path = None
    if cfg.persist_dir is not None:
        raw_path = write_raw_snapshot(
            PersistConfig(cfg.persist_dir, cfg.dataset_slug), now_utc_run_id(), records, cfg.conflict_key
        )

    checked = validate_snapshot(records, cfg.conflict_key)
    if checked.duplicates:
        shown = ", ".join(str(k) for k in checked.duplicates[:20])
        more = f" (+{len(checked.duplicates) - 20} more)" if len(checked.duplicates) > 20 else ""
        print(f"[WARN] duplicate {cfg.conflict_key} values in pull: {shown}{more}")
    if checked.dropped_without_key:
        print(f"[WARN] dropped {checked.dropped_without_key} records without {cfg.conflict_key!r}")

    batches = chunk(checked.records, cfg.batch_size)
    upserted = upsert_batches(store, batches, cfg.table, dry_run=cfg.dry_run)

    print(
        f"fetched={len(records)} duplicates={len(checked.duplicates)} upserted={upserted} "
        f"batches={len(batches)} table={cfg.table} raw={raw_path}"
    )
    return SnapshotResult(len(records), checked.duplicates, upserted, len(batches), raw_path)


def handler(cfg: SnapshotConfig, source=None, store=None) -> RunOutcome:
    """Entry point for one scheduled invocation.

    cfg is validated before anything else, so a ConfigurationError escapes
    without any fetch. Every later failure is reported as a failed outcome.
    """
    cfg.validate()
    try:
        if source is None:
            source = CoinGeckoSource(cfg.source_url, cfg.vs_currency, cfg.page_size, cfg.timeout)
        if store is None and not cfg.dry_run:
            store = open_store(cfg)
        result = run_snapshot(cfg, source, store)
    except Exception as e:  # reported to the caller, not raised
        print(f"[ERROR] {e}", file=sys.stderr)
        if cfg.debug:
            raise
        return RunOutcome(False, 0, str(e))
    verb = "Would upsert" if cfg.dry_run else "Upserted"
    return RunOutcome(True, result.upserted, f"{verb} {result.upserted} records (max {cfg.target})")
