from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import duckdb  # type: ignore
import httpx
import pandas as pd
from postgrest.exceptions import APIError
from supabase import create_client

from .api import MarketRecord
from .config import SnapshotConfig
from .errors import ConfigurationError, PersistenceError


def _connect(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(db_path))


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


@dataclass
class DuckDBStore:
    """Snapshot table in a local DuckDB file.

    Each record is stored whole as JSON next to its key, so an upsert replaces
    the previous record for that key rather than merging fields.
    """

    path: Path
    table: str = "snapshot"
    conflict_key: str = "id"

    def ensure_table(self) -> None:
        con = _connect(self.path)
        try:
            con.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_quote(self.table)} (
                  {_quote(self.conflict_key)} VARCHAR PRIMARY KEY,
                  record VARCHAR,
                  upserted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
        finally:
            con.close()

    def upsert(self, batch: Sequence[MarketRecord]) -> None:
        if not batch:
            return
        now = pd.Timestamp.now(tz="UTC").tz_convert(None)
        batch_df = pd.DataFrame(
            {
                "snapshot_key": [str(r[self.conflict_key]) for r in batch],
                "record": [json.dumps(r, default=str) for r in batch],
                "upserted_at": [now] * len(batch),
            }
        )
        con = _connect(self.path)
        try:
            con.register("batch_df", batch_df)
            con.execute("BEGIN TRANSACTION;")
            try:
                con.execute(
                    f"""
                    INSERT OR REPLACE INTO {_quote(self.table)} ({_quote(self.conflict_key)}, record, upserted_at)
                    SELECT snapshot_key, record, upserted_at FROM batch_df;
                    """
                )
                con.execute("COMMIT;")
            except duckdb.Error:
                con.execute("ROLLBACK;")
                raise
        except duckdb.Error as e:
            raise PersistenceError(f"DuckDB upsert into {self.table} failed: {e}") from e
        finally:
            con.close()

    def count_rows(self) -> int:
        con = _connect(self.path)
        try:
            res = con.execute(f"SELECT COUNT(*) FROM {_quote(self.table)}").fetchone()
            return int(res[0]) if res else 0
        finally:
            con.close()

    def read_snapshot(self) -> pd.DataFrame:
        """Return the stored records, one column per field, ordered by key."""
        con = _connect(self.path)
        try:
            q = f"""
                SELECT {_quote(self.conflict_key)} AS snapshot_key, record, upserted_at
                FROM {_quote(self.table)}
                ORDER BY snapshot_key
            """
            raw = con.execute(q).fetch_df()
        finally:
            con.close()
        if raw.empty:
            return pd.DataFrame(columns=[self.conflict_key])
        df = pd.DataFrame.from_records([json.loads(r) for r in raw["record"]])
        df["upserted_at"] = raw["upserted_at"].values
        return df


@dataclass
class SupabaseStore:
    """Snapshot table behind a Supabase (PostgREST) endpoint."""

    client: Any
    table: str = "snapshot"
    conflict_key: str = "id"

    @classmethod
    def connect(cls, url: str, key: str, table: str, conflict_key: str) -> "SupabaseStore":
        return cls(create_client(url, key), table, conflict_key)

    def upsert(self, batch: Sequence[MarketRecord]) -> None:
        if not batch:
            return
        try:
            self.client.table(self.table).upsert(list(batch), on_conflict=self.conflict_key).execute()
        except APIError as e:
            detail = getattr(e, "message", None) or str(e)
            raise PersistenceError(f"Supabase upsert into {self.table} failed: {detail}") from e
        except httpx.HTTPError as e:
            raise PersistenceError(f"Supabase upsert into {self.table} failed: {type(e).__name__}: {e}") from e


def open_store(cfg: SnapshotConfig):
    """Build the store named by cfg.store_backend.

    Raises ConfigurationError when the backend lacks its endpoint.
    """
    if cfg.store_backend == "duckdb":
        if cfg.duckdb_path is None:
            raise ConfigurationError("missing store endpoint: SNAPSHOT_DUCKDB (or --duckdb)")
        store = DuckDBStore(cfg.duckdb_path, cfg.table, cfg.conflict_key)
        store.ensure_table()
        return store
    if not (cfg.supabase_url and cfg.supabase_key):
        raise ConfigurationError("missing store credentials: SUPABASE_URL, SUPABASE_SERVICE_KEY")
    return SupabaseStore.connect(cfg.supabase_url, cfg.supabase_key, cfg.table, cfg.conflict_key)
