#!/usr/bin/env python3
from __future__ import annotations

import duckdb  # type: ignore
import httpx
import pytest
from postgrest.exceptions import APIError

from market_snapshot.coingecko.config import SnapshotConfig
from market_snapshot.coingecko.errors import ConfigurationError, PersistenceError
from market_snapshot.coingecko.pipeline import upsert_batches
from market_snapshot.coingecko.store import DuckDBStore, SupabaseStore, open_store


def test_duckdb_upsert_replaces_whole_record(tmp_path):
    store = DuckDBStore(tmp_path / "db" / "snap.duckdb", "snapshot", "id")
    store.ensure_table()
    store.upsert([
        {"id": "bitcoin", "current_price": 60000.0, "market_cap_rank": 1, "roi": None},
        {"id": "ethereum", "current_price": 3000.0, "market_cap_rank": 2},
    ])
    store.upsert([{"id": "bitcoin", "current_price": 61000.0}])
    assert store.count_rows() == 2

    df = store.read_snapshot().set_index("id")
    assert df.loc["bitcoin", "current_price"] == 61000.0
    # no field merge with the earlier record
    assert df["market_cap_rank"].isna()["bitcoin"]
    assert df.loc["ethereum", "market_cap_rank"] == 2
    assert "upserted_at" in df.columns


def test_duckdb_ensure_table_is_idempotent(tmp_path):
    store = DuckDBStore(tmp_path / "snap.duckdb", "coins", "symbol")
    store.ensure_table()
    store.ensure_table()
    store.upsert([{"symbol": "btc"}, {"symbol": "eth"}])
    store.upsert([])
    assert store.count_rows() == 2


def test_duckdb_missing_table_is_persistence_error(tmp_path):
    store = DuckDBStore(tmp_path / "snap.duckdb", "never_created", "id")
    with pytest.raises(PersistenceError) as exc:
        store.upsert([{"id": "bitcoin"}])
    assert "never_created" in str(exc.value)

    con = duckdb.connect(str(tmp_path / "snap.duckdb"))
    try:
        tables = [r[0] for r in con.execute("SHOW TABLES").fetchall()]
    finally:
        con.close()
    assert "never_created" not in tables


class _Query:
    def __init__(self, client, table):
        self.client = client
        self.table = table

    def upsert(self, rows, on_conflict=None):
        self.client.calls.append((self.table, rows, on_conflict))
        return self

    def execute(self):
        if self.client.error is not None:
            raise self.client.error
        return None


class FakeSupabase:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def table(self, name):
        return _Query(self, name)


def test_supabase_upsert_uses_conflict_key():
    client = FakeSupabase()
    store = SupabaseStore(client, "snapshot", "id")
    store.upsert([{"id": "bitcoin"}, {"id": "ethereum"}])
    assert client.calls == [("snapshot", [{"id": "bitcoin"}, {"id": "ethereum"}], "id")]


def test_supabase_error_carries_detail():
    err = APIError({"message": "permission denied for table snapshot", "code": "42501", "hint": None, "details": None})
    store = SupabaseStore(FakeSupabase(error=err), "snapshot", "id")
    with pytest.raises(PersistenceError) as exc:
        store.upsert([{"id": "bitcoin"}])
    assert "permission denied" in str(exc.value)


class _DownQuery(_Query):
    def execute(self):
        raise httpx.ConnectError("connection refused")


class UnreachableSupabase(FakeSupabase):
    def table(self, name):
        return _DownQuery(self, name)


def test_supabase_transport_error_names_batch():
    store = SupabaseStore(UnreachableSupabase(), "snapshot", "id")
    with pytest.raises(PersistenceError) as exc:
        store.upsert([{"id": "bitcoin"}])
    assert "ConnectError" in str(exc.value)

    with pytest.raises(PersistenceError) as exc:
        upsert_batches(store, [[{"id": "bitcoin"}], [{"id": "ethereum"}]], "snapshot")
    assert "batch 1/2" in str(exc.value)


@pytest.mark.parametrize(
    "cfg",
    [
        SnapshotConfig(store_backend="duckdb"),
        SnapshotConfig(store_backend="supabase", supabase_url="https://x.supabase.co"),
    ],
)
def test_open_store_without_endpoint(cfg):
    with pytest.raises(ConfigurationError):
        open_store(cfg)
