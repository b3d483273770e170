#!/usr/bin/env python3
from __future__ import annotations

from pathlib import Path

import pytest

from market_snapshot.coingecko.api import COINGECKO_MARKETS
from market_snapshot.coingecko.config import SnapshotConfig
from market_snapshot.coingecko.errors import ConfigurationError


def test_defaults_from_empty_env():
    cfg = SnapshotConfig.from_env({})
    assert cfg.source_url == COINGECKO_MARKETS
    assert (cfg.vs_currency, cfg.page_size, cfg.target, cfg.batch_size) == ("usd", 250, 1250, 200)
    assert (cfg.table, cfg.conflict_key, cfg.store_backend) == ("snapshot", "id", "supabase")
    assert cfg.persist_dir is None
    # store credentials have no default
    with pytest.raises(ConfigurationError) as exc:
        cfg.validate()
    assert "SUPABASE_URL" in str(exc.value) and "SUPABASE_SERVICE_KEY" in str(exc.value)


def test_env_values():
    env = {
        "COINGECKO_API_URL": "https://pro-api.example/coins/markets",
        "SNAPSHOT_PAGE_SIZE": "100",
        "SNAPSHOT_TARGET": "300",
        "SNAPSHOT_BATCH_SIZE": "50",
        "SNAPSHOT_TABLE": "coins",
        "SNAPSHOT_CONFLICT_KEY": "symbol",
        "SNAPSHOT_STORE": "DuckDB",
        "SNAPSHOT_DUCKDB": "/tmp/snap.duckdb",
        "SNAPSHOT_HTTP_TIMEOUT": "2.5",
    }
    cfg = SnapshotConfig.from_env(env).validate()
    assert cfg.source_url == "https://pro-api.example/coins/markets"
    assert (cfg.page_size, cfg.target, cfg.batch_size) == (100, 300, 50)
    assert (cfg.table, cfg.conflict_key, cfg.store_backend) == ("coins", "symbol", "duckdb")
    assert cfg.duckdb_path == Path("/tmp/snap.duckdb")
    assert cfg.timeout == 2.5


def test_supabase_credentials_accepted():
    cfg = SnapshotConfig.from_env({"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_SERVICE_KEY": "k"})
    assert cfg.validate() is cfg


@pytest.mark.parametrize(
    "env",
    [
        {"SNAPSHOT_STORE": "duckdb"},
        {"SNAPSHOT_STORE": "sqlite", "SNAPSHOT_DUCKDB": "x.duckdb"},
        {"SNAPSHOT_STORE": "duckdb", "SNAPSHOT_DUCKDB": "x.duckdb", "SNAPSHOT_BATCH_SIZE": "0"},
    ],
)
def test_invalid_settings(env):
    with pytest.raises(ConfigurationError):
        SnapshotConfig.from_env(env).validate()


def test_non_integer_size():
    with pytest.raises(ConfigurationError):
        SnapshotConfig.from_env({"SNAPSHOT_PAGE_SIZE": "lots"})


def test_overrides_skip_none():
    cfg = SnapshotConfig(target=10).with_overrides(target=None, table="t2", dry_run=True)
    assert cfg.target == 10 and cfg.table == "t2" and cfg.dry_run
