from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from .api import COINGECKO_MARKETS
from .errors import ConfigurationError


STORE_BACKENDS = ("supabase", "duckdb")


@dataclass(frozen=True)
class SnapshotConfig:
    """Settings for one snapshot run.

    Built once from the environment, optionally overridden from the command
    line, validated, then passed by value through the pipeline.
    """

    source_url: str = COINGECKO_MARKETS
    vs_currency: str = "usd"
    page_size: int = 250
    target: int = 1250
    batch_size: int = 200
    table: str = "snapshot"
    conflict_key: str = "id"
    store_backend: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    duckdb_path: Optional[Path] = None
    persist_dir: Optional[Path] = None
    dataset_slug: str = "coingecko_markets"
    timeout: float = 15.0
    dry_run: bool = False
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SnapshotConfig":
        env = os.environ if environ is None else environ
        duckdb_path = env.get("SNAPSHOT_DUCKDB")
        persist_dir = env.get("SNAPSHOT_PERSIST_DIR")
        return cls(
            source_url=env.get("COINGECKO_API_URL") or COINGECKO_MARKETS,
            vs_currency=env.get("SNAPSHOT_VS_CURRENCY") or "usd",
            page_size=_int_setting(env, "SNAPSHOT_PAGE_SIZE", 250),
            target=_int_setting(env, "SNAPSHOT_TARGET", 1250),
            batch_size=_int_setting(env, "SNAPSHOT_BATCH_SIZE", 200),
            table=env.get("SNAPSHOT_TABLE") or "snapshot",
            conflict_key=env.get("SNAPSHOT_CONFLICT_KEY") or "id",
            store_backend=(env.get("SNAPSHOT_STORE") or "supabase").strip().lower(),
            supabase_url=env.get("SUPABASE_URL") or None,
            supabase_key=env.get("SUPABASE_SERVICE_KEY") or None,
            duckdb_path=Path(duckdb_path) if duckdb_path else None,
            persist_dir=Path(persist_dir) if persist_dir else None,
            timeout=_float_setting(env, "SNAPSHOT_HTTP_TIMEOUT", 15.0),
        )

    def with_overrides(self, **changes) -> "SnapshotConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def validate(self) -> "SnapshotConfig":
        if self.store_backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"unknown store backend {self.store_backend!r}; expected one of {', '.join(STORE_BACKENDS)}"
            )
        if self.store_backend == "supabase":
            missing = [
                name
                for name, value in (("SUPABASE_URL", self.supabase_url), ("SUPABASE_SERVICE_KEY", self.supabase_key))
                if not value
            ]
            if missing:
                raise ConfigurationError(f"missing store credentials: {', '.join(missing)}")
        elif self.duckdb_path is None:
            raise ConfigurationError("missing store endpoint: SNAPSHOT_DUCKDB (or --duckdb)")
        for name in ("page_size", "target", "batch_size"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {getattr(self, name)}")
        if not self.table:
            raise ConfigurationError("table name must not be empty")
        if not self.conflict_key:
            raise ConfigurationError("conflict key must not be empty")
        return self


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
