from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import pandas as pd

from .api import MarketRecord


@dataclass(frozen=True)
class PersistConfig:
    root_dir: Path
    dataset_slug: str

    def dataset_dir(self) -> Path:
        d = self.root_dir / self.dataset_slug
        d.mkdir(parents=True, exist_ok=True)
        return d


def now_utc_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%SZ")


def write_raw_snapshot(cfg: PersistConfig, run_id: str, records: Sequence[MarketRecord], key: str = "id") -> Path:
    """Write the trimmed pull, duplicates included, as CSV with the key column first."""
    out = cfg.dataset_dir() / f"{run_id}_api_pull.csv"
    df = pd.DataFrame.from_records(list(records))
    if key in df.columns:
        df = df[[key] + [c for c in df.columns if c != key]]
    df.to_csv(out, index=False)
    return out
