from __future__ import annotations

from collections import Counter, OrderedDict
from dataclasses import dataclass
from typing import Any, List, Sequence

from .api import MarketRecord


@dataclass(frozen=True)
class DedupeResult:
    records: List[MarketRecord]
    duplicates: List[Any]
    dropped_without_key: int


def _has_key(record: Any, key: str) -> bool:
    return isinstance(record, dict) and key in record


def find_duplicate_keys(records: Sequence[MarketRecord], key: str) -> List[Any]:
    """Return key values that occur more than once, in first-seen order.

    Records without the key field, or that are not objects, are not counted.
    """
    counts = Counter(r[key] for r in records if _has_key(r, key))
    return [k for k, n in counts.items() if n > 1]


def dedupe_by_key(records: Sequence[MarketRecord], key: str) -> List[MarketRecord]:
    """Keep one record per key value; the latest occurrence wins.

    A surviving record sits at the position of its last occurrence, so
    [{id:1,v:a}, {id:2,v:b}, {id:1,v:c}] becomes [{id:2,v:b}, {id:1,v:c}].
    Records without the key field, or that are not objects, are dropped.
    """
    latest: "OrderedDict[Any, MarketRecord]" = OrderedDict()
    for rec in records:
        if not _has_key(rec, key):
            continue
        k = rec[key]
        if k in latest:
            latest.move_to_end(k)
        latest[k] = rec
    return list(latest.values())


def validate_snapshot(records: Sequence[MarketRecord], key: str) -> DedupeResult:
    """Run duplicate detection and dedup over a trimmed pull."""
    duplicates = find_duplicate_keys(records, key)
    dropped = sum(1 for r in records if not _has_key(r, key))
    return DedupeResult(dedupe_by_key(records, key), duplicates, dropped)
