"""CLI scripts for working with stored snapshots.

Scripts:
- export_snapshot_to_csv: Export the DuckDB snapshot table to CSV

Usage:
    python -m market_snapshot.scripts.export_snapshot_to_csv --help
"""

__all__ = [
    "export_snapshot_to_csv",
]
