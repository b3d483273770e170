"""Market Snapshot - periodic market data snapshots for cryptocurrency assets.

Provides:
- CoinGecko /coins/markets snapshot feed (paginate, dedupe, batched upsert)
- Supabase and DuckDB snapshot stores
- CLI script for exporting a DuckDB snapshot to CSV
"""

__version__ = "0.1.0"

# Expose main submodules
from . import coingecko
from . import scripts

__all__ = ["coingecko", "scripts", "__version__"]
