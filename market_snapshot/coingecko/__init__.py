"""CoinGecko top-N market snapshot feed.

Pulls /coins/markets page by page, trims to the target size, drops duplicate
ids (latest wins) and upserts the result in fixed-size batches.
"""

__all__ = [
    "api",
    "cli",
    "config",
    "errors",
    "persistence",
    "pipeline",
    "store",
    "validation",
]
