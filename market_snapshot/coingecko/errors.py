from __future__ import annotations


class SnapshotError(Exception):
    """Base class for failures surfaced by a snapshot run."""


class ConfigurationError(SnapshotError):
    """Required settings are missing or invalid. Raised before any fetch."""


class SourceUnavailable(SnapshotError):
    """The market data API answered with a non-success status or was unreachable."""


class MalformedPage(SnapshotError):
    """A page body could not be decoded. Treated as end of data by the accumulator."""


class PersistenceError(SnapshotError):
    """The store rejected an upsert."""
