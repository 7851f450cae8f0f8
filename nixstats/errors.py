"""
Domain errors for the stats viewer.

All of them subclass ValueError so API handlers can map any of them to a
client error without importing each one.
"""


class StatsParseError(ValueError):
    """Raised when a stats document cannot be decoded or is not a JSON object."""
    pass


class NoStatsLoadedError(ValueError):
    """Raised when an operation needs current stats but none are loaded."""
    pass


class SnapshotNotFoundError(ValueError):
    """Raised when a snapshot id does not match any saved snapshot."""
    pass


class ComparisonUnavailableError(ValueError):
    """Raised when fewer than two snapshots are available to compare."""
    pass
