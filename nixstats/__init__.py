"""
NS - Nix evaluator stats viewer

Normalises NIX_SHOW_STATS reports, derives metrics from them, and keeps named
snapshots for side-by-side comparison.
"""

from .errors import (
    StatsParseError,
    NoStatsLoadedError,
    SnapshotNotFoundError,
    ComparisonUnavailableError,
)
from .stats_types import StatsData, ComparisonEntry, PersistedState
from .stats_parser import parse_stats, parse_stats_text
from .analysis import build_analysis, compute_derived_metrics
from .comparison import compare_entries
from .storage import STORAGE_KEY, FileKeyValueStore, MemoryKeyValueStore
from .snapshot_service import ViewerSession

__all__ = [
    # Errors
    'StatsParseError',
    'NoStatsLoadedError',
    'SnapshotNotFoundError',
    'ComparisonUnavailableError',
    # Types
    'StatsData',
    'ComparisonEntry',
    'PersistedState',
    # Functions
    'parse_stats',
    'parse_stats_text',
    'build_analysis',
    'compute_derived_metrics',
    'compare_entries',
    # Persistence
    'STORAGE_KEY',
    'FileKeyValueStore',
    'MemoryKeyValueStore',
    'ViewerSession',
]
