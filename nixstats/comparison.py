"""
Snapshot Comparison

Compares saved snapshots metric by metric against a baseline snapshot.
"""

from typing import List, Optional, Sequence
from pydantic import BaseModel, Field

from .analysis import compute_derived_metrics
from .errors import ComparisonUnavailableError, SnapshotNotFoundError
from .formatters import format_percent, format_value
from .metrics_catalog import MetricDefinition, load_metric_catalog, select_metrics
from .stats_types import ComparisonEntry, StatsData


class EntrySummary(BaseModel):
    id: int
    name: str
    timestamp: str


class MetricValue(BaseModel):
    """One metric for one snapshot, relative to the baseline."""
    entry_id: int
    value: float
    display: str
    delta: float = 0.0
    percent_change: Optional[float] = Field(None, description="None when the baseline value is 0")
    percent_display: str = "n/a"
    improved: Optional[bool] = Field(None, description="None when unchanged")


class MetricComparison(BaseModel):
    metric: MetricDefinition
    values: List[MetricValue]


class ComparisonResult(BaseModel):
    baseline_id: int
    entries: List[EntrySummary]
    metrics: List[MetricComparison]


def resolve_metric(stats: StatsData, path: str) -> float:
    """
    Read a metric value from `stats` by dotted path.

    `derived.<name>` reads from compute_derived_metrics(stats).

    Raises:
        ValueError: if the path does not resolve to a number
    """
    parts = path.split(".")
    if parts[0] == "derived":
        target = compute_derived_metrics(stats)
        parts = parts[1:]
    else:
        target = stats

    for part in parts:
        if not hasattr(target, part):
            raise ValueError(f"Unknown metric path: {path}")
        target = getattr(target, part)

    if isinstance(target, bool) or not isinstance(target, (int, float)):
        raise ValueError(f"Metric path does not resolve to a number: {path}")
    return float(target)


def _compare_value(
    metric: MetricDefinition,
    entry: ComparisonEntry,
    value: float,
    baseline_value: float,
) -> MetricValue:
    delta = value - baseline_value
    percent_change = delta / baseline_value if baseline_value else None

    if delta == 0:
        improved = None
    elif metric.lower_is_better:
        improved = delta < 0
    else:
        improved = delta > 0

    return MetricValue(
        entry_id=entry.id,
        value=value,
        display=format_value(value, metric.unit),
        delta=delta,
        percent_change=percent_change,
        percent_display=format_percent(percent_change, signed=True),
        improved=improved,
    )


def compare_entries(
    entries: Sequence[ComparisonEntry],
    baseline_id: Optional[int] = None,
    metrics: Optional[List[str]] = None,
    catalog: Optional[List[MetricDefinition]] = None,
) -> ComparisonResult:
    """
    Compare snapshots against a baseline.

    Args:
        entries: Snapshots in display order
        baseline_id: Snapshot to compare against (default: first entry)
        metrics: Metric ids to include (default: whole catalog)
        catalog: Metric catalog (default: load_metric_catalog())

    Returns:
        ComparisonResult with one MetricComparison per metric, values in
        entry order

    Raises:
        ComparisonUnavailableError: fewer than two entries
        SnapshotNotFoundError: baseline_id does not match an entry
        ValueError: unknown metric id
    """
    if len(entries) < 2:
        raise ComparisonUnavailableError(
            f"Comparison needs at least 2 snapshots, have {len(entries)}"
        )

    if baseline_id is None:
        baseline = entries[0]
    else:
        baseline = next((e for e in entries if e.id == baseline_id), None)
        if baseline is None:
            raise SnapshotNotFoundError(f"Snapshot not found: {baseline_id}")

    selected = select_metrics(catalog if catalog is not None else load_metric_catalog(), metrics)

    comparisons = []
    for metric in selected:
        baseline_value = resolve_metric(baseline.data, metric.path)
        values = [
            _compare_value(metric, entry, resolve_metric(entry.data, metric.path), baseline_value)
            for entry in entries
        ]
        comparisons.append(MetricComparison(metric=metric, values=values))

    return ComparisonResult(
        baseline_id=baseline.id,
        entries=[
            EntrySummary(id=e.id, name=e.name, timestamp=e.timestamp.isoformat())
            for e in entries
        ],
        metrics=comparisons,
    )
