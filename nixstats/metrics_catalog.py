"""
Metric Catalog Loader

Loads the list of comparable metrics from defaults/metrics.yaml. The
comparison view walks this catalog to build its rows, so adding a metric
only needs a YAML entry.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "defaults" / "metrics.yaml"


class MetricDefinition(BaseModel):
    """One comparable metric."""
    id: str
    label: str
    path: str = Field(..., description="Dotted path on StatsData, or derived.<name>")
    unit: Literal["bytes", "seconds", "count", "ratio"] = "count"
    lower_is_better: bool = True


def get_default_metrics() -> List[MetricDefinition]:
    """
    Built-in catalog used when metrics.yaml is missing or unreadable.
    """
    defaults = [
        {"id": "cpu_time", "label": "CPU time", "path": "cpu_time", "unit": "seconds"},
        {"id": "total_bytes", "label": "Total allocated", "path": "derived.total_bytes", "unit": "bytes"},
        {"id": "heap_size", "label": "GC heap size", "path": "gc.heap_size", "unit": "bytes"},
        {"id": "nr_thunks", "label": "Thunks created", "path": "nr_thunks", "unit": "count"},
        {"id": "nr_function_calls", "label": "Function calls", "path": "nr_function_calls", "unit": "count"},
    ]
    return [MetricDefinition(**d) for d in defaults]


def load_metric_catalog(path: Optional[Union[str, Path]] = None) -> List[MetricDefinition]:
    """
    Load metric definitions from YAML.

    Args:
        path: Catalog file; defaults to the packaged defaults/metrics.yaml

    Returns:
        List of MetricDefinition in file order. Falls back to the built-in
        catalog (with a logged warning) if the file is missing or invalid.
    """
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH

    if not catalog_path.exists():
        logger.warning("[metrics] catalog not found at %s, using defaults", catalog_path)
        return get_default_metrics()

    try:
        with open(catalog_path, "r") as f:
            catalog_data: Dict[str, Any] = yaml.safe_load(f) or {}

        metrics = [MetricDefinition(**entry) for entry in catalog_data.get("metrics", [])]
    except (OSError, yaml.YAMLError, ValidationError, TypeError, AttributeError) as e:
        logger.error("[metrics] failed to load catalog %s: %s", catalog_path, e)
        return get_default_metrics()

    if not metrics:
        logger.warning("[metrics] catalog %s is empty, using defaults", catalog_path)
        return get_default_metrics()

    return metrics


def select_metrics(
    catalog: List[MetricDefinition],
    metric_ids: Optional[List[str]] = None,
) -> List[MetricDefinition]:
    """
    Filter the catalog to `metric_ids`, keeping the caller's order.

    Raises:
        ValueError: if any id is not in the catalog
    """
    if not metric_ids:
        return list(catalog)

    by_id = {m.id: m for m in catalog}
    unknown = [mid for mid in metric_ids if mid not in by_id]
    if unknown:
        raise ValueError(f"Unknown metric(s): {', '.join(unknown)}")
    return [by_id[mid] for mid in metric_ids]
