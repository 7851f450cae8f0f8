"""
API handlers for the stats viewer endpoints.

Used by dev-server.py (FastAPI). Handlers take the decoded request body (and
the viewer session for stateful endpoints) and return a JSON-ready dict.
Bad input raises ValueError (or one of its subclasses from nixstats.errors);
the HTTP layer decides status codes.
"""

from typing import Any, Dict, Optional

from .analysis import DEFAULT_TOP_N, build_analysis
from .metrics_catalog import load_metric_catalog
from .snapshot_service import ViewerSession
from .stats_parser import parse_stats, parse_stats_text
from .stats_types import ComparisonEntry, StatsData


def _stats_from_request(data: Dict[str, Any]) -> tuple[StatsData, Optional[Dict[str, Any]]]:
    """
    Accept a stats document as `raw` (object), `text` (JSON string) or
    already-normalised `stats`.
    """
    if data.get("raw") is not None:
        return parse_stats(data["raw"]), data["raw"]
    if data.get("text") is not None:
        if not isinstance(data["text"], str):
            raise ValueError("'text' must be a string")
        return parse_stats_text(data["text"])
    if data.get("stats") is not None:
        return StatsData.model_validate(data["stats"]), None
    raise ValueError("Missing 'raw', 'text' or 'stats' field")


def _require_id(data: Dict[str, Any], field: str = "id") -> int:
    value = data.get(field)
    if value is None:
        raise ValueError(f"Missing '{field}' field")
    if isinstance(value, bool):
        raise ValueError(f"'{field}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{field}' must be an integer")


def _entry_summary(entry: ComparisonEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "name": entry.name,
        "timestamp": entry.timestamp.isoformat(),
    }


def _state_response(session: ViewerSession) -> Dict[str, Any]:
    return {
        "view": session.view,
        "currentStats": session.current_stats.model_dump() if session.current_stats else None,
        "hasCurrentRaw": session.current_raw is not None,
        "snapshots": [_entry_summary(e) for e in session.snapshots],
        "canCompare": len(session.snapshots) >= 2,
        "success": True,
    }


# ============================================================================
# Stateless endpoints
# ============================================================================

def handle_parse_stats(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle parse-stats endpoint.

    Args:
        data: Request body containing `raw` (object) or `text` (JSON string)

    Returns:
        Normalised stats
    """
    if data.get("raw") is None and data.get("text") is None:
        raise ValueError("Missing 'raw' or 'text' field")
    stats, _ = _stats_from_request(data)
    return {
        "stats": stats.model_dump(),
        "success": True,
    }


def handle_analyze(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle analyze endpoint.

    Args:
        data: Request body containing one of `raw`, `text`, `stats`, and
            optionally `top_n` (default 20)

    Returns:
        Normalised stats plus the analysis built from them
    """
    top_n = data.get("top_n", DEFAULT_TOP_N)
    if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 1:
        raise ValueError("'top_n' must be a positive integer")

    stats, _ = _stats_from_request(data)
    return {
        "stats": stats.model_dump(),
        "analysis": build_analysis(stats, top_n=top_n).model_dump(),
        "success": True,
    }


def handle_get_metrics(data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return the metric catalog used by the comparison view."""
    return {
        "metrics": [m.model_dump() for m in load_metric_catalog()],
        "success": True,
    }


# ============================================================================
# Session endpoints
# ============================================================================

def handle_get_state(session: ViewerSession) -> Dict[str, Any]:
    return _state_response(session)


def handle_load_stats(data: Dict[str, Any], session: ViewerSession) -> Dict[str, Any]:
    """
    Make a stats document current.

    Args:
        data: Request body containing `raw` (object) or `text` (JSON string)
    """
    if data.get("raw") is not None:
        session.load_stats(data["raw"])
    elif data.get("text") is not None:
        if not isinstance(data["text"], str):
            raise ValueError("'text' must be a string")
        session.load_stats_text(data["text"])
    else:
        raise ValueError("Missing 'raw' or 'text' field")
    return _state_response(session)


def handle_clear_stats(session: ViewerSession) -> Dict[str, Any]:
    session.clear_current()
    return _state_response(session)


def handle_set_view(data: Dict[str, Any], session: ViewerSession) -> Dict[str, Any]:
    view = data.get("view")
    if not view:
        raise ValueError("Missing 'view' field")
    session.set_view(view)
    return _state_response(session)


def handle_list_snapshots(session: ViewerSession) -> Dict[str, Any]:
    return {
        "snapshots": [_entry_summary(e) for e in session.list_snapshots()],
        "success": True,
    }


def handle_save_snapshot(data: Dict[str, Any], session: ViewerSession) -> Dict[str, Any]:
    """
    Save the current stats as a snapshot.

    Args:
        data: Request body, optional `name`
    """
    name = data.get("name") or ""
    if not isinstance(name, str):
        raise ValueError("'name' must be a string")
    entry = session.save_snapshot(name)
    return {
        "snapshot": _entry_summary(entry),
        "count": len(session.snapshots),
        "success": True,
    }


def handle_load_snapshot(data: Dict[str, Any], session: ViewerSession) -> Dict[str, Any]:
    session.load_snapshot(_require_id(data))
    return _state_response(session)


def handle_delete_snapshot(data: Dict[str, Any], session: ViewerSession) -> Dict[str, Any]:
    snapshot_id = _require_id(data)
    deleted = session.delete_snapshot(snapshot_id)
    return {
        "deleted": deleted,
        "id": snapshot_id,
        "count": len(session.snapshots),
        "success": True,
    }


def handle_clear_snapshots(session: ViewerSession) -> Dict[str, Any]:
    removed = session.clear_snapshots()
    return {
        "removed": removed,
        "success": True,
    }


def handle_compare(data: Dict[str, Any], session: ViewerSession) -> Dict[str, Any]:
    """
    Compare saved snapshots.

    Args:
        data: Request body containing:
            - baseline_id: Optional snapshot id (default: first snapshot)
            - metrics: Optional list of metric ids (default: whole catalog)
    """
    baseline_id = _require_id(data, "baseline_id") if data.get("baseline_id") is not None else None
    metrics = data.get("metrics")
    if metrics is not None and (
        not isinstance(metrics, list) or not all(isinstance(m, str) for m in metrics)
    ):
        raise ValueError("'metrics' must be a list of metric ids")

    result = session.compare(baseline_id=baseline_id, metrics=metrics)
    return {
        **result.model_dump(),
        "success": True,
    }
