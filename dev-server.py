#!/usr/bin/env python3
"""
dev-server.py - Local API server for the Nix stats viewer.

Serves the viewer's data side (stats normalisation, analysis, snapshots,
comparison) as JSON for the browser front end.
Run: python dev-server.py
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from nixstats.config import Settings, load_env_files
from nixstats.errors import SnapshotNotFoundError
from nixstats.logger import setup_logger
from nixstats.snapshot_service import ViewerSession
from nixstats.storage import FileKeyValueStore
from nixstats.api_handlers import (
    handle_analyze,
    handle_clear_snapshots,
    handle_clear_stats,
    handle_compare,
    handle_delete_snapshot,
    handle_get_metrics,
    handle_get_state,
    handle_list_snapshots,
    handle_load_snapshot,
    handle_load_stats,
    handle_parse_stats,
    handle_save_snapshot,
    handle_set_view,
)

# Read configuration from environment (.env.local / .env first)
load_env_files()
settings = Settings.from_env()
logger = setup_logger("nixstats", settings.log_level)

# Shared by every route. Routes touching it are `async def` so they all run
# on the event loop, one at a time.
session = ViewerSession(FileKeyValueStore(settings.data_dir), storage_key=settings.storage_key).load()

app = FastAPI(
    title="NS Stats Viewer (Local Dev)",
    version="1.0.0",
    description="Local API server for the Nix evaluator stats viewer"
)

# CORS configuration from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _body(request: Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return data


def _run(handler, *args):
    """Call a handler, mapping domain errors to HTTP status codes."""
    try:
        return handler(*args)
    except SnapshotNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("[%s] Error: %s", handler.__name__, e)
        raise HTTPException(status_code=500, detail=str(e))


# Health check
@app.get("/")
@app.get("/api")
def health():
    return {
        "status": "ok",
        "service": "ns-stats-viewer",
        "env": "local",
        "snapshots": len(session.snapshots),
    }


# Stateless: normalise a stats document
@app.post("/api/parse-stats")
async def parse_stats_endpoint(request: Request):
    """
    Normalise a raw stats document.

    Request: { "raw": {...} } or { "text": "<json>" }
    Response: { "stats": {...}, "success": true }
    """
    return _run(handle_parse_stats, await _body(request))


@app.post("/api/analyze")
async def analyze_endpoint(request: Request):
    """
    Normalise and analyse a stats document.

    Request: { "raw": {...} } | { "text": "<json>" } | { "stats": {...} }, optional "top_n"
    Response: { "stats": {...}, "analysis": {...}, "success": true }
    """
    return _run(handle_analyze, await _body(request))


@app.get("/api/metrics")
async def metrics_endpoint():
    return _run(handle_get_metrics)


# Session state
@app.get("/api/state")
async def state_endpoint():
    return _run(handle_get_state, session)


@app.post("/api/stats/load")
async def load_stats_endpoint(request: Request):
    """
    Make a stats document current and switch to the analysis view.

    Request: { "raw": {...} } or { "text": "<json>" }
    """
    return _run(handle_load_stats, await _body(request), session)


@app.post("/api/stats/clear")
async def clear_stats_endpoint():
    return _run(handle_clear_stats, session)


@app.post("/api/view")
async def set_view_endpoint(request: Request):
    """
    Switch view.

    Request: { "view": "analysis" | "compare" }
    """
    return _run(handle_set_view, await _body(request), session)


# Snapshots
@app.get("/api/snapshots")
async def list_snapshots_endpoint():
    return _run(handle_list_snapshots, session)


@app.post("/api/snapshots")
async def save_snapshot_endpoint(request: Request):
    """
    Save the current stats as a snapshot.

    Request: { "name": "before-refactor" }  (blank name -> "Snapshot N")
    """
    return _run(handle_save_snapshot, await _body(request), session)


@app.post("/api/snapshots/load")
async def load_snapshot_endpoint(request: Request):
    return _run(handle_load_snapshot, await _body(request), session)


@app.post("/api/snapshots/delete")
async def delete_snapshot_endpoint(request: Request):
    return _run(handle_delete_snapshot, await _body(request), session)


@app.post("/api/snapshots/clear")
async def clear_snapshots_endpoint():
    return _run(handle_clear_snapshots, session)


@app.post("/api/compare")
async def compare_endpoint(request: Request):
    """
    Compare saved snapshots against a baseline.

    Request: { "baseline_id": 1730000000000, "metrics": ["cpu_time", "total_bytes"] }
    Both fields are optional.
    """
    return _run(handle_compare, await _body(request), session)


if __name__ == "__main__":
    import uvicorn

    port = settings.api_port

    print("")
    print("NS Stats Viewer API")
    print("━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print(f"Server:     http://localhost:{port}")
    print(f"API Docs:   http://localhost:{port}/docs")
    print(f"Data dir:   {settings.data_dir}")
    print("")
    print("Available endpoints:")
    print("  GET  /                      - Health check")
    print("  POST /api/parse-stats       - Normalise a stats document")
    print("  POST /api/analyze           - Normalise + derived metrics")
    print("  GET  /api/metrics           - Comparison metric catalog")
    print("  GET  /api/state             - Current viewer state")
    print("  POST /api/stats/load        - Load stats as current")
    print("  POST /api/stats/clear       - Clear current stats")
    print("  POST /api/view              - Switch analysis/compare view")
    print("  GET  /api/snapshots         - List snapshots")
    print("  POST /api/snapshots         - Save snapshot")
    print("  POST /api/snapshots/load    - Load snapshot as current")
    print("  POST /api/snapshots/delete  - Delete snapshot")
    print("  POST /api/snapshots/clear   - Delete all snapshots")
    print("  POST /api/compare           - Compare snapshots")
    print("━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print(f"Port: {port} (set via PYTHON_API_PORT env var)")
    print("")

    uvicorn.run(
        "dev-server:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level=settings.log_level.lower()
    )
