"""
Snapshot Service

Holds the viewer state (current stats, saved snapshots, active view) and
persists it as one JSON blob in a key-value store:

    {"snapshots": [...], "currentStats": {...}, "currentRaw": {...}, "view": "analysis"}

Every mutation writes the whole blob back. Loading never writes. Storage
failures are logged and swallowed: losing a save must not lose the
in-memory session.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .comparison import ComparisonResult, compare_entries
from .errors import (
    ComparisonUnavailableError,
    NoStatsLoadedError,
    SnapshotNotFoundError,
    StatsParseError,
)
from .metrics_catalog import MetricDefinition
from .stats_parser import parse_stats, parse_stats_text
from .stats_types import ComparisonEntry, PersistedState, StatsData, ViewName
from .storage import STORAGE_KEY, KeyValueStore

logger = logging.getLogger(__name__)

VIEWS = ("analysis", "compare")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ViewerSession:
    """
    Viewer state backed by a KeyValueStore.

    Args:
        store: Backend holding the persisted blob
        storage_key: Key the blob lives under
        clock: Returns the current time; snapshot ids and timestamps come from it
    """

    def __init__(
        self,
        store: KeyValueStore,
        storage_key: str = STORAGE_KEY,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.storage_key = storage_key
        self.clock = clock

        self.current_stats: Optional[StatsData] = None
        self.current_raw: Optional[Dict[str, Any]] = None
        self.snapshots: List[ComparisonEntry] = []
        self.view: ViewName = "analysis"

        self._loading = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> "ViewerSession":
        """Restore state from the store. Bad data is logged and skipped."""
        self._loading = True
        try:
            self._restore()
        finally:
            self._loading = False
        return self

    def _restore(self) -> None:
        try:
            saved = self.store.get_item(self.storage_key)
        except (OSError, ValueError) as e:
            logger.warning("[snapshots] failed to read saved data: %s", e)
            return
        if not saved:
            return

        try:
            parsed = json.loads(saved)
        except json.JSONDecodeError as e:
            logger.warning("[snapshots] failed to load saved data: %s", e)
            return
        if not isinstance(parsed, dict):
            logger.warning("[snapshots] saved data is not an object, ignoring")
            return

        if isinstance(parsed.get("snapshots"), list):
            snapshots = []
            seen_ids = set()
            for item in parsed["snapshots"]:
                if not isinstance(item, dict):
                    logger.warning("[snapshots] skipping non-object snapshot entry")
                    continue
                try:
                    entry = ComparisonEntry.model_validate({**item, "raw": item.get("raw") or {}})
                except ValidationError as e:
                    logger.warning("[snapshots] skipping invalid snapshot %r: %s", item.get("id"), e)
                    continue
                if entry.id in seen_ids:
                    logger.warning("[snapshots] skipping duplicate snapshot id %d", entry.id)
                    continue
                seen_ids.add(entry.id)
                snapshots.append(entry)
            self.snapshots = snapshots

        if parsed.get("currentStats"):
            try:
                self.current_stats = StatsData.model_validate(parsed["currentStats"])
            except ValidationError as e:
                logger.warning("[snapshots] ignoring invalid currentStats: %s", e)

        if isinstance(parsed.get("currentRaw"), dict) and parsed["currentRaw"]:
            self.current_raw = parsed["currentRaw"]

        if parsed.get("view") in VIEWS:
            self.view = parsed["view"]
        if self.view == "compare" and len(self.snapshots) < 2:
            logger.warning("[snapshots] compare view needs 2 snapshots, showing analysis")
            self.view = "analysis"

        logger.info(
            "[snapshots] restored %d snapshot(s), current stats %s",
            len(self.snapshots), "loaded" if self.current_stats else "empty",
        )

    def to_blob(self) -> Dict[str, Any]:
        """The persisted blob as a JSON-ready dict."""
        state = PersistedState(
            snapshots=self.snapshots,
            current_stats=self.current_stats,
            current_raw=self.current_raw,
            view=self.view,
        )
        return state.model_dump(mode="json", by_alias=True)

    def _persist(self) -> None:
        if self._loading:
            return
        try:
            self.store.set_item(self.storage_key, json.dumps(self.to_blob()))
        except (OSError, TypeError, ValueError) as e:
            logger.warning("[snapshots] failed to save data: %s", e)

    # ------------------------------------------------------------------
    # Current stats
    # ------------------------------------------------------------------

    def load_stats(self, raw: Mapping[str, Any]) -> StatsData:
        """Normalise `raw` and make it the current stats."""
        stats = parse_stats(raw)
        self.current_stats = stats
        self.current_raw = dict(raw)
        self.view = "analysis"
        self._persist()
        return stats

    def load_stats_text(self, text: str) -> StatsData:
        """
        Parse JSON text and make it the current stats.

        Raises:
            StatsParseError: state is left unchanged
        """
        try:
            stats, raw = parse_stats_text(text)
        except StatsParseError as e:
            logger.error("[snapshots] failed to parse stats: %s", e)
            raise
        self.current_stats = stats
        self.current_raw = raw
        self.view = "analysis"
        self._persist()
        return stats

    def clear_current(self) -> None:
        """Drop the current stats so a new file can be loaded."""
        self.current_stats = None
        self._persist()

    def set_view(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view!r} (expected one of {', '.join(VIEWS)})")
        if view == "compare" and len(self.snapshots) < 2:
            raise ComparisonUnavailableError(
                f"Comparison needs at least 2 snapshots, have {len(self.snapshots)}"
            )
        self.view = view
        self._persist()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _next_id(self, now: datetime) -> int:
        candidate = int(now.timestamp() * 1000)
        last = max((s.id for s in self.snapshots), default=0)
        return candidate if candidate > last else last + 1

    def save_snapshot(self, name: str = "") -> ComparisonEntry:
        """
        Save the current stats as a named snapshot.

        A blank name becomes "Snapshot N" where N is the new snapshot count.

        Raises:
            NoStatsLoadedError: no current stats (or raw document) loaded
        """
        if self.current_stats is None or self.current_raw is None:
            raise NoStatsLoadedError("No stats loaded to save")

        now = self.clock()
        entry = ComparisonEntry(
            id=self._next_id(now),
            name=(name or "").strip() or f"Snapshot {len(self.snapshots) + 1}",
            data=self.current_stats,
            raw=self.current_raw,
            timestamp=now,
        )
        self.snapshots = [*self.snapshots, entry]
        self._persist()
        logger.info("[snapshots] saved %r (id=%d)", entry.name, entry.id)
        return entry

    def list_snapshots(self) -> List[ComparisonEntry]:
        return list(self.snapshots)

    def get_snapshot(self, snapshot_id: int) -> ComparisonEntry:
        for entry in self.snapshots:
            if entry.id == snapshot_id:
                return entry
        raise SnapshotNotFoundError(f"Snapshot not found: {snapshot_id}")

    def delete_snapshot(self, snapshot_id: int) -> bool:
        """Remove a snapshot. Returns False if no snapshot had that id."""
        remaining = [e for e in self.snapshots if e.id != snapshot_id]
        if len(remaining) == len(self.snapshots):
            return False
        self.snapshots = remaining
        if self.view == "compare" and len(remaining) < 2:
            self.view = "analysis"
        self._persist()
        return True

    def clear_snapshots(self) -> int:
        """Remove every snapshot. Returns how many were removed."""
        removed = len(self.snapshots)
        self.snapshots = []
        if self.view == "compare":
            self.view = "analysis"
        self._persist()
        return removed

    def load_snapshot(self, snapshot_id: int) -> ComparisonEntry:
        """Make a snapshot's stats current and switch to the analysis view."""
        entry = self.get_snapshot(snapshot_id)
        self.current_stats = entry.data
        self.current_raw = entry.raw
        self.view = "analysis"
        self._persist()
        return entry

    def compare(
        self,
        baseline_id: Optional[int] = None,
        metrics: Optional[List[str]] = None,
        catalog: Optional[List[MetricDefinition]] = None,
    ) -> ComparisonResult:
        return compare_entries(self.snapshots, baseline_id=baseline_id, metrics=metrics, catalog=catalog)
