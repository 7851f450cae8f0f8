"""
Command line report for Nix evaluator stats.

Usage:
    ns-report stats.json                      # analysis of one file
    ns-report before.json after.json          # compare files (first is baseline)
    ns-report stats.json --save "after fix"   # also save as a snapshot
    ns-report --snapshots                     # compare saved snapshots

Also runnable as `python -m nixstats.report`.
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .analysis import DEFAULT_TOP_N, StatsAnalysis, build_analysis
from .comparison import ComparisonResult, compare_entries
from .config import Settings, load_env_files
from .errors import StatsParseError
from .logger import setup_logger
from .snapshot_service import ViewerSession
from .stats_parser import parse_stats_text
from .stats_types import ComparisonEntry
from .storage import FileKeyValueStore

logger = logging.getLogger(__name__)

RULE = "=" * 80


def render_analysis(analysis: StatsAnalysis, title: str = "") -> str:
    lines = [RULE, f"NIX EVALUATION STATS{f': {title}' if title else ''}", RULE]

    for card in analysis.summary:
        lines.append(f"  {card.label:<24}{card.display:>20}")
    lines.append(f"  {'Thunk avoidance':<24}{analysis.metadata.get('thunk_avoidance', ''):>20}")
    lines.append(f"  {'GC share of CPU':<24}{analysis.metadata.get('gc_fraction', ''):>20}")

    lines += ["", "MEMORY", "-" * 80]
    for row in analysis.memory:
        lines.append(f"  {row.category:<16}{row.count:>16,}{row.display:>16}{row.share * 100:>10.1f}%")

    lines += ["", "COUNTERS", "-" * 80]
    for counter in analysis.counters:
        lines.append(f"  {counter.label:<28}{counter.display:>20}")

    for heading, rows in (
        ("TOP PRIMOPS", analysis.top_primops),
        ("TOP FUNCTIONS", analysis.top_functions),
        ("TOP ATTRIBUTE SELECTIONS", analysis.top_attributes),
    ):
        if not rows:
            continue
        lines += ["", heading, "-" * 80]
        for row in rows:
            label = row.name if row.location in (None, row.name) else f"{row.name} ({row.location})"
            lines.append(f"  {row.display:>14}  {label}")

    return "\n".join(lines)


def render_comparison(result: ComparisonResult) -> str:
    names = {e.id: e.name for e in result.entries}
    baseline = names.get(result.baseline_id, str(result.baseline_id))
    lines = [RULE, f"SNAPSHOT COMPARISON (baseline: {baseline})", RULE]

    for comparison in result.metrics:
        lines.append(comparison.metric.label)
        for value in comparison.values:
            if value.entry_id == result.baseline_id:
                marker = "baseline"
            elif value.improved is None:
                marker = "="
            else:
                marker = "better" if value.improved else "worse"
            lines.append(
                f"  {names[value.entry_id]:<28}{value.display:>16}{value.percent_display:>10}  {marker}"
            )
    return "\n".join(lines)


def _read_entry(path: Path, index: int) -> ComparisonEntry:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise StatsParseError(f"{path}: not UTF-8 text ({e})") from e
    stats, raw = parse_stats_text(text)
    return ComparisonEntry(
        id=index + 1,
        name=path.name,
        data=stats,
        raw=raw,
        timestamp=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Report on Nix evaluator stats (NIX_SHOW_STATS=1 output)"
    )
    parser.add_argument("files", nargs="*", help="Stats JSON file(s); two or more are compared")
    parser.add_argument("--top", type=int, default=DEFAULT_TOP_N, help="Rows per ranked table")
    parser.add_argument("--metrics", help="Comma-separated metric ids to compare")
    parser.add_argument("--save", metavar="NAME", help="Save the (single) file as a named snapshot")
    parser.add_argument("--snapshots", action="store_true", help="Compare saved snapshots")
    parser.add_argument("--data-dir", help="Snapshot directory (default: NS_DATA_DIR)")
    args = parser.parse_args(argv)

    load_env_files()
    settings = Settings.from_env()
    setup_logger("nixstats", settings.log_level)
    metrics = [m.strip() for m in args.metrics.split(",") if m.strip()] if args.metrics else None

    def open_session() -> ViewerSession:
        data_dir = Path(args.data_dir).expanduser() if args.data_dir else settings.data_dir
        return ViewerSession(FileKeyValueStore(data_dir), storage_key=settings.storage_key).load()

    try:
        if args.snapshots:
            print(render_comparison(open_session().compare(metrics=metrics)))
            return 0

        if not args.files:
            parser.error("at least one stats file is required")

        entries = [_read_entry(Path(f), i) for i, f in enumerate(args.files)]

        if len(entries) == 1:
            entry = entries[0]
            print(render_analysis(build_analysis(entry.data, top_n=args.top), title=entry.name))
            if args.save is not None:
                session = open_session()
                session.load_stats(entry.raw)
                saved = session.save_snapshot(args.save)
                print(f"\nSaved snapshot {saved.name!r} (id={saved.id})")
            return 0

        if args.save is not None:
            parser.error("--save takes a single stats file")
        print(render_comparison(compare_entries(entries, metrics=metrics)))
        return 0

    except (OSError, StatsParseError) as e:
        logger.error("[report] %s", e)
        return 1
    except ValueError as e:
        logger.error("[report] %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
