"""
Stats Normaliser

Turns the JSON document written by `NIX_SHOW_STATS=1 nix-instantiate ...`
into a StatsData record.

The raw layout differs between Nix releases (and forks): older versions only
emit `cpuTime`, newer ones add a `time` section with gc timings; the `gc`
section is missing on builds without Boehm GC; call counts only appear with
`NIX_COUNT_CALLS=1`. Normalisation rules:

- absent, null or non-numeric fields map to defaults (0 / empty)
- numeric strings are coerced, booleans are not numbers
- negative numbers clamp to 0
- every camelCase key also accepts its snake_case spelling
- call-count tables are sorted by descending count

Only a non-object document is an error.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import StatsParseError
from .stats_types import (
    AttributeSelect,
    EnvStats,
    FunctionCall,
    GcStats,
    ListStats,
    SetStats,
    SizeStats,
    StatsData,
    SymbolStats,
    TimeStats,
    ValueStats,
)

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")


# ============================================================================
# Field access helpers
# ============================================================================

def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY_RE.sub("_", key).lower()


def _get(obj: Any, key: str) -> Any:
    """Look up `key` in a mapping, trying its snake_case spelling second."""
    if not isinstance(obj, Mapping):
        return None
    if key in obj:
        return obj[key]
    snake = _snake(key)
    if snake in obj:
        return obj[snake]
    return None


def _section(obj: Any, *keys: str) -> Dict[str, Any]:
    """First mapping found under any of `keys`, else an empty dict."""
    for key in keys:
        value = _get(obj, key)
        if isinstance(value, Mapping):
            return dict(value)
    return {}


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _int(value: Any, default: int = 0) -> int:
    number = _to_number(value)
    if number is None:
        return default
    return max(0, int(number))


def _float(value: Any, default: float = 0.0) -> float:
    number = _to_number(value)
    if number is None:
        return default
    return max(0.0, number)


def _str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


# ============================================================================
# Section parsers
# ============================================================================

def _parse_time(raw: Mapping[str, Any]) -> Tuple[float, TimeStats]:
    time_raw = _section(raw, "time")

    cpu_time = _to_number(_get(raw, "cpuTime"))
    time_cpu = _to_number(_get(time_raw, "cpu"))
    # Either spelling may be missing; each falls back to the other.
    cpu = time_cpu if time_cpu is not None else cpu_time
    cpu_time = cpu_time if cpu_time is not None else time_cpu
    cpu = max(0.0, cpu or 0.0)
    cpu_time = max(0.0, cpu_time or 0.0)

    gc = _float(_get(time_raw, "gc"))
    gc_fraction = _to_number(_get(time_raw, "gcFraction"))
    if gc_fraction is None:
        gc_fraction = gc / cpu if cpu > 0 else 0.0

    return cpu_time, TimeStats(cpu=cpu, gc=gc, gc_fraction=max(0.0, gc_fraction))


def _parse_primops(value: Any) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    if isinstance(value, Mapping):
        for name, count in value.items():
            counts[str(name)] = _int(count)
    elif isinstance(value, list):
        for item in value:
            name = _str(_get(item, "name"))
            if not name:
                continue
            counts[name] = counts.get(name, 0) + _int(_get(item, "count"))
    return dict(sorted(counts.items(), key=lambda kv: kv[1], reverse=True))


def _parse_functions(value: Any) -> List[FunctionCall]:
    if not isinstance(value, list):
        return []
    functions = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        functions.append(FunctionCall(
            name=_str(_get(item, "name")),
            file=_str(_get(item, "file")) or "",
            line=_int(_get(item, "line")),
            column=_int(_get(item, "column")),
            count=_int(_get(item, "count")),
        ))
    functions.sort(key=lambda f: f.count, reverse=True)
    return functions


def _parse_attributes(value: Any) -> List[AttributeSelect]:
    if not isinstance(value, list):
        return []
    attributes = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        attributes.append(AttributeSelect(
            file=_str(_get(item, "file")) or "",
            line=_int(_get(item, "line")),
            column=_int(_get(item, "column")),
            count=_int(_get(item, "count")),
        ))
    attributes.sort(key=lambda a: a.count, reverse=True)
    return attributes


# ============================================================================
# Public API
# ============================================================================

def parse_stats(raw: Mapping[str, Any]) -> StatsData:
    """
    Normalise a raw stats document.

    Args:
        raw: Decoded JSON object as produced by NIX_SHOW_STATS

    Returns:
        StatsData with every absent field defaulted

    Raises:
        StatsParseError: if `raw` is not a JSON object
    """
    if not isinstance(raw, Mapping):
        raise StatsParseError(
            f"Stats document must be a JSON object, got {type(raw).__name__}"
        )

    cpu_time, time_stats = _parse_time(raw)
    envs = _section(raw, "envs")
    lists = _section(raw, "list", "lists")
    values = _section(raw, "values")
    symbols = _section(raw, "symbols")
    sets = _section(raw, "sets")
    sizes = _section(raw, "sizes")
    gc = _section(raw, "gc")

    stats = StatsData(
        cpu_time=cpu_time,
        time=time_stats,
        envs=EnvStats(
            number=_int(_get(envs, "number")),
            elements=_int(_get(envs, "elements")),
            bytes=_int(_get(envs, "bytes")),
        ),
        lists=ListStats(
            elements=_int(_get(lists, "elements")),
            bytes=_int(_get(lists, "bytes")),
            concats=_int(_get(lists, "concats")),
        ),
        values=ValueStats(
            number=_int(_get(values, "number")),
            bytes=_int(_get(values, "bytes")),
        ),
        symbols=SymbolStats(
            number=_int(_get(symbols, "number")),
            bytes=_int(_get(symbols, "bytes")),
        ),
        sets=SetStats(
            number=_int(_get(sets, "number")),
            elements=_int(_get(sets, "elements")),
            bytes=_int(_get(sets, "bytes")),
        ),
        sizes=SizeStats(
            env=_int(_get(sizes, "Env")),
            value=_int(_get(sizes, "Value")),
            bindings=_int(_get(sizes, "Bindings")),
            attr=_int(_get(sizes, "Attr")),
        ),
        gc=GcStats(
            heap_size=_int(_get(gc, "heapSize")),
            total_bytes=_int(_get(gc, "totalBytes")),
            cycles=_int(_get(gc, "cycles")),
        ),
        nr_op_updates=_int(_get(raw, "nrOpUpdates")),
        nr_op_update_values_copied=_int(_get(raw, "nrOpUpdateValuesCopied")),
        nr_thunks=_int(_get(raw, "nrThunks")),
        nr_avoided=_int(_get(raw, "nrAvoided")),
        nr_lookups=_int(_get(raw, "nrLookups")),
        nr_prim_op_calls=_int(_get(raw, "nrPrimOpCalls")),
        nr_function_calls=_int(_get(raw, "nrFunctionCalls")),
        nr_exprs=_int(_get(raw, "nrExprs")),
        primops=_parse_primops(_get(raw, "primops")),
        functions=_parse_functions(_get(raw, "functions")),
        attributes=_parse_attributes(_get(raw, "attributes")),
    )

    logger.debug(
        "[parse_stats] cpu=%.3fs functions=%d primops=%d attributes=%d",
        stats.cpu_time, len(stats.functions), len(stats.primops), len(stats.attributes),
    )
    return stats


def parse_stats_text(text: str) -> Tuple[StatsData, Dict[str, Any]]:
    """
    Decode a stats document from JSON text and normalise it.

    Returns:
        (stats, raw) where raw is the decoded document

    Raises:
        StatsParseError: on invalid JSON or a non-object document
    """
    try:
        raw = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise StatsParseError(f"Invalid JSON: {e}") from e

    return parse_stats(raw), raw
