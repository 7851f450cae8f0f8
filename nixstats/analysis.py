"""
Stats Analysis

Derived metrics and ranked tables for a single StatsData record. This is the
data behind the "Analysis" view; the front end only renders it.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field

from .formatters import format_bytes, format_duration, format_number, format_percent
from .stats_types import StatsData


DEFAULT_TOP_N = 20


# ============================================================================
# Result types
# ============================================================================

class DerivedMetrics(BaseModel):
    """Ratios computed from the raw counters. Zero denominators give 0.0."""
    total_bytes: int = Field(0, description="envs + lists + values + symbols + sets bytes")
    thunk_avoidance_rate: float = Field(0.0, description="nr_avoided / (nr_thunks + nr_avoided)")
    gc_fraction: float = Field(0.0, description="Share of CPU time spent in GC")
    avg_env_size: float = Field(0.0, description="Slots per environment")
    avg_set_size: float = Field(0.0, description="Attributes per set")
    bytes_per_value: float = 0.0
    values_per_second: float = 0.0
    function_calls_per_second: float = 0.0


class SummaryCard(BaseModel):
    id: str
    label: str
    value: float
    display: str


class MemoryRow(BaseModel):
    category: str
    count: int
    bytes: int
    display: str
    share: float = Field(description="Fraction of total allocated bytes")


class CounterRow(BaseModel):
    id: str
    label: str
    value: int
    display: str


class RankedRow(BaseModel):
    """One row of a call-count table (primops, functions, attributes)."""
    name: str
    location: Optional[str] = None
    count: int
    display: str
    share: float = Field(description="Fraction of the table's total count")


class StatsAnalysis(BaseModel):
    derived: DerivedMetrics
    summary: list[SummaryCard] = Field(default_factory=list)
    memory: list[MemoryRow] = Field(default_factory=list)
    counters: list[CounterRow] = Field(default_factory=list)
    top_primops: list[RankedRow] = Field(default_factory=list)
    top_functions: list[RankedRow] = Field(default_factory=list)
    top_attributes: list[RankedRow] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Computation
# ============================================================================

def _ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def compute_derived_metrics(stats: StatsData) -> DerivedMetrics:
    total_bytes = (
        stats.envs.bytes
        + stats.lists.bytes
        + stats.values.bytes
        + stats.symbols.bytes
        + stats.sets.bytes
    )
    gc_fraction = stats.time.gc_fraction or _ratio(stats.time.gc, stats.cpu_time)

    return DerivedMetrics(
        total_bytes=total_bytes,
        thunk_avoidance_rate=_ratio(stats.nr_avoided, stats.nr_thunks + stats.nr_avoided),
        gc_fraction=gc_fraction,
        avg_env_size=_ratio(stats.envs.elements, stats.envs.number),
        avg_set_size=_ratio(stats.sets.elements, stats.sets.number),
        bytes_per_value=_ratio(stats.values.bytes, stats.values.number),
        values_per_second=_ratio(stats.values.number, stats.cpu_time),
        function_calls_per_second=_ratio(stats.nr_function_calls, stats.cpu_time),
    )


def _ranked(items: list[tuple[str, Optional[str], int]], top_n: int) -> list[RankedRow]:
    total = sum(count for _, _, count in items)
    return [
        RankedRow(
            name=name,
            location=location,
            count=count,
            display=format_number(count),
            share=_ratio(count, total),
        )
        for name, location, count in items[:top_n]
    ]


def build_analysis(stats: StatsData, top_n: int = DEFAULT_TOP_N) -> StatsAnalysis:
    """
    Build the full analysis for one stats record.

    Args:
        stats: Normalised stats
        top_n: Maximum rows in each ranked table

    Returns:
        StatsAnalysis with summary cards, memory breakdown, counters,
        ranked call tables and derived metrics
    """
    derived = compute_derived_metrics(stats)

    summary = [
        SummaryCard(id="cpu_time", label="CPU time", value=stats.cpu_time,
                    display=format_duration(stats.cpu_time)),
        SummaryCard(id="gc_time", label="GC time", value=stats.time.gc,
                    display=format_duration(stats.time.gc)),
        SummaryCard(id="total_bytes", label="Allocated", value=derived.total_bytes,
                    display=format_bytes(derived.total_bytes)),
        SummaryCard(id="heap_size", label="GC heap", value=stats.gc.heap_size,
                    display=format_bytes(stats.gc.heap_size)),
        SummaryCard(id="nr_thunks", label="Thunks", value=stats.nr_thunks,
                    display=format_number(stats.nr_thunks)),
        SummaryCard(id="nr_function_calls", label="Function calls", value=stats.nr_function_calls,
                    display=format_number(stats.nr_function_calls)),
    ]

    memory_sections = [
        ("Environments", stats.envs.number, stats.envs.bytes),
        ("Lists", stats.lists.elements, stats.lists.bytes),
        ("Values", stats.values.number, stats.values.bytes),
        ("Symbols", stats.symbols.number, stats.symbols.bytes),
        ("Sets", stats.sets.number, stats.sets.bytes),
    ]
    memory = [
        MemoryRow(
            category=category,
            count=count,
            bytes=num_bytes,
            display=format_bytes(num_bytes),
            share=_ratio(num_bytes, derived.total_bytes),
        )
        for category, count, num_bytes in memory_sections
    ]

    counter_fields = [
        ("nr_thunks", "Thunks created"),
        ("nr_avoided", "Thunks avoided"),
        ("nr_lookups", "Variable lookups"),
        ("nr_function_calls", "Function calls"),
        ("nr_prim_op_calls", "Primop calls"),
        ("nr_op_updates", "Attrset updates (//)"),
        ("nr_op_update_values_copied", "Values copied by //"),
        ("nr_exprs", "Expressions parsed"),
    ]
    counters = [
        CounterRow(id=field, label=label, value=getattr(stats, field),
                   display=format_number(getattr(stats, field)))
        for field, label in counter_fields
    ]

    top_primops = _ranked([(name, None, count) for name, count in stats.primops.items()], top_n)
    top_functions = _ranked(
        [(f.name or "<lambda>", f.location, f.count) for f in stats.functions], top_n
    )
    top_attributes = _ranked(
        [(a.location, a.location, a.count) for a in stats.attributes], top_n
    )

    return StatsAnalysis(
        derived=derived,
        summary=summary,
        memory=memory,
        counters=counters,
        top_primops=top_primops,
        top_functions=top_functions,
        top_attributes=top_attributes,
        metadata={
            "top_n": top_n,
            "thunk_avoidance": format_percent(derived.thunk_avoidance_rate),
            "gc_fraction": format_percent(derived.gc_fraction),
            "has_call_counts": bool(stats.functions or stats.primops),
        },
    )
