"""
Stats data type definitions using Pydantic

Canonical shape of a Nix evaluator stats report (NIX_SHOW_STATS=1 output)
after normalisation, plus the snapshot and persisted-state models.

Field names are snake_case; the persisted blob keeps the camelCase keys the
browser front end reads (currentStats, currentRaw).
"""

from typing import List, Dict, Any, Optional, Literal
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


ViewName = Literal["analysis", "compare"]


# ============================================================================
# Stats sections
# ============================================================================

class TimeStats(BaseModel):
    """Evaluation timings in seconds."""
    cpu: float = Field(0.0, ge=0, description="Total CPU time")
    gc: float = Field(0.0, ge=0, description="Time spent in garbage collection")
    gc_fraction: float = Field(0.0, ge=0, description="gc / cpu")


class EnvStats(BaseModel):
    """Environment allocations."""
    number: int = Field(0, ge=0, description="Environments allocated")
    elements: int = Field(0, ge=0, description="Total slots across all environments")
    bytes: int = Field(0, ge=0, description="Bytes allocated for environments")


class ListStats(BaseModel):
    """List allocations."""
    elements: int = Field(0, ge=0, description="List elements allocated")
    bytes: int = Field(0, ge=0, description="Bytes allocated for lists")
    concats: int = Field(0, ge=0, description="Number of list concatenations")


class ValueStats(BaseModel):
    """Value allocations."""
    number: int = Field(0, ge=0)
    bytes: int = Field(0, ge=0)


class SymbolStats(BaseModel):
    """Interned symbols."""
    number: int = Field(0, ge=0)
    bytes: int = Field(0, ge=0)


class SetStats(BaseModel):
    """Attribute set allocations."""
    number: int = Field(0, ge=0, description="Attribute sets allocated")
    elements: int = Field(0, ge=0, description="Attributes across all sets")
    bytes: int = Field(0, ge=0)


class SizeStats(BaseModel):
    """sizeof() of the evaluator's core structures, in bytes."""
    env: int = Field(0, ge=0)
    value: int = Field(0, ge=0)
    bindings: int = Field(0, ge=0)
    attr: int = Field(0, ge=0)


class GcStats(BaseModel):
    """Boehm GC heap statistics (absent on non-GC builds)."""
    heap_size: int = Field(0, ge=0)
    total_bytes: int = Field(0, ge=0)
    cycles: int = Field(0, ge=0)


class FunctionCall(BaseModel):
    """Call count for one lambda (NIX_COUNT_CALLS=1)."""
    name: Optional[str] = Field(None, description="Lambda name, None for anonymous lambdas")
    file: str = ""
    line: int = 0
    column: int = 0
    count: int = Field(0, ge=0)

    @property
    def location(self) -> str:
        if not self.file:
            return "<unknown>"
        return f"{self.file}:{self.line}:{self.column}"


class AttributeSelect(BaseModel):
    """Selection count for one attribute position."""
    file: str = ""
    line: int = 0
    column: int = 0
    count: int = Field(0, ge=0)

    @property
    def location(self) -> str:
        if not self.file:
            return "<unknown>"
        return f"{self.file}:{self.line}:{self.column}"


# ============================================================================
# Canonical record
# ============================================================================

class StatsData(BaseModel):
    """Normalised stats report. Every field has a default."""
    cpu_time: float = Field(0.0, ge=0, description="CPU time in seconds")
    time: TimeStats = Field(default_factory=TimeStats)
    envs: EnvStats = Field(default_factory=EnvStats)
    lists: ListStats = Field(default_factory=ListStats)
    values: ValueStats = Field(default_factory=ValueStats)
    symbols: SymbolStats = Field(default_factory=SymbolStats)
    sets: SetStats = Field(default_factory=SetStats)
    sizes: SizeStats = Field(default_factory=SizeStats)
    gc: GcStats = Field(default_factory=GcStats)

    nr_op_updates: int = Field(0, ge=0, description="Number of // operations")
    nr_op_update_values_copied: int = Field(0, ge=0)
    nr_thunks: int = Field(0, ge=0)
    nr_avoided: int = Field(0, ge=0, description="Thunks avoided by eager evaluation")
    nr_lookups: int = Field(0, ge=0)
    nr_prim_op_calls: int = Field(0, ge=0)
    nr_function_calls: int = Field(0, ge=0)
    nr_exprs: int = Field(0, ge=0)

    primops: Dict[str, int] = Field(default_factory=dict)
    functions: List[FunctionCall] = Field(default_factory=list)
    attributes: List[AttributeSelect] = Field(default_factory=list)


# ============================================================================
# Snapshots and persisted state
# ============================================================================

class ComparisonEntry(BaseModel):
    """A named, timestamped snapshot of parsed stats."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Creation time in epoch milliseconds, unique per store")
    name: str
    data: StatsData
    raw: Dict[str, Any] = Field(default_factory=dict, description="Original JSON document")
    timestamp: datetime


class PersistedState(BaseModel):
    """The blob written under the storage key."""
    model_config = ConfigDict(populate_by_name=True)

    snapshots: List[ComparisonEntry] = Field(default_factory=list)
    current_stats: Optional[StatsData] = Field(None, alias="currentStats")
    current_raw: Optional[Dict[str, Any]] = Field(None, alias="currentRaw")
    view: ViewName = "analysis"
