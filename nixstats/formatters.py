"""
Display formatting helpers for stats values.
"""

from typing import Optional

_BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB"]


def format_bytes(num_bytes: float) -> str:
    """Binary-prefixed byte count, e.g. 1536 -> '1.50 KiB'."""
    value = float(num_bytes or 0)
    sign = "-" if value < 0 else ""
    value = abs(value)
    unit = 0
    while value >= 1024 and unit < len(_BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{sign}{int(value)} B"
    return f"{sign}{value:.2f} {_BYTE_UNITS[unit]}"


def format_number(value: float) -> str:
    """Thousands-separated count; non-integers keep two decimals."""
    if value is None:
        return "0"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_duration(seconds: float) -> str:
    """Seconds rendered in the most readable unit (us / ms / s / m s)."""
    seconds = float(seconds or 0)
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    if seconds < 0.001:
        return f"{sign}{seconds * 1_000_000:.0f} µs"
    if seconds < 1:
        return f"{sign}{seconds * 1000:.1f} ms"
    if seconds < 60:
        return f"{sign}{seconds:.2f} s"
    minutes, rest = divmod(seconds, 60)
    return f"{sign}{int(minutes)}m {rest:.1f}s"


def format_percent(ratio: Optional[float], signed: bool = False) -> str:
    """Ratio as a percentage (0.25 -> '25.0%'); None renders as 'n/a'."""
    if ratio is None:
        return "n/a"
    if signed:
        return f"{ratio * 100:+.1f}%"
    return f"{ratio * 100:.1f}%"


def format_value(value: float, unit: str) -> str:
    """Dispatch on a metric unit (bytes, seconds, ratio, count)."""
    if unit == "bytes":
        return format_bytes(value)
    if unit == "seconds":
        return format_duration(value)
    if unit == "ratio":
        return format_percent(value)
    return format_number(value)
