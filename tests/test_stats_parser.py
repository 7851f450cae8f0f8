"""
Tests for the stats normaliser.
"""

import json

import pytest
from nixstats.errors import StatsParseError
from nixstats.stats_parser import parse_stats, parse_stats_text
from nixstats.stats_types import StatsData
from tests.fixtures.stats import full_stats, legacy_stats


class TestParseStats:
    """Normalisation of well-formed reports."""

    def test_full_report(self):
        """Every section of a recent report lands in the canonical fields."""
        stats = parse_stats(full_stats())

        assert stats.cpu_time == 2.5
        assert stats.time.cpu == 2.5
        assert stats.time.gc == 0.5
        assert stats.time.gc_fraction == 0.2
        assert stats.envs.number == 1000
        assert stats.envs.elements == 2500
        assert stats.lists.concats == 12
        assert stats.values.bytes == 120000
        assert stats.symbols.number == 800
        assert stats.sets.elements == 3200
        assert stats.sizes.env == 16
        assert stats.sizes.attr == 24
        assert stats.gc.heap_size == 4194304
        assert stats.gc.cycles == 3
        assert stats.nr_op_update_values_copied == 4200
        assert stats.nr_avoided == 1000
        assert stats.nr_exprs == 12000

    def test_empty_object_gives_defaults(self):
        """An empty document is valid: everything defaults."""
        stats = parse_stats({})

        assert stats == StatsData()
        assert stats.cpu_time == 0.0
        assert stats.functions == []
        assert stats.primops == {}

    def test_legacy_report_without_time_section(self):
        """cpuTime alone fills time.cpu; missing gc section defaults to zeros."""
        stats = parse_stats(legacy_stats())

        assert stats.cpu_time == 1.25
        assert stats.time.cpu == 1.25
        assert stats.time.gc == 0.0
        assert stats.time.gc_fraction == 0.0
        assert stats.gc.heap_size == 0

    def test_time_section_without_cpu_time(self):
        """time.cpu fills cpu_time when cpuTime is absent."""
        stats = parse_stats({"time": {"cpu": 3.0, "gc": 0.75}})

        assert stats.cpu_time == 3.0
        assert stats.time.gc_fraction == pytest.approx(0.25)

    def test_lists_spelling(self):
        """`lists` is accepted when `list` is absent."""
        stats = parse_stats({"lists": {"elements": 7, "bytes": 56}})

        assert stats.lists.elements == 7
        assert stats.lists.bytes == 56

    def test_snake_case_keys(self):
        """snake_case spellings of camelCase keys are accepted."""
        stats = parse_stats({
            "cpu_time": 1.0,
            "nr_thunks": 5,
            "gc": {"heap_size": 1024, "total_bytes": 2048},
        })

        assert stats.cpu_time == 1.0
        assert stats.nr_thunks == 5
        assert stats.gc.heap_size == 1024
        assert stats.gc.total_bytes == 2048


class TestCoercion:
    """Heterogeneous field values map to defaults instead of failing."""

    def test_numeric_strings(self):
        stats = parse_stats({"cpuTime": "1.5", "nrThunks": "42", "envs": {"bytes": " 64 "}})

        assert stats.cpu_time == 1.5
        assert stats.nr_thunks == 42
        assert stats.envs.bytes == 64

    def test_non_numeric_values_default(self):
        stats = parse_stats({"cpuTime": "fast", "nrThunks": [1, 2], "envs": {"number": {"x": 1}}})

        assert stats.cpu_time == 0.0
        assert stats.nr_thunks == 0
        assert stats.envs.number == 0

    def test_booleans_are_not_numbers(self):
        stats = parse_stats({"nrThunks": True, "cpuTime": False})

        assert stats.nr_thunks == 0
        assert stats.cpu_time == 0.0

    def test_null_fields_default(self):
        stats = parse_stats({"cpuTime": None, "envs": None, "gc": None, "functions": None})

        assert stats.cpu_time == 0.0
        assert stats.envs.number == 0
        assert stats.functions == []

    def test_negative_values_clamp_to_zero(self):
        stats = parse_stats({"nrThunks": -5, "cpuTime": -1.0})

        assert stats.nr_thunks == 0
        assert stats.cpu_time == 0.0

    def test_integers_too_large_for_float_default(self):
        stats, raw = parse_stats_text('{"nrThunks": 1' + "0" * 400 + ', "nrLookups": 7}')

        assert stats.nr_thunks == 0
        assert stats.nr_lookups == 7
        assert raw["nrThunks"] > 10 ** 399

    def test_float_counts_truncate(self):
        stats = parse_stats({"nrLookups": 12.9})

        assert stats.nr_lookups == 12

    def test_section_that_is_not_an_object(self):
        stats = parse_stats({"envs": [1, 2, 3], "sizes": "16"})

        assert stats.envs.number == 0
        assert stats.sizes.env == 0


class TestCallCounts:
    """primops / functions / attributes tables."""

    def test_primops_sorted_by_count(self):
        stats = parse_stats(full_stats())

        assert list(stats.primops) == ["concatMap", "length", "map"]
        assert stats.primops["concatMap"] == 40

    def test_primops_as_list(self):
        stats = parse_stats({"primops": [
            {"name": "map", "count": 3},
            {"name": "filter", "count": 9},
            {"count": 100},
            "junk",
        ]})

        assert stats.primops == {"filter": 9, "map": 3}

    def test_functions_sorted_and_anonymous_kept(self):
        stats = parse_stats(full_stats())

        counts = [f.count for f in stats.functions]
        assert counts == sorted(counts, reverse=True)
        assert stats.functions[0].name is None
        assert stats.functions[0].count == 200

    def test_function_location(self):
        stats = parse_stats(full_stats())
        call_package = next(f for f in stats.functions if f.name == "callPackage")

        assert call_package.location == "/nix/store/abc-nixpkgs/lib/customisation.nix:7:3"

    def test_non_object_entries_skipped(self):
        stats = parse_stats({
            "functions": ["x", 3, {"name": "f", "count": 2}],
            "attributes": [None, {"file": "a.nix", "line": 1, "column": 1, "count": 4}],
        })

        assert len(stats.functions) == 1
        assert stats.functions[0].name == "f"
        assert stats.functions[0].location == "<unknown>"
        assert len(stats.attributes) == 1
        assert stats.attributes[0].location == "a.nix:1:1"


class TestParseErrors:
    """Only a non-object document is an error."""

    @pytest.mark.parametrize("raw", [[], "stats", 42, None])
    def test_non_object_rejected(self, raw):
        with pytest.raises(StatsParseError):
            parse_stats(raw)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_stats([1, 2])


class TestParseStatsText:
    """JSON text entry point."""

    def test_returns_stats_and_raw(self):
        raw = full_stats()
        stats, decoded = parse_stats_text(json.dumps(raw))

        assert decoded == raw
        assert stats.nr_thunks == 3000

    def test_invalid_json(self):
        with pytest.raises(StatsParseError, match="Invalid JSON"):
            parse_stats_text("{not json")

    def test_json_array(self):
        with pytest.raises(StatsParseError, match="JSON object"):
            parse_stats_text("[1, 2, 3]")
