"""
Tests for snapshot comparison.
"""

import pytest
from nixstats.comparison import compare_entries, resolve_metric
from nixstats.errors import ComparisonUnavailableError, SnapshotNotFoundError
from nixstats.metrics_catalog import MetricDefinition
from nixstats.stats_parser import parse_stats
from tests.fixtures.stats import full_stats, make_entry, scaled_stats


CATALOG = [
    MetricDefinition(id="cpu_time", label="CPU time", path="cpu_time", unit="seconds"),
    MetricDefinition(id="total_bytes", label="Allocated", path="derived.total_bytes", unit="bytes"),
    MetricDefinition(id="avoid", label="Thunk avoidance", path="derived.thunk_avoidance_rate",
                     unit="ratio", lower_is_better=False),
    MetricDefinition(id="heap", label="Heap", path="gc.heap_size", unit="bytes"),
]


def three_entries():
    return [
        make_entry(1, "baseline", full_stats()),
        make_entry(2, "faster", scaled_stats(0.5)),
        make_entry(3, "slower", scaled_stats(2.0)),
    ]


class TestResolveMetric:

    def test_plain_path(self):
        assert resolve_metric(parse_stats(full_stats()), "cpu_time") == 2.5

    def test_nested_path(self):
        assert resolve_metric(parse_stats(full_stats()), "gc.heap_size") == 4194304.0

    def test_derived_path(self):
        stats = parse_stats(full_stats())

        assert resolve_metric(stats, "derived.thunk_avoidance_rate") == pytest.approx(0.25)

    def test_unknown_path(self):
        with pytest.raises(ValueError, match="Unknown metric path"):
            resolve_metric(parse_stats(full_stats()), "envs.nonsense")

    def test_non_numeric_path(self):
        with pytest.raises(ValueError, match="does not resolve to a number"):
            resolve_metric(parse_stats(full_stats()), "envs")


class TestCompareEntries:

    def test_default_baseline_is_first(self):
        result = compare_entries(three_entries(), catalog=CATALOG)

        assert result.baseline_id == 1
        assert [e.name for e in result.entries] == ["baseline", "faster", "slower"]
        assert [m.metric.id for m in result.metrics] == ["cpu_time", "total_bytes", "avoid", "heap"]

    def test_deltas_and_direction(self):
        result = compare_entries(three_entries(), catalog=CATALOG)
        cpu = result.metrics[0].values

        assert [v.entry_id for v in cpu] == [1, 2, 3]
        assert cpu[0].delta == 0.0
        assert cpu[0].improved is None
        assert cpu[1].delta == pytest.approx(-1.25)
        assert cpu[1].percent_change == pytest.approx(-0.5)
        assert cpu[1].percent_display == "-50.0%"
        assert cpu[1].improved is True
        assert cpu[2].percent_change == pytest.approx(1.0)
        assert cpu[2].improved is False

    def test_higher_is_better_metric(self):
        raw = full_stats()
        raw["nrAvoided"] = 3000  # 3000 / 6000 = 0.5 vs baseline 0.25
        entries = [make_entry(1, "a", full_stats()), make_entry(2, "b", raw)]

        result = compare_entries(entries, metrics=["avoid"], catalog=CATALOG)
        value = result.metrics[0].values[1]

        assert value.delta == pytest.approx(0.25)
        assert value.improved is True

    def test_zero_baseline_has_no_percent(self):
        """gc section absent in baseline: percent change is undefined."""
        baseline = full_stats()
        del baseline["gc"]
        entries = [make_entry(1, "no-gc", baseline), make_entry(2, "gc", full_stats())]

        result = compare_entries(entries, metrics=["heap"], catalog=CATALOG)
        value = result.metrics[0].values[1]

        assert value.delta == 4194304.0
        assert value.percent_change is None
        assert value.percent_display == "n/a"
        assert value.improved is False

    def test_explicit_baseline(self):
        result = compare_entries(three_entries(), baseline_id=2, catalog=CATALOG)
        cpu = result.metrics[0].values

        assert result.baseline_id == 2
        assert cpu[1].delta == 0.0
        assert cpu[0].delta == pytest.approx(1.25)
        assert cpu[0].improved is False

    def test_unknown_baseline(self):
        with pytest.raises(SnapshotNotFoundError):
            compare_entries(three_entries(), baseline_id=99, catalog=CATALOG)

    def test_metric_subset(self):
        result = compare_entries(three_entries(), metrics=["heap", "cpu_time"], catalog=CATALOG)

        assert [m.metric.id for m in result.metrics] == ["heap", "cpu_time"]

    def test_unknown_metric(self):
        with pytest.raises(ValueError, match="Unknown metric"):
            compare_entries(three_entries(), metrics=["bogus"], catalog=CATALOG)

    @pytest.mark.parametrize("count", [0, 1])
    def test_needs_two_entries(self, count):
        with pytest.raises(ComparisonUnavailableError):
            compare_entries(three_entries()[:count], catalog=CATALOG)

    def test_uses_packaged_catalog_by_default(self):
        result = compare_entries(three_entries())

        assert result.metrics[0].metric.id == "cpu_time"
