"""
Tests for the comparison metric catalog loader.
"""

import pytest
from nixstats.metrics_catalog import (
    get_default_metrics,
    load_metric_catalog,
    select_metrics,
)


class TestLoadMetricCatalog:

    def test_packaged_catalog(self):
        """The packaged metrics.yaml loads and keeps file order."""
        catalog = load_metric_catalog()
        ids = [m.id for m in catalog]

        assert ids[0] == "cpu_time"
        assert "total_bytes" in ids
        assert "thunk_avoidance_rate" in ids

    def test_higher_is_better_metric(self):
        catalog = {m.id: m for m in load_metric_catalog()}

        assert catalog["thunk_avoidance_rate"].lower_is_better is False
        assert catalog["cpu_time"].lower_is_better is True

    def test_missing_file_falls_back(self, tmp_path):
        catalog = load_metric_catalog(tmp_path / "nope.yaml")

        assert [m.id for m in catalog] == [m.id for m in get_default_metrics()]

    def test_invalid_yaml_falls_back(self, tmp_path):
        path = tmp_path / "metrics.yaml"
        path.write_text("metrics: [unclosed")

        assert [m.id for m in load_metric_catalog(path)] == [m.id for m in get_default_metrics()]

    def test_invalid_entry_falls_back(self, tmp_path):
        path = tmp_path / "metrics.yaml"
        path.write_text("metrics:\n  - id: x\n    label: X\n    path: cpu_time\n    unit: furlongs\n")

        assert [m.id for m in load_metric_catalog(path)] == [m.id for m in get_default_metrics()]

    def test_custom_catalog(self, tmp_path):
        path = tmp_path / "metrics.yaml"
        path.write_text(
            "metrics:\n"
            "  - id: lookups\n"
            "    label: Lookups\n"
            "    path: nr_lookups\n"
        )
        catalog = load_metric_catalog(path)

        assert len(catalog) == 1
        assert catalog[0].unit == "count"
        assert catalog[0].lower_is_better is True


class TestSelectMetrics:

    def test_keeps_requested_order(self):
        catalog = get_default_metrics()
        selected = select_metrics(catalog, ["nr_thunks", "cpu_time"])

        assert [m.id for m in selected] == ["nr_thunks", "cpu_time"]

    def test_none_selects_all(self):
        catalog = get_default_metrics()

        assert select_metrics(catalog, None) == catalog

    def test_unknown_metric(self):
        with pytest.raises(ValueError, match="Unknown metric"):
            select_metrics(get_default_metrics(), ["cpu_time", "bogus"])
