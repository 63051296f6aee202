"""
KPI engine and registry tests.

The January store works out on paper as:
    productive = 60 NPD + 40 Sustaining + 10 Sprint = 110h
    firefighting 30h, admin 5h, OOO 8h, lab tech 12h
    capacity = Ann 100h + Bo 80h = 180h
"""

import pytest

from resource_dashboard import analytics, kpis as kpi_engine
from resource_dashboard.analytics import compute_bus_factor_risk, compute_focus_score
from resource_dashboard.kpis import (
    RAW_TOTAL_KEYS,
    compute_all_kpis,
    compute_kpis_batch,
    get_or_compute_snapshot,
    refresh_kpi_history,
)
from resource_dashboard.models import MonthRange
from resource_dashboard.registry import (
    KPI_PRESETS,
    KPI_REGISTRY,
    KPICategory,
    KPIDefinition,
    KPIFormat,
    Thresholds,
    applicable_kpis,
    format_kpi,
    format_kpi_value,
    kpi_color,
    trend_direction,
    trend_sentiment,
    validate_registry,
)


class TestComputeAllKpis:

    def test_team_kpis(self, store):
        kpis = compute_all_kpis(store, "2025-01")
        assert kpis["total_hours_logged"] == pytest.approx(110.0)
        assert kpis["team_utilization"] == pytest.approx(110 / 180)
        assert kpis["npd_focus"] == pytest.approx(60 / 110)
        assert kpis["firefighting_load"] == pytest.approx(30 / 110)
        assert kpis["active_engineers"] == 2
        assert kpis["projects_touched"] == 4
        assert kpis["avg_projects_per_engineer"] == pytest.approx(2.0)
        assert kpis["meeting_tax_hours"] == pytest.approx(5.0)
        assert kpis["load_spread"] == pytest.approx(10.0)
        assert kpis["unplanned_sustaining_pct"] == pytest.approx(0.75)

    def test_lab_time_is_not_engineering_time(self, store):
        kpis = compute_all_kpis(store, "2025-01")
        assert kpis["lab_tech_hours"] == pytest.approx(12.0)
        assert kpis["lab_utilization"] == pytest.approx(12 / 122)

    def test_bus_factor_risk_share(self, store):
        """Four of the five significant projects sit with one person."""
        kpis = compute_all_kpis(store, "2025-01")
        assert kpis["bus_factor_risk"] == pytest.approx(0.8)

    def test_avg_focus_score(self, store):
        kpis = compute_all_kpis(store, "2025-01")
        assert kpis["avg_focus_score"] == pytest.approx((67 + 100) / 2)

    def test_composites_match_standalone_tables(self, store):
        """Focus and bus-factor KPIs agree with the standalone computers."""
        for project_filter in (None, "P1", "S1"):
            kpis = compute_all_kpis(store, "2025-01", project_filter)
            focus = compute_focus_score(store, "2025-01", project_filter)
            risk = compute_bus_factor_risk(store, "2025-01", project_filter)
            if "avg_focus_score" in kpis:
                expected = float(focus["focus_score"].mean()) if len(focus) else 0.0
                assert kpis["avg_focus_score"] == pytest.approx(expected)
            if "bus_factor_risk" in kpis:
                at_risk = int(risk["risk_level"].isin(["critical", "high"]).sum())
                expected = at_risk / len(risk) if len(risk) else 0.0
                assert kpis["bus_factor_risk"] == pytest.approx(expected)

    def test_work_is_loaded_once(self, store, monkeypatch):
        calls = []
        original = kpi_engine.load_work

        def counting_load_work(*args, **kwargs):
            calls.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(kpi_engine, "load_work", counting_load_work)
        monkeypatch.setattr(analytics, "load_work", counting_load_work)
        compute_all_kpis(store, "2025-01", project_filter="P1")
        assert len(calls) == 1

    def test_project_filter_drops_team_only_kpis(self, store):
        kpis = compute_all_kpis(store, "2025-01", project_filter="P1")
        for definition in KPI_REGISTRY.values():
            if not definition.applicable_to_single_project:
                assert definition.key not in kpis
        assert kpis["team_utilization"] == pytest.approx(0.6)
        assert kpis["total_hours_logged"] == pytest.approx(60.0)

    def test_raw_totals_always_present(self, store):
        for project_filter in (None, "P1", "S1"):
            kpis = compute_all_kpis(store, "2025-01", project_filter=project_filter)
            assert set(RAW_TOTAL_KEYS) <= set(kpis)

    def test_empty_month_is_all_zero(self, store):
        kpis = compute_all_kpis(store, "2024-06")
        assert all(value == 0 for value in kpis.values())

    def test_range_scales_capacity(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 30.0})
        kpis = compute_all_kpis(s, MonthRange("2025-01", "2025-02"))
        assert kpis["team_utilization"] == pytest.approx(220 / 360)


class TestSnapshots:

    def test_batch_keys(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 60.0})
        batch = compute_kpis_batch(s, ["2025-01", "2025-02"])
        assert set(batch) == {"2025-01", "2025-02"}
        assert batch["2025-02"]["firefighting_hours"] == pytest.approx(60.0)

    def test_refresh_upserts_one_per_month(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 30.0})
        refresh_kpi_history(s)
        refresh_kpi_history(s)
        assert [snap.key for snap in s.list_snapshots()] == [("2025-01", ""), ("2025-02", "")]

    def test_refresh_with_project_filter(self, make_store):
        s = make_store({"2025-01": 30.0})
        snapshots = refresh_kpi_history(s, project_filter="P1")
        assert snapshots[0].key == ("2025-01", "P1")

    def test_get_or_compute_reads_through(self, store):
        first = get_or_compute_snapshot(store, "2025-01")
        assert store.get_snapshot("2025-01") is first
        assert get_or_compute_snapshot(store, "2025-01") is first


class TestRegistry:

    def test_registry_is_valid(self):
        assert validate_registry() == []

    def test_validate_flags_bad_thresholds(self):
        bad = KPIDefinition(
            key="bad", label="Bad", short_label="Bad", format=KPIFormat.PERCENT,
            category=KPICategory.WORK_MIX, thresholds=Thresholds(0.5, 0.2, invert=True),
            description="", source_key="bad", applicable_to_single_project=True,
        )
        problems = validate_registry({"bad": bad})
        assert any("inverted thresholds" in p for p in problems)

    def test_presets_reference_registry(self):
        for preset in KPI_PRESETS.values():
            assert set(preset["cards"]) <= set(KPI_REGISTRY)

    def test_get_value_is_pure(self):
        results = {"team_utilization": 0.8}
        definition = KPI_REGISTRY["team_utilization"]
        assert definition.get_value(results) == 0.8
        assert definition.get_value(results) == 0.8
        assert results == {"team_utilization": 0.8}
        assert KPI_REGISTRY["npd_focus"].get_value(results) is None

    def test_applicable_kpis(self):
        single = applicable_kpis(single_project=True)
        assert all(d.applicable_to_single_project for d in single)
        assert len(applicable_kpis(single_project=False)) == len(KPI_REGISTRY)


class TestFormattingAndColor:

    def test_format_values(self):
        assert format_kpi_value(None, KPIFormat.PERCENT) == "n/a"
        assert format_kpi_value(0.611, KPIFormat.PERCENT) == "61"
        assert format_kpi_value(40.0, KPIFormat.HOURS) == "40"
        assert format_kpi_value(12.5, KPIFormat.HOURS) == "12.5"
        assert format_kpi_value(3.0, KPIFormat.COUNT) == "3"
        assert format_kpi_value(2.0, KPIFormat.DECIMAL) == "2.0"

    def test_format_kpi_adds_percent_sign(self):
        assert format_kpi("team_utilization", 0.611) == "61%"
        assert format_kpi("total_hours_logged", 110.0) == "110"

    def test_higher_is_better(self):
        t = KPI_REGISTRY["team_utilization"].thresholds
        assert kpi_color(0.90, t) == "green"
        assert kpi_color(0.75, t) == "yellow"
        assert kpi_color(0.50, t) == "red"

    def test_lower_is_better(self):
        t = KPI_REGISTRY["firefighting_load"].thresholds
        assert kpi_color(0.05, t) == "green"
        assert kpi_color(0.15, t) == "yellow"
        assert kpi_color(0.30, t) == "red"

    def test_neutral(self):
        assert kpi_color(10, None) == "neutral"
        assert kpi_color(None, KPI_REGISTRY["team_utilization"].thresholds) == "neutral"

    def test_trend(self):
        assert trend_direction(2, 1) == "up"
        assert trend_direction(1, 2) == "down"
        assert trend_direction(1, None) == "flat"

    def test_trend_sentiment_respects_invert(self):
        assert trend_sentiment("firefighting_load", 0.1, 0.2) == "good"
        assert trend_sentiment("team_utilization", 0.7, 0.8) == "bad"
        assert trend_sentiment("active_engineers", 5, 4) == "neutral"
