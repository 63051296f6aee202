"""
Anomaly detection tests.

Baseline detection compares a month's KPIs with the trailing months that
have data: a flat series and a cold start both yield nothing. Rule alerts
run on the month's own records.
"""

from datetime import date

import pytest

from resource_dashboard.anomalies import (
    Anomaly,
    classify_deviation,
    compute_anomalies,
    compute_rule_alerts,
    detect_anomalies,
    get_anomalies_with_status,
    months_with_activity,
    refresh_anomaly_history,
    sort_anomalies,
)
from resource_dashboard.exceptions import MonthFilterError
from resource_dashboard.models import AnomalySnapshot, MonthRange, WorkCategory, WorkRecord
from resource_dashboard.store import InMemoryDataStore


@pytest.fixture
def project_gap_store(make_store):
    """Full months in January and March; February only has S1 work."""
    base = make_store({"2025-01": 30.0, "2025-03": 30.0})
    february = [r for r in make_store({"2025-02": 30.0}).list_work_records() if r.project_id == "S1"]
    return InMemoryDataStore(
        work_records=base.list_work_records() + february,
        projects=base.list_projects(),
        config=base.get_config(),
    )


class TestBaselineDetection:

    def test_flat_series_has_no_anomalies(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 30.0, "2025-03": 30.0})
        assert detect_anomalies(s, "2025-03") == []

    def test_cold_start_has_no_anomalies(self, store):
        assert detect_anomalies(store, "2025-01") == []

    def test_month_without_records(self, store):
        assert detect_anomalies(store, "2025-05") == []

    def test_firefighting_spike(self, make_store):
        """Tripling firefighting moves its share of hours by well over 50%."""
        s = make_store({"2025-01": 30.0, "2025-02": 30.0, "2025-03": 90.0})
        anomalies = {a.kpi_key: a for a in detect_anomalies(s, "2025-03")}
        spike = anomalies["firefighting_load"]
        assert spike.severity == "alert"
        assert spike.rule_id == "kpi-deviation"
        assert spike.baseline == pytest.approx(30 / 110)
        assert spike.current == pytest.approx(90 / 170)

    def test_ordered_by_severity_then_magnitude(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 30.0, "2025-03": 90.0})
        anomalies = detect_anomalies(s, "2025-03")
        keys = [(a.severity, -a.magnitude) for a in anomalies]
        ranks = {"alert": 0, "warning": 1, "info": 2}
        assert keys == sorted(keys, key=lambda k: (ranks[k[0]], k[1]))

    def test_gap_months_are_skipped(self, make_store):
        """History only counts months with data."""
        s = make_store({"2024-11": 30.0, "2025-02": 30.0})
        assert detect_anomalies(s, "2025-02") == []

    def test_idle_project_months_leave_the_baseline(self, project_gap_store):
        """P1 is idle in February while S1 keeps working; March matches January."""
        assert months_with_activity(project_gap_store, "P1") == {"2025-01", "2025-03"}
        assert detect_anomalies(project_gap_store, "2025-03", project_filter="P1") == []

    def test_idle_project_month_raises_nothing(self, project_gap_store):
        assert detect_anomalies(project_gap_store, "2025-02", project_filter="P1") == []

    def test_team_view_still_counts_every_month(self, project_gap_store):
        assert months_with_activity(project_gap_store) == {"2025-01", "2025-02", "2025-03"}

    def test_range_is_rejected(self, store):
        with pytest.raises(MonthFilterError):
            detect_anomalies(store, MonthRange("2025-01", "2025-02"))

    def test_classify_deviation(self):
        assert classify_deviation(0.6) == "alert"
        assert classify_deviation(0.3) == "warning"
        assert classify_deviation(0.1) == "info"
        assert classify_deviation(0.05) is None


class TestRuleAlerts:

    def test_january_rules(self, store):
        alerts = compute_rule_alerts(store, "2025-01")
        assert {a.rule_id for a in alerts} == {"overtime", "firefighting-spike", "bus-factor"}
        assert alerts[0].rule_id == "bus-factor"
        assert alerts[0].project_id == "P1.1"
        assert alerts[0].person == "Ann"

    def test_overtime_days(self, store):
        overtime = [a for a in compute_rule_alerts(store, "2025-01") if a.rule_id == "overtime"]
        assert [a.person for a in overtime] == ["Bo"]
        assert overtime[0].current == 3

    def test_rule_can_be_disabled(self, store):
        alerts = compute_rule_alerts(store, "2025-01", rules={"overtime": {"enabled": False}})
        assert "overtime" not in {a.rule_id for a in alerts}

    def test_burn_against_plan(self, make_store):
        """March plans 120h on P1.1 (40h logged) and 30h on S1 (40h logged)."""
        s = make_store({"2025-03": 30.0})
        alerts = {a.rule_id: a for a in compute_rule_alerts(s, "2025-03")}
        assert alerts["project-over-burn"].project_id == "S1"
        assert alerts["project-under-burn"].project_id == "P1.1"

    def test_new_person(self, make_store):
        base = make_store({"2025-01": 30.0, "2025-02": 30.0})
        newcomer = WorkRecord("Cy", "SP1", "2025-02", 6.0, WorkCategory.SPRINT, work_date=date(2025, 2, 10))
        s = InMemoryDataStore(
            work_records=base.list_work_records() + [newcomer],
            projects=base.list_projects(),
            config=base.get_config(),
        )
        new = [a for a in compute_rule_alerts(s, "2025-02") if a.rule_id == "new-person"]
        assert [a.person for a in new] == ["Cy"]

    def test_no_new_person_without_history(self, store):
        assert "new-person" not in {a.rule_id for a in compute_rule_alerts(store, "2025-01")}

    def test_empty_month(self, store):
        assert compute_rule_alerts(store, "2025-06") == []


class TestMerged:

    def test_cold_start_only_rule_alerts(self, store):
        merged = compute_anomalies(store, "2025-01")
        assert merged
        assert all(a.rule_id != "kpi-deviation" for a in merged)

    def test_sort_is_stable(self):
        a = Anomaly("x", "info", "A", "", magnitude=0.5, person="Ann")
        b = Anomaly("y", "alert", "B", "", magnitude=0.1, person="Bo")
        c = Anomaly("z", "info", "C", "", magnitude=0.9, person="Cy")
        assert sort_anomalies([a, b, c]) == [b, c, a]

    def test_anomaly_id(self):
        alert = Anomaly("bus-factor", "alert", "t", "d", person="Ann", project_id="P1")
        assert alert.anomaly_id == "bus-factor::P1"


OVERTIME = Anomaly("overtime", "warning", "Bo logged overtime", "", person="Bo")
SPIKE = Anomaly("firefighting-spike", "warning", "Bo has 52% firefighting", "", person="Bo")
SOLE_OWNER = Anomaly("bus-factor", "alert", "Atlas firmware depends solely on Ann", "",
                     person="Ann", project_id="P1.1")


def _stored(store, month, *anomalies, project_filter=""):
    store.put_anomaly_snapshot(AnomalySnapshot(month, project_filter, tuple(anomalies)))


class TestAnomalyHistory:

    def test_refresh_stores_one_set_per_month(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 30.0})
        snapshots = refresh_anomaly_history(s)
        assert [snap.month for snap in snapshots] == ["2025-01", "2025-02"]

        refresh_anomaly_history(s, "2025-01")
        assert len(s.list_anomaly_snapshots()) == 2
        assert s.get_anomaly_snapshot("2025-01").anomalies == tuple(compute_anomalies(s, "2025-01"))

    def test_project_filter_is_part_of_key(self, make_store):
        s = make_store({"2025-01": 30.0})
        refresh_anomaly_history(s, project_filter="P1")
        assert s.get_anomaly_snapshot("2025-01") is None
        assert s.get_anomaly_snapshot("2025-01", "P1") is not None
        assert s.list_anomaly_snapshots() == []

    def test_without_history_everything_is_new(self, store):
        tracked = get_anomalies_with_status(store, "2025-01")
        assert tracked
        assert {t.status for t in tracked} == {"new"}

    def test_new_recurring_and_resolved(self, store):
        _stored(store, "2025-01", OVERTIME, SPIKE)
        _stored(store, "2025-02", OVERTIME, SOLE_OWNER)
        status = {t.anomaly_id: t.status for t in get_anomalies_with_status(store, "2025-02")}
        assert status == {
            "overtime::Bo": "recurring",
            "bus-factor::P1.1": "new",
            "firefighting-spike::Bo": "resolved",
        }

    def test_resolved_come_last(self, store):
        _stored(store, "2025-01", SPIKE)
        _stored(store, "2025-02", OVERTIME)
        tracked = get_anomalies_with_status(store, "2025-02")
        assert [t.status for t in tracked] == ["new", "resolved"]

    def test_recurring_streak_length(self, store):
        for month in ("2024-12", "2025-01", "2025-02"):
            _stored(store, month, OVERTIME)
        (tracked,) = get_anomalies_with_status(store, "2025-02")
        assert tracked.status == "recurring"
        assert tracked.recurring_months == 2

    def test_gap_breaks_the_streak(self, store):
        """A stored month sharing nothing with the current set ends the walk."""
        _stored(store, "2024-11", OVERTIME)
        _stored(store, "2024-12", SOLE_OWNER)
        _stored(store, "2025-01", OVERTIME)
        status = {t.anomaly_id: t.status for t in get_anomalies_with_status(store, "2025-01")}
        assert status == {"overtime::Bo": "new", "bus-factor::P1.1": "resolved"}

    def test_disabled_rule_is_hidden(self, store):
        _stored(store, "2025-01", OVERTIME, SOLE_OWNER)
        tracked = get_anomalies_with_status(store, "2025-01", rules={"overtime": {"enabled": False}})
        assert [t.anomaly_id for t in tracked] == ["bus-factor::P1.1"]

    def test_refreshed_months_recur(self, make_store):
        """Identical months raise the same rule alerts, so February repeats January."""
        s = make_store({"2025-01": 30.0, "2025-02": 30.0})
        refresh_anomaly_history(s)
        tracked = get_anomalies_with_status(s, "2025-02")
        assert tracked
        assert {t.status for t in tracked} == {"recurring"}
