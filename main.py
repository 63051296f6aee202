"""
Resource Dashboard: end-to-end analytics pipeline.

Builds a simulated team store, runs every metric from fact tables to
dashboard-ready outputs and prints smoke-test summaries.

Usage:
    python main.py
"""

import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from resource_dashboard.analytics import (
    bus_factor,
    compute_bus_factor_risk,
    compute_capacity_forecast,
    compute_focus_score,
    compute_monthly_category_totals,
    compute_npd_project_comparison,
    compute_skill_compatibility,
)
from resource_dashboard.anomalies import refresh_anomaly_history
from resource_dashboard.dashboard import (
    get_kpi_trend,
    get_management_summary,
    get_manager_overview,
    get_milestone_timeline,
)
from resource_dashboard.kpis import compute_all_kpis, refresh_kpi_history
from resource_dashboard.metrics import (
    compute_actual_hours,
    compute_lab_tech_hours,
    compute_meeting_tax,
    compute_planned_utilization,
    compute_tech_affinity,
)
from resource_dashboard.models import MonthRange
from resource_dashboard.narrative import generate_narrative
from resource_dashboard.periods import resolve_months
from resource_dashboard.registry import validate_registry
from resource_dashboard.simulator import generate_store

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the full analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  RESOURCE DASHBOARD: Engineering Capacity & KPI Analytics")
    print("  Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Build simulated store
    # ------------------------------------------------------------------
    print("[ 1 ] BUILDING SIMULATED DATA")
    print("-" * 40)

    store = generate_store(start_month="2025-07", n_months=6, forecast_months=3, seed=42)
    record_months = store.list_record_months()
    print(f"\nWork records: {len(store.list_work_records())} rows over {record_months}")
    print(f"Allocations: {len(store.list_allocations())} rows")
    print(f"Projects: {len(store.list_projects())}, milestones: {len(store.list_milestones())}")

    target = record_months[-1]
    history = MonthRange(record_months[0], target)

    # ------------------------------------------------------------------
    # 2. Core metrics
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] CORE METRICS")
    print("-" * 40)

    actual = compute_actual_hours(store, target)
    print(f"\nActual hours ({target}): {len(actual)} rows")
    print(actual.head(10).to_string(index=False))

    planned = compute_planned_utilization(store, target)
    print(f"\nPlanned utilization ({target}):")
    print(planned.to_string(index=False))

    lab = compute_lab_tech_hours(store, target)
    print(f"\nLab-tech hours ({target}):")
    print(lab.to_string(index=False))

    affinity = compute_tech_affinity(store, target)
    print(f"\nTech affinity ({target}): {len(affinity)} pairs")
    print(affinity.head(5).to_string(index=False))

    meeting = compute_meeting_tax(store, target)
    print(f"\nMeeting tax ({target}):")
    print(meeting.to_string(index=False))

    # ------------------------------------------------------------------
    # 3. Composite analytics & dashboard outputs
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] ANALYTICS & DASHBOARD OUTPUTS")
    print("-" * 40)

    focus = compute_focus_score(store, target)
    print(f"\nFocus score ({target}):")
    print(focus[["engineer", "work_days", "avg_projects_per_day", "focus_score", "top_project"]].to_string(index=False))

    risk = compute_bus_factor_risk(store, history)
    print(f"\nBus-factor risk ({history.start}..{history.end}):")
    print(risk.drop(columns="contributors").to_string(index=False))

    forecast_months = resolve_months(MonthRange("2026-01", "2026-03"))
    forecast = compute_capacity_forecast(store, forecast_months)
    print(f"\nCapacity forecast {forecast_months}:")
    print(forecast["summaries"].to_string(index=False))

    rollup = compute_monthly_category_totals(store, history)
    print("\nPlanned vs actual by category:")
    print(rollup.to_string(index=False))

    npd = compute_npd_project_comparison(store, history)
    print("\nNPD project comparison:")
    print(npd.to_string(index=False))

    skills = compute_skill_compatibility(store, "R1001")
    print("\nSkill compatibility for R1001:")
    print(skills.to_string(index=False))

    milestones = get_milestone_timeline(store, as_of=date(2025, 12, 31))
    print("\nMilestone timeline as of 2025-12-31:")
    print(milestones.to_string(index=False))

    snapshots = refresh_kpi_history(store)
    print(f"\nKPI snapshots refreshed: {len(snapshots)}")
    anomaly_sets = refresh_anomaly_history(store)
    print(f"Anomaly sets refreshed: {len(anomaly_sets)}")

    trend = get_kpi_trend(store, "team_utilization", record_months)
    print("\nTeam utilization trend:")
    print(trend.to_string(index=False))

    print(f"\nManagement Summary ({target}):")
    summary = get_management_summary(store, target)
    print(summary[["label", "display", "color", "trend", "sentiment"]].to_string(index=False))

    print(f"\nManager Overview ({target}):")
    overview = get_manager_overview(store, target)
    for card in overview["cards"]:
        print(f"  {card['label']:28s} | {card['display']:>10s} | {card['color']}")
    print(f"\n  {overview['narrative']['paragraph']}")
    print(f"\n  Highlights: {overview['narrative']['highlights']}")
    print(f"\n  Anomalies ({len(overview['anomalies'])}):")
    for anomaly in overview["anomalies"]:
        print(f"    [{anomaly['severity']:7s}] {anomaly['status']:9s} {anomaly['title']}")

    project_story = generate_narrative(store, target, project_filter="R1001")
    print(f"\nProject narrative (R1001):\n  {project_story.paragraph}")

    # ------------------------------------------------------------------
    # 4. Acceptance criteria verification
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    # Check 1: inclusive month range across a year boundary
    months = resolve_months(MonthRange("2024-11", "2025-02"))
    check1 = months == ["2024-11", "2024-12", "2025-01", "2025-02"]
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] 2024-11..2025-02 resolves to {len(months)} months (need 4)")

    # Check 2: bus factor reference cases
    check2 = bus_factor([100, 20, 5]) == 1 and bus_factor([40, 35, 30, 20]) == 3
    print(f"  [{'PASS' if check2 else 'FAIL'}] Bus factor [100,20,5] -> 1 and [40,35,30,20] -> 3")

    # Check 3: actual hours reconcile with the raw records
    raw_total = sum(r.hours for r in store.list_work_records([target]))
    check3 = abs(actual["hours"].sum() - raw_total) < 1e-6
    print(f"  [{'PASS' if check3 else 'FAIL'}] Actual hours {actual['hours'].sum():.2f} == record hours {raw_total:.2f}")

    # Check 4: focus scores bounded
    check4 = bool(focus["focus_score"].between(0, 100).all())
    print(f"  [{'PASS' if check4 else 'FAIL'}] Focus scores within [0, 100]")

    # Check 5: narrative deterministic
    again = generate_narrative(store, target)
    check5 = again.paragraph == overview["narrative"]["paragraph"] and len(again.highlights) <= 5
    print(f"  [{'PASS' if check5 else 'FAIL'}] Narrative is deterministic with {len(again.highlights)} highlights (max 5)")

    # Check 6: registry consistent
    problems = validate_registry()
    check6 = not problems
    print(f"  [{'PASS' if check6 else 'FAIL'}] KPI registry valid {problems if problems else ''}")

    # Check 7: single-project view drops team-only KPIs
    project_kpis = compute_all_kpis(store, target, project_filter="R1001")
    check7 = "npd_focus" not in project_kpis and "npd_hours" in project_kpis
    print(f"  [{'PASS' if check7 else 'FAIL'}] Project view omits team-only KPIs ({len(project_kpis)} keys)")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
