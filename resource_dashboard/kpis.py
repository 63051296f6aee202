"""
KPI engine: one canonical results dict per (month filter, project filter).

Every card, trend line, anomaly baseline and narrative sentence reads from
compute_all_kpis(). Snapshots persist those dicts per month through the
data store.
"""

import logging
from typing import Sequence

import pandas as pd

from .analytics import bus_factor_table, focus_score_table
from .metrics import is_meeting, load_work
from .models import KPISnapshot, MonthFilter, ProjectType, SingleMonth, WorkCategory
from .periods import parse_month
from .registry import KPI_REGISTRY
from .store import DataStore
from .transforms import filter_by_project

logger = logging.getLogger(__name__)

# Always present, whatever the project filter.
RAW_TOTAL_KEYS = [
    "npd_hours", "sustaining_hours", "sprint_hours", "firefighting_hours",
    "admin_hours", "ooo_hours", "lab_tech_hours",
]

_PRODUCTIVE_TYPES = {ProjectType.NPD.value, ProjectType.SUSTAINING.value, ProjectType.SPRINT.value}
# Lab-tech time is reported on its own, never as engineering hours.
_NOT_ENGINEERING = {WorkCategory.ADMIN.value, WorkCategory.OOO.value, WorkCategory.LAB_TECH.value}


def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator) / float(denominator) if denominator > 0 else 0.0


def _hours(df: pd.DataFrame, column: str, value: str) -> float:
    return float(df.loc[df[column] == value, "hours"].sum())


def compute_all_kpis(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> dict[str, float]:
    """Compute every KPI for the filters.

    Parameters
    ----------
    store : Data store.
    month_filter : Single month or inclusive range.
    project_filter : Project id. Sub-projects roll up into it.

    Returns
    -------
    Dict keyed by KPI registry key plus the raw hour totals in
    RAW_TOTAL_KEYS. KPIs not applicable to a single project are left out
    when project_filter is set.

    Assumptions
    -----------
    - Productive hours are NPD + Sustaining + Sprint project hours,
      excluding Admin, OOO and lab-tech records.
    - Capacity is summed over active engineers and scaled by the number of
      months in the filter.
    - Every ratio with a zero denominator is 0.
    """
    months, hierarchy, all_work = load_work(store, month_filter)
    fact_work = filter_by_project(all_work, hierarchy, project_filter)
    config = store.get_config()

    excluded = fact_work["category"].isin(_NOT_ENGINEERING)
    productive = fact_work[~excluded & fact_work["project_type"].isin(_PRODUCTIVE_TYPES)]

    npd_hours = _hours(productive, "project_type", ProjectType.NPD.value)
    sustaining_hours = _hours(productive, "project_type", ProjectType.SUSTAINING.value)
    sprint_hours = _hours(productive, "project_type", ProjectType.SPRINT.value)
    total_hours = npd_hours + sustaining_hours + sprint_hours

    firefighting_hours = _hours(fact_work, "category", WorkCategory.FIREFIGHTING.value)
    admin_hours = _hours(fact_work, "category", WorkCategory.ADMIN.value)
    ooo_hours = _hours(fact_work, "category", WorkCategory.OOO.value)
    lab_tech_hours = _hours(fact_work, "category", WorkCategory.LAB_TECH.value)

    engineer_hours = productive.groupby("engineer")["hours"].sum()
    active = sorted(engineer_hours.index)
    capacity = sum(config.capacity_for(e) for e in active) * len(months)

    projects_per_engineer = productive.groupby("engineer")["project_id"].nunique()

    bus_factor_df = bus_factor_table(fact_work, hierarchy)
    at_risk = int(bus_factor_df["risk_level"].isin(["critical", "high"]).sum()) if len(bus_factor_df) else 0

    # Contributors are scored on all their work, not just the project's.
    focus_df = focus_score_table(all_work[all_work["engineer"].isin(set(fact_work["engineer"]))])
    avg_focus = float(focus_df["focus_score"].mean()) if len(focus_df) else 0.0

    meeting_hours = float(
        fact_work.loc[fact_work["task"].map(is_meeting).astype(bool), "hours"].sum()
    ) if len(fact_work) else 0.0

    results = {
        "team_utilization": _ratio(total_hours, capacity),
        "npd_focus": _ratio(npd_hours, total_hours),
        "firefighting_load": _ratio(firefighting_hours, total_hours),
        "active_engineers": float(len(active)),
        "total_hours_logged": total_hours,
        "projects_touched": float(productive["project_id"].nunique()),
        "bus_factor_risk": _ratio(at_risk, len(bus_factor_df)),
        "avg_projects_per_engineer": float(projects_per_engineer.mean()) if len(projects_per_engineer) else 0.0,
        "avg_focus_score": avg_focus,
        "meeting_tax_hours": meeting_hours,
        "lab_utilization": _ratio(lab_tech_hours, lab_tech_hours + total_hours),
        "admin_overhead": _ratio(admin_hours, total_hours + admin_hours),
        "sustaining_load": _ratio(sustaining_hours, total_hours),
        "unplanned_sustaining_pct": _ratio(firefighting_hours, sustaining_hours),
        "avg_hours_per_engineer": _ratio(total_hours, len(active)),
        "load_spread": float(engineer_hours.max() - engineer_hours.min()) if len(engineer_hours) > 1 else 0.0,
        "deep_work_ratio": _ratio(total_hours, total_hours + admin_hours),
    }

    if project_filter:
        results = {
            key: value for key, value in results.items()
            if KPI_REGISTRY[key].applicable_to_single_project
        }

    results.update({
        "npd_hours": npd_hours,
        "sustaining_hours": sustaining_hours,
        "sprint_hours": sprint_hours,
        "firefighting_hours": firefighting_hours,
        "admin_hours": admin_hours,
        "ooo_hours": ooo_hours,
        "lab_tech_hours": lab_tech_hours,
    })

    logger.info(
        "Computed %d KPIs for %s (project=%s)",
        len(results), months[0] if len(months) == 1 else f"{months[0]}..{months[-1]}",
        project_filter or "all",
    )
    return results


def compute_kpis_batch(
    store: DataStore,
    months: Sequence[str],
    project_filter: str | None = None,
) -> dict[str, dict[str, float]]:
    """compute_all_kpis for each month on its own, keyed by month."""
    results = {}
    for month in months:
        parse_month(month)
        results[month] = compute_all_kpis(store, SingleMonth(month), project_filter)
    return results


def refresh_kpi_history(
    store: DataStore,
    project_filter: str | None = None,
) -> list[KPISnapshot]:
    """Recompute and upsert a snapshot for every month with work records.

    Typically called after an import. Each snapshot replaces whatever was
    stored under the same (month, project_filter) key.
    """
    months = store.list_record_months()
    if not months:
        logger.warning("No record months; KPI history not refreshed")
        return []

    snapshots = []
    for month, results in compute_kpis_batch(store, months, project_filter).items():
        snapshot = KPISnapshot(month=month, project_filter=project_filter or "", results=results)
        store.put_snapshot(snapshot)
        snapshots.append(snapshot)

    logger.info("Refreshed %d KPI snapshots (project=%s)", len(snapshots), project_filter or "all")
    return snapshots


def get_or_compute_snapshot(
    store: DataStore,
    month: str,
    project_filter: str | None = None,
) -> KPISnapshot:
    """Stored snapshot for the key, computing and storing it when missing."""
    parse_month(month)
    snapshot = store.get_snapshot(month, project_filter or "")
    if snapshot is not None:
        return snapshot

    snapshot = KPISnapshot(
        month=month,
        project_filter=project_filter or "",
        results=compute_all_kpis(store, SingleMonth(month), project_filter),
    )
    store.put_snapshot(snapshot)
    return snapshot
