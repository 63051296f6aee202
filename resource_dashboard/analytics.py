"""
Composite analytics built on the core metric computers.

Focus score, bus-factor risk, capacity forecast, planned-vs-actual
rollups, skill compatibility and milestone status. Anomaly detection lives
in anomalies.py.
"""

import logging
from datetime import date
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .config import (
    BUS_FACTOR_COVERAGE,
    BUS_FACTOR_MIN_PROJECT_HOURS,
    FRAGMENTATION_PENALTY,
    FRAGMENTATION_THRESHOLD,
    MILESTONE_DUE_SOON_DAYS,
    RISK_CRITICAL_TOP_PCT,
    RISK_MEDIUM_MAX_BUS_FACTOR,
    RISK_MEDIUM_TOP_PCT,
    RISK_ORDER,
    UNDER_ALLOCATED_PCT,
)
from .hierarchy import ProjectHierarchy
from .metrics import load_allocations, load_work
from .models import (
    NON_PRODUCTIVE_CATEGORIES,
    MonthFilter,
    ProjectType,
    WorkCategory,
)
from .periods import parse_month
from .store import DataStore
from .transforms import build_fact_work, filter_by_project

logger = logging.getLogger(__name__)

FOCUS_SCORE_COLUMNS = [
    "engineer", "work_days", "avg_projects_per_day", "max_projects_in_one_day",
    "high_frag_days", "focus_score", "monthly_project_count",
    "top_project", "top_project_pct",
]
BUS_FACTOR_COLUMNS = [
    "project_id", "project_name", "project_type", "total_hours",
    "contributor_count", "bus_factor", "top_contributor",
    "top_contributor_pct", "risk_level", "contributors",
]
CAPACITY_ENTRY_COLUMNS = ["engineer", "month", "allocated_hours", "capacity_hours", "utilization_pct"]
CAPACITY_SUMMARY_COLUMNS = [
    "month", "total_capacity", "total_allocated", "headcount",
    "avg_utilization", "over_allocated_count", "under_allocated_count",
]
CATEGORY_ROLLUP_COLUMNS = [
    "month", "planned_npd", "planned_sustaining", "planned_sprint",
    "actual_npd", "actual_sustaining", "actual_sprint",
    "actual_firefighting", "lab_tech_total",
]
NPD_COMPARISON_COLUMNS = ["project_id", "project_name", "planned_hours", "actual_hours", "delta", "delta_pct"]
TIMELINE_COLUMNS = ["month", "planned_hours", "actual_hours"]
SKILL_COLUMNS = ["engineer", "score", "met_count", "requirement_count", "unmet_skills"]
MILESTONE_COLUMNS = ["project_id", "project_name", "gate", "target_date", "days_until", "status"]

_ROLLUP_TYPES = [ProjectType.NPD, ProjectType.SUSTAINING, ProjectType.SPRINT]


# ---------------------------------------------------------------------------
# Focus score
# ---------------------------------------------------------------------------

def focus_score_from_counts(daily_project_counts: Sequence[int]) -> int:
    """Score a person's days from their distinct-projects-per-day counts.

    100 for one project every day, falling as the daily average rises, and
    falling further with the share of days above FRAGMENTATION_THRESHOLD.
    """
    counts = [c for c in daily_project_counts if c > 0]
    if not counts:
        return 0
    avg = sum(counts) / len(counts)
    high_frag_fraction = sum(1 for c in counts if c > FRAGMENTATION_THRESHOLD) / len(counts)
    raw = 100.0 / avg * (1 - FRAGMENTATION_PENALTY * high_frag_fraction)
    return int(np.clip(round(raw), 0, 100))


def compute_focus_score(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Per-person fragmentation of daily work.

    Parameters
    ----------
    store : Data store.
    month_filter : Months in scope.
    project_filter : When set, the people who logged time on the project
        (or a sub-project) are scored on all their records, not just the
        project's.

    Returns
    -------
    DataFrame sorted by focus_score ascending (most fragmented first).

    Assumptions
    -----------
    - Records without a work_date count toward project totals but not
      toward the per-day partition.
    """
    _, hierarchy, all_work = load_work(store, month_filter)
    if project_filter:
        people = set(filter_by_project(all_work, hierarchy, project_filter)["engineer"])
        all_work = all_work[all_work["engineer"].isin(people)]
    return focus_score_table(all_work)


def focus_score_table(fact_work: pd.DataFrame) -> pd.DataFrame:
    """Focus score rows for every engineer in an already-loaded fact_work."""
    if fact_work.empty:
        return pd.DataFrame(columns=FOCUS_SCORE_COLUMNS)

    rows = []
    for engineer, entries in fact_work.groupby("engineer", sort=True):
        dated = entries[entries["work_date"].notna()]
        if dated.empty:
            continue

        daily_counts = dated.groupby("work_date")["project_id"].nunique().tolist()
        work_days = len(daily_counts)
        avg_per_day = sum(daily_counts) / work_days

        project_hours = entries.groupby("project_id")["hours"].sum()
        total_hours = entries["hours"].sum()
        if project_hours.empty or total_hours <= 0:
            top_project, top_pct = "", 0.0
        else:
            # highest hours, then lowest id
            ranked = sorted(project_hours.items(), key=lambda kv: (-kv[1], kv[0]))
            top_project, top_hours = ranked[0]
            top_pct = float(top_hours / total_hours)

        rows.append({
            "engineer": engineer,
            "work_days": work_days,
            "avg_projects_per_day": round(avg_per_day, 1),
            "max_projects_in_one_day": max(daily_counts),
            "high_frag_days": sum(1 for c in daily_counts if c > FRAGMENTATION_THRESHOLD),
            "focus_score": focus_score_from_counts(daily_counts),
            "monthly_project_count": entries["project_id"].nunique(),
            "top_project": top_project,
            "top_project_pct": top_pct,
        })

    if not rows:
        logger.warning("No dated work records for focus score")
        return pd.DataFrame(columns=FOCUS_SCORE_COLUMNS)

    df = pd.DataFrame(rows, columns=FOCUS_SCORE_COLUMNS)
    return df.sort_values(["focus_score", "engineer"]).reset_index(drop=True)


# ---------------------------------------------------------------------------
# Bus factor
# ---------------------------------------------------------------------------

def bus_factor(hours: Iterable[float], coverage: float = BUS_FACTOR_COVERAGE) -> int:
    """Smallest top-k prefix of contributors covering `coverage` of the total.

    >>> bus_factor([100, 20, 5])
    1
    >>> bus_factor([40, 35, 30, 20])
    3
    """
    ordered = sorted((h for h in hours if h > 0), reverse=True)
    total = sum(ordered)
    if total <= 0:
        return 0

    target = coverage * total
    cumulative = 0.0
    for k, h in enumerate(ordered, start=1):
        cumulative += h
        if cumulative >= target - 1e-9:
            return k
    return len(ordered)


def classify_risk(bus_factor_value: int, top_contributor_pct: float) -> str:
    """Map (bus factor, top contributor share) to critical/high/medium/low."""
    if bus_factor_value <= 1 and top_contributor_pct >= RISK_CRITICAL_TOP_PCT:
        return "critical"
    if bus_factor_value <= 1:
        return "high"
    if bus_factor_value <= RISK_MEDIUM_MAX_BUS_FACTOR or top_contributor_pct >= RISK_MEDIUM_TOP_PCT:
        return "medium"
    return "low"


def compute_bus_factor_risk(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Knowledge-concentration risk per project.

    Returns
    -------
    DataFrame with columns:
        project_id, project_name, project_type, total_hours,
        contributor_count, bus_factor, top_contributor,
        top_contributor_pct, risk_level, contributors

    Assumptions
    -----------
    - Projects at or below BUS_FACTOR_MIN_PROJECT_HOURS are skipped.
    - Contributors with equal hours are ordered by name.
    """
    _, hierarchy, fact_work = load_work(store, month_filter, project_filter)
    return bus_factor_table(fact_work, hierarchy)


def bus_factor_table(fact_work: pd.DataFrame, hierarchy: ProjectHierarchy) -> pd.DataFrame:
    """Bus-factor rows for the projects in an already-loaded fact_work."""
    if fact_work.empty:
        return pd.DataFrame(columns=BUS_FACTOR_COLUMNS)

    rows = []
    per_person = fact_work.groupby(["project_id", "engineer"])["hours"].sum()
    for project_id, person_hours in per_person.groupby(level="project_id"):
        total = float(person_hours.sum())
        if total <= BUS_FACTOR_MIN_PROJECT_HOURS:
            continue

        contributors = sorted(
            ((eng, float(h)) for (_, eng), h in person_hours.items() if h > 0),
            key=lambda c: (-c[1], c[0]),
        )
        bf = bus_factor([h for _, h in contributors])
        top_name, top_hours = contributors[0]
        top_pct = top_hours / total

        project_type = hierarchy.project_type(project_id)
        rows.append({
            "project_id": project_id,
            "project_name": hierarchy.project_name(project_id),
            "project_type": (project_type or ProjectType.OTHER).value,
            "total_hours": round(total, 1),
            "contributor_count": len(contributors),
            "bus_factor": bf,
            "top_contributor": top_name,
            "top_contributor_pct": top_pct,
            "risk_level": classify_risk(bf, top_pct),
            "contributors": [
                {"engineer": name, "hours": h, "pct": h / total} for name, h in contributors
            ],
        })

    if not rows:
        return pd.DataFrame(columns=BUS_FACTOR_COLUMNS)

    df = pd.DataFrame(rows, columns=BUS_FACTOR_COLUMNS)
    df["_risk_rank"] = df["risk_level"].map(RISK_ORDER)
    df = df.sort_values(["_risk_rank", "total_hours", "project_id"], ascending=[True, False, True])
    logger.info("Computed bus factor for %d projects", len(df))
    return df.drop(columns="_risk_rank").reset_index(drop=True)


# ---------------------------------------------------------------------------
# Capacity forecast
# ---------------------------------------------------------------------------

def compute_capacity_forecast(
    store: DataStore,
    months: Sequence[str],
    project_filter: str | None = None,
) -> dict[str, pd.DataFrame]:
    """Forward-looking allocation against capacity.

    Parameters
    ----------
    months : Explicit month tokens. Months without actual hours are fine;
        whether they are "forecast" months is the caller's concern.

    Returns
    -------
    {"entries": per (engineer, month) DataFrame,
     "summaries": per month DataFrame}
    """
    months = list(dict.fromkeys(months))
    for month in months:
        parse_month(month)

    empty = {
        "entries": pd.DataFrame(columns=CAPACITY_ENTRY_COLUMNS),
        "summaries": pd.DataFrame(columns=CAPACITY_SUMMARY_COLUMNS),
    }
    if not months:
        return empty

    hierarchy = ProjectHierarchy(store.list_projects())
    config = store.get_config()
    fact_alloc = load_allocations(store, months, hierarchy, project_filter)
    if fact_alloc.empty:
        logger.warning("No allocations for capacity forecast over %s", months)
        return empty

    allocated = fact_alloc.groupby(["engineer", "month"])["planned_hours"].sum()
    engineers = sorted(fact_alloc["engineer"].unique())
    grid = pd.MultiIndex.from_product([engineers, months], names=["engineer", "month"])

    entries = allocated.reindex(grid, fill_value=0.0).rename("allocated_hours").reset_index()
    entries["capacity_hours"] = entries["engineer"].map(config.capacity_for).astype(float)
    entries["utilization_pct"] = (entries["allocated_hours"] / entries["capacity_hours"]).where(
        entries["capacity_hours"] > 0, 0.0
    )

    summaries = []
    for month in months:
        m = entries[entries["month"] == month]
        total_capacity = float(m["capacity_hours"].sum())
        total_allocated = float(m["allocated_hours"].sum())
        summaries.append({
            "month": month,
            "total_capacity": total_capacity,
            "total_allocated": total_allocated,
            "headcount": len(m),
            "avg_utilization": total_allocated / total_capacity if total_capacity > 0 else 0.0,
            "over_allocated_count": int((m["utilization_pct"] > 1.0).sum()),
            "under_allocated_count": int(
                ((m["utilization_pct"] < UNDER_ALLOCATED_PCT) & (m["allocated_hours"] > 0)).sum()
            ),
        })

    return {
        "entries": entries[CAPACITY_ENTRY_COLUMNS],
        "summaries": pd.DataFrame(summaries, columns=CAPACITY_SUMMARY_COLUMNS),
    }


# ---------------------------------------------------------------------------
# Planned vs actual
# ---------------------------------------------------------------------------

def compute_monthly_category_totals(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Planned and actual hours per month split by project type.

    Returns
    -------
    One row per resolved month with columns:
        month, planned_npd, planned_sustaining, planned_sprint,
        actual_npd, actual_sustaining, actual_sprint,
        actual_firefighting, lab_tech_total

    Assumptions
    -----------
    - Actual type totals exclude Admin, OOO and lab-tech records.
    - Firefighting is reported separately and is also inside
      actual_sustaining.
    """
    months, hierarchy, fact_work = load_work(store, month_filter, project_filter)
    fact_alloc = load_allocations(store, months, hierarchy, project_filter)

    excluded = {c.value for c in NON_PRODUCTIVE_CATEGORIES} | {WorkCategory.LAB_TECH.value}
    productive = fact_work[~fact_work["category"].isin(excluded)]

    rows = []
    for month in months:
        planned_m = fact_alloc[fact_alloc["month"] == month]
        actual_m = productive[productive["month"] == month]
        work_m = fact_work[fact_work["month"] == month]

        row = {"month": month}
        for project_type in _ROLLUP_TYPES:
            suffix = project_type.value.lower()
            row[f"planned_{suffix}"] = float(
                planned_m.loc[planned_m["project_type"] == project_type.value, "planned_hours"].sum()
            )
            row[f"actual_{suffix}"] = float(
                actual_m.loc[actual_m["project_type"] == project_type.value, "hours"].sum()
            )
        row["actual_firefighting"] = float(
            work_m.loc[work_m["category"] == WorkCategory.FIREFIGHTING.value, "hours"].sum()
        )
        row["lab_tech_total"] = float(
            work_m.loc[work_m["category"] == WorkCategory.LAB_TECH.value, "hours"].sum()
        )
        rows.append(row)

    return pd.DataFrame(rows, columns=CATEGORY_ROLLUP_COLUMNS)


def compute_npd_project_comparison(
    store: DataStore,
    month_filter: MonthFilter | str,
) -> pd.DataFrame:
    """Planned vs actual hours per top-level NPD project.

    Sub-project hours roll up into their root. delta_pct is 0 when nothing
    was planned.
    """
    months, hierarchy, fact_work = load_work(store, month_filter)
    fact_alloc = load_allocations(store, months, hierarchy)

    npd_ids = [p.project_id for p in store.list_projects() if p.type == ProjectType.NPD]
    if not npd_ids:
        return pd.DataFrame(columns=NPD_COMPARISON_COLUMNS)

    npd_set = set(npd_ids)
    planned = fact_alloc[fact_alloc["project_id"].isin(npd_set)].groupby("root_project_id")["planned_hours"].sum()
    actual = fact_work[fact_work["project_id"].isin(npd_set)].groupby("root_project_id")["hours"].sum()

    rows = []
    for root in sorted({hierarchy.root_of(pid) for pid in npd_ids}):
        planned_hours = float(planned.get(root, 0.0))
        actual_hours = float(actual.get(root, 0.0))
        delta = actual_hours - planned_hours
        rows.append({
            "project_id": root,
            "project_name": hierarchy.project_name(root),
            "planned_hours": planned_hours,
            "actual_hours": actual_hours,
            "delta": delta,
            "delta_pct": delta / planned_hours if planned_hours > 0 else 0.0,
        })

    return pd.DataFrame(rows, columns=NPD_COMPARISON_COLUMNS)


def compute_project_timeline(store: DataStore, project_id: str) -> pd.DataFrame:
    """Planned vs actual per month for one project and its sub-projects."""
    hierarchy = ProjectHierarchy(store.list_projects())
    if project_id not in hierarchy:
        logger.warning("Unknown project '%s' for timeline", project_id)
        return pd.DataFrame(columns=TIMELINE_COLUMNS)

    fact_work = build_fact_work(store.list_work_records(), hierarchy)
    actual = fact_work[
        fact_work["project_id"].map(lambda pid: hierarchy.matches(pid, project_id)).astype(bool)
    ].groupby("month")["hours"].sum()

    allocations = [
        a for a in store.list_allocations() if hierarchy.matches(a.project_id, project_id)
    ]
    planned: dict[str, float] = {}
    for alloc in allocations:
        planned[alloc.month] = planned.get(alloc.month, 0.0) + alloc.planned_hours

    months = sorted(set(planned) | set(actual.index))
    rows = [
        {
            "month": month,
            "planned_hours": float(planned.get(month, 0.0)),
            "actual_hours": float(actual.get(month, 0.0)),
        }
        for month in months
    ]
    return pd.DataFrame(rows, columns=TIMELINE_COLUMNS)


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------

def compute_skill_compatibility(store: DataStore, project_id: str) -> pd.DataFrame:
    """Rank engineers by how well their ratings cover a project's needs.

    score = 100 * (weight of requirements met at or above min_rating)
                / (total requirement weight)

    Returns an empty frame when the project has no requirements.
    """
    requirements = store.list_skill_requirements(project_id)
    if not requirements:
        return pd.DataFrame(columns=SKILL_COLUMNS)

    ratings: dict[tuple[str, str], float] = {}
    for rating in store.list_skill_ratings():
        ratings[(rating.engineer, rating.skill)] = rating.rating

    engineers = sorted({engineer for engineer, _ in ratings})
    total_weight = sum(max(r.weight, 0.0) for r in requirements)

    rows = []
    for engineer in engineers:
        met_weight = 0.0
        met_count = 0
        unmet = []
        for req in requirements:
            if ratings.get((engineer, req.skill), 0.0) >= req.min_rating:
                met_weight += max(req.weight, 0.0)
                met_count += 1
            else:
                unmet.append(req.skill)
        rows.append({
            "engineer": engineer,
            "score": round(100 * met_weight / total_weight) if total_weight > 0 else 0,
            "met_count": met_count,
            "requirement_count": len(requirements),
            "unmet_skills": sorted(unmet),
        })

    if not rows:
        return pd.DataFrame(columns=SKILL_COLUMNS)

    df = pd.DataFrame(rows, columns=SKILL_COLUMNS)
    return df.sort_values(["score", "engineer"], ascending=[False, True]).reset_index(drop=True)


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------

def milestone_status(target: date | None, as_of: date) -> str:
    if target is None:
        return "unscheduled"
    days = (target - as_of).days
    if days < 0:
        return "past"
    if days <= MILESTONE_DUE_SOON_DAYS:
        return "due_soon"
    return "upcoming"


def compute_milestone_status(
    store: DataStore,
    as_of: date,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """One row per (project, gate) with its status relative to `as_of`."""
    hierarchy = ProjectHierarchy(store.list_projects())

    rows = []
    for milestone in sorted(store.list_milestones(), key=lambda m: m.project_id):
        if not hierarchy.matches(milestone.project_id, project_filter):
            continue
        for gate, target in milestone.gates():
            rows.append({
                "project_id": milestone.project_id,
                "project_name": hierarchy.project_name(milestone.project_id),
                "gate": gate,
                "target_date": target,
                "days_until": (target - as_of).days if target is not None else None,
                "status": milestone_status(target, as_of),
            })

    return pd.DataFrame(rows, columns=MILESTONE_COLUMNS)
