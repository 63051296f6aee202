"""
Core metric computers: five independent transforms over store records.

Each function takes (store, month_filter, project_filter=None) and returns
a DataFrame with a fixed column schema. A project filter keeps records whose
project is the filter or one of its sub-projects.
"""

import logging

import pandas as pd

from .config import MEETING_KEYWORD
from .hierarchy import ProjectHierarchy
from .models import MonthFilter, WorkCategory
from .periods import resolve_months
from .store import DataStore
from .transforms import (
    build_fact_allocations,
    build_fact_work,
    filter_by_project,
)

logger = logging.getLogger(__name__)

ACTUAL_HOURS_COLUMNS = ["month", "engineer", "project_id", "category", "project_type", "hours"]
PLANNED_UTILIZATION_COLUMNS = ["engineer", "month", "planned_hours", "capacity", "utilization_pct"]
LAB_TECH_COLUMNS = ["engineer", "hours"]
TECH_AFFINITY_COLUMNS = ["engineer", "tech_code", "shared_hours", "projects"]
MEETING_TAX_COLUMNS = [
    "engineer", "meeting_hours", "admin_hours", "ooo_hours",
    "productive_hours", "total_hours", "meeting_pct",
]


# ---------------------------------------------------------------------------
# Shared loaders
# ---------------------------------------------------------------------------

def load_work(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> tuple[list[str], ProjectHierarchy, pd.DataFrame]:
    """Resolve months and return (months, hierarchy, filtered fact_work)."""
    months = resolve_months(month_filter)
    hierarchy = ProjectHierarchy(store.list_projects())
    fact_work = build_fact_work(store.list_work_records(months), hierarchy)
    fact_work = fact_work[fact_work["month"].isin(months)]
    return months, hierarchy, filter_by_project(fact_work, hierarchy, project_filter)


def load_allocations(
    store: DataStore,
    months: list[str],
    hierarchy: ProjectHierarchy,
    project_filter: str | None = None,
) -> pd.DataFrame:
    fact_alloc = build_fact_allocations(store.list_allocations(months), hierarchy)
    fact_alloc = fact_alloc[fact_alloc["month"].isin(months)]
    return filter_by_project(fact_alloc, hierarchy, project_filter)


def is_meeting(task: str) -> bool:
    return MEETING_KEYWORD in (task or "").lower()


# ---------------------------------------------------------------------------
# Computers
# ---------------------------------------------------------------------------

def compute_actual_hours(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Realized hours per (month, engineer, project, category).

    Returns
    -------
    DataFrame with columns:
        month, engineer, project_id, category, project_type, hours

    Assumptions
    -----------
    - project_type comes from the project table; records on unknown
      projects take the type implied by their category.
    - Grouping never drops a row, so the hours column sums to the raw
      record total for the same filter.
    """
    _, _, fact_work = load_work(store, month_filter, project_filter)
    if fact_work.empty:
        return pd.DataFrame(columns=ACTUAL_HOURS_COLUMNS)

    result = (
        fact_work.groupby(["month", "engineer", "project_id", "category"], as_index=False)
        .agg(project_type=("project_type", "first"), hours=("hours", "sum"))
        .sort_values(["month", "engineer", "project_id", "category"])
        .reset_index(drop=True)
    )
    logger.info("Computed actual hours: %d rows, %.1f h", len(result), result["hours"].sum())
    return result[ACTUAL_HOURS_COLUMNS]


def compute_planned_utilization(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Planned hours against capacity per (engineer, month).

    Every engineer in the allocation set gets a row for every resolved
    month; pairs without an allocation report 0 planned hours.
    """
    months = resolve_months(month_filter)
    hierarchy = ProjectHierarchy(store.list_projects())
    config = store.get_config()
    fact_alloc = load_allocations(store, months, hierarchy, project_filter)

    if fact_alloc.empty:
        logger.warning("No allocations for months %s", months)
        return pd.DataFrame(columns=PLANNED_UTILIZATION_COLUMNS)

    planned = fact_alloc.groupby(["engineer", "month"])["planned_hours"].sum()
    engineers = sorted(fact_alloc["engineer"].unique())
    grid = pd.MultiIndex.from_product([engineers, months], names=["engineer", "month"])

    result = planned.reindex(grid, fill_value=0.0).reset_index()
    result["capacity"] = result["engineer"].map(config.capacity_for).astype(float)
    result["utilization_pct"] = (result["planned_hours"] / result["capacity"]).where(
        result["capacity"] > 0, 0.0
    )
    return result[PLANNED_UTILIZATION_COLUMNS]


def compute_lab_tech_hours(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """LabTech hours per engineer, summed across projects."""
    _, _, fact_work = load_work(store, month_filter, project_filter)
    lab = fact_work[fact_work["category"] == WorkCategory.LAB_TECH.value]
    if lab.empty:
        return pd.DataFrame(columns=LAB_TECH_COLUMNS)

    return (
        lab.groupby("engineer", as_index=False)["hours"].sum()
        .sort_values(["hours", "engineer"], ascending=[False, True])
        .reset_index(drop=True)
    )


def compute_tech_affinity(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Hours each engineer shared with each technician.

    Returns
    -------
    DataFrame with columns:
        engineer, tech_code, shared_hours, projects (sorted list of ids)
    """
    _, _, fact_work = load_work(store, month_filter, project_filter)
    shared = fact_work[fact_work["tech_code"] != ""]
    if shared.empty:
        return pd.DataFrame(columns=TECH_AFFINITY_COLUMNS)

    result = (
        shared.groupby(["engineer", "tech_code"], as_index=False)
        .agg(
            shared_hours=("hours", "sum"),
            projects=("project_id", lambda s: sorted(set(s))),
        )
    )
    result = result[result["shared_hours"] > 0]
    return (
        result.sort_values(["shared_hours", "engineer", "tech_code"], ascending=[False, True, True])
        .reset_index(drop=True)[TECH_AFFINITY_COLUMNS]
    )


def compute_meeting_tax(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Per-person split of hours into meeting, admin, OOO and productive.

    A meeting task counts as meeting time whatever its category. Other
    Admin and OOO records fall into their own buckets; everything else is
    productive.
    """
    _, _, fact_work = load_work(store, month_filter, project_filter)
    if fact_work.empty:
        return pd.DataFrame(columns=MEETING_TAX_COLUMNS)

    meeting = fact_work["task"].map(is_meeting).astype(bool)
    bucket = pd.Series("productive", index=fact_work.index)
    bucket[fact_work["category"] == WorkCategory.ADMIN.value] = "admin"
    bucket[fact_work["category"] == WorkCategory.OOO.value] = "ooo"
    bucket[meeting] = "meeting"

    pivot = (
        fact_work.assign(bucket=bucket)
        .pivot_table(index="engineer", columns="bucket", values="hours", aggfunc="sum", fill_value=0.0)
        .reindex(columns=["meeting", "admin", "ooo", "productive"], fill_value=0.0)
    )
    pivot.columns = ["meeting_hours", "admin_hours", "ooo_hours", "productive_hours"]
    result = pivot.reset_index()
    result["total_hours"] = result[
        ["meeting_hours", "admin_hours", "ooo_hours", "productive_hours"]
    ].sum(axis=1)
    result["meeting_pct"] = (result["meeting_hours"] / result["total_hours"]).where(
        result["total_hours"] > 0, 0.0
    )

    return (
        result.sort_values(["meeting_pct", "engineer"], ascending=[False, True])
        .reset_index(drop=True)[MEETING_TAX_COLUMNS]
    )
