"""
Data transforms: turn store records into flat fact tables.

Every metric reads from these frames. Column sets are fixed so that an
empty input still yields a frame with the expected schema.
"""

import logging
from dataclasses import asdict
from typing import Iterable

import pandas as pd

from .hierarchy import ProjectHierarchy
from .models import CATEGORY_PROJECT_TYPE, PlannedAllocation, ProjectType, WorkCategory, WorkRecord

logger = logging.getLogger(__name__)

FACT_WORK_COLUMNS = [
    "month", "work_date", "engineer", "project_id", "root_project_id",
    "tech_code", "task", "category", "hours", "project_type",
]

FACT_ALLOCATION_COLUMNS = [
    "month", "engineer", "project_id", "root_project_id",
    "planned_hours", "project_type",
]


def _category_value(category) -> str:
    return category.value if isinstance(category, WorkCategory) else str(category)


def _resolve_type(hierarchy: ProjectHierarchy, project_id: str, category) -> str:
    """Project type from the project table, else implied by the category."""
    project_type = hierarchy.project_type(project_id)
    if project_type is not None:
        return project_type.value
    try:
        return CATEGORY_PROJECT_TYPE[WorkCategory(category)].value
    except ValueError:
        return ProjectType.OTHER.value


def build_fact_work(
    records: Iterable[WorkRecord],
    hierarchy: ProjectHierarchy,
) -> pd.DataFrame:
    """Flatten work records into fact_work.

    Parameters
    ----------
    records : WorkRecords as returned by DataStore.list_work_records().
    hierarchy : Resolver over the store's project table.

    Returns
    -------
    fact_work DataFrame with columns:
        month, work_date, engineer, project_id, root_project_id, tech_code,
        task, category, hours, project_type
    """
    rows = []
    for record in records:
        row = asdict(record)
        row["category"] = _category_value(record.category)
        row["tech_code"] = (record.tech_code or "").strip()
        row["task"] = record.task or ""
        row["root_project_id"] = hierarchy.root_of(record.project_id)
        row["project_type"] = _resolve_type(hierarchy, record.project_id, row["category"])
        rows.append(row)

    if not rows:
        logger.warning("No work records to build fact_work")
        return pd.DataFrame(columns=FACT_WORK_COLUMNS)

    df = pd.DataFrame(rows, columns=FACT_WORK_COLUMNS)
    df["hours"] = df["hours"].astype(float)
    logger.info("Built fact_work with %d rows", len(df))
    return df


def build_fact_allocations(
    allocations: Iterable[PlannedAllocation],
    hierarchy: ProjectHierarchy,
) -> pd.DataFrame:
    """Flatten planned allocations into fact_allocations.

    Returns
    -------
    fact_allocations DataFrame with columns:
        month, engineer, project_id, root_project_id, planned_hours,
        project_type
    """
    rows = []
    for alloc in allocations:
        project_type = hierarchy.project_type(alloc.project_id)
        rows.append({
            "month": alloc.month,
            "engineer": alloc.engineer,
            "project_id": alloc.project_id,
            "root_project_id": hierarchy.root_of(alloc.project_id),
            "planned_hours": float(alloc.planned_hours),
            "project_type": (project_type or ProjectType.OTHER).value,
        })

    if not rows:
        logger.warning("No allocations to build fact_allocations")
        return pd.DataFrame(columns=FACT_ALLOCATION_COLUMNS)

    df = pd.DataFrame(rows, columns=FACT_ALLOCATION_COLUMNS)
    logger.info("Built fact_allocations with %d rows", len(df))
    return df


def filter_by_project(
    df: pd.DataFrame,
    hierarchy: ProjectHierarchy,
    project_filter: str | None,
) -> pd.DataFrame:
    """Keep rows whose project is the filter or one of its descendants."""
    if not project_filter or df.empty:
        return df
    mask = df["project_id"].map(lambda pid: hierarchy.matches(pid, project_filter))
    return df[mask.astype(bool)]
