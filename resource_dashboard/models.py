"""
Record types consumed and produced by the core.

Input records are immutable and supplied by an external data store. Month
tokens are "YYYY-MM" strings throughout.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Mapping, Union

from .config import (
    DEFAULT_MONTHLY_CAPACITY_HOURS,
    DEFAULT_OVER_UTILIZATION_THRESHOLD,
    DEFAULT_TEAM_NAME,
    MILESTONE_GATES,
)


class WorkCategory(str, Enum):
    NPD = "NPD"
    SUSTAINING = "Sustaining"
    SPRINT = "Sprint"
    FIREFIGHTING = "Firefighting"
    ADMIN = "Admin"
    OOO = "OOO"
    LAB_TECH = "LabTech"


class ProjectType(str, Enum):
    NPD = "NPD"
    SUSTAINING = "Sustaining"
    SPRINT = "Sprint"
    OTHER = "Other"


# Project type implied by a record category when the project is not on file
CATEGORY_PROJECT_TYPE: dict[WorkCategory, ProjectType] = {
    WorkCategory.NPD: ProjectType.NPD,
    WorkCategory.SUSTAINING: ProjectType.SUSTAINING,
    WorkCategory.SPRINT: ProjectType.SPRINT,
    WorkCategory.FIREFIGHTING: ProjectType.SUSTAINING,
    WorkCategory.ADMIN: ProjectType.OTHER,
    WorkCategory.OOO: ProjectType.OTHER,
    WorkCategory.LAB_TECH: ProjectType.OTHER,
}

NON_PRODUCTIVE_CATEGORIES = frozenset({WorkCategory.ADMIN, WorkCategory.OOO})


@dataclass(frozen=True)
class WorkRecord:
    engineer: str
    project_id: str
    month: str
    hours: float
    category: WorkCategory
    tech_code: str = ""
    work_date: date | None = None
    task: str = ""

    def __post_init__(self):
        if self.hours < 0:
            raise ValueError(f"hours must be >= 0, got {self.hours}")


@dataclass(frozen=True)
class PlannedAllocation:
    engineer: str
    project_id: str
    month: str
    planned_hours: float


@dataclass(frozen=True)
class Project:
    project_id: str
    project_name: str
    type: ProjectType = ProjectType.OTHER
    parent_id: str | None = None


@dataclass(frozen=True)
class Milestone:
    """Gate review dates for an NPD project."""

    project_id: str
    dr1: date | None = None
    dr2: date | None = None
    dr3: date | None = None
    launch: date | None = None

    def gates(self) -> list[tuple[str, date | None]]:
        return [(name, getattr(self, name)) for name in MILESTONE_GATES]


@dataclass(frozen=True)
class SkillRating:
    engineer: str
    skill: str
    rating: float


@dataclass(frozen=True)
class SkillRequirement:
    project_id: str
    skill: str
    min_rating: float
    weight: float = 1.0


@dataclass(frozen=True)
class DashboardConfig:
    team_name: str = DEFAULT_TEAM_NAME
    standard_monthly_capacity_hours: float = DEFAULT_MONTHLY_CAPACITY_HOURS
    over_utilization_threshold: float = DEFAULT_OVER_UTILIZATION_THRESHOLD
    capacity_overrides: Mapping[str, float] = field(default_factory=dict)

    def capacity_for(self, engineer: str) -> float:
        override = self.capacity_overrides.get(engineer, 0)
        return override if override > 0 else self.standard_monthly_capacity_hours


# ---------------------------------------------------------------------------
# Month filter (tagged variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SingleMonth:
    month: str


@dataclass(frozen=True)
class MonthRange:
    start: str
    end: str


MonthFilter = Union[SingleMonth, MonthRange]


@dataclass(frozen=True)
class KPISnapshot:
    month: str
    project_filter: str
    results: Mapping[str, float]

    @property
    def key(self) -> tuple[str, str]:
        return (self.month, self.project_filter)


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Anomaly:
    rule_id: str
    severity: str
    title: str
    detail: str
    magnitude: float = 0.0
    kpi_key: str | None = None
    person: str | None = None
    project_id: str | None = None
    current: float | None = None
    baseline: float | None = None

    @property
    def anomaly_id(self) -> str:
        """Stable id: rule plus subject."""
        subject = self.kpi_key or self.project_id or self.person or "global"
        return f"{self.rule_id}::{subject}"


@dataclass(frozen=True)
class AnomalySnapshot:
    """The anomalies raised for one (month, project_filter), as stored."""

    month: str
    project_filter: str
    anomalies: tuple[Anomaly, ...]

    @property
    def key(self) -> tuple[str, str]:
        return (self.month, self.project_filter)

    @property
    def anomaly_ids(self) -> set[str]:
        return {a.anomaly_id for a in self.anomalies}
