"""
Pytest fixtures for the resource dashboard test suite.

Provides:
- A small hand-built team (two engineers, one lab tech) whose KPIs can be
  worked out on paper
- A factory for multi-month stores built from the same monthly pattern
- The seeded simulator store for whole-pipeline checks
"""

from datetime import date

import pytest

from resource_dashboard.models import (
    DashboardConfig,
    Milestone,
    PlannedAllocation,
    Project,
    ProjectType,
    SkillRating,
    SkillRequirement,
    WorkCategory,
    WorkRecord,
)
from resource_dashboard.simulator import generate_store
from resource_dashboard.store import InMemoryDataStore

PROJECTS = [
    Project("P1", "Atlas", ProjectType.NPD),
    Project("P1.1", "Atlas firmware", ProjectType.NPD, parent_id="P1"),
    Project("S1", "Legacy support", ProjectType.SUSTAINING),
    Project("SP1", "Cost sprint", ProjectType.SPRINT),
    Project("ADM", "Administration", ProjectType.OTHER),
    Project("OOO", "Out of office", ProjectType.OTHER),
]

CONFIG = DashboardConfig(
    team_name="Test Team",
    standard_monthly_capacity_hours=100.0,
    capacity_overrides={"Bo": 80.0},
)


def month_records(month: str, firefighting_hours: float = 30.0) -> list[WorkRecord]:
    """One month of work.

    Ann: 60h NPD across P1 and its child P1.1, plus a 5h admin meeting.
    Bo: 40h on S1 (30h of it firefighting, with tech T1), 10h sprint, 8h OOO.
    Lab: 12h undated lab-tech time on P1.
    """
    year, mon = (int(part) for part in month.split("-"))

    def day(d):
        return date(year, mon, d)

    return [
        WorkRecord("Ann", "P1.1", month, 40.0, WorkCategory.NPD, work_date=day(6), task="Design"),
        WorkRecord("Ann", "P1", month, 20.0, WorkCategory.NPD, work_date=day(7), task="Review"),
        WorkRecord("Ann", "ADM", month, 5.0, WorkCategory.ADMIN, work_date=day(7), task="Team meeting"),
        WorkRecord("Bo", "S1", month, firefighting_hours, WorkCategory.FIREFIGHTING,
                   tech_code="T1", work_date=day(6), task="Line stop"),
        WorkRecord("Bo", "S1", month, 10.0, WorkCategory.SUSTAINING,
                   tech_code="T1", work_date=day(7), task="ECO"),
        WorkRecord("Bo", "SP1", month, 10.0, WorkCategory.SPRINT, work_date=day(8), task="Cost analysis"),
        WorkRecord("Bo", "OOO", month, 8.0, WorkCategory.OOO, work_date=day(9), task="Leave"),
        WorkRecord("Lab", "P1", month, 12.0, WorkCategory.LAB_TECH, task="Bench testing"),
    ]


ALLOCATIONS = [
    PlannedAllocation("Ann", "P1.1", "2025-01", 50.0),
    PlannedAllocation("Bo", "S1", "2025-01", 40.0),
    PlannedAllocation("Bo", "SP1", "2025-01", 20.0),
    PlannedAllocation("Ann", "P1.1", "2025-03", 120.0),
    PlannedAllocation("Bo", "S1", "2025-03", 30.0),
]

MILESTONES = [
    Milestone("P1", dr1=date(2025, 1, 10), dr2=date(2025, 2, 20), dr3=date(2025, 6, 1)),
]

SKILL_RATINGS = [
    SkillRating("Ann", "firmware", 5),
    SkillRating("Ann", "test", 2),
    SkillRating("Bo", "firmware", 3),
    SkillRating("Bo", "test", 4),
]

SKILL_REQUIREMENTS = [
    SkillRequirement("P1", "firmware", 4, weight=2.0),
    SkillRequirement("P1", "test", 3, weight=1.0),
]


def build_store(records, allocations=ALLOCATIONS) -> InMemoryDataStore:
    return InMemoryDataStore(
        work_records=records,
        allocations=allocations,
        projects=PROJECTS,
        milestones=MILESTONES,
        skill_ratings=SKILL_RATINGS,
        skill_requirements=SKILL_REQUIREMENTS,
        config=CONFIG,
    )


@pytest.fixture
def store():
    """Single-month store for January 2025."""
    return build_store(month_records("2025-01"))


@pytest.fixture
def make_store():
    """Factory: make_store({"2025-01": 30.0, ...}) with firefighting hours per month."""

    def _make(firefighting_by_month):
        records = []
        for month, hours in firefighting_by_month.items():
            records += month_records(month, firefighting_hours=hours)
        return build_store(records)

    return _make


@pytest.fixture(scope="session")
def sim_store():
    """Seeded simulator store, July to December 2025 plus three forecast months."""
    return generate_store(start_month="2025-07", n_months=6, forecast_months=3, seed=42)
