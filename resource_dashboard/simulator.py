"""
Simulated data generator for the resource dashboard.

Builds a small engineering team with realistic daily work records, planned
allocations, milestones and skill ratings. All values are synthetic; the
same seed always yields the same store.
"""

from datetime import date

import numpy as np
import pandas as pd

from .models import (
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
from .store import InMemoryDataStore

# ---------------------------------------------------------------------------
# Team and portfolio
# ---------------------------------------------------------------------------
_PROJECTS = [
    ("R1001", "Apollo sensor platform", ProjectType.NPD, None),
    ("R1001.1", "Apollo firmware", ProjectType.NPD, "R1001"),
    ("R1001.2", "Apollo enclosure", ProjectType.NPD, "R1001"),
    ("R1002", "Helios power module", ProjectType.NPD, None),
    ("R1003", "Orion test fixture", ProjectType.NPD, None),
    ("S2001", "Legacy controller support", ProjectType.SUSTAINING, None),
    ("S2002", "Field returns analysis", ProjectType.SUSTAINING, None),
    ("SP3001", "Cost-down sprint", ProjectType.SPRINT, None),
    ("ADM", "Administration", ProjectType.OTHER, None),
    ("OOO", "Out of office", ProjectType.OTHER, None),
]

# engineer -> weighted project mix (project_id, weight)
_ENGINEERS = {
    "Ana Reyes": [("R1001.1", 6), ("R1001", 2), ("S2001", 1)],
    "Ben Okafor": [("R1002", 5), ("S2001", 2), ("S2002", 2)],
    "Chen Wei": [("R1001.2", 4), ("R1003", 3), ("SP3001", 2)],
    "Dana Novak": [("S2001", 4), ("S2002", 4), ("R1002", 1)],
    "Eli Turner": [("R1003", 2), ("R1002", 2), ("S2002", 2), ("SP3001", 2), ("R1001", 2)],
    "Femi Adeyemi": [("R1001.1", 3), ("R1002", 3), ("SP3001", 1)],
}

_LAB_TECHS = ["LT01", "LT02", "LT03"]

_CATEGORY_FOR_TYPE = {
    ProjectType.NPD: WorkCategory.NPD,
    ProjectType.SUSTAINING: WorkCategory.SUSTAINING,
    ProjectType.SPRINT: WorkCategory.SPRINT,
}

_TASKS = {
    WorkCategory.NPD: ["Design review prep", "Prototype build", "Schematic update", "Test plan"],
    WorkCategory.SUSTAINING: ["ECO processing", "Supplier query", "Documentation fix"],
    WorkCategory.SPRINT: ["Cost analysis", "Part consolidation"],
    WorkCategory.FIREFIGHTING: ["Line stop investigation", "Customer escalation"],
}

_SKILLS = ["firmware", "analog", "mechanical", "test", "dfm"]

_SKILL_REQUIREMENTS = {
    "R1001": [("firmware", 4, 2.0), ("analog", 3, 1.0), ("test", 3, 1.0)],
    "R1002": [("analog", 4, 2.0), ("dfm", 3, 1.0)],
    "R1003": [("mechanical", 3, 1.0), ("test", 4, 1.0)],
}


def _pick(rng: np.random.Generator, mix: list[tuple[str, int]], size: int) -> list[str]:
    ids = [pid for pid, _ in mix]
    weights = np.array([w for _, w in mix], dtype=float)
    size = min(size, len(ids))
    return [str(pid) for pid in rng.choice(ids, size=size, replace=False, p=weights / weights.sum())]


def generate_work_records(
    start_month: str = "2025-07",
    n_months: int = 6,
    seed: int = 42,
) -> list[WorkRecord]:
    """Daily work records for every engineer over n_months.

    Each working day an engineer splits about eight hours over one to three
    projects. Some days carry a team meeting, some are out of office, and
    sustaining work occasionally turns into firefighting.
    """
    rng = np.random.default_rng(seed)
    types = {pid: ptype for pid, _, ptype, _ in _PROJECTS}
    months = pd.period_range(start_month, periods=n_months, freq="M")

    records = []
    for period in months:
        month = period.strftime("%Y-%m")
        days = pd.bdate_range(period.start_time, period.end_time)

        for engineer, mix in _ENGINEERS.items():
            for day in days:
                work_date = day.date()

                if rng.random() < 0.05:
                    records.append(WorkRecord(
                        engineer=engineer, project_id="OOO", month=month, hours=8.0,
                        category=WorkCategory.OOO, work_date=work_date, task="Leave",
                    ))
                    continue

                day_hours = 8.0 + float(rng.choice([0.0, 0.0, 0.0, 1.0, 2.0]))
                if rng.random() < 0.25:
                    records.append(WorkRecord(
                        engineer=engineer, project_id="ADM", month=month, hours=1.0,
                        category=WorkCategory.ADMIN, work_date=work_date, task="Team meeting",
                    ))
                    day_hours -= 1.0

                n_projects = int(rng.choice([1, 1, 2, 2, 3]))
                if len(mix) >= 5:
                    n_projects += 2
                projects = _pick(rng, mix, n_projects)
                split = rng.dirichlet(np.ones(len(projects))) * day_hours

                for project_id, hours in zip(projects, split):
                    category = _CATEGORY_FOR_TYPE[types[project_id]]
                    if category is WorkCategory.SUSTAINING and rng.random() < 0.2:
                        category = WorkCategory.FIREFIGHTING
                    tech = str(rng.choice(_LAB_TECHS)) if rng.random() < 0.2 else ""
                    records.append(WorkRecord(
                        engineer=engineer,
                        project_id=project_id,
                        month=month,
                        hours=round(float(hours) * 4) / 4,
                        category=category,
                        tech_code=tech,
                        work_date=work_date,
                        task=str(rng.choice(_TASKS[category])),
                    ))

        # Lab technicians log undated monthly bench time against NPD projects
        for tech in _LAB_TECHS:
            for project_id in ("R1001.1", "R1002", "R1003"):
                records.append(WorkRecord(
                    engineer=tech,
                    project_id=project_id,
                    month=month,
                    hours=float(rng.integers(4, 24)),
                    category=WorkCategory.LAB_TECH,
                    task="Bench testing",
                ))

    return records


def generate_allocations(
    start_month: str = "2025-07",
    n_months: int = 9,
    seed: int = 42,
) -> list[PlannedAllocation]:
    """Planned hours per engineer and project, running past the actuals."""
    rng = np.random.default_rng(seed + 1)
    months = pd.period_range(start_month, periods=n_months, freq="M")

    allocations = []
    for period in months:
        for engineer, mix in _ENGINEERS.items():
            total = float(rng.normal(135, 15))
            weight_sum = sum(w for _, w in mix)
            for project_id, weight in mix:
                allocations.append(PlannedAllocation(
                    engineer=engineer,
                    project_id=project_id,
                    month=period.strftime("%Y-%m"),
                    planned_hours=round(total * weight / weight_sum, 1),
                ))
    return allocations


def generate_store(
    start_month: str = "2025-07",
    n_months: int = 6,
    forecast_months: int = 3,
    seed: int = 42,
) -> InMemoryDataStore:
    """A complete in-memory store of synthetic data."""
    rng = np.random.default_rng(seed + 2)

    projects = [Project(pid, name, ptype, parent) for pid, name, ptype, parent in _PROJECTS]
    milestones = [
        Milestone("R1001", dr1=date(2025, 8, 15), dr2=date(2025, 11, 20), dr3=date(2026, 2, 10), launch=date(2026, 5, 1)),
        Milestone("R1002", dr1=date(2025, 9, 30), dr2=date(2026, 1, 15), launch=date(2026, 8, 1)),
        Milestone("R1003", dr1=date(2025, 12, 5)),
    ]
    ratings = [
        SkillRating(engineer, skill, float(rng.integers(1, 6)))
        for engineer in _ENGINEERS
        for skill in _SKILLS
    ]
    requirements = [
        SkillRequirement(project_id, skill, min_rating, weight)
        for project_id, reqs in _SKILL_REQUIREMENTS.items()
        for skill, min_rating, weight in reqs
    ]

    return InMemoryDataStore(
        work_records=generate_work_records(start_month, n_months, seed),
        allocations=generate_allocations(start_month, n_months + forecast_months, seed),
        projects=projects,
        milestones=milestones,
        skill_ratings=ratings,
        skill_requirements=requirements,
        config=DashboardConfig(team_name="Product Engineering", capacity_overrides={"Dana Novak": 112.0}),
    )
