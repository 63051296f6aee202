"""
Data store interface.

The core reads immutable record collections through a DataStore and writes
back whole KPI and anomaly snapshots. Backends (browser storage, a database,
files) live outside the package; InMemoryDataStore is the in-process
implementation used by the simulator, the smoke pipeline and the tests.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from .models import (
    AnomalySnapshot,
    DashboardConfig,
    KPISnapshot,
    Milestone,
    PlannedAllocation,
    Project,
    SkillRating,
    SkillRequirement,
    WorkRecord,
)

logger = logging.getLogger(__name__)


class DataStore(ABC):
    """Read access to input records plus snapshot persistence."""

    @abstractmethod
    def list_work_records(self, months: Sequence[str] | None = None) -> list[WorkRecord]:
        """Work records for the given months (all months when None)."""

    @abstractmethod
    def list_allocations(self, months: Sequence[str] | None = None) -> list[PlannedAllocation]:
        ...

    @abstractmethod
    def list_projects(self) -> list[Project]:
        ...

    @abstractmethod
    def list_milestones(self) -> list[Milestone]:
        ...

    @abstractmethod
    def list_skill_ratings(self) -> list[SkillRating]:
        ...

    @abstractmethod
    def list_skill_requirements(self, project_id: str) -> list[SkillRequirement]:
        ...

    @abstractmethod
    def get_config(self) -> DashboardConfig:
        ...

    @abstractmethod
    def list_record_months(self) -> list[str]:
        """Distinct months that carry at least one work record, ascending."""

    @abstractmethod
    def get_snapshot(self, month: str, project_filter: str = "") -> KPISnapshot | None:
        ...

    @abstractmethod
    def put_snapshot(self, snapshot: KPISnapshot) -> None:
        """Insert or replace the snapshot stored under snapshot.key."""

    @abstractmethod
    def get_anomaly_snapshot(self, month: str, project_filter: str = "") -> AnomalySnapshot | None:
        ...

    @abstractmethod
    def put_anomaly_snapshot(self, snapshot: AnomalySnapshot) -> None:
        """Insert or replace the anomaly set stored under snapshot.key."""

    @abstractmethod
    def list_anomaly_snapshots(self, project_filter: str = "") -> list[AnomalySnapshot]:
        """Stored anomaly sets for one project filter, ascending by month."""


class InMemoryDataStore(DataStore):
    """DataStore over plain lists.

    Input collections are copied to tuples on construction and never
    mutated. KPI snapshots and anomaly sets live in dicts keyed by
    (month, project_filter); writes replace the whole record under a lock,
    so concurrent refreshes resolve last-write-wins.
    """

    def __init__(
        self,
        work_records: Iterable[WorkRecord] = (),
        allocations: Iterable[PlannedAllocation] = (),
        projects: Iterable[Project] = (),
        milestones: Iterable[Milestone] = (),
        skill_ratings: Iterable[SkillRating] = (),
        skill_requirements: Iterable[SkillRequirement] = (),
        config: DashboardConfig | None = None,
    ):
        self._work_records = tuple(work_records)
        self._allocations = tuple(allocations)
        self._projects = tuple(projects)
        self._milestones = tuple(milestones)
        self._skill_ratings = tuple(skill_ratings)
        self._skill_requirements = tuple(skill_requirements)
        self._config = config or DashboardConfig()

        self._snapshots: dict[tuple[str, str], KPISnapshot] = {}
        self._anomaly_snapshots: dict[tuple[str, str], AnomalySnapshot] = {}
        self._lock = threading.Lock()

        logger.info(
            "In-memory store: %d work records, %d allocations, %d projects",
            len(self._work_records), len(self._allocations), len(self._projects),
        )

    def list_work_records(self, months=None):
        if months is None:
            return list(self._work_records)
        wanted = set(months)
        return [r for r in self._work_records if r.month in wanted]

    def list_allocations(self, months=None):
        if months is None:
            return list(self._allocations)
        wanted = set(months)
        return [a for a in self._allocations if a.month in wanted]

    def list_projects(self):
        return list(self._projects)

    def list_milestones(self):
        return list(self._milestones)

    def list_skill_ratings(self):
        return list(self._skill_ratings)

    def list_skill_requirements(self, project_id):
        return [r for r in self._skill_requirements if r.project_id == project_id]

    def get_config(self):
        return self._config

    def list_record_months(self):
        return sorted({r.month for r in self._work_records})

    def get_snapshot(self, month, project_filter=""):
        with self._lock:
            return self._snapshots.get((month, project_filter or ""))

    def put_snapshot(self, snapshot):
        with self._lock:
            self._snapshots[snapshot.key] = snapshot

    def list_snapshots(self) -> list[KPISnapshot]:
        with self._lock:
            return [self._snapshots[k] for k in sorted(self._snapshots)]

    def get_anomaly_snapshot(self, month, project_filter=""):
        with self._lock:
            return self._anomaly_snapshots.get((month, project_filter or ""))

    def put_anomaly_snapshot(self, snapshot):
        with self._lock:
            self._anomaly_snapshots[snapshot.key] = snapshot

    def list_anomaly_snapshots(self, project_filter=""):
        wanted = project_filter or ""
        with self._lock:
            return [
                self._anomaly_snapshots[k] for k in sorted(self._anomaly_snapshots)
                if k[1] == wanted
            ]
