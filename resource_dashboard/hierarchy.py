"""
Project hierarchy resolution.

Projects form a forest through `parent_id`. The resolver only ever takes
single steps; walks to the root are iterative, depth-capped, and stop on
a revisited id so that a cyclic hierarchy degrades to "treat as root".
"""

import logging
from typing import Iterable

from .config import MAX_HIERARCHY_DEPTH
from .models import Project, ProjectType

logger = logging.getLogger(__name__)


class ProjectHierarchy:
    """Parent lookup over a fixed set of projects."""

    def __init__(self, projects: Iterable[Project], max_depth: int = MAX_HIERARCHY_DEPTH):
        self._projects: dict[str, Project] = {p.project_id: p for p in projects}
        self._max_depth = max_depth

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._projects

    def get(self, project_id: str) -> Project | None:
        return self._projects.get(project_id)

    def get_parent(self, project_id: str) -> str | None:
        """Return the parent id, or None for roots and unknown projects."""
        project = self._projects.get(project_id)
        if project is None or not project.parent_id or project.parent_id == project_id:
            return None
        return project.parent_id

    def ancestors(self, project_id: str) -> list[str]:
        """Parent chain from nearest to farthest."""
        chain: list[str] = []
        seen = {project_id}
        current = project_id

        for _ in range(self._max_depth):
            parent = self.get_parent(current)
            if parent is None:
                break
            if parent in seen:
                logger.warning("Cycle in project hierarchy at %s -> %s", current, parent)
                break
            chain.append(parent)
            seen.add(parent)
            current = parent

        return chain

    def root_of(self, project_id: str) -> str:
        chain = self.ancestors(project_id)
        return chain[-1] if chain else project_id

    def matches(self, project_id: str, project_filter: str | None) -> bool:
        """True when a project counts toward the given filter.

        Any ancestor counts, not only the direct parent, so grandchildren
        roll up into the top-level project too.
        """
        if not project_filter:
            return True
        return project_id == project_filter or project_filter in self.ancestors(project_id)

    def project_type(self, project_id: str) -> ProjectType | None:
        project = self._projects.get(project_id)
        return project.type if project else None

    def project_name(self, project_id: str) -> str:
        project = self._projects.get(project_id)
        return project.project_name if project and project.project_name else project_id
