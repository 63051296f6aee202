"""
Project hierarchy tests.

Parent lookups are single-step; walks to the root are iterative and must
terminate on cycles and self-parents.
"""

from resource_dashboard.hierarchy import ProjectHierarchy
from resource_dashboard.models import Project, ProjectType


def _hierarchy(*projects, **kwargs):
    return ProjectHierarchy(list(projects), **kwargs)


class TestParentLookup:

    def test_child_parent(self):
        h = _hierarchy(Project("P1", "Parent"), Project("P1.1", "Child", parent_id="P1"))
        assert h.get_parent("P1.1") == "P1"
        assert h.get_parent("P1") is None

    def test_unknown_project_is_root(self):
        h = _hierarchy(Project("P1", "Parent"))
        assert h.get_parent("X9") is None
        assert h.root_of("X9") == "X9"

    def test_self_parent_is_root(self):
        h = _hierarchy(Project("P1", "Loop", parent_id="P1"))
        assert h.get_parent("P1") is None
        assert h.ancestors("P1") == []


class TestWalk:

    def test_grandchild_root(self):
        h = _hierarchy(
            Project("A", "Root"),
            Project("B", "Mid", parent_id="A"),
            Project("C", "Leaf", parent_id="B"),
        )
        assert h.ancestors("C") == ["B", "A"]
        assert h.root_of("C") == "A"

    def test_cycle_terminates(self):
        """A two-node cycle stops at the revisited id."""
        h = _hierarchy(Project("A", "A", parent_id="B"), Project("B", "B", parent_id="A"))
        assert h.ancestors("A") == ["B"]
        assert h.root_of("A") == "B"

    def test_depth_cap(self):
        chain = [Project("N0", "N0")] + [
            Project(f"N{i}", f"N{i}", parent_id=f"N{i - 1}") for i in range(1, 10)
        ]
        h = ProjectHierarchy(chain, max_depth=3)
        assert len(h.ancestors("N9")) == 3


class TestMatches:

    def test_child_counts_toward_parent(self):
        h = _hierarchy(Project("P1", "Parent"), Project("P1.1", "Child", parent_id="P1"))
        assert h.matches("P1.1", "P1")
        assert h.matches("P1", "P1")

    def test_grandchild_counts_toward_top_level(self):
        """Rolling up follows the whole ancestor chain, not just the parent."""
        h = _hierarchy(
            Project("A", "Root"),
            Project("B", "Mid", parent_id="A"),
            Project("C", "Leaf", parent_id="B"),
        )
        assert h.matches("C", "A")
        assert h.matches("C", "B")
        assert not h.matches("A", "C")

    def test_parent_does_not_count_toward_child(self):
        h = _hierarchy(Project("P1", "Parent"), Project("P1.1", "Child", parent_id="P1"))
        assert not h.matches("P1", "P1.1")

    def test_no_filter_matches_everything(self):
        h = _hierarchy(Project("P1", "Parent"))
        assert h.matches("anything", None)

    def test_type_and_name(self):
        h = _hierarchy(Project("S1", "Support", ProjectType.SUSTAINING))
        assert h.project_type("S1") is ProjectType.SUSTAINING
        assert h.project_type("nope") is None
        assert h.project_name("S1") == "Support"
        assert h.project_name("nope") == "nope"
