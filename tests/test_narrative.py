"""
Narrative generator tests.

Output must be deterministic for identical inputs, keep at most five
highlights, and handle empty months in both team and project mode.
"""

import pytest

from resource_dashboard.exceptions import MonthFilterError
from resource_dashboard.models import MonthRange
from resource_dashboard.narrative import (
    NARRATIVE_RULES,
    HighlightCandidate,
    NarrativeConfig,
    format_list_with_and,
    format_name_list,
    generate_narrative,
    qualify_plan_deviation,
    rank_highlights,
    trend_clause,
)


class TestTeamNarrative:

    def test_opening_sentence(self, store):
        summary = generate_narrative(store, "2025-01")
        assert summary.paragraph.startswith(
            "In January 2025, the team of 2 engineers logged 110 hours across 4 projects, "
            "achieving 61% utilization."
        )

    def test_work_mix_sentence(self, store):
        summary = generate_narrative(store, "2025-01")
        assert "moderately focused on NPD (55% of hours)" in summary.paragraph
        assert "of which 27% was unplanned firefighting" in summary.paragraph

    def test_observations_follow_priority(self, store):
        """Bus factor outranks firefighting; both fit under the default cap of two."""
        paragraph = generate_narrative(store, "2025-01").paragraph
        assert "single-point-of-failure" in paragraph
        assert "Unplanned firefighting reached 27%" in paragraph
        assert paragraph.index("single-point-of-failure") < paragraph.index("Unplanned firefighting")

    def test_max_observations(self, store):
        paragraph = generate_narrative(store, "2025-01", config=NarrativeConfig(max_observations=1)).paragraph
        assert "single-point-of-failure" in paragraph
        assert "Unplanned firefighting reached" not in paragraph

    def test_disabled_rule(self, store):
        config = NarrativeConfig(enabled=frozenset({"firefighting_load"}))
        paragraph = generate_narrative(store, "2025-01", config=config).paragraph
        assert "single-point-of-failure" not in paragraph

    def test_anonymous_mode(self, store):
        paragraph = generate_narrative(
            store, "2025-01", config=NarrativeConfig(name_individuals=False)
        ).paragraph
        assert "Ann" not in paragraph
        assert "Bo " not in paragraph

    def test_custom_opening_and_closing(self, store):
        config = NarrativeConfig(custom_opening="Quarter close.", custom_closing="Questions to the lead.")
        paragraph = generate_narrative(store, "2025-01", config=config).paragraph
        assert paragraph.startswith("Quarter close. In January 2025")
        assert paragraph.endswith("Questions to the lead.")

    def test_empty_month(self, store):
        summary = generate_narrative(store, "2025-06")
        assert summary.paragraph == "No work records available for June 2025."
        assert summary.highlights == []

    def test_range_is_rejected(self, store):
        with pytest.raises(MonthFilterError):
            generate_narrative(store, MonthRange("2025-01", "2025-02"))


class TestProjectNarrative:

    def test_project_paragraph(self, store):
        paragraph = generate_narrative(store, "2025-01", project_filter="P1").paragraph
        assert paragraph.startswith("Atlas (P1) logged 72 hours in January 2025 across 2 contributors: Ann and Lab.")
        assert "This represents 144% of the 50h planned" in paragraph

    def test_no_activity(self, store):
        summary = generate_narrative(store, "2025-06", project_filter="P1")
        assert summary.paragraph == "Atlas (P1) had no recorded activity in June 2025."
        assert summary.highlights == ["NPD project", "No activity"]


class TestDeterminism:

    def test_identical_inputs_identical_text(self, sim_store):
        first = generate_narrative(sim_store, "2025-11")
        second = generate_narrative(sim_store, "2025-11")
        assert first == second

    def test_highlight_cap(self, sim_store):
        for month in sim_store.list_record_months():
            assert len(generate_narrative(sim_store, month).highlights) <= 5


class TestHelpers:

    def test_format_list_with_and(self):
        assert format_list_with_and([]) == ""
        assert format_list_with_and(["A"]) == "A"
        assert format_list_with_and(["A", "B"]) == "A and B"
        assert format_list_with_and(["A", "B", "C"]) == "A, B, and C"

    def test_format_name_list_truncates(self):
        assert format_name_list(["A", "B", "C", "D", "E"]) == "A, B, C, and 2 others"

    def test_plan_deviation(self):
        assert qualify_plan_deviation(100) == ", tracking close to plan"
        assert qualify_plan_deviation(140) == ", significantly exceeding the planned budget"
        assert qualify_plan_deviation(40) == ", well below planned pace"

    def test_trend_clause(self):
        assert trend_clause("firefighting_load", 0.2, 0.1) == ", up from 10% last month"
        assert trend_clause("firefighting_load", 0.2, None) == ""

    def test_rank_highlights(self):
        candidates = [
            HighlightCandidate("low", "info", 0.9, 0),
            HighlightCandidate("top", "alert", 0.1, 5),
            HighlightCandidate("mid", "warning", 0.5, 1),
            HighlightCandidate("top", "alert", 0.1, 5),
        ]
        assert rank_highlights(candidates, limit=2) == ["top", "mid"]

    def test_rule_keys_unique(self):
        keys = [rule.key for rule in NARRATIVE_RULES]
        assert len(keys) == len(set(keys))
