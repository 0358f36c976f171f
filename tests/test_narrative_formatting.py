"""
Tests for narrative sentence helpers and the observation phrasing tables.
"""

import pytest

from insight_engine.models import NARRATIVE_OBSERVATION_KEYS, NarrativeConfig, ProjectType
from insight_engine.narrative import (
    NARRATIVE_OBSERVATIONS,
    OBSERVATION_CATALOG,
    describe_observations,
)
from insight_engine.narrative.formatting import (
    capitalize_first,
    format_activity_breakdown,
    format_list_with_and,
    format_name_list,
    plural,
    project_type_label,
    qualify_focus,
    qualify_plan_deviation,
    trend_clause,
)
from insight_engine.narrative.observations import (
    PROJECT,
    PROJECT_PHRASES,
    TEAM,
    TEAM_PHRASES,
    observation_keys_for_mode,
    phrase_project,
    phrase_team,
)

# =============================================================================
# FORMATTING
# =============================================================================


class TestLists:
    def test_list_with_and(self):
        assert format_list_with_and([]) == ""
        assert format_list_with_and(["A"]) == "A"
        assert format_list_with_and(["A", "B"]) == "A and B"
        assert format_list_with_and(["A", "B", "C"]) == "A, B, and C"

    def test_name_list_truncates_after_three(self):
        names = ["Brian Sloan", "Mike Davis", "Karl Maas", "Ana Ruiz", "Li Wei"]
        assert format_name_list(names) == "Brian Sloan, Mike Davis, Karl Maas, and 2 others"
        assert format_name_list(names[:4]) == "Brian Sloan, Mike Davis, Karl Maas, and 1 other"

    def test_activity_breakdown(self):
        activities = [("Engineering", 32.4), ("Lab - Testing", 10.5)]
        assert format_activity_breakdown(activities) == "engineering (32h) and lab - testing (11h)"


class TestWords:
    def test_plural(self):
        assert plural(1) == ""
        assert plural(0) == "s"
        assert plural(2, "es") == "es"

    def test_capitalize_first(self):
        assert capitalize_first("unplanned work") == "Unplanned work"
        assert capitalize_first("") == ""

    @pytest.mark.parametrize(
        "share, expected",
        [(0.61, "strongly"), (0.6, "moderately"), (0.41, "moderately"), (0.4, "lightly")],
    )
    def test_qualify_focus(self, share, expected):
        assert qualify_focus(share) == expected

    @pytest.mark.parametrize(
        "pct_of_plan, expected",
        [
            (100, ", tracking close to plan"),
            (90, ", tracking close to plan"),
            (110, ", tracking close to plan"),
            (120, ", slightly over plan"),
            (131, ", significantly exceeding the planned budget"),
            (70, ", slightly under plan"),
            (49, ", well below planned pace"),
        ],
    )
    def test_qualify_plan_deviation(self, pct_of_plan, expected):
        assert qualify_plan_deviation(pct_of_plan) == expected

    def test_project_type_label(self):
        assert project_type_label(ProjectType.NPD) == "NPD"
        assert project_type_label(ProjectType.OUT_OF_OFFICE) == "OOO"


class TestTrendClause:
    def test_up_and_down(self):
        assert trend_clause(18, 12, True) == ", up from 12% last month"
        assert trend_clause(10, 12, True) == ", down from 12% last month"

    def test_no_change_or_no_history(self):
        assert trend_clause(12, 12, True) == ""
        assert trend_clause(12, None, True) == ""

    def test_disabled(self):
        assert trend_clause(18, 12, False) == ""

    def test_unit(self):
        assert trend_clause(40, 30, True, unit="h") == ", up from 30h last month"


# =============================================================================
# OBSERVATION REGISTRY AND PHRASING
# =============================================================================


class TestObservationRegistry:
    def test_keys_match_config_keys(self):
        assert tuple(o.key for o in NARRATIVE_OBSERVATIONS) == NARRATIVE_OBSERVATION_KEYS
        assert set(OBSERVATION_CATALOG) == set(NARRATIVE_OBSERVATION_KEYS)

    def test_modes(self):
        assert observation_keys_for_mode(PROJECT) == {
            "busFactorRisks",
            "focusFragmentation",
            "projectOverBurn",
            "projectUnderBurn",
        }
        assert observation_keys_for_mode(TEAM) == set(NARRATIVE_OBSERVATION_KEYS)

    def test_every_team_table_has_four_cells(self):
        assert set(TEAM_PHRASES) == set(NARRATIVE_OBSERVATION_KEYS)
        for key, table in TEAM_PHRASES.items():
            assert set(table) == {(True, True), (True, False), (False, True), (False, False)}, key

    def test_project_phrases_cover_project_mode(self):
        assert set(PROJECT_PHRASES) == observation_keys_for_mode(PROJECT)


class TestDescribeObservations:
    def test_defaults(self):
        described = {o["key"]: o for o in describe_observations(NarrativeConfig())}

        assert list(described) == list(NARRATIVE_OBSERVATION_KEYS)
        assert described["busFactorRisks"]["enabled"] is True
        assert described["projectUnderBurn"]["enabled"] is False
        assert described["meetingTax"]["priority"] == 4
        assert described["firefightingLoad"]["project_phrasing"] is None

    def test_phrasing_follows_tone_flags(self):
        named = describe_observations(NarrativeConfig())
        anonymous = describe_observations(NarrativeConfig(name_individuals=False))

        overtime = next(o for o in anonymous if o["key"] == "overtimeIndicators")
        assert overtime["team_phrasing"].format(days=4) == phrase_team(
            "overtimeIndicators", False, True, days=4
        )
        assert [o["team_phrasing"] for o in named] != [o["team_phrasing"] for o in anonymous]

    def test_project_phrasing_renders_like_the_generator(self):
        under = next(o for o in describe_observations(NarrativeConfig()) if o["key"] == "projectUnderBurn")
        values = {"pct": 40, "actual": 40, "planned": 100}
        assert under["project_phrasing"].format(**values) == phrase_project("projectUnderBurn", **values)

    def test_unlisted_key_has_no_priority(self):
        cfg = NarrativeConfig(observation_priority=["meetingTax"])
        described = {o["key"]: o for o in describe_observations(cfg)}

        assert described["meetingTax"]["priority"] == 0
        assert described["busFactorRisks"]["priority"] is None


class TestPhrasing:
    def test_overtime_tones(self):
        values = {"person": "Dan", "days": 4}
        assert phrase_team("overtimeIndicators", True, True, **values) == (
            "Dan logged overtime on 4 days this month, which may indicate unsustainable workload"
        )
        assert phrase_team("overtimeIndicators", False, True, **values) == (
            "a team member logged overtime on 4 days this month, which may indicate unsustainable workload"
        )
        assert phrase_team("overtimeIndicators", False, False, **values) == (
            "a team member logged overtime on multiple days, which may indicate unsustainable workload"
        )

    def test_single_bus_factor_project(self):
        sentence = phrase_team(
            "busFactorRisks",
            True,
            True,
            count=1,
            plural="",
            plural_verb=" has",
            verb="has",
            projects="R1337",
            more="",
        )
        assert sentence == (
            "1 project — R1337 — has single-point-of-failure risk with only one engineer contributing"
        )

    def test_under_burn_without_names(self):
        sentence = phrase_team(
            "projectUnderBurn",
            False,
            True,
            project="Widget Gen2",
            pct=40,
            count=2,
            plural_verb="s are",
            some_projects="some projects are",
        )
        assert sentence == "2 projects are significantly under planned pace"

    def test_focus_average_has_one_decimal(self):
        sentence = phrase_team("focusFragmentation", True, True, person="Eve", avg=3.4, count=6)
        assert sentence == (
            "Eve shows significant context fragmentation, averaging 3.4 projects per day across "
            "6 different work streams"
        )

    def test_project_under_burn(self):
        assert phrase_project("projectUnderBurn", pct=40, actual=40, planned=100) == (
            "Only 40% of planned hours have been logged — 40h of 100h"
        )
