"""
Tests for the narrative generator (team and project summaries).
"""

import pytest

from insight_engine.models import DashboardConfig, NarrativeConfig
from insight_engine.narrative import NarrativeGenerator, select_observations
from insight_engine.narrative.generator import NO_DATA_PARAGRAPH, TriggeredObservation
from tests.fixtures import build_dataset, entry, member, planned, project, scenario_a, team_month

TEAM_VOLUME = (
    "In February 2026, the team of 3 engineers logged 90 hours across 4 projects, "
    "achieving 24% utilization."
)
TEAM_MIX = (
    "Work was moderately focused on NPD (56% of hours), with 40 hours on sustaining "
    "activities, of which 18% was unplanned firefighting."
)


def _generate(dataset=None, settings=None, project_filter=None, period="2026-02", **config):
    generator = NarrativeGenerator(dataset or team_month(), NarrativeConfig(**config), settings)
    return generator.generate(period, project_filter)


# =============================================================================
# TEAM NARRATIVE
# =============================================================================


class TestTeamNarrative:
    def test_no_data(self, settings):
        summary = NarrativeGenerator(build_dataset(), settings=settings).generate("2026-01")

        assert summary.paragraph == NO_DATA_PARAGRAPH
        assert summary.paragraph == "No timesheet data available for this month."
        assert summary.highlights == []

    def test_default_paragraph(self, settings):
        summary = _generate(settings=settings)

        assert summary.paragraph == " ".join(
            [
                TEAM_VOLUME,
                TEAM_MIX,
                "3 projects — R1337, S0062 and 1 more — have single-point-of-failure risk with only "
                "one engineer contributing. unplanned firefighting reached 18%, up from 0% last month.",
                "3 team members have available capacity below 60% utilization (Alice, Bob, Cara).",
            ]
        )
        assert summary.highlights == [
            "Bus factor risk: 3 projects",
            "Firefighting: 18%",
            "Available capacity: Alice, Bob, Cara",
        ]

    def test_without_names(self, settings):
        summary = _generate(settings=settings, name_individuals=False)

        assert (
            "3 projects have single-point-of-failure risk with insufficient contributor diversity"
            in summary.paragraph
        )
        assert summary.paragraph.endswith(
            "3 team members have available capacity (below 60% utilization)."
        )
        assert "Alice" not in summary.paragraph
        assert summary.highlights[-1] == "Available capacity: 3 team members"

    def test_without_numbers(self, settings):
        summary = _generate(settings=settings, include_specific_numbers=False)

        assert (
            "Several projects have single-point-of-failure risk with insufficient contributor "
            "diversity. unplanned firefighting exceeded the target level." in summary.paragraph
        )

    def test_name_flag_does_not_change_what_triggers(self, settings):
        named = _generate(settings=settings)
        anonymous = _generate(settings=settings, name_individuals=False)

        assert named.highlights[:2] == anonymous.highlights[:2]
        assert len(named.highlights) == len(anonymous.highlights)

    def test_trend_comparison_can_be_disabled(self, settings):
        summary = _generate(settings=settings, include_trend_comparisons=False)

        assert "unplanned firefighting reached 18%." in summary.paragraph
        assert "last month" not in summary.paragraph

    @pytest.mark.parametrize("max_observations", [1, 2, 3])
    def test_observation_cap(self, settings, max_observations):
        summary = _generate(settings=settings, max_observations=max_observations)
        observation_highlights = [h for h in summary.highlights if not h.startswith("Available")]

        assert len(observation_highlights) == max_observations

    def test_third_observation_is_meeting_tax(self, settings):
        summary = _generate(settings=settings, max_observations=3)

        assert (
            "Cara spent 17% of capacity in meetings, leaving limited time for engineering work, "
            "up from 0% last month." in summary.paragraph
        )
        assert "Meeting-heavy: 1 engineer" in summary.highlights

    def test_priority_order(self, settings):
        priority = ["firefightingLoad", "busFactorRisks"]
        summary = _generate(settings=settings, observation_priority=priority, max_observations=1)

        assert "Unplanned firefighting reached 18%, up from 0% last month." in summary.paragraph
        assert summary.highlights[0] == "Firefighting: 18%"

    def test_disabled_observation_is_skipped(self, settings):
        observations = dict(NarrativeConfig().observations, firefightingLoad=False)
        summary = _generate(settings=settings, observations=observations)

        assert "firefighting" not in summary.paragraph.lower()
        assert "Firefighting: 18%" not in summary.highlights

    def test_lab_tech_contribution(self, settings):
        observations = dict(NarrativeConfig().observations, labTechContribution=True)
        summary = _generate(
            settings=settings,
            observations=observations,
            observation_priority=["labTechContribution"],
            max_observations=1,
        )

        assert "Lab technicians contributed 6 hours of support across 1 project." in summary.paragraph
        assert summary.highlights[0] == "Lab tech support: 6 hrs"

    def test_custom_opening_and_closing(self, settings):
        summary = _generate(settings=settings, custom_opening="  Monthly update.  ", custom_closing="Questions welcome.")

        assert summary.paragraph.startswith("Monthly update. In February 2026")
        assert summary.paragraph.endswith("Questions welcome.")

    def _over_capacity(self, dashboard=None):
        days = [f"2026-03-{d:02d}" for d in range(1, 16)]
        return build_dataset(
            entries=[entry("Alice", d, "R1337", 10) for d in days] + [entry("Bob", d, "R1337", 6) for d in days],
            members=[member("Alice", capacity=100), member("Bob", capacity=100)],
            projects=[project("R1337")],
            dashboard=dashboard,
        )

    def test_no_slack_capacity(self, settings):
        summary = _generate(self._over_capacity(), settings, period="2026-03")

        assert summary.paragraph.endswith(
            "The team is running above full capacity with no slack available, with Alice logging "
            "the most hours over capacity."
        )
        assert summary.highlights[-1] == "No slack capacity"

    def test_over_utilization_threshold_from_dashboard(self, settings):
        """Team utilization is 120%; a 125% threshold leaves slack."""
        dataset = self._over_capacity(DashboardConfig(over_utilization_threshold_pct=1.25))
        summary = _generate(dataset, settings, period="2026-03")

        assert "above full capacity" not in summary.paragraph
        assert "No slack capacity" not in summary.highlights

    def test_deterministic(self, settings):
        assert _generate(settings=settings) == _generate(settings=settings)


# =============================================================================
# PROJECT NARRATIVE
# =============================================================================


class TestProjectNarrative:
    def test_npd_project(self, settings):
        summary = _generate(settings=settings, project_filter="R1337")

        assert summary.paragraph == (
            "Widget Gen2 (R1337) logged 50 hours in February 2026 across 3 contributors: "
            "Alice, Cara, and Lena. Work was split between engineering (50h) and lab - testing (6h). "
            "This represents 50% of the 100h planned for the month, slightly under plan. "
            "This project depends on a single contributor (Alice), creating key-person risk — "
            "Alice accounted for 87% of all hours."
        )
        assert summary.highlights == [
            "On plan: 50%",
            "Single contributor: Alice",
            "NPD project",
            "3 contributors",
        ]

    def test_firefighting_project(self, settings):
        summary = _generate(settings=settings, project_filter="S0070")

        assert summary.paragraph == (
            "Field Fixes (S0070) logged 16 hours of engineering in February 2026, with Bob as the "
            "sole contributor. This project is classified as unplanned firefighting work. "
            "This project depends on a single contributor (Bob), creating key-person risk — "
            "Bob accounted for 100% of all hours."
        )
        assert summary.highlights == [
            "Unplanned/Firefighting",
            "Single contributor: Bob",
            "Sustaining project",
        ]

    def test_over_plan(self, settings):
        dataset = scenario_a()
        dataset.planned_months = (planned("2026-01", "R1337", 10),)
        summary = _generate(dataset, settings, project_filter="R1337", period="2026-01")

        assert summary.paragraph == (
            "Widget Gen2 (R1337) logged 25 hours of engineering in January 2026, with Alice as the "
            "sole contributor. This represents 250% of the 10h planned for the month, significantly "
            "exceeding the planned budget. This project depends on a single contributor (Alice), "
            "creating key-person risk — Alice accounted for 100% of all hours. Hours are running "
            "150% above plan — 25h logged against 10h planned."
        )
        assert summary.highlights == [
            "On plan: 250%",
            "Single contributor: Alice",
            "Over plan: 250%",
            "NPD project",
        ]

    def test_no_activity_known_project(self, settings):
        summary = _generate(settings=settings, project_filter="S0062", period="2026-03")

        assert summary.paragraph == "Legacy Support (S0062) had no recorded activity in March 2026."
        assert summary.highlights == ["Sustaining project", "No activity"]

    def test_no_activity_unknown_project(self, settings):
        summary = _generate(settings=settings, project_filter="R2000")

        assert summary.paragraph == "R2000 (R2000) had no recorded activity in February 2026."
        assert summary.highlights == ["Admin project", "No activity"]

    def test_team_only_observations_never_appear(self, settings):
        summary = _generate(settings=settings, project_filter="S0070", observation_priority=["firefightingLoad"])

        assert "Firefighting: " not in " ".join(summary.highlights)


# =============================================================================
# OBSERVATION SELECTION
# =============================================================================


class TestSelectObservations:
    def _obs(self, *keys):
        return [TriggeredObservation(key=k, sentence=k, highlight=k) for k in keys]

    def test_priority_then_cap(self):
        cfg = NarrativeConfig(observation_priority=["meetingTax", "busFactorRisks"], max_observations=2)
        selected = select_observations(self._obs("busFactorRisks", "firefightingLoad", "meetingTax"), cfg)

        assert [o.key for o in selected] == ["meetingTax", "busFactorRisks"]

    def test_unlisted_keys_sort_last_in_input_order(self):
        cfg = NarrativeConfig(observation_priority=["meetingTax"], max_observations=3)
        selected = select_observations(self._obs("overtimeIndicators", "firefightingLoad", "meetingTax"), cfg)

        assert [o.key for o in selected] == ["meetingTax", "overtimeIndicators", "firefightingLoad"]

    def test_nothing_triggered(self):
        assert select_observations([], NarrativeConfig()) == []
