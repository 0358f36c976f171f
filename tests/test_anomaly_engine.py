"""
Tests for the anomaly rule engine.

Covers each rule's trigger and wording, override handling (thresholds,
severity, enabled flag, custom labels), ordering and identity.
"""

import pytest

from insight_engine.anomalies.engine import AnomalyEngine
from insight_engine.models import AnomalyThreshold, ProjectType
from tests.fixtures import (
    build_dataset,
    entry,
    member,
    planned,
    project,
    scenario_a,
    scenario_b,
    scenario_c,
    team_month,
)


def _by_rule(findings, rule_id):
    return [f for f in findings if f.rule_id == rule_id]


def _overtime_dataset(days=3, hours=9):
    return build_dataset(
        entries=[entry("Dan", f"2026-01-{d:02d}", "S0062", hours) for d in range(5, 5 + days)],
        members=[member("Dan")],
        projects=[project("S0062", ProjectType.SUSTAINING)],
    )


# =============================================================================
# SCENARIOS
# =============================================================================


class TestScenarios:
    def test_single_engineer_npd_project(self):
        findings = AnomalyEngine(scenario_a()).detect("2026-01")

        assert [f.anomaly_id for f in findings] == ["bus-factor::Alice", "new-person::Alice"]
        bus = findings[0]
        assert bus.type == "single-point-of-failure"
        assert bus.severity == "alert"
        assert bus.project_id == "R1337"
        assert bus.title == "Widget Gen2 depends solely on Alice"
        assert bus.detail == "25h logged by 1 contributor (top: 100%)."
        assert bus.threshold_comparison == "bus factor (1) <= threshold (1) with 25h > 20h min"
        assert bus.is_custom_threshold is False
        assert bus.custom_threshold_label is None

        new = findings[1]
        assert new.severity == "info"
        assert new.title == "Alice is new this month"
        assert new.detail == "First time appearing in timesheet data."

    def test_meeting_heavy_engineer(self):
        findings = AnomalyEngine(scenario_b()).detect("2026-01")

        assert [f.rule_id for f in findings] == ["meeting-heavy", "new-person"]
        meeting = findings[0]
        assert meeting.severity == "info"
        assert meeting.title == "Bob spent 25% in meetings"
        assert meeting.detail == "10h of 40h total."
        assert meeting.threshold_comparison == "meeting time (25%) > threshold (20%)"

    def test_new_person_ignores_returning_people(self):
        findings = AnomalyEngine(scenario_c()).detect("2026-03")

        new = _by_rule(findings, "new-person")
        assert [f.person for f in new] == ["Cara"]
        assert new[0].threshold_comparison == "no entries outside 2026-03"

    def test_every_finding_carries_a_comparison(self):
        findings = AnomalyEngine(team_month()).detect(["2026-01", "2026-02"])

        assert findings
        assert all(f.threshold_comparison for f in findings)
        new = _by_rule(findings, "new-person")
        assert new
        assert {f.threshold_comparison for f in new} == {"no entries outside 2026-01, 2026-02"}

    def test_team_month_order(self):
        findings = AnomalyEngine(team_month()).detect("2026-02")

        assert [f.anomaly_id for f in findings] == [
            "bus-factor::Alice",
            "firefighting-spike::Bob",
            "project-under-burn::R1337",
            "new-person::Bob",
            "new-person::Cara",
            "new-person::Lena",
        ]
        assert findings[0].detail == "46h logged by 2 contributors (top: 87%)."
        assert findings[1].title == "Bob has 40% firefighting"
        assert findings[1].detail == "16h unplanned/firefighting out of 40h."
        assert findings[1].threshold_comparison == "firefighting (40%) > threshold (15%)"

    def test_project_filter(self):
        findings = AnomalyEngine(team_month()).detect("2026-02", "R1337")

        assert [f.anomaly_id for f in findings] == [
            "bus-factor::Alice",
            "project-under-burn::R1337",
            "new-person::Cara",
            "new-person::Lena",
        ]

    def test_empty_selection(self):
        assert AnomalyEngine(team_month()).detect("2025-06") == []
        assert AnomalyEngine(build_dataset()).detect("2026-01") == []


# =============================================================================
# PERSON RULES
# =============================================================================


class TestPersonRules:
    def test_overtime(self):
        findings = _by_rule(AnomalyEngine(_overtime_dataset()).detect("2026-01"), "overtime")

        assert len(findings) == 1
        f = findings[0]
        assert f.severity == "warning"
        assert f.title == "Dan logged overtime on 3 days"
        assert f.detail == "Averaged 9.0 hrs/day across 3 work days."
        assert f.threshold_comparison == "overtime days (3) >= threshold (3) with >8h/day"

    def test_overtime_below_min_days(self):
        findings = AnomalyEngine(_overtime_dataset(days=2)).detect("2026-01")
        assert _by_rule(findings, "overtime") == []

    def test_exactly_eight_hours_is_not_overtime(self):
        findings = AnomalyEngine(_overtime_dataset(days=5, hours=8)).detect("2026-01")
        assert _by_rule(findings, "overtime") == []

    def test_custom_overtime_threshold_is_labelled(self):
        overrides = {"overtime": AnomalyThreshold("overtime", thresholds={"minDaysOver8": 2})}
        f = _by_rule(AnomalyEngine(_overtime_dataset(days=2), overrides).detect("2026-01"), "overtime")[0]

        assert f.title == "Dan logged overtime on 2 days"
        assert f.threshold_comparison == "overtime days (2) >= threshold (2) with >8h/day"
        assert f.is_custom_threshold is True
        assert f.custom_threshold_label == ">2 days over 8h"

    def test_fractional_daily_threshold_in_label(self):
        overrides = {"overtime": AnomalyThreshold("overtime", thresholds={"dailyHoursThreshold": 8.5})}
        f = _by_rule(AnomalyEngine(_overtime_dataset(), overrides).detect("2026-01"), "overtime")[0]

        assert f.custom_threshold_label == ">3 days over 8.5h"

    def test_context_switching(self):
        entries = []
        for day in ("2026-01-05", "2026-01-06"):
            entries += [entry("Eve", day, code, 2) for code in ("S1", "S2", "S3", "S4")]
        dataset = build_dataset(
            entries=entries,
            members=[member("Eve")],
            projects=[project(c, ProjectType.SUSTAINING) for c in ("S1", "S2", "S3", "S4")],
        )
        f = _by_rule(AnomalyEngine(dataset).detect("2026-01"), "context-switching")[0]

        assert f.title == "Eve is highly fragmented across 4 projects"
        assert f.detail == "Averaged 4.0 projects/day with 2 high-fragmentation days."
        assert f.threshold_comparison == "focus score (25) < threshold (30)"

    def test_custom_meeting_threshold(self):
        overrides = {
            "meeting-heavy": AnomalyThreshold("meeting-heavy", thresholds={"meetingPctThreshold": 30})
        }
        assert _by_rule(AnomalyEngine(scenario_b(), overrides).detect("2026-01"), "meeting-heavy") == []

        overrides["meeting-heavy"].thresholds["meetingPctThreshold"] = 10
        f = _by_rule(AnomalyEngine(scenario_b(), overrides).detect("2026-01"), "meeting-heavy")[0]
        assert f.threshold_comparison == "meeting time (25%) > threshold (10%)"
        assert f.custom_threshold_label == ">10%"

    def test_people_off_the_roster_are_skipped(self):
        dataset = build_dataset(
            entries=[entry("Zed", f"2026-01-{d:02d}", "S0062", 10) for d in range(5, 9)],
            projects=[project("S0062", ProjectType.SUSTAINING)],
        )
        assert AnomalyEngine(dataset).detect("2026-01") == []


# =============================================================================
# PROJECT RULES
# =============================================================================


class TestProjectRules:
    def test_bus_factor_skips_small_projects(self):
        dataset = build_dataset(
            entries=[entry("Alice", "2026-01-05", "R1337", 15)],
            members=[member("Alice")],
            projects=[project("R1337")],
        )
        assert _by_rule(AnomalyEngine(dataset).detect("2026-01"), "bus-factor") == []

    def test_bus_factor_npd_only_by_default(self):
        assert _by_rule(AnomalyEngine(scenario_b()).detect("2026-01"), "bus-factor") == []

    def test_bus_factor_all_project_types(self):
        overrides = {"bus-factor": AnomalyThreshold("bus-factor", thresholds={"projectTypesFilter": 0})}
        f = _by_rule(AnomalyEngine(scenario_b(), overrides).detect("2026-01"), "bus-factor")[0]

        assert f.title == "Legacy Support depends solely on Bob"
        # a stored 0 is never reported as customised
        assert f.is_custom_threshold is False

    def test_bus_factor_skips_unknown_projects(self):
        dataset = build_dataset(
            entries=[entry("Alice", "2026-01-05", "X1", 30)],
            members=[member("Alice")],
        )
        assert _by_rule(AnomalyEngine(dataset).detect("2026-01"), "bus-factor") == []

    def test_over_burn(self):
        dataset = scenario_a()
        dataset.planned_months = (planned("2026-01", "R1337", 10),)
        f = _by_rule(AnomalyEngine(dataset).detect("2026-01"), "project-over-burn")[0]

        assert f.anomaly_id == "project-over-burn::R1337"
        assert f.severity == "warning"
        assert f.title == "Widget Gen2 over-burning at 250%"
        assert f.detail == "25h actual vs 10h planned."
        assert f.threshold_comparison == "actual/planned ratio (250%) > threshold (130%)"

    def test_under_burn(self):
        dataset = scenario_a()
        dataset.planned_months = (planned("2026-01", "R1337", 100),)
        f = _by_rule(AnomalyEngine(dataset).detect("2026-01"), "project-under-burn")[0]

        assert f.severity == "info"
        assert f.title == "Widget Gen2 under-burning at 25%"
        assert f.threshold_comparison == "actual/planned ratio (25%) < threshold (50%)"

    def test_under_burn_needs_some_actual_hours(self):
        dataset = scenario_a()
        dataset.planned_months = (planned("2026-01", "R2000", 100),)
        assert _by_rule(AnomalyEngine(dataset).detect("2026-01"), "project-under-burn") == []

    def test_no_period_skips_period_rules(self):
        dataset = scenario_a()
        dataset.planned_months = (planned("2026-01", "R1337", 10),)
        findings = AnomalyEngine(dataset).detect()

        assert [f.rule_id for f in findings] == ["bus-factor"]


# =============================================================================
# OVERRIDES AND ORDERING
# =============================================================================


class TestOverrides:
    def test_disabled_rule_produces_nothing(self):
        overrides = {"bus-factor": AnomalyThreshold("bus-factor", enabled=False)}
        findings = AnomalyEngine(scenario_a(), overrides).detect("2026-01")

        assert [f.rule_id for f in findings] == ["new-person"]

    def test_severity_override_reorders(self):
        overrides = {"new-person": AnomalyThreshold("new-person", severity="alert")}
        findings = AnomalyEngine(scenario_a(), overrides).detect("2026-01")

        assert [f.rule_id for f in findings] == ["bus-factor", "new-person"]
        assert [f.severity for f in findings] == ["alert", "alert"]

        overrides["bus-factor"] = AnomalyThreshold("bus-factor", severity="warning")
        findings = AnomalyEngine(scenario_a(), overrides).detect("2026-01")
        assert [f.rule_id for f in findings] == ["new-person", "bus-factor"]

    @pytest.mark.parametrize("dataset_factory", [scenario_a, scenario_b, team_month])
    def test_sorted_by_severity(self, dataset_factory):
        dataset = dataset_factory()
        findings = AnomalyEngine(dataset).detect(dataset.periods[-1])
        ranks = [{"alert": 0, "warning": 1, "info": 2}[f.severity] for f in findings]
        assert ranks == sorted(ranks)

    def test_detection_is_repeatable(self):
        dataset = team_month()
        first = [f.to_dict() for f in AnomalyEngine(dataset).detect("2026-02")]
        second = [f.to_dict() for f in AnomalyEngine(dataset).detect("2026-02")]
        assert first == second
