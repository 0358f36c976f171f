"""
Anomaly Rule Engine — evaluates the eight registry rules against a dataset.

Thresholds, severities and enabled flags resolve through anomalies.rules
(user override -> registry default -> hard fallback). Findings come back
sorted alert, warning, info; ties keep discovery order.
"""

import logging
from dataclasses import dataclass, field

from insight_engine.analyzers.bus_factor import greedy_bus_factor, hours_by_project, rank_contributors
from insight_engine.analyzers.focus import daily_focus, group_by_person
from insight_engine.anomalies.rules import (
    Overrides,
    get_rule_severity,
    get_threshold,
    is_custom_value,
    is_rule_enabled,
)
from insight_engine.models import AnomalyFinding, Dataset, ProjectType, TimeEntry, severity_rank
from insight_engine.periods import resolve_periods
from insight_engine.projects import matches_project
from insight_engine.rounding import format_number, pct, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class _PersonTotals:
    total_hours: float = 0.0
    meeting_hours: float = 0.0
    firefighting_hours: float = 0.0
    daily_hours: dict[str, float] = field(default_factory=dict)


class AnomalyEngine:
    """
    Usage:
        engine = AnomalyEngine(store.load_dataset(), store.load_threshold_overrides())
        findings = engine.detect("2026-01")
    """

    def __init__(self, dataset: Dataset, overrides: Overrides | None = None):
        self.dataset = dataset
        self.overrides = overrides or {}

    # ------------------------------------------------------------------
    # Resolution shorthands
    # ------------------------------------------------------------------

    def _enabled(self, rule_id: str) -> bool:
        return is_rule_enabled(self.overrides, rule_id)

    def _threshold(self, rule_id: str, key: str) -> float:
        return get_threshold(self.overrides, rule_id, key)

    def _severity(self, rule_id: str) -> str:
        return get_rule_severity(self.overrides, rule_id)

    def _custom(self, rule_id: str, *keys: str) -> bool:
        return any(is_custom_value(self.overrides, rule_id, k) for k in keys)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def detect(
        self,
        periods: str | list[str] | None = None,
        project_filter: str | None = None,
    ) -> list[AnomalyFinding]:
        """
        Evaluate every enabled rule.

        Args:
            periods: period selector; None evaluates the whole dataset and
                skips the rules that need a period (burn rate, new person)
            project_filter: parent code, children included
        """
        period_list = resolve_periods(periods) if periods is not None else None
        entries = [
            e
            for e in self.dataset.entries_for(period_list)
            if matches_project(e.project_id, project_filter)
        ]
        if not entries:
            return []

        members = {m.full_name for m in self.dataset.members}
        by_person = group_by_person(entries)
        by_project = hours_by_project(entries)

        findings: list[AnomalyFinding] = []
        for person, person_entries in by_person.items():
            if person not in members:
                continue
            findings.extend(self._person_rules(person, person_entries))

        findings.extend(self._bus_factor(by_project))

        if period_list is not None:
            findings.extend(self._burn_rate(period_list, project_filter, by_project))
            findings.extend(self._new_people(period_list, by_person, members))

        findings.sort(key=lambda f: severity_rank(f.severity))
        logger.debug(
            "Detected %d anomalies for %s (filter=%s)",
            len(findings),
            ",".join(period_list) if period_list else "all periods",
            project_filter or "all",
        )
        return findings

    # ------------------------------------------------------------------
    # Person rules
    # ------------------------------------------------------------------

    def _person_totals(self, entries: list[TimeEntry]) -> _PersonTotals:
        totals = _PersonTotals()
        project_map = self.dataset.project_map
        for e in entries:
            totals.total_hours += e.hours
            totals.daily_hours[e.date] = totals.daily_hours.get(e.date, 0.0) + e.hours
            if e.is_meeting:
                totals.meeting_hours += e.hours
            project = project_map.get(e.project_id)
            if project is not None and project.is_firefighting:
                totals.firefighting_hours += e.hours
        return totals

    def _person_rules(self, person: str, entries: list[TimeEntry]) -> list[AnomalyFinding]:
        totals = self._person_totals(entries)
        found: list[AnomalyFinding] = []

        if self._enabled("overtime"):
            min_days = self._threshold("overtime", "minDaysOver8")
            daily_threshold = self._threshold("overtime", "dailyHoursThreshold")
            overtime_days = sum(1 for h in totals.daily_hours.values() if h > daily_threshold)
            if overtime_days >= min_days:
                work_days = len(totals.daily_hours)
                avg_daily = totals.total_hours / work_days if work_days else 0.0
                custom = self._custom("overtime", "minDaysOver8", "dailyHoursThreshold")
                found.append(
                    AnomalyFinding(
                        type="overtime",
                        severity=self._severity("overtime"),
                        title=f"{person} logged overtime on {overtime_days} days",
                        detail=f"Averaged {avg_daily:.1f} hrs/day across {work_days} work days.",
                        person=person,
                        rule_id="overtime",
                        threshold_comparison=(
                            f"overtime days ({overtime_days}) >= threshold ({format_number(min_days)}) "
                            f"with >{format_number(daily_threshold)}h/day"
                        ),
                        is_custom_threshold=custom,
                        custom_threshold_label=(
                            f">{format_number(min_days)} days over {format_number(daily_threshold)}h"
                            if custom
                            else None
                        ),
                    )
                )

        if self._enabled("context-switching"):
            threshold = self._threshold("context-switching", "focusScoreThreshold")
            focus = daily_focus(entries)
            if focus is not None and focus.focus_score < threshold:
                custom = self._custom("context-switching", "focusScoreThreshold")
                found.append(
                    AnomalyFinding(
                        type="context-switching",
                        severity=self._severity("context-switching"),
                        title=(
                            f"{person} is highly fragmented across "
                            f"{focus.monthly_project_count} projects"
                        ),
                        detail=(
                            f"Averaged {focus.avg_projects_per_day:.1f} projects/day with "
                            f"{focus.high_frag_days} high-fragmentation days."
                        ),
                        person=person,
                        rule_id="context-switching",
                        threshold_comparison=(
                            f"focus score ({focus.focus_score}) < threshold ({format_number(threshold)})"
                        ),
                        is_custom_threshold=custom,
                        custom_threshold_label=f"score < {format_number(threshold)}" if custom else None,
                    )
                )

        if self._enabled("meeting-heavy") and totals.total_hours > 0:
            threshold = self._threshold("meeting-heavy", "meetingPctThreshold") / 100
            meeting_pct = totals.meeting_hours / totals.total_hours
            if meeting_pct > threshold:
                custom = self._custom("meeting-heavy", "meetingPctThreshold")
                found.append(
                    AnomalyFinding(
                        type="meeting-heavy",
                        severity=self._severity("meeting-heavy"),
                        title=f"{person} spent {pct(meeting_pct)}% in meetings",
                        detail=(
                            f"{round_half_up(totals.meeting_hours)}h of "
                            f"{round_half_up(totals.total_hours)}h total."
                        ),
                        person=person,
                        rule_id="meeting-heavy",
                        threshold_comparison=(
                            f"meeting time ({pct(meeting_pct)}%) > threshold ({pct(threshold)}%)"
                        ),
                        is_custom_threshold=custom,
                        custom_threshold_label=f">{pct(threshold)}%" if custom else None,
                    )
                )

        if self._enabled("firefighting-spike") and totals.total_hours > 0:
            threshold = self._threshold("firefighting-spike", "firefightingPctThreshold") / 100
            ff_pct = totals.firefighting_hours / totals.total_hours
            if ff_pct > threshold:
                custom = self._custom("firefighting-spike", "firefightingPctThreshold")
                found.append(
                    AnomalyFinding(
                        type="firefighting-spike",
                        severity=self._severity("firefighting-spike"),
                        title=f"{person} has {pct(ff_pct)}% firefighting",
                        detail=(
                            f"{round_half_up(totals.firefighting_hours)}h unplanned/firefighting "
                            f"out of {round_half_up(totals.total_hours)}h."
                        ),
                        person=person,
                        rule_id="firefighting-spike",
                        threshold_comparison=(
                            f"firefighting ({pct(ff_pct)}%) > threshold ({pct(threshold)}%)"
                        ),
                        is_custom_threshold=custom,
                        custom_threshold_label=f">{pct(threshold)}%" if custom else None,
                    )
                )

        return found

    # ------------------------------------------------------------------
    # Project rules
    # ------------------------------------------------------------------

    def _bus_factor(self, by_project: dict[str, dict[str, float]]) -> list[AnomalyFinding]:
        if not self._enabled("bus-factor"):
            return []
        max_bus_factor = self._threshold("bus-factor", "maxBusFactor")
        min_hours = self._threshold("bus-factor", "minProjectHours")
        npd_only = self._threshold("bus-factor", "projectTypesFilter") == 1

        found: list[AnomalyFinding] = []
        for project_id, person_hours in by_project.items():
            project = self.dataset.project_map.get(project_id)
            if project is None:
                continue
            if npd_only and project.type != ProjectType.NPD:
                continue
            total_hours = sum(person_hours.values())
            if total_hours < min_hours:
                continue

            contributors = rank_contributors(person_hours)
            bus_factor = greedy_bus_factor(contributors)
            if bus_factor > max_bus_factor:
                continue

            top = contributors[0]
            count = len(contributors)
            custom = self._custom("bus-factor", "maxBusFactor", "minProjectHours")
            found.append(
                AnomalyFinding(
                    type="single-point-of-failure",
                    severity=self._severity("bus-factor"),
                    title=f"{project.display_name} depends solely on {top.person}",
                    detail=(
                        f"{round_half_up(total_hours)}h logged by {count} "
                        f"contributor{'s' if count > 1 else ''} (top: {pct(top.pct)}%)."
                    ),
                    person=top.person,
                    project_id=project_id,
                    rule_id="bus-factor",
                    threshold_comparison=(
                        f"bus factor ({bus_factor}) <= threshold ({format_number(max_bus_factor)}) "
                        f"with {round_half_up(total_hours)}h > {format_number(min_hours)}h min"
                    ),
                    is_custom_threshold=custom,
                    custom_threshold_label=(
                        f"bus factor <= {format_number(max_bus_factor)}, min {format_number(min_hours)}h"
                        if custom
                        else None
                    ),
                )
            )
        return found

    def _burn_rate(
        self,
        periods: list[str],
        project_filter: str | None,
        by_project: dict[str, dict[str, float]],
    ) -> list[AnomalyFinding]:
        wanted = set(periods)
        planned = [
            pm
            for pm in self.dataset.planned_months
            if pm.period in wanted and matches_project(pm.project_id, project_filter)
        ]

        found: list[AnomalyFinding] = []
        for pm in planned:
            if pm.total_planned_hours <= 0:
                continue
            actual = sum(by_project.get(pm.project_id, {}).values())
            ratio = actual / pm.total_planned_hours
            project = self.dataset.project_map.get(pm.project_id)
            name = project.display_name if project else pm.project_id
            detail = f"{round_half_up(actual)}h actual vs {round_half_up(pm.total_planned_hours)}h planned."

            if self._enabled("project-over-burn"):
                over = self._threshold("project-over-burn", "overBurnPct") / 100
                if ratio > 1 + over:
                    custom = self._custom("project-over-burn", "overBurnPct")
                    found.append(
                        AnomalyFinding(
                            type="project-over-burn",
                            severity=self._severity("project-over-burn"),
                            title=f"{name} over-burning at {pct(ratio)}%",
                            detail=detail,
                            project_id=pm.project_id,
                            rule_id="project-over-burn",
                            threshold_comparison=(
                                f"actual/planned ratio ({pct(ratio)}%) > threshold ({pct(1 + over)}%)"
                            ),
                            is_custom_threshold=custom,
                            custom_threshold_label=f">{pct(over)}% over plan" if custom else None,
                        )
                    )

            if self._enabled("project-under-burn") and actual > 0:
                under = self._threshold("project-under-burn", "underBurnPct") / 100
                if ratio < under:
                    custom = self._custom("project-under-burn", "underBurnPct")
                    found.append(
                        AnomalyFinding(
                            type="project-under-burn",
                            severity=self._severity("project-under-burn"),
                            title=f"{name} under-burning at {pct(ratio)}%",
                            detail=detail,
                            project_id=pm.project_id,
                            rule_id="project-under-burn",
                            threshold_comparison=(
                                f"actual/planned ratio ({pct(ratio)}%) < threshold ({pct(under)}%)"
                            ),
                            is_custom_threshold=custom,
                            custom_threshold_label=f"<{pct(under)}% of plan" if custom else None,
                        )
                    )
        return found

    def _new_people(
        self,
        periods: list[str],
        by_person: dict[str, list[TimeEntry]],
        members: set[str],
    ) -> list[AnomalyFinding]:
        if not self._enabled("new-person"):
            return []
        wanted = set(periods)
        seen_elsewhere = {e.person for e in self.dataset.entries if e.period not in wanted}
        outside = ", ".join(sorted(wanted))

        return [
            AnomalyFinding(
                type="new-person",
                severity=self._severity("new-person"),
                title=f"{person} is new this month",
                detail="First time appearing in timesheet data.",
                person=person,
                rule_id="new-person",
                threshold_comparison=f"no entries outside {outside}",
            )
            for person in by_person
            if person not in seen_elsewhere and person in members
        ]
