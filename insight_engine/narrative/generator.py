"""
Narrative Generator — a short paragraph plus highlight tags for one period.

Template-driven. With a project filter it describes that project; without
one it describes the whole team.

Team paragraph:
    custom opening, volume, work mix, selected observations, capacity,
    custom closing
Project paragraph:
    volume (and activity split), plan comparison, firefighting flag,
    selected observations

Observation triggers use the narrative thresholds from settings, which are
independent of the anomaly rule thresholds.
"""

import logging
from dataclasses import dataclass

from insight_engine.analyzers.bus_factor import compute_bus_factor_risk
from insight_engine.analyzers.focus import compute_focus_scores
from insight_engine.analyzers.meeting_tax import compute_meeting_tax
from insight_engine.analyzers.planned_vs_actual import NPDComparison, compute_npd_comparison
from insight_engine.metrics.engine import MetricEngine
from insight_engine.models import (
    NON_PRODUCTIVE_TYPES,
    Dataset,
    NarrativeConfig,
    NarrativeSummary,
    ProjectType,
    TimeEntry,
    WorkClass,
)
from insight_engine.narrative.formatting import (
    capitalize_first,
    format_activity_breakdown,
    format_name_list,
    plural,
    project_type_label,
    qualify_focus,
    qualify_plan_deviation,
    trend_clause,
)
from insight_engine.narrative.observations import (
    PROJECT,
    observation_keys_for_mode,
    phrase_project,
    phrase_team,
)
from insight_engine.periods import period_label, previous_period
from insight_engine.projects import matches_project, project_parent
from insight_engine.rounding import pct, round_half_up
from insight_engine.settings import EngineSettings, get_settings

logger = logging.getLogger(__name__)

NO_DATA_PARAGRAPH = "No timesheet data available for this month."

_HIGH_RISK_LEVELS = ("critical", "high")


@dataclass
class TriggeredObservation:
    key: str
    sentence: str
    highlight: str


def select_observations(
    triggered: list[TriggeredObservation], config: NarrativeConfig
) -> list[TriggeredObservation]:
    """Order by configured priority (unlisted keys last, stable) and keep the first N."""
    priority = config.observation_priority

    def rank(obs: TriggeredObservation) -> int:
        return priority.index(obs.key) if obs.key in priority else 999

    return sorted(triggered, key=rank)[: config.max_observations]


def _observation_sentence(selected: list[TriggeredObservation]) -> str:
    texts = [capitalize_first(s.sentence) if i == 0 else s.sentence for i, s in enumerate(selected)]
    return ". ".join(texts) + "."


def _is_productive(entry: TimeEntry, dataset: Dataset) -> bool:
    project = dataset.project_map.get(entry.project_id)
    return project is None or project.type not in NON_PRODUCTIVE_TYPES


class NarrativeGenerator:
    """
    Usage:
        generator = NarrativeGenerator(store.load_dataset(), store.load_narrative_config())
        summary = generator.generate("2026-01")
        summary = generator.generate("2026-01", "R1337")
    """

    def __init__(
        self,
        dataset: Dataset,
        narrative_config: NarrativeConfig | None = None,
        settings: EngineSettings | None = None,
    ):
        self.dataset = dataset
        self.config = narrative_config or NarrativeConfig()
        self.settings = settings or get_settings()
        self.thresholds = self.settings.narrative

    def generate(self, period: str, project_filter: str | None = None) -> NarrativeSummary:
        if project_filter:
            summary = self._project_narrative(period, project_filter)
        else:
            summary = self._team_narrative(period)
        logger.debug(
            "Generated narrative for %s (filter=%s): %d highlights",
            period,
            project_filter or "all",
            len(summary.highlights),
        )
        return summary

    # ==================================================================
    # Team narrative
    # ==================================================================

    def _previous_ratios(self, period: str) -> tuple[float | None, float | None]:
        """(firefighting share, meeting share) of engineers' productive hours last period."""
        if not self.config.include_trend_comparisons:
            return None, None
        entries = self.dataset.entries_for([previous_period(period)])
        if not entries:
            return None, None

        engineers = self.dataset.engineer_names
        total = firefighting = meetings = 0.0
        for e in entries:
            if e.person not in engineers:
                continue
            if _is_productive(e, self.dataset):
                total += e.hours
                project = self.dataset.project_map.get(e.project_id)
                if project is not None and project.is_firefighting:
                    firefighting += e.hours
            if e.is_meeting:
                meetings += e.hours

        if total <= 0:
            return None, None
        return firefighting / total, meetings / total

    def _team_observations(
        self,
        period: str,
        entries: list[TimeEntry],
        kpi,
        lab_tech_hours: float,
        lab_tech_projects: set[str],
    ) -> list[TriggeredObservation]:
        cfg = self.config
        thr = self.thresholds
        names = cfg.name_individuals
        numbers = cfg.include_specific_numbers
        prev_ff, prev_meeting = self._previous_ratios(period)
        triggered: list[TriggeredObservation] = []

        if cfg.is_enabled("firefightingLoad") and kpi.firefighting_load > thr.firefighting_load:
            ff_pct = pct(kpi.firefighting_load)
            trend = trend_clause(
                ff_pct,
                pct(prev_ff) if prev_ff is not None else None,
                cfg.include_trend_comparisons,
            )
            triggered.append(
                TriggeredObservation(
                    key="firefightingLoad",
                    sentence=phrase_team("firefightingLoad", names, numbers, pct=ff_pct, trend=trend),
                    highlight=f"Firefighting: {ff_pct}%",
                )
            )

        if cfg.is_enabled("busFactorRisks"):
            risky = [
                r
                for r in compute_bus_factor_risk(self.dataset, [period])
                if r.risk_level in _HIGH_RISK_LEVELS
            ]
            if risky:
                count = len(risky)
                triggered.append(
                    TriggeredObservation(
                        key="busFactorRisks",
                        sentence=phrase_team(
                            "busFactorRisks",
                            names,
                            numbers,
                            count=count,
                            plural=plural(count),
                            plural_verb="s have" if count != 1 else " has",
                            verb="have" if count != 1 else "has",
                            projects=", ".join(r.project_id for r in risky[:2]),
                            more=f" and {count - 2} more" if count > 2 else "",
                        ),
                        highlight=f"Bus factor risk: {count} project{plural(count)}",
                    )
                )

        if cfg.is_enabled("focusFragmentation"):
            fragmented = [
                f for f in compute_focus_scores(self.dataset, [period]) if f.focus_score < thr.focus_score
            ]
            if fragmented:
                top = fragmented[0]
                triggered.append(
                    TriggeredObservation(
                        key="focusFragmentation",
                        sentence=phrase_team(
                            "focusFragmentation",
                            names,
                            numbers,
                            person=top.person,
                            avg=top.avg_projects_per_day,
                            count=top.monthly_project_count,
                        ),
                        highlight=f"Fragmented: {len(fragmented)} engineer{plural(len(fragmented))}",
                    )
                )

        if cfg.is_enabled("overtimeIndicators"):
            overtime = self._overtime_people(entries)
            if overtime:
                person, days = overtime[0]
                triggered.append(
                    TriggeredObservation(
                        key="overtimeIndicators",
                        sentence=phrase_team("overtimeIndicators", names, numbers, person=person, days=days),
                        highlight=f"Overtime: {len(overtime)} engineer{plural(len(overtime))}",
                    )
                )

        if cfg.is_enabled("meetingTax"):
            heavy = [
                m
                for m in compute_meeting_tax(self.dataset, [period], settings=self.settings)
                if m.meeting_pct > thr.meeting_pct
            ]
            if heavy:
                top = heavy[0]
                meeting_pct = pct(top.meeting_pct)
                trend = trend_clause(
                    meeting_pct,
                    pct(prev_meeting) if prev_meeting is not None else None,
                    cfg.include_trend_comparisons,
                )
                triggered.append(
                    TriggeredObservation(
                        key="meetingTax",
                        sentence=phrase_team(
                            "meetingTax", names, numbers, person=top.person, pct=meeting_pct, trend=trend
                        ),
                        highlight=f"Meeting-heavy: {len(heavy)} engineer{plural(len(heavy))}",
                    )
                )

        if cfg.is_enabled("projectOverBurn") or cfg.is_enabled("projectUnderBurn"):
            comparisons = compute_npd_comparison(self.dataset, [period])
            triggered.extend(self._burn_observations(comparisons))

        if cfg.is_enabled("labTechContribution") and lab_tech_hours > 0:
            hours = round_half_up(lab_tech_hours)
            count = len(lab_tech_projects)
            triggered.append(
                TriggeredObservation(
                    key="labTechContribution",
                    sentence=phrase_team(
                        "labTechContribution", names, numbers, hours=hours, count=count, plural=plural(count)
                    ),
                    highlight=f"Lab tech support: {hours} hrs",
                )
            )

        return triggered

    def _overtime_people(self, entries: list[TimeEntry]) -> list[tuple[str, int]]:
        """Engineers with enough long days, in first-seen order."""
        engineers = self.dataset.engineer_names
        daily: dict[str, dict[str, float]] = {}
        for e in entries:
            if e.person not in engineers:
                continue
            days = daily.setdefault(e.person, {})
            days[e.date] = days.get(e.date, 0.0) + e.hours

        people = []
        for person, days in daily.items():
            count = sum(1 for h in days.values() if h > self.thresholds.overtime_daily_hours)
            if count >= self.thresholds.overtime_min_days:
                people.append((person, count))
        return people

    def _burn_observations(self, comparisons: list[NPDComparison]) -> list[TriggeredObservation]:
        cfg = self.config
        names = cfg.name_individuals
        numbers = cfg.include_specific_numbers
        found: list[TriggeredObservation] = []

        bands = (
            ("projectOverBurn", "Over-burning", lambda c: c.delta_pct > self.thresholds.over_burn_delta),
            ("projectUnderBurn", "Under-burning", lambda c: c.delta_pct < self.thresholds.under_burn_delta),
        )
        for key, label, triggers in bands:
            if not cfg.is_enabled(key):
                continue
            hits = [c for c in comparisons if c.planned_hours > 0 and triggers(c)]
            if not hits:
                continue
            count = len(hits)
            found.append(
                TriggeredObservation(
                    key=key,
                    sentence=phrase_team(
                        key,
                        names,
                        numbers,
                        project=hits[0].project_name,
                        pct=pct(1 + hits[0].delta_pct),
                        count=count,
                        plural_verb="s are" if count != 1 else " is",
                        some_projects="some projects are" if count > 1 else "a project is",
                    ),
                    highlight=f"{label}: {count} project{plural(count)}",
                )
            )
        return found

    def _team_narrative(self, period: str) -> NarrativeSummary:
        entries = self.dataset.entries_for([period])
        if not entries:
            return NarrativeSummary(paragraph=NO_DATA_PARAGRAPH, highlights=[])

        cfg = self.config
        thr = self.thresholds
        dataset = self.dataset
        kpi = MetricEngine(dataset, self.settings).compute(period)

        person_hours: dict[str, float] = {}
        project_set: set[str] = set()
        lab_tech_hours = 0.0
        lab_tech_projects: set[str] = set()
        for e in entries:
            if e.person in dataset.engineer_names:
                person_hours[e.person] = person_hours.get(e.person, 0.0) + e.hours
                if e.project_id and _is_productive(e, dataset):
                    project_set.add(e.project_id)
            elif e.person in dataset.lab_tech_names:
                lab_tech_hours += e.hours
                if e.project_id:
                    lab_tech_projects.add(e.project_id)

        overloaded: list[str] = []
        underloaded: list[str] = []
        for person, hours in person_hours.items():
            member = dataset.member_map.get(person)
            capacity = member.capacity(dataset.default_capacity) if member else dataset.default_capacity
            if hours > capacity * thr.overloaded_factor:
                overloaded.append(person)
            elif hours < capacity * thr.underloaded_factor:
                underloaded.append(person)

        triggered = self._team_observations(period, entries, kpi, lab_tech_hours, lab_tech_projects)
        selected = select_observations(triggered, cfg)

        sentences: list[str] = []
        highlights: list[str] = []

        if cfg.custom_opening.strip():
            sentences.append(cfg.custom_opening.strip())

        sentences.append(
            f"In {period_label(period)}, the team of {kpi.active_engineers} engineers logged "
            f"{round_half_up(kpi.total_hours_logged):,} hours across {len(project_set)} projects, "
            f"achieving {pct(kpi.team_utilization)}% utilization."
        )

        mix = (
            f"Work was {qualify_focus(kpi.npd_focus)} focused on NPD ({pct(kpi.npd_focus)}% of hours), "
            f"with {round_half_up(kpi.sustaining_hours)} hours on sustaining activities"
        )
        if kpi.firefighting_load > thr.firefighting_load and cfg.is_enabled("firefightingLoad"):
            mix += f", of which {pct(kpi.firefighting_load)}% was unplanned firefighting"
        sentences.append(mix + ".")

        if selected:
            sentences.append(_observation_sentence(selected))
            highlights.extend(s.highlight for s in selected)

        if underloaded:
            count = len(underloaded)
            has = "s have" if count > 1 else " has"
            below = pct(thr.underloaded_factor)
            if cfg.name_individuals:
                shown = ", ".join(underloaded[:3])
                others = " and others" if count > 3 else ""
                sentences.append(
                    f"{count} team member{has} available capacity below {below}% utilization "
                    f"({shown}{others})."
                )
                highlights.append(f"Available capacity: {', '.join(underloaded)}")
            else:
                sentences.append(
                    f"{count} team member{has} available capacity (below {below}% utilization)."
                )
                highlights.append(f"Available capacity: {count} team member{plural(count)}")
        elif kpi.team_utilization > self.dataset.over_utilization_threshold:
            if cfg.name_individuals and overloaded:
                sentences.append(
                    "The team is running above full capacity with no slack available, with "
                    f"{' and '.join(overloaded[:2])} logging the most hours over capacity."
                )
            else:
                sentences.append("The team is running above full capacity with no slack available.")
            highlights.append("No slack capacity")

        if cfg.custom_closing.strip():
            sentences.append(cfg.custom_closing.strip())

        return NarrativeSummary(paragraph=" ".join(sentences), highlights=highlights)

    # ==================================================================
    # Project narrative
    # ==================================================================

    def _project_narrative(self, period: str, project_id: str) -> NarrativeSummary:
        dataset = self.dataset
        cfg = self.config
        project = dataset.project_map.get(project_id)
        name = project.display_name if project else project_id
        type_label = project_type_label(project.type if project else ProjectType.ADMIN)
        month = period_label(period)

        entries = [e for e in dataset.entries_for([period]) if matches_project(e.project_id, project_id)]
        if not entries:
            return NarrativeSummary(
                paragraph=f"{name} ({project_id}) had no recorded activity in {month}.",
                highlights=[f"{type_label} project", "No activity"],
            )

        kpi = MetricEngine(dataset, self.settings).compute(period, project_id)
        total = round_half_up(kpi.total_hours_logged)

        contributor_hours: dict[str, float] = {}
        activity_hours: dict[str, float] = {}
        for e in entries:
            contributor_hours[e.person] = contributor_hours.get(e.person, 0.0) + e.hours
            if e.activity:
                activity_hours[e.activity] = activity_hours.get(e.activity, 0.0) + e.hours
        contributors = [p for p, _ in sorted(contributor_hours.items(), key=lambda kv: -kv[1])]
        activities = sorted(activity_hours.items(), key=lambda kv: -kv[1])
        n_contributors = len(contributors)

        sentences: list[str] = []
        highlights: list[str] = []

        if len(activities) == 1:
            if n_contributors == 1:
                who = f", with {contributors[0]} as the sole contributor"
            else:
                who = f" across {n_contributors} contributors: {format_name_list(contributors)}"
            sentences.append(
                f"{name} ({project_id}) logged {total} hours of {activities[0][0].lower()} in {month}{who}."
            )
        else:
            sentences.append(
                f"{name} ({project_id}) logged {total} hours in {month} across {n_contributors} "
                f"contributor{plural(n_contributors)}: {format_name_list(contributors)}."
            )
            if activities:
                sentences.append(f"Work was split between {format_activity_breakdown(activities)}.")

        parent = project_parent(project_id)
        comparison = next(
            (
                c
                for c in compute_npd_comparison(dataset, [period])
                if c.project_id in (project_id, parent)
            ),
            None,
        )
        planned = comparison is not None and comparison.planned_hours > 0
        if planned:
            pct_of_plan = pct(comparison.actual_hours / comparison.planned_hours)
            sentences.append(
                f"This represents {pct_of_plan}% of the {round_half_up(comparison.planned_hours)}h "
                f"planned for the month{qualify_plan_deviation(pct_of_plan)}."
            )
            highlights.append(f"On plan: {pct_of_plan}%")

        triggered = self._project_observations(period, project_id, contributors, comparison if planned else None)

        if project is not None and project.work_class == WorkClass.UNPLANNED_FIREFIGHTING:
            sentences.append("This project is classified as unplanned firefighting work.")
            highlights.append(WorkClass.UNPLANNED_FIREFIGHTING.value)

        selected = select_observations(triggered, cfg)
        if selected:
            sentences.append(_observation_sentence(selected))
            highlights.extend(s.highlight for s in selected)

        highlights.append(f"{type_label} project")
        if n_contributors > 1:
            highlights.append(f"{n_contributors} contributors")

        return NarrativeSummary(paragraph=" ".join(sentences), highlights=highlights)

    def _project_observations(
        self,
        period: str,
        project_id: str,
        contributors: list[str],
        comparison: NPDComparison | None,
    ) -> list[TriggeredObservation]:
        cfg = self.config
        thr = self.thresholds
        allowed = observation_keys_for_mode(PROJECT)
        triggered: list[TriggeredObservation] = []

        def wants(key: str) -> bool:
            return key in allowed and cfg.is_enabled(key)

        if wants("busFactorRisks"):
            this_project = next(
                (
                    r
                    for r in compute_bus_factor_risk(self.dataset, [period], project_id)
                    if matches_project(r.project_id, project_id)
                ),
                None,
            )
            if this_project is not None and this_project.risk_level in _HIGH_RISK_LEVELS:
                top = this_project.top_contributor
                triggered.append(
                    TriggeredObservation(
                        key="busFactorRisks",
                        sentence=phrase_project(
                            "busFactorRisks", person=top, pct=pct(this_project.top_contributor_pct)
                        ),
                        highlight=f"Single contributor: {top}",
                    )
                )

        if wants("focusFragmentation") and contributors:
            primary = contributors[0]
            focus = next((f for f in compute_focus_scores(self.dataset, [period]) if f.person == primary), None)
            if focus is not None and focus.monthly_project_count > thr.project_fragmentation_min_projects:
                triggered.append(
                    TriggeredObservation(
                        key="focusFragmentation",
                        sentence=phrase_project(
                            "focusFragmentation", person=primary, count=focus.monthly_project_count - 1
                        ),
                        highlight=f"{primary}: {focus.monthly_project_count} projects",
                    )
                )

        if comparison is not None:
            actual = round_half_up(comparison.actual_hours)
            planned = round_half_up(comparison.planned_hours)
            if wants("projectOverBurn") and comparison.delta_pct > thr.over_burn_delta:
                triggered.append(
                    TriggeredObservation(
                        key="projectOverBurn",
                        sentence=phrase_project(
                            "projectOverBurn", pct=pct(comparison.delta_pct), actual=actual, planned=planned
                        ),
                        highlight=f"Over plan: {pct(1 + comparison.delta_pct)}%",
                    )
                )
            if wants("projectUnderBurn") and comparison.delta_pct < thr.under_burn_delta:
                actual_pct = pct(comparison.actual_hours / comparison.planned_hours)
                triggered.append(
                    TriggeredObservation(
                        key="projectUnderBurn",
                        sentence=phrase_project(
                            "projectUnderBurn", pct=actual_pct, actual=actual, planned=planned
                        ),
                        highlight=f"Under plan: {actual_pct}%",
                    )
                )

        return triggered
