"""
Metric Engine — the single source of truth for every headline metric.

Two entry points share one pure computation:

    engine = MetricEngine(dataset)
    engine.compute("2026-01")                       # one period
    engine.compute(["2026-01", "2026-02"])          # merged, capacity x2
    engine.compute_batch(["2026-01", "2026-02"])    # one result per period

Both partition the dataset by period exactly once per call and then run
_compute_from_partition, so a batch result for a period always equals the
single-period result for that period.
"""

import logging
from dataclasses import dataclass, field

from insight_engine.analyzers.actual_hours import ActualHoursRow, compute_actual_hours
from insight_engine.analyzers.planned_vs_actual import CategoryTotals, compute_category_totals
from insight_engine.models import (
    NON_PRODUCTIVE_TYPES,
    ActivityType,
    Dataset,
    MetricsResult,
    TimeEntry,
)
from insight_engine.periods import resolve_periods
from insight_engine.projects import matches_project
from insight_engine.settings import EngineSettings, get_settings

logger = logging.getLogger(__name__)


def _ratio(numerator: float, denominator: float) -> float:
    """Zero denominator gives 0, never NaN or infinity."""
    return numerator / denominator if denominator > 0 else 0.0


@dataclass
class _Partition:
    """Everything the per-period formula needs, for one or more periods."""

    npd_hours: float = 0.0
    sustaining_hours: float = 0.0
    sprint_hours: float = 0.0
    firefighting_hours: float = 0.0
    actual_hours: list[ActualHoursRow] = field(default_factory=list)
    entries: list[TimeEntry] = field(default_factory=list)

    def add_totals(self, totals: CategoryTotals) -> None:
        self.npd_hours += totals.actual_npd
        self.sustaining_hours += totals.actual_sustaining
        self.sprint_hours += totals.actual_sprint
        self.firefighting_hours += totals.actual_firefighting

    def merge(self, other: "_Partition") -> None:
        self.npd_hours += other.npd_hours
        self.sustaining_hours += other.sustaining_hours
        self.sprint_hours += other.sprint_hours
        self.firefighting_hours += other.firefighting_hours
        self.actual_hours.extend(other.actual_hours)
        self.entries.extend(other.entries)


class MetricEngine:
    """Pure metric aggregation over a Dataset snapshot."""

    def __init__(self, dataset: Dataset, settings: EngineSettings | None = None):
        self.dataset = dataset
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def compute(
        self, periods: str | list[str], project_filter: str | None = None
    ) -> MetricsResult:
        """Metrics for a period selector; multi-period capacity scales with the period count."""
        period_list = resolve_periods(periods)
        partitions = self._partition(project_filter)

        merged = _Partition()
        for period in dict.fromkeys(period_list):
            if period in partitions:
                merged.merge(partitions[period])

        result = self._compute_from_partition(merged, capacity_periods=len(period_list))
        logger.debug(
            "Computed metrics for %s (filter=%s): %.1f hours",
            ",".join(period_list),
            project_filter or "all",
            result.total_hours_logged,
        )
        return result

    def compute_batch(
        self, periods: list[str], project_filter: str | None = None
    ) -> dict[str, MetricsResult]:
        """One metrics record per period, each with a single period of capacity."""
        if not periods:
            return {}
        partitions = self._partition(project_filter)
        results = {
            period: self._compute_from_partition(
                partitions.get(period) or _Partition(), capacity_periods=1
            )
            for period in periods
        }
        logger.debug("Batch-computed metrics for %d periods", len(results))
        return results

    # ------------------------------------------------------------------
    # Partitioning
    # ------------------------------------------------------------------

    def _partition(self, project_filter: str | None) -> dict[str, _Partition]:
        """Split actual hours, category totals and raw entries by period, once."""
        dataset = self.dataset
        actual_hours = compute_actual_hours(dataset, None, project_filter)
        totals = compute_category_totals(dataset, project_filter, actual_hours=actual_hours)

        partitions: dict[str, _Partition] = {}

        def _get(period: str) -> _Partition:
            if period not in partitions:
                partitions[period] = _Partition()
            return partitions[period]

        for t in totals:
            _get(t.period).add_totals(t)
        for row in actual_hours:
            _get(row.period).actual_hours.append(row)
        for entry in dataset.entries:
            if matches_project(entry.project_id, project_filter):
                _get(entry.period).entries.append(entry)
        return partitions

    # ------------------------------------------------------------------
    # The shared formula
    # ------------------------------------------------------------------

    def _compute_from_partition(self, part: _Partition, capacity_periods: int) -> MetricsResult:
        dataset = self.dataset
        settings = self.settings

        npd = part.npd_hours
        sustaining = part.sustaining_hours
        sprint = part.sprint_hours
        firefighting = part.firefighting_hours
        total = npd + sustaining + sprint

        active_names = {a.engineer for a in part.actual_hours}
        active = len(active_names)
        productive_rows = [a for a in part.actual_hours if a.project_type not in NON_PRODUCTIVE_TYPES]

        capacity = (
            sum(
                m.capacity(dataset.default_capacity)
                for m in dataset.members
                if m.is_engineer and m.full_name in active_names
            )
            * capacity_periods
        )

        # Bus factor risk: share of significant projects with a single contributor
        contributors: dict[str, set[str]] = {}
        project_hours: dict[str, float] = {}
        engineer_projects: dict[str, set[str]] = {}
        engineer_hours: dict[str, float] = {}
        for a in productive_rows:
            contributors.setdefault(a.project_id, set()).add(a.engineer)
            project_hours[a.project_id] = project_hours.get(a.project_id, 0.0) + a.actual_hours
            engineer_projects.setdefault(a.engineer, set()).add(a.project_id)
            engineer_hours[a.engineer] = engineer_hours.get(a.engineer, 0.0) + a.actual_hours

        significant = [
            p for p, hours in project_hours.items() if hours > settings.bus_factor_metric_min_hours
        ]
        single = sum(1 for p in significant if len(contributors[p]) == 1)

        focus_score = _ratio(
            sum(len(p) for p in engineer_projects.values()), len(engineer_projects)
        )

        # Raw-entry metrics, engineers only
        engineer_entries = [e for e in part.entries if e.person in dataset.engineer_names]
        meeting_hours = sum(e.hours for e in engineer_entries if e.is_meeting)
        lab_hours = sum(
            e.hours for e in engineer_entries if e.activity == ActivityType.LAB_TESTING.value
        )
        eng_hours = sum(
            e.hours for e in engineer_entries if e.activity == ActivityType.ENGINEERING.value
        )
        admin_hours = sum(
            e.hours for e in engineer_entries if e.project_id in settings.admin_project_codes
        )

        worked_tasks: set[int] = set()
        completed_tasks: set[int] = set()
        for e in engineer_entries:
            if e.project_id in settings.non_task_project_codes or not e.task_id:
                continue
            worked_tasks.add(e.task_id)
            if e.is_done:
                completed_tasks.add(e.task_id)

        hour_values = list(engineer_hours.values())
        load_spread = max(hour_values) - min(hour_values) if len(hour_values) > 1 else 0.0

        return MetricsResult(
            team_utilization=_ratio(total, capacity),
            npd_focus=_ratio(npd, total),
            firefighting_load=_ratio(firefighting, total),
            active_engineers=active,
            total_hours_logged=total,
            projects_touched=len({a.project_id for a in productive_rows}),
            bus_factor_risk=_ratio(single, len(significant)),
            focus_score=focus_score,
            meeting_tax_hours=meeting_hours,
            lab_utilization=_ratio(lab_hours, lab_hours + eng_hours),
            task_completion_rate=_ratio(len(completed_tasks), len(worked_tasks)),
            admin_overhead=_ratio(admin_hours, total + admin_hours),
            sustaining_load=_ratio(sustaining, total),
            unplanned_sustaining_pct=_ratio(firefighting, sustaining),
            avg_hours_per_engineer=_ratio(total, active),
            load_spread=load_spread,
            deep_work_ratio=_ratio(total, total + admin_hours),
            npd_hours=npd,
            sustaining_hours=sustaining,
            sprint_hours=sprint,
            firefighting_hours=firefighting,
        )
