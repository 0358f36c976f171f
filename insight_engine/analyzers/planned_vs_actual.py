"""
Planned vs actual: per-period category totals and the NPD project comparison.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass

from insight_engine.analyzers.actual_hours import (
    ActualHoursRow,
    compute_actual_hours,
    compute_lab_tech_hours,
)
from insight_engine.models import Dataset, ProjectType, WorkClass
from insight_engine.projects import matches_project, project_parent


@dataclass
class CategoryTotals:
    period: str
    planned_npd: float = 0.0
    planned_sustaining: float = 0.0
    planned_sprint: float = 0.0
    actual_npd: float = 0.0
    actual_sustaining: float = 0.0
    actual_sprint: float = 0.0
    actual_firefighting: float = 0.0  # subset of the actual columns, by work class
    lab_tech_total: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NPDComparison:
    project_id: str  # parent code
    project_name: str
    planned_hours: float = 0.0
    actual_hours: float = 0.0
    delta: float = 0.0
    delta_pct: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


_PLANNED_COLUMNS = {
    ProjectType.NPD: "planned_npd",
    ProjectType.SUSTAINING: "planned_sustaining",
    ProjectType.SPRINT: "planned_sprint",
}
_ACTUAL_COLUMNS = {
    ProjectType.NPD: "actual_npd",
    ProjectType.SUSTAINING: "actual_sustaining",
    ProjectType.SPRINT: "actual_sprint",
}


def compute_category_totals(
    dataset: Dataset,
    project_filter: str | None = None,
    actual_hours: list[ActualHoursRow] | None = None,
) -> list[CategoryTotals]:
    """
    Per-period planned and actual hours by project category, sorted by period.

    A period appears when it has planned hours or engineer actuals.
    ``actual_hours`` may be passed in when the caller already holds the
    unfiltered-by-period summary for the same project filter.
    """
    if actual_hours is None:
        actual_hours = compute_actual_hours(dataset, None, project_filter)
    lab_hours = compute_lab_tech_hours(dataset, None, project_filter)
    project_map = dataset.project_map
    planned = [p for p in dataset.planned_months if matches_project(p.project_id, project_filter)]

    totals: dict[str, CategoryTotals] = {}

    def _bucket(period: str) -> CategoryTotals:
        if period not in totals:
            totals[period] = CategoryTotals(period=period)
        return totals[period]

    for p in planned:
        bucket = _bucket(p.period)
        project = project_map.get(p.project_id)
        column = _PLANNED_COLUMNS.get(project.type) if project else None
        if column:
            setattr(bucket, column, getattr(bucket, column) + p.total_planned_hours)

    for a in actual_hours:
        bucket = _bucket(a.period)
        column = _ACTUAL_COLUMNS.get(a.project_type)
        if column:
            setattr(bucket, column, getattr(bucket, column) + a.actual_hours)
        if a.work_class == WorkClass.UNPLANNED_FIREFIGHTING:
            bucket.actual_firefighting += a.actual_hours

    for lab in lab_hours:
        if lab.period in totals:
            totals[lab.period].lab_tech_total += lab.lab_tech_hours

    return [totals[period] for period in sorted(totals)]


def compute_npd_comparison(dataset: Dataset, periods: list[str]) -> list[NPDComparison]:
    """
    NPD planned vs actual for the given periods, child codes rolled up under
    their parent. Sorted by parent code.
    """
    npd_projects = sorted(
        (p for p in dataset.projects if p.type == ProjectType.NPD),
        key=lambda p: p.project_id,
    )
    npd_by_id = {p.project_id: p for p in npd_projects}
    wanted = set(periods)

    planned_by_project: dict[str, float] = defaultdict(float)
    for pm in dataset.planned_months:
        if pm.period in wanted:
            planned_by_project[pm.project_id] += pm.total_planned_hours

    actual_by_project: dict[str, float] = defaultdict(float)
    for a in compute_actual_hours(dataset, list(periods)):
        actual_by_project[a.project_id] += a.actual_hours

    groups: dict[str, NPDComparison] = {}
    for project in npd_projects:
        parent = project_parent(project.project_id)
        group = groups.get(parent)
        if group is None:
            parent_project = npd_by_id.get(parent)
            name = (parent_project or project).display_name
            group = groups[parent] = NPDComparison(project_id=parent, project_name=name)
        group.planned_hours += planned_by_project.get(project.project_id, 0.0)
        group.actual_hours += actual_by_project.get(project.project_id, 0.0)

    for group in groups.values():
        group.delta = group.actual_hours - group.planned_hours
        group.delta_pct = group.delta / group.planned_hours if group.planned_hours > 0 else 0.0

    return [groups[k] for k in sorted(groups)]
