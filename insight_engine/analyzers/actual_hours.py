"""
Actual-hours summaries.

Only team members with role Engineer are counted; lab technicians have
their own aggregation. Project type and work class come from the project
table, not the raw entries, so reclassifying a project takes effect on the
next call.
"""

from dataclasses import asdict, dataclass

from insight_engine.models import ActivityType, Dataset, ProjectType, WorkClass
from insight_engine.projects import matches_project


@dataclass
class ActualHoursRow:
    period: str
    project_id: str
    engineer: str
    work_class: WorkClass
    project_type: ProjectType
    actual_hours: float = 0.0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["work_class"] = self.work_class.value
        d["project_type"] = self.project_type.value
        return d


@dataclass
class LabTechHoursRow:
    period: str
    engineer: str
    lab_tech_hours: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def compute_actual_hours(
    dataset: Dataset,
    periods: list[str] | None = None,
    project_filter: str | None = None,
) -> list[ActualHoursRow]:
    """
    Group engineer hours by (period, project, engineer).

    Args:
        periods: limit to these periods (None = all)
        project_filter: parent code; includes child codes (R1337 matches R1337.1)
    """
    engineers = dataset.engineer_names
    project_map = dataset.project_map
    groups: dict[tuple[str, str, str], ActualHoursRow] = {}

    for entry in dataset.entries_for(periods):
        if entry.person not in engineers:
            continue
        if not matches_project(entry.project_id, project_filter):
            continue
        key = (entry.period, entry.project_id, entry.person)
        row = groups.get(key)
        if row is None:
            project = project_map.get(entry.project_id)
            row = ActualHoursRow(
                period=entry.period,
                project_id=entry.project_id,
                engineer=entry.person,
                work_class=project.work_class if project else WorkClass.PLANNED,
                project_type=project.type if project else ProjectType.SUSTAINING,
            )
            groups[key] = row
        row.actual_hours += entry.hours

    return list(groups.values())


def compute_lab_tech_hours(
    dataset: Dataset,
    periods: list[str] | None = None,
    project_filter: str | None = None,
) -> list[LabTechHoursRow]:
    """
    Engineer hours spent on "Lab - Testing", grouped by (period, engineer).

    With neither filter given, every engineer gets a row for every period
    that has entries, zero-filled.
    """
    engineers = dataset.engineer_names
    entries = dataset.entries_for(periods)
    groups: dict[tuple[str, str], LabTechHoursRow] = {}

    for entry in entries:
        if entry.person not in engineers:
            continue
        if entry.activity != ActivityType.LAB_TESTING.value:
            continue
        if not matches_project(entry.project_id, project_filter):
            continue
        key = (entry.period, entry.person)
        row = groups.get(key)
        if row is None:
            row = groups[key] = LabTechHoursRow(period=entry.period, engineer=entry.person)
        row.lab_tech_hours += entry.hours

    if periods is None and not project_filter:
        all_periods = sorted({e.period for e in entries})
        for engineer in sorted(engineers):
            for period in all_periods:
                groups.setdefault((period, engineer), LabTechHoursRow(period, engineer))

    return list(groups.values())
