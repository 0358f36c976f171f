"""
Focus score — how fragmented each person's attention is across projects.

Focus score = min(100, round(100 / average distinct projects per day)).
Higher is more focused.
"""

from dataclasses import asdict, dataclass

from insight_engine.models import Dataset, PersonRole, TimeEntry
from insight_engine.projects import matches_project
from insight_engine.rounding import round1, round_half_up

# Days touching more than this many projects count as high fragmentation
HIGH_FRAGMENTATION_PROJECTS = 3


@dataclass
class DailyFocus:
    """Per-person day structure shared by the focus analyzer and the anomaly rules."""

    work_days: int
    avg_projects_per_day: float
    max_projects_in_one_day: int
    high_frag_days: int
    focus_score: int
    monthly_project_count: int


def daily_focus(entries: list[TimeEntry]) -> DailyFocus | None:
    """Summarize one person's entries day by day; None when there are no days."""
    by_date: dict[str, set[str]] = {}
    for e in entries:
        projects = by_date.setdefault(e.date, set())
        if e.project_id:
            projects.add(e.project_id)

    work_days = len(by_date)
    if work_days == 0:
        return None

    daily_counts = [len(s) for s in by_date.values()]
    avg = sum(daily_counts) / work_days
    return DailyFocus(
        work_days=work_days,
        avg_projects_per_day=avg,
        max_projects_in_one_day=max(daily_counts),
        high_frag_days=sum(1 for c in daily_counts if c > HIGH_FRAGMENTATION_PROJECTS),
        # days with no project codes at all read as fully focused
        focus_score=min(100, round_half_up(100 / avg)) if avg > 0 else 100,
        monthly_project_count=len({e.project_id for e in entries if e.project_id}),
    )


@dataclass
class FocusScoreResult:
    person: str
    role: PersonRole
    work_days: int
    avg_projects_per_day: float
    max_projects_in_one_day: int
    high_frag_days: int
    focus_score: int
    monthly_project_count: int
    top_project: str
    top_project_pct: float

    def to_dict(self) -> dict:
        d = asdict(self)
        d["role"] = self.role.value
        return d


def group_by_person(entries: list[TimeEntry]) -> dict[str, list[TimeEntry]]:
    by_person: dict[str, list[TimeEntry]] = {}
    for e in entries:
        by_person.setdefault(e.person, []).append(e)
    return by_person


def people_on_project(entries: list[TimeEntry], project_filter: str | None) -> list[TimeEntry]:
    """With a filter, keep all entries of anyone who worked on the project."""
    if not project_filter:
        return entries
    people = {e.person for e in entries if matches_project(e.project_id, project_filter)}
    return [e for e in entries if e.person in people]


def compute_focus_scores(
    dataset: Dataset,
    periods: list[str] | None = None,
    project_filter: str | None = None,
) -> list[FocusScoreResult]:
    """Roster members' focus scores, most fragmented first."""
    entries = people_on_project(dataset.entries_for(periods), project_filter)
    if not entries:
        return []

    results: list[FocusScoreResult] = []
    for person, person_entries in group_by_person(entries).items():
        member = dataset.member_map.get(person)
        if member is None:
            continue
        focus = daily_focus(person_entries)
        if focus is None:
            continue

        project_hours: dict[str, float] = {}
        for e in person_entries:
            if e.project_id:
                project_hours[e.project_id] = project_hours.get(e.project_id, 0.0) + e.hours
        top_project, top_hours = "", 0.0
        for project_id, hours in project_hours.items():
            if hours > top_hours:
                top_project, top_hours = project_id, hours
        total_hours = sum(e.hours for e in person_entries)

        results.append(
            FocusScoreResult(
                person=person,
                role=member.role,
                work_days=focus.work_days,
                avg_projects_per_day=round1(focus.avg_projects_per_day),
                max_projects_in_one_day=focus.max_projects_in_one_day,
                high_frag_days=focus.high_frag_days,
                focus_score=focus.focus_score,
                monthly_project_count=focus.monthly_project_count,
                top_project=top_project,
                top_project_pct=top_hours / total_hours if total_hours > 0 else 0.0,
            )
        )

    results.sort(key=lambda r: r.focus_score)
    return results
