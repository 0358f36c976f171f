"""
Meeting tax — meeting hours broken out from general admin.

A meeting is any entry whose task label contains "meeting" (case-insensitive).
"""

from dataclasses import asdict, dataclass

from insight_engine.analyzers.focus import group_by_person, people_on_project
from insight_engine.models import Dataset, PersonRole
from insight_engine.rounding import round1
from insight_engine.settings import EngineSettings, get_settings


@dataclass
class MeetingTaxResult:
    person: str
    role: PersonRole
    total_hours: float
    meeting_hours: float
    meeting_pct: float
    admin_hours: float
    ooo_hours: float
    productive_hours: float

    def to_dict(self) -> dict:
        d = asdict(self)
        d["role"] = self.role.value
        return d


def compute_meeting_tax(
    dataset: Dataset,
    periods: list[str] | None = None,
    project_filter: str | None = None,
    settings: EngineSettings | None = None,
) -> list[MeetingTaxResult]:
    """Roster members' meeting share, heaviest first."""
    settings = settings or get_settings()
    entries = people_on_project(dataset.entries_for(periods), project_filter)
    if not entries:
        return []

    results: list[MeetingTaxResult] = []
    for person, person_entries in group_by_person(entries).items():
        member = dataset.member_map.get(person)
        if member is None:
            continue

        total = meeting = admin = ooo = 0.0
        for e in person_entries:
            total += e.hours
            if e.is_meeting:
                meeting += e.hours
            elif e.project_id in settings.ooo_project_codes:
                ooo += e.hours
            elif e.project_id in settings.admin_project_codes:
                admin += e.hours

        results.append(
            MeetingTaxResult(
                person=person,
                role=member.role,
                total_hours=round1(total),
                meeting_hours=round1(meeting),
                meeting_pct=meeting / total if total > 0 else 0.0,
                admin_hours=round1(admin),
                ooo_hours=round1(ooo),
                productive_hours=round1(total - meeting - admin - ooo),
            )
        )

    results.sort(key=lambda r: -r.meeting_pct)
    return results
