"""
Bus factor — how concentrated each project's knowledge is.

Bus factor = the smallest number of top contributors (by hours, descending)
whose cumulative share of the project's hours first exceeds 50%.
"""

from dataclasses import asdict, dataclass, field

from insight_engine.models import Dataset, ProjectType, TimeEntry
from insight_engine.projects import matches_project
from insight_engine.rounding import round1

# Projects at or below this many hours are noise
TRIVIAL_PROJECT_HOURS = 5

RISK_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


@dataclass
class Contributor:
    person: str
    hours: float
    pct: float


@dataclass
class BusFactorResult:
    project_id: str
    project_name: str
    project_type: ProjectType
    total_hours: float
    contributor_count: int
    bus_factor: int
    top_contributor: str
    top_contributor_pct: float
    risk_level: str  # critical / high / medium / low
    contributors: list[Contributor] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["project_type"] = self.project_type.value
        return d


def hours_by_project(entries: list[TimeEntry]) -> dict[str, dict[str, float]]:
    """project code -> person -> hours, skipping entries without a code."""
    by_project: dict[str, dict[str, float]] = {}
    for e in entries:
        if not e.project_id:
            continue
        person_hours = by_project.setdefault(e.project_id, {})
        person_hours[e.person] = person_hours.get(e.person, 0.0) + e.hours
    return by_project


def rank_contributors(person_hours: dict[str, float]) -> list[Contributor]:
    """Contributors sorted by hours descending (ties keep first-seen order)."""
    total = sum(person_hours.values())
    ranked = [
        Contributor(person=p, hours=h, pct=h / total if total > 0 else 0.0)
        for p, h in person_hours.items()
    ]
    ranked.sort(key=lambda c: -c.hours)
    return ranked


def greedy_bus_factor(contributors: list[Contributor]) -> int:
    """Count contributors, largest first, until their cumulative share exceeds half."""
    cumulative = 0.0
    bus_factor = 0
    for c in contributors:
        cumulative += c.pct
        bus_factor += 1
        if cumulative > 0.5:
            break
    return bus_factor


def _risk_level(bus_factor: int, total_hours: float, project_type: ProjectType, top_pct: float) -> str:
    if bus_factor == 1 and total_hours > 20 and project_type == ProjectType.NPD:
        return "critical"
    if bus_factor == 1 and total_hours > 10:
        return "high"
    if bus_factor <= 2 and top_pct > 0.7:
        return "medium"
    return "low"


def compute_bus_factor_risk(
    dataset: Dataset,
    periods: list[str] | None = None,
    project_filter: str | None = None,
) -> list[BusFactorResult]:
    """Per-project bus factor and risk level, riskiest and largest first."""
    entries = [
        e for e in dataset.entries_for(periods) if matches_project(e.project_id, project_filter)
    ]
    if not entries:
        return []

    results: list[BusFactorResult] = []
    for project_id, person_hours in hours_by_project(entries).items():
        total_hours = sum(person_hours.values())
        if total_hours <= TRIVIAL_PROJECT_HOURS:
            continue

        contributors = rank_contributors(person_hours)
        bus_factor = greedy_bus_factor(contributors)
        project = dataset.project_map.get(project_id)
        project_type = project.type if project else ProjectType.ADMIN
        top = contributors[0]

        results.append(
            BusFactorResult(
                project_id=project_id,
                project_name=project.display_name if project else project_id,
                project_type=project_type,
                total_hours=round1(total_hours),
                contributor_count=len(contributors),
                bus_factor=bus_factor,
                top_contributor=top.person,
                top_contributor_pct=top.pct,
                risk_level=_risk_level(bus_factor, total_hours, project_type, top.pct),
                contributors=contributors,
            )
        )

    results.sort(key=lambda r: (RISK_ORDER[r.risk_level], -r.total_hours))
    return results
