"""
Record model for the insight engine.

Input records (time entries, projects, team members, planned hours) are
supplied by the import layer and only ever read here. Output records
(metrics, anomaly findings, snapshots, narratives) are produced by the
engine. Every shape round-trips through ``to_dict()`` for the API and
the snapshot tables.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from functools import cached_property

from insight_engine import config

# =============================================================================
# ENUMS
# =============================================================================


class ProjectType(Enum):
    NPD = "NPD"  # New product development
    SUSTAINING = "Sustaining"
    ADMIN = "Admin"
    OUT_OF_OFFICE = "OOO"  # PTO, holidays
    SPRINT = "Sprint"


class WorkClass(Enum):
    PLANNED = "Planned"
    UNPLANNED_FIREFIGHTING = "Unplanned/Firefighting"


class PersonRole(Enum):
    ENGINEER = "Engineer"
    LAB_TECHNICIAN = "Lab Technician"


class ActivityType(Enum):
    ENGINEERING = "Engineering"
    LAB_TESTING = "Lab - Testing"
    PTO = "PTO"
    PROJECT_MANAGEMENT = "Project Management"


class Severity(Enum):
    ALERT = "alert"
    WARNING = "warning"
    INFO = "info"


class AnomalyStatus(Enum):
    NEW = "new"
    RECURRING = "recurring"
    RESOLVED = "resolved"


SEVERITY_ORDER = {"alert": 0, "warning": 1, "info": 2}

NON_PRODUCTIVE_TYPES = frozenset({ProjectType.ADMIN, ProjectType.OUT_OF_OFFICE})


def severity_rank(severity: str) -> int:
    """Sort rank for a severity string; unknown values sort with info."""
    return SEVERITY_ORDER.get(severity, 2)


def _enum_or_default(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


# =============================================================================
# INPUT RECORDS
# =============================================================================


@dataclass(frozen=True)
class TimeEntry:
    """One imported timesheet row. Never mutated after import."""

    entry_id: int
    date: str  # YYYY-MM-DD
    person: str  # display name; join key to TeamMember.full_name
    project_id: str = ""
    activity: str = ""
    hours: float = 0.0
    task: str = ""
    task_id: int = 0
    is_done: bool = False

    @property
    def period(self) -> str:
        return self.date[:7]

    @property
    def is_meeting(self) -> bool:
        return "meeting" in (self.task or "").lower()

    @classmethod
    def from_row(cls, row) -> "TimeEntry":
        return cls(
            entry_id=row["entry_id"],
            date=row["date"],
            person=row["person"],
            project_id=row["project_id"] or "",
            activity=row["activity"] or "",
            hours=float(row["hours"] or 0),
            task=row["task"] or "",
            task_id=int(row["task_id"] or 0),
            is_done=bool(row["is_done"]),
        )

    def to_dict(self) -> dict:
        return {**asdict(self), "period": self.period}


@dataclass(frozen=True)
class Project:
    project_id: str
    project_name: str = ""
    type: ProjectType = ProjectType.SUSTAINING
    work_class: WorkClass = WorkClass.PLANNED

    @property
    def display_name(self) -> str:
        return self.project_name or self.project_id

    @property
    def is_firefighting(self) -> bool:
        return self.work_class == WorkClass.UNPLANNED_FIREFIGHTING

    @classmethod
    def from_row(cls, row) -> "Project":
        return cls(
            project_id=row["project_id"],
            project_name=row["project_name"] or "",
            type=_enum_or_default(ProjectType, row["type"], ProjectType.SUSTAINING),
            work_class=_enum_or_default(WorkClass, row["work_class"], WorkClass.PLANNED),
        )

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "type": self.type.value,
            "work_class": self.work_class.value,
        }


@dataclass(frozen=True)
class TeamMember:
    person_id: int
    full_name: str
    role: PersonRole = PersonRole.ENGINEER
    capacity_override_hours: float = 0.0  # 0 = use the dashboard default

    @property
    def is_engineer(self) -> bool:
        return self.role == PersonRole.ENGINEER

    def capacity(self, default_capacity: float) -> float:
        return self.capacity_override_hours if self.capacity_override_hours > 0 else default_capacity

    @classmethod
    def from_row(cls, row) -> "TeamMember":
        return cls(
            person_id=row["person_id"],
            full_name=row["full_name"],
            role=_enum_or_default(PersonRole, row["role"], PersonRole.ENGINEER),
            capacity_override_hours=float(row["capacity_override_hours"] or 0),
        )

    def to_dict(self) -> dict:
        return {
            "person_id": self.person_id,
            "full_name": self.full_name,
            "role": self.role.value,
            "capacity_override_hours": self.capacity_override_hours,
        }


@dataclass(frozen=True)
class PlannedAllocation:
    """Planned hours for one engineer on one project in one period."""

    period: str
    project_id: str
    engineer: str
    allocation_pct: float = 0.0
    planned_hours: float = 0.0

    @classmethod
    def from_row(cls, row) -> "PlannedAllocation":
        return cls(
            period=row["month"],
            project_id=row["project_id"],
            engineer=row["engineer"],
            allocation_pct=float(row["allocation_pct"] or 0),
            planned_hours=float(row["planned_hours"] or 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PlannedProjectMonth:
    """Total budgeted hours for a project in a period, independent of engineers."""

    period: str
    project_id: str
    total_planned_hours: float = 0.0

    @classmethod
    def from_row(cls, row) -> "PlannedProjectMonth":
        return cls(
            period=row["month"],
            project_id=row["project_id"],
            total_planned_hours=float(row["total_planned_hours"] or 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DashboardConfig:
    team_name: str = ""
    std_monthly_capacity_hours: float = config.DEFAULT_MONTHLY_CAPACITY_HOURS
    over_utilization_threshold_pct: float = config.DEFAULT_OVER_UTILIZATION_THRESHOLD

    @classmethod
    def from_row(cls, row) -> "DashboardConfig":
        return cls(
            team_name=row["team_name"] or "",
            std_monthly_capacity_hours=float(
                row["std_monthly_capacity_hours"] or config.DEFAULT_MONTHLY_CAPACITY_HOURS
            ),
            over_utilization_threshold_pct=float(
                row["over_utilization_threshold_pct"] or config.DEFAULT_OVER_UTILIZATION_THRESHOLD
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# USER CONFIGURATION
# =============================================================================


@dataclass
class AnomalyThreshold:
    """Sparse user override for one anomaly rule."""

    rule_id: str
    enabled: bool = True
    severity: str | None = None
    thresholds: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row) -> "AnomalyThreshold":
        return cls(
            rule_id=row["rule_id"],
            enabled=bool(row["enabled"]),
            severity=row["severity"] or None,
            thresholds=json.loads(row["thresholds_json"] or "{}"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


NARRATIVE_OBSERVATION_KEYS: tuple[str, ...] = (
    "busFactorRisks",
    "firefightingLoad",
    "focusFragmentation",
    "overtimeIndicators",
    "meetingTax",
    "projectOverBurn",
    "projectUnderBurn",
    "labTechContribution",
)

_DEFAULT_OBSERVATIONS = {
    "firefightingLoad": True,
    "busFactorRisks": True,
    "focusFragmentation": True,
    "meetingTax": True,
    "overtimeIndicators": True,
    "projectOverBurn": True,
    "projectUnderBurn": False,
    "labTechContribution": False,
}


@dataclass
class NarrativeConfig:
    """Singleton controlling which observations appear and how they are phrased."""

    observations: dict[str, bool] = field(default_factory=lambda: dict(_DEFAULT_OBSERVATIONS))
    observation_priority: list[str] = field(
        default_factory=lambda: list(NARRATIVE_OBSERVATION_KEYS)
    )
    name_individuals: bool = True
    include_specific_numbers: bool = True
    include_trend_comparisons: bool = True
    max_observations: int = 2  # clamped to 1-3
    custom_opening: str = ""
    custom_closing: str = ""

    def __post_init__(self):
        self.max_observations = min(3, max(1, int(self.max_observations)))

    def is_enabled(self, key: str) -> bool:
        return bool(self.observations.get(key, False))

    @classmethod
    def from_dict(cls, data: dict) -> "NarrativeConfig":
        default = cls()
        observations = dict(default.observations)
        observations.update({k: bool(v) for k, v in (data.get("observations") or {}).items()})
        return cls(
            observations=observations,
            observation_priority=list(
                data.get("observation_priority") or default.observation_priority
            ),
            name_individuals=bool(data.get("name_individuals", default.name_individuals)),
            include_specific_numbers=bool(
                data.get("include_specific_numbers", default.include_specific_numbers)
            ),
            include_trend_comparisons=bool(
                data.get("include_trend_comparisons", default.include_trend_comparisons)
            ),
            max_observations=data.get("max_observations", default.max_observations),
            custom_opening=data.get("custom_opening") or "",
            custom_closing=data.get("custom_closing") or "",
        )

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# DATASET SNAPSHOT
# =============================================================================


@dataclass
class Dataset:
    """
    Immutable-by-convention snapshot of everything the engine reads.

    Aggregations take a Dataset plus selectors and never touch the store,
    so re-running the same inputs yields identical output.
    """

    entries: tuple[TimeEntry, ...] = ()
    members: tuple[TeamMember, ...] = ()
    projects: tuple[Project, ...] = ()
    planned_months: tuple[PlannedProjectMonth, ...] = ()
    planned_allocations: tuple[PlannedAllocation, ...] = ()
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)

    @cached_property
    def project_map(self) -> dict[str, Project]:
        return {p.project_id: p for p in self.projects}

    @cached_property
    def member_map(self) -> dict[str, TeamMember]:
        return {m.full_name: m for m in self.members}

    @cached_property
    def engineer_names(self) -> frozenset[str]:
        return frozenset(m.full_name for m in self.members if m.role == PersonRole.ENGINEER)

    @cached_property
    def lab_tech_names(self) -> frozenset[str]:
        return frozenset(
            m.full_name for m in self.members if m.role == PersonRole.LAB_TECHNICIAN
        )

    @cached_property
    def periods(self) -> list[str]:
        """Distinct periods that have at least one time entry, ascending."""
        return sorted({e.period for e in self.entries})

    @property
    def default_capacity(self) -> float:
        return self.dashboard.std_monthly_capacity_hours or config.DEFAULT_MONTHLY_CAPACITY_HOURS

    @property
    def over_utilization_threshold(self) -> float:
        """Team utilization (1.0 = 100%) above which the team has no slack."""
        return (
            self.dashboard.over_utilization_threshold_pct
            or config.DEFAULT_OVER_UTILIZATION_THRESHOLD
        )

    def entries_for(self, periods: list[str] | None) -> list[TimeEntry]:
        if periods is None:
            return list(self.entries)
        wanted = set(periods)
        return [e for e in self.entries if e.period in wanted]


# =============================================================================
# OUTPUT RECORDS
# =============================================================================


@dataclass
class MetricsResult:
    """Flat metrics record for one period selector. Ratios are 0 on a zero denominator."""

    team_utilization: float = 0.0
    npd_focus: float = 0.0
    firefighting_load: float = 0.0
    active_engineers: int = 0
    total_hours_logged: float = 0.0
    projects_touched: int = 0
    bus_factor_risk: float = 0.0
    focus_score: float = 0.0
    meeting_tax_hours: float = 0.0
    lab_utilization: float = 0.0
    task_completion_rate: float = 0.0
    admin_overhead: float = 0.0
    sustaining_load: float = 0.0
    unplanned_sustaining_pct: float = 0.0
    avg_hours_per_engineer: float = 0.0
    load_spread: float = 0.0
    deep_work_ratio: float = 0.0
    npd_hours: float = 0.0
    sustaining_hours: float = 0.0
    sprint_hours: float = 0.0
    firefighting_hours: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "MetricsResult":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MetricSnapshot:
    month: str
    project_filter: str
    computed_at: str
    results: MetricsResult
    id: int | None = None

    @classmethod
    def from_row(cls, row) -> "MetricSnapshot":
        return cls(
            id=row["id"],
            month=row["month"],
            project_filter=row["project_filter"],
            computed_at=row["computed_at"],
            results=MetricsResult.from_dict(json.loads(row["results_json"])),
        )

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "project_filter": self.project_filter,
            "computed_at": self.computed_at,
            "results": self.results.to_dict(),
        }


def anomaly_id_for(rule_id: str, person: str | None, project_id: str | None) -> str:
    """Stable cross-period identity: ``rule::person``, else ``rule::project``, else ``rule::global``."""
    return f"{rule_id}::{person or project_id or 'global'}"


@dataclass
class AnomalyFinding:
    """A live rule hit, with UI-facing threshold metadata."""

    type: str
    severity: str
    title: str
    detail: str
    rule_id: str
    person: str | None = None
    project_id: str | None = None
    threshold_comparison: str | None = None
    is_custom_threshold: bool = False
    custom_threshold_label: str | None = None

    @property
    def anomaly_id(self) -> str:
        return anomaly_id_for(self.rule_id, self.person, self.project_id)

    def to_stored(self) -> "StoredAnomaly":
        return StoredAnomaly(
            anomaly_id=self.anomaly_id,
            type=self.type,
            severity=self.severity,
            title=self.title,
            detail=self.detail,
            rule_id=self.rule_id,
            person=self.person,
            project_id=self.project_id,
        )

    def to_dict(self) -> dict:
        return {"anomaly_id": self.anomaly_id, **asdict(self)}


@dataclass
class StoredAnomaly:
    """Persisted shape of a finding (comparison metadata dropped)."""

    anomaly_id: str
    type: str
    severity: str
    title: str
    detail: str
    rule_id: str
    person: str | None = None
    project_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "StoredAnomaly":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EnrichedAnomaly(StoredAnomaly):
    status: str = AnomalyStatus.NEW.value
    recurring_months: int | None = None

    @classmethod
    def from_stored(
        cls, stored: StoredAnomaly, status: AnomalyStatus, recurring_months: int | None = None
    ) -> "EnrichedAnomaly":
        return cls(**stored.to_dict(), status=status.value, recurring_months=recurring_months)


@dataclass
class AnomalySnapshot:
    month: str
    project_filter: str
    computed_at: str
    anomalies: list[StoredAnomaly] = field(default_factory=list)
    id: int | None = None

    @property
    def anomaly_ids(self) -> set[str]:
        return {a.anomaly_id for a in self.anomalies}

    @classmethod
    def from_row(cls, row) -> "AnomalySnapshot":
        return cls(
            id=row["id"],
            month=row["month"],
            project_filter=row["project_filter"],
            computed_at=row["computed_at"],
            anomalies=[StoredAnomaly.from_dict(a) for a in json.loads(row["anomalies_json"])],
        )

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "project_filter": self.project_filter,
            "computed_at": self.computed_at,
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


@dataclass
class NarrativeSummary:
    paragraph: str
    highlights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
