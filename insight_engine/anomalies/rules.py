"""
Anomaly rule registry and override resolution.

This module contains DEFINITIONS and LOOKUPS ONLY. Evaluation is in
anomalies/engine.py.

Resolution is two-tier: the static registry below plus a sparse table of
user overrides keyed by rule id. Every field resolves through one function:

    is_rule_enabled     override.enabled  -> registry default -> True
    get_threshold       override value    -> registry default -> 0
    get_rule_severity   override severity -> registry default -> "info"
"""

from dataclasses import dataclass, field
from enum import Enum

from insight_engine import config
from insight_engine.models import AnomalyThreshold, Severity


class RuleCategory(Enum):
    CAPACITY = "capacity"
    RISK = "risk"
    PLANNING = "planning"
    EFFICIENCY = "efficiency"


@dataclass(frozen=True)
class AnomalyParameter:
    """A named, bounded numeric knob on a rule."""

    key: str
    label: str
    description: str
    type: str  # "number" or "percent"
    default_value: float
    min: float
    max: float
    step: float
    unit: str

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "description": self.description,
            "type": self.type,
            "default_value": self.default_value,
            "min": self.min,
            "max": self.max,
            "step": self.step,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class AnomalyRuleDefinition:
    rule_id: str
    name: str
    description: str
    category: RuleCategory
    default_severity: Severity
    default_enabled: bool
    rationale: str
    parameters: tuple[AnomalyParameter, ...] = field(default_factory=tuple)

    def parameter(self, key: str) -> AnomalyParameter | None:
        for p in self.parameters:
            if p.key == key:
                return p
        return None


# =============================================================================
# RULE DEFINITIONS
# =============================================================================

RULE_OVERTIME = AnomalyRuleDefinition(
    rule_id="overtime",
    name="Overtime Indicator",
    description="Flags team members who consistently log more than 8 hours per day.",
    category=RuleCategory.CAPACITY,
    default_severity=Severity.WARNING,
    default_enabled=True,
    rationale=(
        "Sustained overtime can indicate unsustainable workload, impending burnout, "
        "or under-staffing on key projects."
    ),
    parameters=(
        AnomalyParameter(
            key="minDaysOver8",
            label="Minimum days over threshold",
            description=(
                "How many days in the month must exceed the daily hours threshold "
                "to trigger this alert."
            ),
            type="number",
            default_value=3,
            min=1,
            max=20,
            step=1,
            unit="days",
        ),
        AnomalyParameter(
            key="dailyHoursThreshold",
            label="Daily hours threshold",
            description="What counts as an overtime day.",
            type="number",
            default_value=8,
            min=7,
            max=12,
            step=0.5,
            unit="hours",
        ),
    ),
)

RULE_CONTEXT_SWITCHING = AnomalyRuleDefinition(
    rule_id="context-switching",
    name="Extreme Context Switching",
    description="Flags engineers whose time is fragmented across too many projects daily.",
    category=RuleCategory.EFFICIENCY,
    default_severity=Severity.WARNING,
    default_enabled=True,
    rationale=(
        "Research shows context switching between projects reduces engineering productivity "
        "by 20-40%. Engineers with low focus scores may benefit from consolidated assignments."
    ),
    parameters=(
        AnomalyParameter(
            key="focusScoreThreshold",
            label="Focus score threshold",
            description=(
                "Trigger when an engineer's focus score falls below this value "
                "(0-100, lower = more fragmented)."
            ),
            type="number",
            default_value=30,
            min=10,
            max=80,
            step=5,
            unit="score",
        ),
    ),
)

RULE_BUS_FACTOR = AnomalyRuleDefinition(
    rule_id="bus-factor",
    name="Single Point of Failure",
    description="Flags NPD projects where all knowledge is concentrated in one person.",
    category=RuleCategory.RISK,
    default_severity=Severity.ALERT,
    default_enabled=True,
    rationale=(
        "Projects with a single contributor have no backup coverage. If that person is "
        "unavailable, the project stops. Cross-training or pair assignments reduce this risk."
    ),
    parameters=(
        AnomalyParameter(
            key="maxBusFactor",
            label="Maximum bus factor",
            description="Flag projects where this many or fewer people cover >50% of work.",
            type="number",
            default_value=1,
            min=1,
            max=3,
            step=1,
            unit="people",
        ),
        AnomalyParameter(
            key="minProjectHours",
            label="Minimum project hours",
            description="Only flag projects with at least this many hours (ignore trivial entries).",
            type="number",
            default_value=20,
            min=5,
            max=100,
            step=5,
            unit="hours",
        ),
        AnomalyParameter(
            key="projectTypesFilter",
            label="Only flag NPD projects",
            description=(
                "When set to 1, only NPD projects trigger this rule. "
                "Set to 0 to include sustaining projects."
            ),
            type="number",
            default_value=1,
            min=0,
            max=1,
            step=1,
            unit="",
        ),
    ),
)

RULE_MEETING_HEAVY = AnomalyRuleDefinition(
    rule_id="meeting-heavy",
    name="Meeting-Heavy Engineer",
    description="Flags engineers spending a disproportionate amount of time in meetings.",
    category=RuleCategory.EFFICIENCY,
    default_severity=Severity.INFO,
    default_enabled=True,
    rationale=(
        "Excessive meeting load reduces time available for engineering work. "
        "Flagging helps identify candidates for meeting audit or delegation."
    ),
    parameters=(
        AnomalyParameter(
            key="meetingPctThreshold",
            label="Meeting percentage threshold",
            description="Trigger when meetings exceed this percentage of total hours.",
            type="percent",
            default_value=20,
            min=5,
            max=50,
            step=5,
            unit="%",
        ),
    ),
)

RULE_PROJECT_OVER_BURN = AnomalyRuleDefinition(
    rule_id="project-over-burn",
    name="Project Over-Burning",
    description="Flags NPD projects where actual hours significantly exceed planned hours.",
    category=RuleCategory.PLANNING,
    default_severity=Severity.WARNING,
    default_enabled=True,
    rationale=(
        "Projects burning faster than planned may have scope creep, underestimated "
        "complexity, or quality issues requiring rework."
    ),
    parameters=(
        AnomalyParameter(
            key="overBurnPct",
            label="Over-burn percentage",
            description="Trigger when actual hours exceed planned by this percentage.",
            type="percent",
            default_value=30,
            min=10,
            max=100,
            step=5,
            unit="%",
        ),
    ),
)

RULE_PROJECT_UNDER_BURN = AnomalyRuleDefinition(
    rule_id="project-under-burn",
    name="Project Under-Burning",
    description="Flags projects where actual hours are significantly below planned pace.",
    category=RuleCategory.PLANNING,
    default_severity=Severity.INFO,
    default_enabled=True,
    rationale=(
        "Projects well under planned pace may be blocked, de-prioritized, "
        "or lacking assigned resources."
    ),
    parameters=(
        AnomalyParameter(
            key="underBurnPct",
            label="Under-burn percentage",
            description="Trigger when actual hours are below this percentage of planned.",
            type="percent",
            default_value=50,
            min=10,
            max=80,
            step=5,
            unit="%",
        ),
    ),
)

RULE_FIREFIGHTING_SPIKE = AnomalyRuleDefinition(
    rule_id="firefighting-spike",
    name="Firefighting Spike",
    description="Flags when unplanned/firefighting work exceeds a healthy threshold.",
    category=RuleCategory.CAPACITY,
    default_severity=Severity.WARNING,
    default_enabled=True,
    rationale=(
        "High firefighting load indicates reactive work is displacing planned engineering. "
        "Sustained levels above 15% typically signal systemic issues."
    ),
    parameters=(
        AnomalyParameter(
            key="firefightingPctThreshold",
            label="Firefighting percentage threshold",
            description="Trigger when unplanned work exceeds this percentage of productive hours.",
            type="percent",
            default_value=15,
            min=5,
            max=40,
            step=5,
            unit="%",
        ),
    ),
)

RULE_NEW_PERSON = AnomalyRuleDefinition(
    rule_id="new-person",
    name="New Team Member Detected",
    description="Flags when a person appears in timesheet data for the first time.",
    category=RuleCategory.CAPACITY,
    default_severity=Severity.INFO,
    default_enabled=True,
    rationale=(
        "Awareness of team composition changes. New members may need onboarding time "
        "that affects project velocity."
    ),
)


# =============================================================================
# REGISTRY
# =============================================================================

ANOMALY_RULES: tuple[AnomalyRuleDefinition, ...] = (
    RULE_OVERTIME,
    RULE_CONTEXT_SWITCHING,
    RULE_BUS_FACTOR,
    RULE_MEETING_HEAVY,
    RULE_PROJECT_OVER_BURN,
    RULE_PROJECT_UNDER_BURN,
    RULE_FIREFIGHTING_SPIKE,
    RULE_NEW_PERSON,
)

RULE_CATALOG: dict[str, AnomalyRuleDefinition] = {r.rule_id: r for r in ANOMALY_RULES}

Overrides = dict[str, AnomalyThreshold]


def get_rule(rule_id: str) -> AnomalyRuleDefinition | None:
    return RULE_CATALOG.get(rule_id)


def _default_value(rule_id: str, param_key: str) -> float | None:
    rule = RULE_CATALOG.get(rule_id)
    param = rule.parameter(param_key) if rule else None
    return param.default_value if param else None


# =============================================================================
# RESOLUTION
# =============================================================================


def is_rule_enabled(overrides: Overrides, rule_id: str) -> bool:
    stored = overrides.get(rule_id)
    if stored is not None:
        return stored.enabled
    rule = RULE_CATALOG.get(rule_id)
    return rule.default_enabled if rule else True


def get_threshold(overrides: Overrides, rule_id: str, param_key: str) -> float:
    stored = overrides.get(rule_id)
    if stored is not None and stored.thresholds.get(param_key) is not None:
        return stored.thresholds[param_key]
    default = _default_value(rule_id, param_key)
    return default if default is not None else 0


def get_rule_severity(overrides: Overrides, rule_id: str) -> str:
    stored = overrides.get(rule_id)
    if stored is not None and stored.severity:
        return stored.severity
    rule = RULE_CATALOG.get(rule_id)
    return rule.default_severity.value if rule else config.DEFAULT_SEVERITY


def is_custom_value(overrides: Overrides, rule_id: str, param_key: str) -> bool:
    """
    True when the stored value is present, truthy and differs from the default.

    A stored 0 therefore never reads as customised, even where 0 is not the
    default (projectTypesFilter=0 included).
    """
    stored = overrides.get(rule_id)
    if stored is None or not stored.thresholds.get(param_key):
        return False
    default = _default_value(rule_id, param_key)
    return default is not None and stored.thresholds[param_key] != default


def default_thresholds_for_rule(rule_id: str) -> dict[str, float]:
    rule = RULE_CATALOG.get(rule_id)
    if rule is None:
        return {}
    return {p.key: p.default_value for p in rule.parameters}


def seed_anomaly_defaults() -> list[AnomalyThreshold]:
    """One override row per rule, carrying the registry defaults."""
    return [
        AnomalyThreshold(
            rule_id=rule.rule_id,
            enabled=rule.default_enabled,
            severity=rule.default_severity.value,
            thresholds=default_thresholds_for_rule(rule.rule_id),
        )
        for rule in ANOMALY_RULES
    ]


def describe_rules(overrides: Overrides) -> list[dict]:
    """Registry merged with the current overrides, for display."""
    described = []
    for rule in ANOMALY_RULES:
        described.append(
            {
                "rule_id": rule.rule_id,
                "name": rule.name,
                "description": rule.description,
                "category": rule.category.value,
                "rationale": rule.rationale,
                "enabled": is_rule_enabled(overrides, rule.rule_id),
                "severity": get_rule_severity(overrides, rule.rule_id),
                "default_severity": rule.default_severity.value,
                "parameters": [
                    {
                        **p.to_dict(),
                        "value": get_threshold(overrides, rule.rule_id, p.key),
                        "is_custom": is_custom_value(overrides, rule.rule_id, p.key),
                    }
                    for p in rule.parameters
                ],
            }
        )
    return described
