"""
KPI registry: display metadata and status bands for the headline metrics.

This module contains DEFINITIONS and LOOKUPS ONLY. Values come from
MetricEngine; the registry says how to label, format and colour them.

Status bands:
    lower is better   value <= good -> "good", <= warning -> "warning", else "critical"
    higher is better  value >= good -> "good", >= warning -> "warning", else "critical"
    no bands          "neutral"
"""

from dataclasses import dataclass
from enum import Enum

from insight_engine.models import MetricsResult
from insight_engine.rounding import format_number, round1, round_half_up


class KpiCategory(Enum):
    UTILIZATION = "utilization"
    WORK_MIX = "workMix"
    TEAM_HEALTH = "teamHealth"
    THROUGHPUT = "throughput"


class KpiFormat(Enum):
    PERCENT = "percent"
    HOURS = "hours"
    COUNT = "count"
    DECIMAL = "decimal"


class KpiStatus(Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class KpiDefinition:
    key: str  # MetricsResult field
    label: str
    short_label: str
    format: KpiFormat
    category: KpiCategory
    description: str
    applicable_to_single_project: bool
    good: float | None = None
    warning: float | None = None
    higher_is_better: bool = False

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "short_label": self.short_label,
            "format": self.format.value,
            "category": self.category.value,
            "description": self.description,
            "applicable_to_single_project": self.applicable_to_single_project,
            "good": self.good,
            "warning": self.warning,
            "higher_is_better": self.higher_is_better,
        }


# =============================================================================
# KPI DEFINITIONS
# =============================================================================

KPI_DEFINITIONS: tuple[KpiDefinition, ...] = (
    KpiDefinition(
        key="team_utilization",
        label="Team Utilization",
        short_label="Utilization",
        format=KpiFormat.PERCENT,
        category=KpiCategory.UTILIZATION,
        description=(
            "Productive hours as a percentage of total team capacity "
            "(engineers x standard monthly hours)."
        ),
        applicable_to_single_project=True,
        good=0.85,
        warning=1.0,
    ),
    KpiDefinition(
        key="npd_focus",
        label="NPD Focus",
        short_label="NPD Focus",
        format=KpiFormat.PERCENT,
        category=KpiCategory.WORK_MIX,
        description="Percentage of productive hours spent on New Product Development projects.",
        applicable_to_single_project=False,
        good=0.6,
        warning=0.4,
        higher_is_better=True,
    ),
    KpiDefinition(
        key="firefighting_load",
        label="Firefighting Load",
        short_label="Firefighting",
        format=KpiFormat.PERCENT,
        category=KpiCategory.WORK_MIX,
        description="Percentage of productive hours spent on unplanned/firefighting work.",
        applicable_to_single_project=False,
        good=0.1,
        warning=0.2,
    ),
    KpiDefinition(
        key="active_engineers",
        label="Active Engineers",
        short_label="Engineers",
        format=KpiFormat.COUNT,
        category=KpiCategory.UTILIZATION,
        description="Number of engineers who logged productive hours this month.",
        applicable_to_single_project=True,
    ),
    KpiDefinition(
        key="total_hours_logged",
        label="Total Hours Logged",
        short_label="Total Hours",
        format=KpiFormat.HOURS,
        category=KpiCategory.UTILIZATION,
        description=(
            "Total productive hours (NPD + Sustaining + Sprint), "
            "excluding admin and out-of-office."
        ),
        applicable_to_single_project=True,
    ),
    KpiDefinition(
        key="projects_touched",
        label="Projects Touched",
        short_label="Projects",
        format=KpiFormat.COUNT,
        category=KpiCategory.THROUGHPUT,
        description="Number of distinct project codes with logged hours, excluding admin and OOO.",
        applicable_to_single_project=False,
    ),
    KpiDefinition(
        key="bus_factor_risk",
        label="Bus Factor Risk",
        short_label="Bus Factor",
        format=KpiFormat.PERCENT,
        category=KpiCategory.TEAM_HEALTH,
        description="Percentage of significant projects (>10h) where only one engineer contributed.",
        applicable_to_single_project=False,
        good=0.25,
        warning=0.5,
    ),
    KpiDefinition(
        key="focus_score",
        label="Avg Projects per Engineer",
        short_label="Focus Score",
        format=KpiFormat.DECIMAL,
        category=KpiCategory.TEAM_HEALTH,
        description=(
            "Average number of distinct projects each engineer worked on. Lower = more focused."
        ),
        applicable_to_single_project=False,
        good=3,
        warning=5,
    ),
    KpiDefinition(
        key="meeting_tax_hours",
        label="Meeting Tax",
        short_label="Meetings",
        format=KpiFormat.HOURS,
        category=KpiCategory.TEAM_HEALTH,
        description="Total hours spent on team meetings across all engineers.",
        applicable_to_single_project=False,
        good=30,
        warning=60,
    ),
    KpiDefinition(
        key="lab_utilization",
        label="Lab Utilization",
        short_label="Lab Ratio",
        format=KpiFormat.PERCENT,
        category=KpiCategory.WORK_MIX,
        description="Lab testing hours as a percentage of total engineering + lab hours.",
        applicable_to_single_project=True,
        good=0.5,
        warning=0.7,
    ),
    KpiDefinition(
        key="task_completion_rate",
        label="Task Completion Rate",
        short_label="Completion",
        format=KpiFormat.PERCENT,
        category=KpiCategory.THROUGHPUT,
        description="Percentage of tasks worked on this month that were marked as done.",
        applicable_to_single_project=True,
        good=0.6,
        warning=0.4,
        higher_is_better=True,
    ),
    KpiDefinition(
        key="admin_overhead",
        label="Admin Overhead",
        short_label="Admin",
        format=KpiFormat.PERCENT,
        category=KpiCategory.TEAM_HEALTH,
        description=(
            "Admin hours as a percentage of total work time. "
            "Lower means more time on deliverables."
        ),
        applicable_to_single_project=False,
        good=0.08,
        warning=0.15,
    ),
    KpiDefinition(
        key="sustaining_load",
        label="Sustaining Load",
        short_label="Sustaining",
        format=KpiFormat.PERCENT,
        category=KpiCategory.WORK_MIX,
        description="Percentage of productive hours spent on sustaining work.",
        applicable_to_single_project=False,
        good=0.4,
        warning=0.6,
    ),
    KpiDefinition(
        key="unplanned_sustaining_pct",
        label="Unplanned Sustaining",
        short_label="Unplanned %",
        format=KpiFormat.PERCENT,
        category=KpiCategory.WORK_MIX,
        description="Of all sustaining hours, how much was unplanned/firefighting.",
        applicable_to_single_project=False,
        good=0.2,
        warning=0.4,
    ),
    KpiDefinition(
        key="avg_hours_per_engineer",
        label="Avg Hours / Engineer",
        short_label="Avg Hours",
        format=KpiFormat.HOURS,
        category=KpiCategory.UTILIZATION,
        description="Average productive hours per active engineer.",
        applicable_to_single_project=True,
    ),
    KpiDefinition(
        key="load_spread",
        label="Load Spread",
        short_label="Spread",
        format=KpiFormat.HOURS,
        category=KpiCategory.TEAM_HEALTH,
        description=(
            "Gap in hours between the most-loaded and least-loaded engineer. "
            "Lower = more balanced."
        ),
        applicable_to_single_project=False,
        good=40,
        warning=80,
    ),
    KpiDefinition(
        key="deep_work_ratio",
        label="Deep Work Ratio",
        short_label="Deep Work",
        format=KpiFormat.PERCENT,
        category=KpiCategory.UTILIZATION,
        description=(
            "Percentage of all non-OOO time spent on actual project work vs. admin overhead."
        ),
        applicable_to_single_project=False,
        good=0.9,
        warning=0.8,
        higher_is_better=True,
    ),
)

KPI_REGISTRY: dict[str, KpiDefinition] = {k.key: k for k in KPI_DEFINITIONS}

KPI_PRESETS: dict[str, tuple[str, ...]] = {
    "executive": (
        "team_utilization",
        "npd_focus",
        "firefighting_load",
        "active_engineers",
        "total_hours_logged",
        "projects_touched",
    ),
    "engineering_lead": (
        "team_utilization",
        "bus_factor_risk",
        "task_completion_rate",
        "focus_score",
        "firefighting_load",
        "admin_overhead",
    ),
    "capacity_planning": (
        "team_utilization",
        "avg_hours_per_engineer",
        "load_spread",
        "active_engineers",
        "sustaining_load",
        "lab_utilization",
    ),
}


# =============================================================================
# LOOKUPS
# =============================================================================


def get_kpi(key: str) -> KpiDefinition | None:
    return KPI_REGISTRY.get(key)


def kpi_status(key: str, value: float) -> KpiStatus:
    """Band a metric value; unknown metrics and metrics without bands are neutral."""
    kpi = KPI_REGISTRY.get(key)
    if kpi is None or kpi.good is None or kpi.warning is None:
        return KpiStatus.NEUTRAL
    if kpi.higher_is_better:
        if value >= kpi.good:
            return KpiStatus.GOOD
        if value >= kpi.warning:
            return KpiStatus.WARNING
        return KpiStatus.CRITICAL
    if value <= kpi.good:
        return KpiStatus.GOOD
    if value <= kpi.warning:
        return KpiStatus.WARNING
    return KpiStatus.CRITICAL


def format_kpi_value(value: float, fmt: KpiFormat) -> str:
    """0.254 as percent -> "25"; 12.0 hours -> "12"; 12.25 hours -> "12.3"."""
    if fmt == KpiFormat.PERCENT:
        return str(round_half_up(value * 100))
    if fmt == KpiFormat.HOURS:
        return format_number(round1(value))
    if fmt == KpiFormat.COUNT:
        return str(round_half_up(value))
    return f"{round1(value):.1f}"


def kpis_for(project_filter: str | None = None) -> list[KpiDefinition]:
    """Registry order; only the single-project KPIs when a project filter is set."""
    if project_filter:
        return [k for k in KPI_DEFINITIONS if k.applicable_to_single_project]
    return list(KPI_DEFINITIONS)


def kpi_cards(result: MetricsResult, project_filter: str | None = None) -> list[dict]:
    """Metric values joined with their display metadata and status."""
    values = result.to_dict()
    cards = []
    for kpi in kpis_for(project_filter):
        value = values[kpi.key]
        cards.append(
            {
                "key": kpi.key,
                "label": kpi.label,
                "short_label": kpi.short_label,
                "category": kpi.category.value,
                "format": kpi.format.value,
                "value": value,
                "display": format_kpi_value(value, kpi.format),
                "status": kpi_status(kpi.key, value).value,
            }
        )
    return cards
