"""Sentence assembly helpers for narratives."""

from insight_engine.models import ProjectType
from insight_engine.rounding import round_half_up


def plural(count: int, suffix: str = "s") -> str:
    return "" if count == 1 else suffix


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def format_list_with_and(items: list[str]) -> str:
    """Oxford-comma list: "A, B, and C"."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def format_name_list(names: list[str]) -> str:
    """
    "Brian Sloan and Mike Davis"
    "Brian Sloan, Mike Davis, and Karl Maas"
    "Brian Sloan, Mike Davis, Karl Maas, and 2 others"
    """
    if len(names) <= 3:
        return format_list_with_and(names)
    remaining = len(names) - 3
    return f"{', '.join(names[:3])}, and {remaining} other{plural(remaining)}"


def format_activity_breakdown(activities: list[tuple[str, float]]) -> str:
    """[("Engineering", 32), ("Lab - Testing", 11)] -> engineering (32h) and lab - testing (11h)"""
    return format_list_with_and([f"{name.lower()} ({round_half_up(hours)}h)" for name, hours in activities])


def qualify_focus(npd_share: float) -> str:
    if npd_share > 0.6:
        return "strongly"
    if npd_share > 0.4:
        return "moderately"
    return "lightly"


def qualify_plan_deviation(pct_of_plan: int) -> str:
    """Clause appended to the plan comparison sentence, leading comma included."""
    if 90 <= pct_of_plan <= 110:
        return ", tracking close to plan"
    if pct_of_plan > 130:
        return ", significantly exceeding the planned budget"
    if pct_of_plan > 110:
        return ", slightly over plan"
    if pct_of_plan < 50:
        return ", well below planned pace"
    if pct_of_plan < 90:
        return ", slightly under plan"
    return ""


def trend_clause(current: int, previous: int | None, enabled: bool, unit: str = "%") -> str:
    """Trailing clause such as ', up from 12% last month'; empty below a one-unit change."""
    if not enabled or previous is None:
        return ""
    delta = current - previous
    if abs(delta) < 1:
        return ""
    direction = "up" if delta > 0 else "down"
    return f", {direction} from {previous}{unit} last month"


def project_type_label(project_type: ProjectType) -> str:
    return project_type.value
