"""
Analyzers — pure per-concern aggregations over a Dataset.

Each takes a Dataset plus optional period list and project filter and
returns plain result records; none touches the store.
"""

from .actual_hours import ActualHoursRow, LabTechHoursRow, compute_actual_hours, compute_lab_tech_hours
from .bus_factor import BusFactorResult, compute_bus_factor_risk
from .focus import FocusScoreResult, compute_focus_scores
from .meeting_tax import MeetingTaxResult, compute_meeting_tax
from .planned_vs_actual import (
    CategoryTotals,
    NPDComparison,
    compute_category_totals,
    compute_npd_comparison,
)

__all__ = [
    "ActualHoursRow",
    "LabTechHoursRow",
    "compute_actual_hours",
    "compute_lab_tech_hours",
    "BusFactorResult",
    "compute_bus_factor_risk",
    "FocusScoreResult",
    "compute_focus_scores",
    "MeetingTaxResult",
    "compute_meeting_tax",
    "CategoryTotals",
    "NPDComparison",
    "compute_category_totals",
    "compute_npd_comparison",
]
