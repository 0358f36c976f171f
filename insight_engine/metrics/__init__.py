"""Metric Engine, KPI registry and metric history."""

from .engine import MetricEngine
from .history import MetricHistory
from .registry import KPI_REGISTRY, KpiDefinition, KpiStatus, kpi_cards, kpi_status

__all__ = [
    "MetricEngine",
    "MetricHistory",
    "KPI_REGISTRY",
    "KpiDefinition",
    "KpiStatus",
    "kpi_cards",
    "kpi_status",
]
