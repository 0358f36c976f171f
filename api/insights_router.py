"""
Insights API Router — metrics, anomalies and narratives over the record store.

Read endpoints compute from a fresh Dataset snapshot on every call; the two
POST endpoints refresh the persisted history tables.

Usage in server.py:
    from api.insights_router import insights_router
    app.include_router(insights_router, prefix="/api/v1/insights")
"""

import logging
import sqlite3
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from api.response_models import HealthResponse, InsightResponse
from insight_engine import db
from insight_engine.anomalies.engine import AnomalyEngine
from insight_engine.anomalies.history import AnomalyHistory
from insight_engine.anomalies.rules import describe_rules
from insight_engine.metrics import MetricEngine, MetricHistory, kpi_cards
from insight_engine.metrics.registry import KPI_DEFINITIONS
from insight_engine.narrative import NarrativeGenerator, describe_observations
from insight_engine.observability import QueryContext
from insight_engine.periods import PERIOD_PATTERN, is_valid_period
from insight_engine.settings import get_settings
from insight_engine.store import RecordStore

logger = logging.getLogger(__name__)

insights_router = APIRouter(tags=["Insights"])

# Singleton store
_store: RecordStore | None = None


def get_store() -> RecordStore:
    """Get or create the record store (overridden in tests)."""
    global _store
    if _store is None:
        _store = RecordStore()
    return _store


def _wrap_response(data, params: dict | None = None) -> dict:
    """Wrap response in standard envelope."""
    return {
        "status": "ok",
        "data": data,
        "computed_at": datetime.now(UTC).isoformat(),
        "params": params or {},
    }


def _period_list(period: list[str] | None) -> list[str] | None:
    """Validate repeatable ?period= values; 422 on any malformed one."""
    if not period:
        return None
    bad = [p for p in period if not is_valid_period(p)]
    if bad:
        raise HTTPException(status_code=422, detail=f"Invalid period(s), expected YYYY-MM: {bad}")
    return period


def _server_error(operation: str, exc: Exception) -> HTTPException:
    logger.exception("%s failed", operation)
    return HTTPException(status_code=500, detail=str(exc))


# =============================================================================
# METRICS
# =============================================================================


@insights_router.get("/metrics", response_model=InsightResponse)
def get_metrics(
    period: list[str] = Query(..., description="Period (YYYY-MM); repeat for a multi-period query"),
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """Headline metrics for one or more periods, merged."""
    periods = _period_list(period)
    try:
        with QueryContext(period=periods, project_filter=project):
            result = MetricEngine(store.load_dataset(), get_settings()).compute(periods, project)
        return _wrap_response(result.to_dict(), {"period": periods, "project": project})
    except sqlite3.Error as e:
        raise _server_error("get_metrics", e) from e


@insights_router.get("/metrics/kpis", response_model=InsightResponse)
def get_metric_kpis(
    period: list[str] = Query(..., description="Period (YYYY-MM); repeat for a multi-period query"),
    project: str | None = Query(None, description="Project filter; single-project KPIs only"),
    store: RecordStore = Depends(get_store),
):
    """Metrics as KPI cards: label, display value and good/warning/critical status."""
    periods = _period_list(period)
    try:
        with QueryContext(period=periods, project_filter=project):
            result = MetricEngine(store.load_dataset(), get_settings()).compute(periods, project)
        return _wrap_response(kpi_cards(result, project), {"period": periods, "project": project})
    except sqlite3.Error as e:
        raise _server_error("get_metric_kpis", e) from e


@insights_router.get("/kpi-registry", response_model=InsightResponse)
def get_kpi_registry():
    """KPI display metadata and status bands."""
    return _wrap_response([k.to_dict() for k in KPI_DEFINITIONS])


@insights_router.get("/metrics/batch", response_model=InsightResponse)
def get_metrics_batch(
    period: list[str] | None = Query(None, description="Periods; all periods with data when omitted"),
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """One metrics record per period."""
    periods = _period_list(period)
    try:
        dataset = store.load_dataset()
        periods = periods or dataset.periods
        with QueryContext(period=periods, project_filter=project):
            results = MetricEngine(dataset, get_settings()).compute_batch(periods, project)
        data = {p: r.to_dict() for p, r in results.items()}
        return _wrap_response(data, {"period": periods, "project": project})
    except sqlite3.Error as e:
        raise _server_error("get_metrics_batch", e) from e


@insights_router.get("/metrics/history", response_model=InsightResponse)
def get_metric_history(
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """Stored metric snapshots for a filter, oldest period first."""
    try:
        snapshots = MetricHistory(store, get_settings()).series(project)
        return _wrap_response([s.to_dict() for s in snapshots], {"project": project})
    except sqlite3.Error as e:
        raise _server_error("get_metric_history", e) from e


@insights_router.post("/metrics/history/refresh", response_model=InsightResponse)
def refresh_metric_history(
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """Recompute and store metrics for every period with data."""
    try:
        summary = MetricHistory(store, get_settings()).refresh(project)
        return _wrap_response(summary, {"project": project})
    except sqlite3.Error as e:
        raise _server_error("refresh_metric_history", e) from e


# =============================================================================
# ANOMALIES
# =============================================================================


@insights_router.get("/anomalies", response_model=InsightResponse)
def get_anomalies(
    period: list[str] | None = Query(None, description="Period(s); whole dataset when omitted"),
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """Live findings, severity-sorted."""
    periods = _period_list(period)
    try:
        with QueryContext(period=periods, project_filter=project):
            engine = AnomalyEngine(store.load_dataset(), store.load_threshold_overrides())
            findings = engine.detect(periods, project)
        return _wrap_response([f.to_dict() for f in findings], {"period": periods, "project": project})
    except sqlite3.Error as e:
        raise _server_error("get_anomalies", e) from e


@insights_router.get("/anomalies/status", response_model=InsightResponse)
def get_anomalies_with_status(
    period: str = Query(..., pattern=PERIOD_PATTERN, description="Period (YYYY-MM)"),
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """Stored findings tagged new / recurring / resolved."""
    try:
        with QueryContext(period=period, project_filter=project):
            enriched = AnomalyHistory(store).with_status(period, project)
        return _wrap_response([a.to_dict() for a in enriched], {"period": period, "project": project})
    except sqlite3.Error as e:
        raise _server_error("get_anomalies_with_status", e) from e


@insights_router.post("/anomalies/refresh", response_model=InsightResponse)
def refresh_anomalies(
    period: str | None = Query(None, pattern=PERIOD_PATTERN, description="Period; all when omitted"),
    project: str | None = Query(None, description="Project filter (parent code)"),
    store: RecordStore = Depends(get_store),
):
    """Snapshot findings for one period, or for every period with data."""
    try:
        history = AnomalyHistory(store)
        if period:
            data = {"period": period, "outcome": history.refresh(period, project)}
        else:
            data = history.refresh_all(project)
        return _wrap_response(data, {"period": period, "project": project})
    except sqlite3.Error as e:
        raise _server_error("refresh_anomalies", e) from e


@insights_router.get("/anomaly-rules", response_model=InsightResponse)
def get_anomaly_rules(store: RecordStore = Depends(get_store)):
    """Rule registry merged with the stored overrides."""
    try:
        return _wrap_response(describe_rules(store.load_threshold_overrides()))
    except sqlite3.Error as e:
        raise _server_error("get_anomaly_rules", e) from e


# =============================================================================
# NARRATIVE
# =============================================================================


@insights_router.get("/narrative", response_model=InsightResponse)
def get_narrative(
    period: str = Query(..., pattern=PERIOD_PATTERN, description="Period (YYYY-MM)"),
    project: str | None = Query(None, description="Project filter; team narrative when omitted"),
    store: RecordStore = Depends(get_store),
):
    """Paragraph plus highlight tags."""
    try:
        with QueryContext(period=period, project_filter=project):
            generator = NarrativeGenerator(
                store.load_dataset(), store.load_narrative_config(), get_settings()
            )
            summary = generator.generate(period, project)
        return _wrap_response(summary.to_dict(), {"period": period, "project": project})
    except sqlite3.Error as e:
        raise _server_error("get_narrative", e) from e


@insights_router.get("/narrative/observations", response_model=InsightResponse)
def get_narrative_observations(store: RecordStore = Depends(get_store)):
    """Observation registry merged with the stored narrative config."""
    try:
        return _wrap_response(describe_observations(store.load_narrative_config()))
    except sqlite3.Error as e:
        raise _server_error("get_narrative_observations", e) from e


# =============================================================================
# HEALTH
# =============================================================================


@insights_router.get("/health", response_model=HealthResponse)
def health(store: RecordStore = Depends(get_store)):
    try:
        with db.get_connection(store.db_path) as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
        return {
            "status": "healthy",
            "schema_version": version,
            "periods": len(store.distinct_periods()),
            "timestamp": datetime.now(UTC).isoformat(),
        }
    except sqlite3.Error as e:
        raise _server_error("health", e) from e
