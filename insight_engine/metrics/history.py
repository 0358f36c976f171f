"""
Metric history — one persisted metrics snapshot per (period, project filter).

refresh() is idempotent: running it twice leaves the same rows behind
(only computed_at moves).
"""

import logging
from datetime import UTC, datetime

from insight_engine.metrics.engine import MetricEngine
from insight_engine.models import MetricSnapshot
from insight_engine.observability import QueryContext
from insight_engine.settings import EngineSettings
from insight_engine.store import RecordStore

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class MetricHistory:
    def __init__(self, store: RecordStore, settings: EngineSettings | None = None):
        self.store = store
        self.settings = settings

    def refresh(self, project_filter: str | None = None) -> dict:
        """
        Recompute every period that has time entries and store the results.

        All upserts and the stale-period deletion run in one transaction.

        Returns:
            {"periods": [...], "inserted": n, "updated": n, "deleted": n}
        """
        key = project_filter or ""
        dataset = self.store.load_dataset()
        periods = dataset.periods

        with QueryContext(period=periods, project_filter=key):
            results = MetricEngine(dataset, self.settings).compute_batch(periods, key or None)
            computed_at = _now()
            summary = {"periods": periods, "inserted": 0, "updated": 0, "deleted": 0}

            with self.store.transaction() as conn:
                for period, result in results.items():
                    outcome = self.store.upsert_metric_snapshot(conn, period, key, computed_at, result)
                    summary[outcome] += 1
                summary["deleted"] = self.store.delete_metric_snapshots_except(conn, key, periods)

            logger.info(
                "Metric history refreshed: %d inserted, %d updated, %d deleted",
                summary["inserted"],
                summary["updated"],
                summary["deleted"],
            )
        return summary

    def series(self, project_filter: str | None = None) -> list[MetricSnapshot]:
        """Snapshots for a filter, oldest period first."""
        return self.store.list_metric_snapshots(project_filter or "")

    def get(self, period: str, project_filter: str | None = None) -> MetricSnapshot | None:
        return self.store.get_metric_snapshot(period, project_filter or "")
