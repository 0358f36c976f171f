"""
Anomaly history — persisted per-period findings and cross-period status.

Each (period, project filter) key holds one snapshot of stored findings.
with_status() diffs the current snapshot against earlier ones:

    new        not in the immediately preceding run of snapshots
    recurring  seen in N prior snapshots, walking back until a snapshot
               shares no identity at all with the current one
    resolved   in the immediately preceding snapshot, gone now
"""

import logging
from datetime import UTC, datetime

from insight_engine.anomalies.engine import AnomalyEngine
from insight_engine.anomalies.rules import is_rule_enabled
from insight_engine.models import AnomalyFinding, AnomalySnapshot, AnomalyStatus, EnrichedAnomaly
from insight_engine.observability import QueryContext
from insight_engine.store import RecordStore

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def recurrence_counts(current_ids: set[str], prior: list[AnomalySnapshot]) -> dict[str, int]:
    """
    Count, per current identity, the prior snapshots it appears in.

    ``prior`` is newest first. The walk stops at the first snapshot sharing
    no identity with ``current_ids``, so a full gap resets every streak.
    """
    counts: dict[str, int] = {}
    for snapshot in prior:
        overlap = current_ids & snapshot.anomaly_ids
        if not overlap:
            break
        for anomaly_id in overlap:
            counts[anomaly_id] = counts.get(anomaly_id, 0) + 1
    return counts


class AnomalyHistory:
    """
    Usage:
        history = AnomalyHistory(RecordStore())
        history.refresh("2026-02")
        for a in history.with_status("2026-02"):
            print(a.status, a.title)
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def _live(self, period: str, project_filter: str) -> list[AnomalyFinding]:
        engine = AnomalyEngine(self.store.load_dataset(), self.store.load_threshold_overrides())
        return engine.detect(period, project_filter or None)

    def refresh(self, period: str, project_filter: str | None = None) -> str:
        """
        Recompute findings for one key and upsert the snapshot.

        Returns "inserted" or "updated".
        """
        key = project_filter or ""
        with QueryContext(period=period, project_filter=key):
            stored = [f.to_stored() for f in self._live(period, key)]
            with self.store.transaction() as conn:
                outcome = self.store.upsert_anomaly_snapshot(conn, period, key, _now(), stored)
            logger.info("Anomaly snapshot %s: %d findings", outcome, len(stored))
        return outcome

    def refresh_all(self, project_filter: str | None = None) -> dict:
        """
        Refresh every period that has time entries and drop snapshots for
        periods that no longer do, in one transaction.
        """
        key = project_filter or ""
        dataset = self.store.load_dataset()
        periods = dataset.periods
        engine = AnomalyEngine(dataset, self.store.load_threshold_overrides())

        with QueryContext(period=periods, project_filter=key):
            computed_at = _now()
            summary = {"periods": periods, "inserted": 0, "updated": 0, "deleted": 0}
            with self.store.transaction() as conn:
                for period in periods:
                    stored = [f.to_stored() for f in engine.detect(period, key or None)]
                    outcome = self.store.upsert_anomaly_snapshot(conn, period, key, computed_at, stored)
                    summary[outcome] += 1
                summary["deleted"] = self.store.delete_anomaly_snapshots_except(conn, key, periods)
            logger.info(
                "Anomaly history refreshed: %d inserted, %d updated, %d deleted",
                summary["inserted"],
                summary["updated"],
                summary["deleted"],
            )
        return summary

    def prune(self, project_filter: str | None = None) -> int:
        """Delete snapshots whose period has no time entries. Returns the count."""
        key = project_filter or ""
        periods = self.store.distinct_periods()
        with self.store.transaction() as conn:
            deleted = self.store.delete_anomaly_snapshots_except(conn, key, periods)
        if deleted:
            logger.info("Pruned %d anomaly snapshots (filter=%s)", deleted, key or "all")
        return deleted

    def with_status(self, period: str, project_filter: str | None = None) -> list[EnrichedAnomaly]:
        key = project_filter or ""
        current = self.store.get_anomaly_snapshot(period, key)

        if current is None:
            logger.debug("No anomaly snapshot for %s; computing live", period)
            return [
                EnrichedAnomaly.from_stored(f.to_stored(), AnomalyStatus.NEW)
                for f in self._live(period, key)
            ]

        prior = [s for s in self.store.list_anomaly_snapshots(key) if s.month < period]
        prior.reverse()

        current_ids = current.anomaly_ids
        counts = recurrence_counts(current_ids, prior)

        result: list[EnrichedAnomaly] = []
        for stored in current.anomalies:
            count = counts.get(stored.anomaly_id, 0)
            if count > 0:
                result.append(EnrichedAnomaly.from_stored(stored, AnomalyStatus.RECURRING, count))
            else:
                result.append(EnrichedAnomaly.from_stored(stored, AnomalyStatus.NEW))

        if prior:
            for stored in prior[0].anomalies:
                if stored.anomaly_id not in current_ids:
                    result.append(EnrichedAnomaly.from_stored(stored, AnomalyStatus.RESOLVED))

        # snapshots can predate a rule being switched off
        overrides = self.store.load_threshold_overrides()
        return [a for a in result if is_rule_enabled(overrides, a.rule_id)]
