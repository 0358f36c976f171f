"""
RecordStore — sqlite-backed persistence for the insight engine.

Reads the imported records and user configuration, and owns the two
snapshot tables (metric_history, anomaly_history). Snapshots are keyed by
(month, project_filter) with "" meaning all projects.

sqlite3 errors are never caught here; they propagate to the caller.
"""

import json
import logging
import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path

from insight_engine import db
from insight_engine.models import (
    AnomalySnapshot,
    AnomalyThreshold,
    DashboardConfig,
    Dataset,
    MetricSnapshot,
    MetricsResult,
    NarrativeConfig,
    PlannedAllocation,
    PlannedProjectMonth,
    Project,
    StoredAnomaly,
    TeamMember,
    TimeEntry,
)

logger = logging.getLogger(__name__)

_SNAPSHOT_TABLES = {
    "metric_history": "results_json",
    "anomaly_history": "anomalies_json",
}


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


class RecordStore:
    """
    Typed reads and writes over the insight engine database.

    Usage:
        store = RecordStore()             # default path, schema converged
        dataset = store.load_dataset()
        with store.transaction() as conn:
            store.upsert_anomaly_snapshot(conn, "2026-01", "", now, findings)
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = db.resolve_db_path(db_path)
        db.ensure_schema(self.db_path)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    @contextmanager
    def _get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        with db.get_connection(self.db_path) as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """One atomic unit: BEGIN IMMEDIATE, commit on success, rollback and re-raise on error."""
        conn = db.connect(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Imported records: reads
    # ------------------------------------------------------------------

    def load_entries(self, periods: list[str] | None = None) -> list[TimeEntry]:
        with self._get_conn() as conn:
            if periods is None:
                rows = conn.execute("SELECT * FROM timesheets ORDER BY entry_id").fetchall()
            elif not periods:
                rows = []
            else:
                rows = conn.execute(
                    f"SELECT * FROM timesheets WHERE month IN ({_placeholders(periods)}) "  # nosec B608
                    "ORDER BY entry_id",
                    list(periods),
                ).fetchall()
        return [TimeEntry.from_row(r) for r in rows]

    def distinct_periods(self) -> list[str]:
        """Every period with at least one time entry, ascending."""
        with self._get_conn() as conn:
            rows = conn.execute("SELECT DISTINCT month FROM timesheets ORDER BY month").fetchall()
        return [r["month"] for r in rows]

    def load_members(self) -> list[TeamMember]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM team_members ORDER BY person_id").fetchall()
        return [TeamMember.from_row(r) for r in rows]

    def load_projects(self) -> list[Project]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM projects ORDER BY project_id").fetchall()
        return [Project.from_row(r) for r in rows]

    def load_planned_months(self, periods: list[str] | None = None) -> list[PlannedProjectMonth]:
        with self._get_conn() as conn:
            if periods is None:
                rows = conn.execute("SELECT * FROM planned_project_months ORDER BY id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM planned_project_months "
                    f"WHERE month IN ({_placeholders(periods)}) ORDER BY id",  # nosec B608
                    list(periods),
                ).fetchall()
        return [PlannedProjectMonth.from_row(r) for r in rows]

    def load_planned_allocations(self) -> list[PlannedAllocation]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM planned_allocations ORDER BY id").fetchall()
        return [PlannedAllocation.from_row(r) for r in rows]

    def load_dashboard_config(self) -> DashboardConfig:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM dashboard_config WHERE id = 1").fetchone()
        return DashboardConfig.from_row(row) if row else DashboardConfig()

    def load_dataset(self) -> Dataset:
        """Snapshot every input record the engine aggregates over."""
        dataset = Dataset(
            entries=tuple(self.load_entries()),
            members=tuple(self.load_members()),
            projects=tuple(self.load_projects()),
            planned_months=tuple(self.load_planned_months()),
            planned_allocations=tuple(self.load_planned_allocations()),
            dashboard=self.load_dashboard_config(),
        )
        logger.debug(
            "Loaded dataset: %d entries, %d members, %d projects",
            len(dataset.entries),
            len(dataset.members),
            len(dataset.projects),
        )
        return dataset

    # ------------------------------------------------------------------
    # Imported records: writes (import-layer stand-in)
    # ------------------------------------------------------------------

    def add_entries(self, entries: Iterable[TimeEntry]) -> int:
        rows = [
            (
                e.entry_id,
                e.date,
                e.period,
                e.person,
                e.project_id,
                e.activity,
                e.hours,
                e.task,
                e.task_id,
                int(e.is_done),
            )
            for e in entries
        ]
        with self.transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO timesheets "
                "(entry_id, date, month, person, project_id, activity, hours, task, task_id, is_done) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def upsert_members(self, members: Iterable[TeamMember]) -> int:
        rows = [
            (m.person_id, m.full_name, m.role.value, m.capacity_override_hours) for m in members
        ]
        with self.transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO team_members "
                "(person_id, full_name, role, capacity_override_hours) VALUES (?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def upsert_projects(self, projects: Iterable[Project]) -> int:
        rows = [(p.project_id, p.project_name, p.type.value, p.work_class.value) for p in projects]
        with self.transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO projects (project_id, project_name, type, work_class) "
                "VALUES (?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def add_planned_months(self, planned: Iterable[PlannedProjectMonth]) -> int:
        rows = [(p.period, p.project_id, p.total_planned_hours) for p in planned]
        with self.transaction() as conn:
            conn.executemany(
                "INSERT INTO planned_project_months (month, project_id, total_planned_hours) "
                "VALUES (?, ?, ?) ON CONFLICT(month, project_id) "
                "DO UPDATE SET total_planned_hours = excluded.total_planned_hours",
                rows,
            )
        return len(rows)

    def add_planned_allocations(self, allocations: Iterable[PlannedAllocation]) -> int:
        rows = [
            (a.period, a.project_id, a.engineer, a.allocation_pct, a.planned_hours)
            for a in allocations
        ]
        with self.transaction() as conn:
            conn.executemany(
                "INSERT INTO planned_allocations "
                "(month, project_id, engineer, allocation_pct, planned_hours) VALUES (?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    # ------------------------------------------------------------------
    # User configuration
    # ------------------------------------------------------------------

    def save_dashboard_config(self, cfg: DashboardConfig) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO dashboard_config "
                "(id, team_name, std_monthly_capacity_hours, over_utilization_threshold_pct) "
                "VALUES (1, ?, ?, ?)",
                (cfg.team_name, cfg.std_monthly_capacity_hours, cfg.over_utilization_threshold_pct),
            )

    def load_threshold_overrides(self) -> dict[str, AnomalyThreshold]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM anomaly_thresholds").fetchall()
        return {r["rule_id"]: AnomalyThreshold.from_row(r) for r in rows}

    def save_threshold_override(self, override: AnomalyThreshold) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO anomaly_thresholds "
                "(rule_id, enabled, severity, thresholds_json) VALUES (?, ?, ?, ?)",
                (
                    override.rule_id,
                    int(override.enabled),
                    override.severity,
                    json.dumps(override.thresholds, sort_keys=True),
                ),
            )

    def seed_anomaly_defaults(self) -> int:
        """Insert registry defaults for every rule, only when no overrides exist yet."""
        from insight_engine.anomalies.rules import seed_anomaly_defaults

        with self.transaction() as conn:
            count = conn.execute("SELECT COUNT(*) FROM anomaly_thresholds").fetchone()[0]
            if count:
                return 0
            seeds = seed_anomaly_defaults()
            conn.executemany(
                "INSERT INTO anomaly_thresholds (rule_id, enabled, severity, thresholds_json) "
                "VALUES (?, ?, ?, ?)",
                [
                    (s.rule_id, int(s.enabled), s.severity, json.dumps(s.thresholds, sort_keys=True))
                    for s in seeds
                ],
            )
        logger.info("Seeded %d anomaly rule defaults", len(seeds))
        return len(seeds)

    def load_narrative_config(self) -> NarrativeConfig:
        with self._get_conn() as conn:
            row = conn.execute("SELECT config_json FROM narrative_config WHERE id = 1").fetchone()
        if row is None:
            return NarrativeConfig()
        return NarrativeConfig.from_dict(json.loads(row["config_json"]))

    def save_narrative_config(self, cfg: NarrativeConfig) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO narrative_config (id, config_json) VALUES (1, ?)",
                (json.dumps(cfg.to_dict()),),
            )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _snapshot_row(self, conn, table: str, month: str, project_filter: str):
        db.validate_identifier(table)
        return conn.execute(
            f"SELECT * FROM {table} WHERE month = ? AND project_filter = ?",  # nosec B608
            (month, project_filter),
        ).fetchone()

    def _snapshot_rows(self, conn, table: str, project_filter: str) -> list:
        db.validate_identifier(table)
        return conn.execute(
            f"SELECT * FROM {table} WHERE project_filter = ? ORDER BY month",  # nosec B608
            (project_filter,),
        ).fetchall()

    def _upsert_snapshot(
        self, conn, table: str, month: str, project_filter: str, computed_at: str, payload: str
    ) -> str:
        """Look up the (month, filter) key, then update in place or insert."""
        column = db.validate_identifier(_SNAPSHOT_TABLES[table])
        existing = self._snapshot_row(conn, table, month, project_filter)
        if existing is not None:
            conn.execute(
                f"UPDATE {table} SET computed_at = ?, {column} = ? WHERE id = ?",  # nosec B608
                (computed_at, payload, existing["id"]),
            )
            return "updated"
        conn.execute(
            f"INSERT INTO {table} (month, project_filter, computed_at, {column}) "  # nosec B608
            "VALUES (?, ?, ?, ?)",
            (month, project_filter, computed_at, payload),
        )
        return "inserted"

    def _delete_snapshots(
        self, conn, table: str, project_filter: str, keep_months: Iterable[str]
    ) -> int:
        db.validate_identifier(table)
        keep = set(keep_months)
        stale = [r["id"] for r in self._snapshot_rows(conn, table, project_filter) if r["month"] not in keep]
        if stale:
            conn.execute(
                f"DELETE FROM {table} WHERE id IN ({_placeholders(stale)})",  # nosec B608
                stale,
            )
        return len(stale)

    # metric_history

    def get_metric_snapshot(self, month: str, project_filter: str = "") -> MetricSnapshot | None:
        with self._get_conn() as conn:
            row = self._snapshot_row(conn, "metric_history", month, project_filter)
        return MetricSnapshot.from_row(row) if row else None

    def list_metric_snapshots(self, project_filter: str = "") -> list[MetricSnapshot]:
        with self._get_conn() as conn:
            rows = self._snapshot_rows(conn, "metric_history", project_filter)
        return [MetricSnapshot.from_row(r) for r in rows]

    def upsert_metric_snapshot(
        self,
        conn: sqlite3.Connection,
        month: str,
        project_filter: str,
        computed_at: str,
        results: MetricsResult,
    ) -> str:
        return self._upsert_snapshot(
            conn,
            "metric_history",
            month,
            project_filter,
            computed_at,
            json.dumps(results.to_dict(), sort_keys=True),
        )

    def delete_metric_snapshots_except(
        self, conn: sqlite3.Connection, project_filter: str, keep_months: Iterable[str]
    ) -> int:
        return self._delete_snapshots(conn, "metric_history", project_filter, keep_months)

    # anomaly_history

    def get_anomaly_snapshot(self, month: str, project_filter: str = "") -> AnomalySnapshot | None:
        with self._get_conn() as conn:
            row = self._snapshot_row(conn, "anomaly_history", month, project_filter)
        return AnomalySnapshot.from_row(row) if row else None

    def list_anomaly_snapshots(self, project_filter: str = "") -> list[AnomalySnapshot]:
        with self._get_conn() as conn:
            rows = self._snapshot_rows(conn, "anomaly_history", project_filter)
        return [AnomalySnapshot.from_row(r) for r in rows]

    def upsert_anomaly_snapshot(
        self,
        conn: sqlite3.Connection,
        month: str,
        project_filter: str,
        computed_at: str,
        anomalies: list[StoredAnomaly],
    ) -> str:
        return self._upsert_snapshot(
            conn,
            "anomaly_history",
            month,
            project_filter,
            computed_at,
            json.dumps([a.to_dict() for a in anomalies]),
        )

    def delete_anomaly_snapshots_except(
        self, conn: sqlite3.Connection, project_filter: str, keep_months: Iterable[str]
    ) -> int:
        return self._delete_snapshots(conn, "anomaly_history", project_filter, keep_months)
