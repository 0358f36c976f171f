"""
Declarative Schema Definition — the single source of truth for the record store.

Every table and index the insight engine reads or writes lives here.
db.converge() reads this and brings any SQLite database up to date.

Adding a column = add one line here. Convergence handles the rest.
"""

from collections import OrderedDict

# =============================================================================
# Schema version: bump when you change this file
# =============================================================================
SCHEMA_VERSION = 3

# =============================================================================
# Table Definitions
#
# Format: TABLES[name] = {"columns": [(col_name, col_ddl), ...],
#                         "unique": [(col, ...), ...]}   # optional
# =============================================================================

TABLES: dict[str, dict] = OrderedDict()

# ---------------------------------------------------------------------------
# Imported records (read-only for the engine)
# ---------------------------------------------------------------------------
TABLES["timesheets"] = {
    "columns": [
        ("entry_id", "INTEGER PRIMARY KEY"),
        ("date", "TEXT NOT NULL"),
        ("month", "TEXT NOT NULL"),  # YYYY-MM, derived from date at import
        ("person", "TEXT NOT NULL"),
        ("project_id", "TEXT NOT NULL DEFAULT ''"),
        ("activity", "TEXT NOT NULL DEFAULT ''"),
        ("hours", "REAL NOT NULL DEFAULT 0"),
        ("task", "TEXT NOT NULL DEFAULT ''"),
        ("task_id", "INTEGER NOT NULL DEFAULT 0"),
        ("is_done", "INTEGER NOT NULL DEFAULT 0"),
    ],
}

TABLES["team_members"] = {
    "columns": [
        ("person_id", "INTEGER PRIMARY KEY"),
        ("full_name", "TEXT NOT NULL UNIQUE"),
        ("role", "TEXT NOT NULL DEFAULT 'Engineer'"),
        ("capacity_override_hours", "REAL NOT NULL DEFAULT 0"),
    ],
}

TABLES["projects"] = {
    "columns": [
        ("project_id", "TEXT PRIMARY KEY"),
        ("project_name", "TEXT NOT NULL DEFAULT ''"),
        ("type", "TEXT NOT NULL DEFAULT 'Sustaining'"),
        ("work_class", "TEXT NOT NULL DEFAULT 'Planned'"),
    ],
}

TABLES["planned_allocations"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT"),
        ("month", "TEXT NOT NULL"),
        ("project_id", "TEXT NOT NULL"),
        ("engineer", "TEXT NOT NULL"),
        ("allocation_pct", "REAL NOT NULL DEFAULT 0"),
        ("planned_hours", "REAL NOT NULL DEFAULT 0"),
    ],
}

TABLES["planned_project_months"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT"),
        ("month", "TEXT NOT NULL"),
        ("project_id", "TEXT NOT NULL"),
        ("total_planned_hours", "REAL NOT NULL DEFAULT 0"),
    ],
    "unique": [("month", "project_id")],
}

# ---------------------------------------------------------------------------
# User configuration (singletons and overrides)
# ---------------------------------------------------------------------------
TABLES["dashboard_config"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY CHECK (id = 1)"),
        ("team_name", "TEXT NOT NULL DEFAULT ''"),
        ("std_monthly_capacity_hours", "REAL NOT NULL DEFAULT 140"),
        ("over_utilization_threshold_pct", "REAL NOT NULL DEFAULT 1.0"),
    ],
}

TABLES["anomaly_thresholds"] = {
    "columns": [
        ("rule_id", "TEXT PRIMARY KEY"),
        ("enabled", "INTEGER NOT NULL DEFAULT 1"),
        ("severity", "TEXT"),
        ("thresholds_json", "TEXT NOT NULL DEFAULT '{}'"),
    ],
}

TABLES["narrative_config"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY CHECK (id = 1)"),
        ("config_json", "TEXT NOT NULL"),
    ],
}

# ---------------------------------------------------------------------------
# Snapshots owned by the engine
# ---------------------------------------------------------------------------
TABLES["metric_history"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT"),
        ("month", "TEXT NOT NULL"),
        ("project_filter", "TEXT NOT NULL DEFAULT ''"),
        ("computed_at", "TEXT NOT NULL"),
        ("results_json", "TEXT NOT NULL"),
    ],
    "unique": [("month", "project_filter")],
}

TABLES["anomaly_history"] = {
    "columns": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT"),
        ("month", "TEXT NOT NULL"),
        ("project_filter", "TEXT NOT NULL DEFAULT ''"),
        ("computed_at", "TEXT NOT NULL"),
        ("anomalies_json", "TEXT NOT NULL"),
    ],
    "unique": [("month", "project_filter")],
}

# =============================================================================
# Index Definitions
#
# Format: (index_name, table, columns, where_clause_or_None)
# =============================================================================

INDEXES: list[tuple[str, str, str, str | None]] = [
    ("idx_timesheets_month", "timesheets", "month", None),
    ("idx_timesheets_person", "timesheets", "person", None),
    ("idx_timesheets_project", "timesheets", "project_id", None),
    ("idx_planned_months_month", "planned_project_months", "month", None),
    ("idx_planned_alloc_month", "planned_allocations", "month", None),
    ("idx_metric_history_filter", "metric_history", "project_filter, month", None),
    ("idx_anomaly_history_filter", "anomaly_history", "project_filter, month", None),
]
