"""
Centralized Database Access for the insight engine.

Single source of truth for:
- DB path resolution
- Connection factory
- Schema convergence (declared in insight_engine.schema)

No direct sqlite3.connect() elsewhere.
"""

import logging
import re
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from insight_engine import paths, schema

logger = logging.getLogger(__name__)

# ============================================================
# SQL IDENTIFIER VALIDATION
# ============================================================

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Validate that *name* is a safe SQL identifier (table or column name).

    Returns the name unchanged if valid; raises ``ValueError`` otherwise.
    """
    if not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


# ============================================================
# CONNECTION FACTORY
# ============================================================


def resolve_db_path(db_path: str | Path | None = None) -> Path:
    """Explicit path wins; otherwise INSIGHT_ENGINE_DB, then the home default."""
    if db_path is not None:
        return Path(db_path)
    return paths.db_path()


def connect(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Open a connection with Row factory and foreign keys on."""
    path = resolve_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def get_connection(
    db_path: str | Path | None = None,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Get a database connection, committed and closed on exit.

    Usage:
        with get_connection() as conn:
            conn.execute(...)
    """
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


# ============================================================
# SCHEMA CONVERGENCE
# ============================================================

# Clauses valid in CREATE TABLE but not in ALTER TABLE ADD COLUMN
_STRIP_PATTERNS = [
    re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE),
    re.compile(r"\bAUTOINCREMENT\b", re.IGNORECASE),
    re.compile(r"\bUNIQUE\b", re.IGNORECASE),
    re.compile(r"\bCHECK\s*\([^)]*\)", re.IGNORECASE),
]


def _alter_safe(col_ddl: str) -> str:
    safe = col_ddl
    for pattern in _STRIP_PATTERNS:
        safe = pattern.sub("", safe)
    safe = re.sub(r"\s{2,}", " ", safe).strip()
    if re.search(r"\bNOT\s+NULL\b", safe, re.IGNORECASE) and not re.search(
        r"\bDEFAULT\b", safe, re.IGNORECASE
    ):
        safe += " DEFAULT ''"
    return safe


def _build_create_sql(table_name: str, table_def: dict) -> str:
    parts = [f"    {validate_identifier(col)} {ddl}" for col, ddl in table_def["columns"]]
    for unique_cols in table_def.get("unique", []):
        parts.append(f"    UNIQUE({', '.join(validate_identifier(c) for c in unique_cols)})")
    body = ",\n".join(parts)
    return f"CREATE TABLE IF NOT EXISTS [{table_name}] (\n{body}\n)"


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,))
    return cursor.fetchone() is not None


def get_table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    validate_identifier(table)
    return {row[1] for row in conn.execute(f"PRAGMA table_info([{table}])").fetchall()}


def converge(conn: sqlite3.Connection) -> dict:
    """
    Bring a database up to schema.TABLES / schema.INDEXES.

    Creates missing tables, adds missing columns, creates missing indexes
    and stamps PRAGMA user_version. Never drops anything; idempotent.
    """
    results: dict = {"tables_created": [], "columns_added": [], "indexes_created": []}

    for table_name, table_def in schema.TABLES.items():
        validate_identifier(table_name)
        if not table_exists(conn, table_name):
            conn.execute(_build_create_sql(table_name, table_def))
            results["tables_created"].append(table_name)
            continue
        existing = get_table_columns(conn, table_name)
        for col_name, col_ddl in table_def["columns"]:
            if col_name in existing:
                continue
            conn.execute(
                f"ALTER TABLE [{table_name}] ADD COLUMN [{validate_identifier(col_name)}] "
                f"{_alter_safe(col_ddl)}"
            )
            results["columns_added"].append(f"{table_name}.{col_name}")

    existing_indexes = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")
    }
    for idx_name, idx_table, idx_cols, idx_where in schema.INDEXES:
        if idx_name in existing_indexes:
            continue
        where_clause = f" WHERE {idx_where}" if idx_where else ""
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS [{validate_identifier(idx_name)}] "
            f"ON [{validate_identifier(idx_table)}]({idx_cols}){where_clause}"
        )
        results["indexes_created"].append(idx_name)

    conn.execute(f"PRAGMA user_version = {int(schema.SCHEMA_VERSION)}")
    results["schema_version"] = schema.SCHEMA_VERSION

    if results["tables_created"] or results["columns_added"] or results["indexes_created"]:
        logger.info(
            "Schema converged: %d tables, %d columns, %d indexes created",
            len(results["tables_created"]),
            len(results["columns_added"]),
            len(results["indexes_created"]),
        )
    return results


def ensure_schema(db_path: str | Path | None = None) -> dict:
    """Converge the database at *db_path* (or the default) and commit."""
    with get_connection(db_path) as conn:
        return converge(conn)
