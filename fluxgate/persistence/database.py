"""SQLite database layer for run history.

Manages the SQLite connection and schema creation. Uses aiosqlite for
async access with WAL mode for concurrent read performance.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

# SQL schema for the run history database
_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    run_id           TEXT PRIMARY KEY,
    target           TEXT NOT NULL DEFAULT '',
    scope_type       TEXT NOT NULL DEFAULT 'full',
    started_at       TEXT NOT NULL,
    success          INTEGER NOT NULL DEFAULT 0,
    failed_stage     TEXT,
    duration_seconds REAL NOT NULL DEFAULT 0.0,
    scores_json      TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS stage_results (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id           TEXT NOT NULL REFERENCES runs(run_id) ON DELETE CASCADE,
    name             TEXT NOT NULL,
    status           TEXT NOT NULL,
    duration_seconds REAL NOT NULL DEFAULT 0.0,
    message          TEXT NOT NULL DEFAULT '',
    details_json     TEXT NOT NULL DEFAULT '[]',
    error            TEXT NOT NULL DEFAULT '',
    traceback        TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_stage_results_run ON stage_results(run_id);
CREATE INDEX IF NOT EXISTS idx_runs_started ON runs(started_at);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Initialize the database connection and create tables if needed.

    Creates parent directories if they don't exist, enables WAL mode
    and foreign keys, then runs the schema DDL.

    Args:
        db_path: Path to the SQLite database file. Supports ~ expansion.

    Returns:
        An open aiosqlite connection ready for use.
    """
    resolved = Path(db_path).expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)

    db = await aiosqlite.connect(str(resolved))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.debug("Run history database initialized at %s", resolved)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
