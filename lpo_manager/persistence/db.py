"""
Database connection, transactions and initialization.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from .schema import all_schema_sql

logger = logging.getLogger(__name__)


# Default DB path (project root / data / lpo.db)
def _default_db_path() -> Path:
    return Path(__file__).resolve().parent.parent.parent / "data" / "lpo.db"


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection in autocommit mode.
    Multi-statement writes must go through transaction().
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    BEGIN IMMEDIATE ... COMMIT, ROLLBACK on any exception.
    Nested use joins the enclosing transaction.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def to_db_time(dt: datetime) -> str:
    """UTC ISO-8601 with second precision; sorts lexicographically."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def from_db_time(s: str | None) -> datetime | None:
    if s is None:
        return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def init_db(
    db_path: str | Path | None = None,
    roster_path: str | Path | None = None,
) -> None:
    """
    Create or ensure all tables exist.
    If roster_path is provided and no pro teams exist yet, also load the
    pro rosters (uses lpo_manager.roster_db).
    """
    path = Path(db_path) if db_path else get_db_path()
    conn = get_connection(path)
    try:
        conn.executescript(all_schema_sql())
        if roster_path:
            from lpo_manager.roster_db import load_rosters_into_db
            created = load_rosters_into_db(conn, Path(roster_path))
            if created:
                logger.info("Seeded %d pro teams from %s", created, roster_path)
    finally:
        conn.close()
