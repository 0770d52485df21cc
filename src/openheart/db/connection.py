"""SQLite connection management."""

import sqlite3
from pathlib import Path


def get_connection(db_path: Path) -> sqlite3.Connection:
    """
    Get a SQLite connection with row factory and WAL mode.

    The parent directory is created on first use. ``:memory:`` is passed
    through untouched.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize database schema."""
    conn.executescript("""
        -- session_values: key/value pairs scoped to one browsing session
        CREATE TABLE IF NOT EXISTS session_values (
            id INTEGER PRIMARY KEY,
            session_id TEXT NOT NULL,
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(session_id, key)
        );

        CREATE INDEX IF NOT EXISTS idx_session_values_session
            ON session_values(session_id);
    """)
    conn.commit()
