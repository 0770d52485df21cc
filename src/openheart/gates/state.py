"""Session-scoped state storage.

Each browsing session owns a small key/value namespace. The gates only
read and write through the ``SessionStore`` protocol, so the backing
store can be swapped without touching gate logic. Sessions idle longer
than the configured TTL are purged by ``SessionPurger``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import sqlite3
import threading
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol, runtime_checkable

from openheart.db.connection import get_connection, init_db

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 24


class SessionStoreError(Exception):
    """Session store could not be read or written."""

    pass


def new_session_id() -> str:
    """Generate an opaque, unguessable session identifier."""
    return secrets.token_urlsafe(SESSION_ID_BYTES)


def _timestamp(moment: datetime) -> str:
    # Fixed width so stored values compare correctly as text
    return moment.isoformat(timespec="microseconds")


@runtime_checkable
class SessionStore(Protocol):
    """Key/value storage scoped to a browsing session."""

    def get(self, session_id: str, key: str) -> str | None:
        """Return the stored value, or None when absent."""
        ...

    def items(self, session_id: str) -> dict[str, str]:
        """Return every value stored for the session."""
        ...

    def set(self, session_id: str, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def delete(self, session_id: str, key: str) -> None:
        """Remove a single key. Missing keys are ignored."""
        ...

    def clear(self, session_id: str) -> None:
        """Drop everything stored for the session."""
        ...

    def purge_idle(self, max_idle: timedelta, now: datetime | None = None) -> int:
        """Drop sessions not written to within ``max_idle``.

        Returns:
            Number of sessions removed
        """
        ...


class MemorySessionStore:
    """Process-local session store. State is lost on restart."""

    def __init__(self):
        self._sessions: dict[str, dict[str, str]] = {}
        self._last_write: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str, key: str) -> str | None:
        with self._lock:
            return self._sessions.get(session_id, {}).get(key)

    def items(self, session_id: str) -> dict[str, str]:
        with self._lock:
            return dict(self._sessions.get(session_id, {}))

    def set(self, session_id: str, key: str, value: str) -> None:
        with self._lock:
            self._sessions.setdefault(session_id, {})[key] = value
            self._last_write[session_id] = datetime.now()

    def delete(self, session_id: str, key: str) -> None:
        with self._lock:
            values = self._sessions.get(session_id)
            if values is None:
                return
            values.pop(key, None)
            if not values:
                self._drop(session_id)

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._drop(session_id)

    def purge_idle(self, max_idle: timedelta, now: datetime | None = None) -> int:
        cutoff = (now or datetime.now()) - max_idle
        with self._lock:
            stale = [sid for sid, at in self._last_write.items() if at < cutoff]
            for session_id in stale:
                self._drop(session_id)
        return len(stale)

    def _drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_write.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class SqliteSessionStore:
    """SQLite-backed session store.

    Opens a short-lived connection per operation so the store can be shared
    between the event loop and worker threads.
    """

    def __init__(self, db_path: Path):
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def init_schema(self) -> None:
        """Create the session table if needed."""
        try:
            with closing(self._connect()) as conn:
                init_db(conn)
        except sqlite3.Error as e:
            raise SessionStoreError(f"Cannot initialize session store: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self._db_path)
        except (sqlite3.Error, OSError) as e:
            raise SessionStoreError(f"Cannot open session store: {e}") from e

    def get(self, session_id: str, key: str) -> str | None:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    """
                    SELECT value FROM session_values
                    WHERE session_id = ? AND key = ?
                    """,
                    (session_id, key),
                ).fetchone()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Session read failed: {e}") from e
        return row["value"] if row else None

    def items(self, session_id: str) -> dict[str, str]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    "SELECT key, value FROM session_values WHERE session_id = ?",
                    (session_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Session read failed: {e}") from e
        return {row["key"]: row["value"] for row in rows}

    def set(self, session_id: str, key: str, value: str) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    """
                    INSERT INTO session_values (session_id, key, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(session_id, key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (session_id, key, value, _timestamp(datetime.now())),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Session write failed: {e}") from e

    def delete(self, session_id: str, key: str) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    "DELETE FROM session_values WHERE session_id = ? AND key = ?",
                    (session_id, key),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Session delete failed: {e}") from e

    def clear(self, session_id: str) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    "DELETE FROM session_values WHERE session_id = ?",
                    (session_id,),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Session clear failed: {e}") from e
        logger.debug("Cleared session state")

    def purge_idle(self, max_idle: timedelta, now: datetime | None = None) -> int:
        cutoff = _timestamp((now or datetime.now()) - max_idle)
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    """
                    SELECT session_id FROM session_values
                    GROUP BY session_id
                    HAVING MAX(updated_at) < ?
                    """,
                    (cutoff,),
                ).fetchall()
                purged = [row["session_id"] for row in rows]
                conn.executemany(
                    "DELETE FROM session_values WHERE session_id = ?",
                    [(session_id,) for session_id in purged],
                )
                conn.commit()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Session purge failed: {e}") from e
        return len(purged)


@dataclass
class BrowserSession:
    """A store bound to one session id."""

    session_id: str
    store: SessionStore
    is_new: bool = False

    def get(self, key: str) -> str | None:
        return self.store.get(self.session_id, key)

    def set(self, key: str, value: str) -> None:
        self.store.set(self.session_id, key, value)

    def delete(self, key: str) -> None:
        self.store.delete(self.session_id, key)

    def clear(self) -> None:
        self.store.clear(self.session_id)

    def regenerate(self) -> str:
        """Move this session's values to a fresh id and drop the old one.

        Marks the session as new so the middleware issues the new cookie.

        Returns:
            The new session id
        """
        values = self.store.items(self.session_id)
        fresh_id = new_session_id()
        for key, value in values.items():
            self.store.set(fresh_id, key, value)
        self.store.clear(self.session_id)
        self.session_id = fresh_id
        self.is_new = True
        return fresh_id


class SessionPurger:
    """Background task that drops idle sessions from a store."""

    def __init__(
        self,
        store: SessionStore,
        max_idle: timedelta,
        interval_seconds: float,
    ):
        self._store = store
        self._max_idle = max_idle
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    def purge_once(self) -> int:
        """Run a single purge. Store failures are logged, not raised."""
        try:
            purged = self._store.purge_idle(self._max_idle)
        except SessionStoreError as e:
            logger.error(f"Session purge error: {e}")
            return 0
        if purged:
            logger.info(f"Purged {purged} idle sessions")
        return purged

    async def start(self) -> None:
        """Purge now, then keep purging every interval."""
        if self._task is not None:
            return
        self.purge_once()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Session purge started (interval: {self._interval}s)")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                self.purge_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Session purge error: {e}")


def create_session_store(backend: str, db_path: Path | None = None) -> SessionStore:
    """Build the configured session store.

    Args:
        backend: "memory" or "sqlite"
        db_path: SQLite file, required for the sqlite backend

    Raises:
        ValueError: Unknown backend or missing path
    """
    if backend == "memory":
        return MemorySessionStore()
    if backend == "sqlite":
        if db_path is None:
            raise ValueError("sqlite session backend requires a db_path")
        store = SqliteSessionStore(db_path)
        store.init_schema()
        logger.info(f"Session store: sqlite at {db_path}")
        return store
    raise ValueError(f"Unknown session backend: {backend}")
