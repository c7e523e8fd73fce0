"""
Database component.

Owns the sqlite connection and exposes the query executor every other
component uses: ``query(text, params)`` returning the rows as plain dicts.
Errors surface as exceptions, never as sentinel values.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Sequence

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.events import EventBus

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    last_login TEXT
);

CREATE TABLE IF NOT EXISTS activity_types (
    activity_type_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    unit TEXT NOT NULL,
    is_public INTEGER NOT NULL DEFAULT 0,
    category TEXT NOT NULL DEFAULT 'other',
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS activity_logs (
    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    activity_type_id INTEGER NOT NULL
        REFERENCES activity_types(activity_type_id) ON DELETE CASCADE,
    count REAL NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    logged_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_activity_logs_user_activity
    ON activity_logs (user_id, activity_type_id, logged_at);

CREATE TABLE IF NOT EXISTS goals (
    goal_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    activity_type_id INTEGER NOT NULL
        REFERENCES activity_types(activity_type_id) ON DELETE CASCADE,
    name TEXT,
    description TEXT,
    target_count REAL NOT NULL CHECK (target_count > 0),
    period_type TEXT NOT NULL,
    start_date TEXT,
    end_date TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    is_completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS achievement_types (
    achievement_type_id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT UNIQUE,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    icon TEXT,
    criteria TEXT NOT NULL DEFAULT '{}',
    point_value INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS user_achievements (
    user_achievement_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    achievement_type_id INTEGER NOT NULL
        REFERENCES achievement_types(achievement_type_id) ON DELETE CASCADE,
    earned_at TEXT NOT NULL,
    custom_message TEXT,
    UNIQUE (user_id, achievement_type_id)
);

CREATE TABLE IF NOT EXISTS user_points (
    user_id INTEGER PRIMARY KEY,
    points INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS notifications (
    notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'info',
    is_read INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS revoked_tokens (
    jti TEXT PRIMARY KEY,
    user_id INTEGER NOT NULL,
    revoked_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS password_resets (
    token TEXT PRIMARY KEY,
    user_id INTEGER NOT NULL,
    expires_at TEXT NOT NULL,
    used INTEGER NOT NULL DEFAULT 0
);
"""


class DatabaseNotConnectedError(Exception):
    """Raised when a query is attempted before init or after shutdown."""
    pass


@dataclass
class QueryResult:
    """Result of a single statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0
    lastrowid: int | None = None

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


class Database(Component):
    """
    sqlite-backed query executor.

    The connection runs in autocommit mode; ``transaction()`` groups
    statements explicitly.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        path: str | None = None,
    ):
        super().__init__("Database", event_bus=event_bus)
        self.settings = settings or get_settings()
        self.path = path or self.settings.database_path
        self.connection: sqlite3.Connection | None = None
        self.connection_attempts = 0

    @property
    def connected(self) -> bool:
        return self.connection is not None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _init(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.database_max_retries + 1),
            wait=wait_fixed(self.settings.database_retry_delay),
            retry=retry_if_exception_type(sqlite3.OperationalError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                self._connect()

        try:
            self.connection.executescript(SCHEMA)
        except sqlite3.Error as e:
            # A failed init never reaches _shutdown, so release the handle here
            logger.error(f"[Database] Schema bootstrap failed for {self.path}: {e}")
            self.connection.close()
            self.connection = None
            raise

        logger.info(f"Database initialized at {self.path}")

    def _connect(self) -> None:
        self.connection_attempts += 1
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        connection = None
        try:
            connection = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
            connection.execute("SELECT 1")
        except sqlite3.Error as e:
            logger.warning(
                f"[Database] Connection attempt {self.connection_attempts} to {self.path} failed: {e}"
            )
            if connection is not None:
                connection.close()
            raise

        self.connection = connection

    async def _shutdown(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None
            logger.info("[Database] Connection closed")

    # =========================================================================
    # Query executor
    # =========================================================================

    def query(self, text: str, params: Sequence[Any] | dict[str, Any] = ()) -> QueryResult:
        """Run one parameterized statement."""
        if self.connection is None:
            raise DatabaseNotConnectedError("Database not connected")

        start = time.perf_counter()
        cursor = self.connection.execute(text, params)
        rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
        duration_ms = (time.perf_counter() - start) * 1000

        if duration_ms > self.settings.database_slow_query_ms:
            logger.warning(f"[Database] Slow query ({duration_ms:.0f}ms): {text.strip()[:200]}")

        return QueryResult(rows=rows, rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Run the enclosed queries atomically."""
        if self.connection is None:
            raise DatabaseNotConnectedError("Database not connected")

        self.connection.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self.connection.execute("ROLLBACK")
            raise
        else:
            self.connection.execute("COMMIT")

    def get_status(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "path": self.path,
            "attempts": self.connection_attempts,
        }
