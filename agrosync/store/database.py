"""
SQLite database shared by the record store, the audit log and the sync cursors.

One file holds everything so that a record write and its audit entry commit
in the same transaction.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS records (
        entity TEXT NOT NULL,
        id TEXT NOT NULL,
        server_id TEXT,
        sync_status TEXT NOT NULL,
        last_updated INTEGER,
        last_modified TEXT NOT NULL,
        revision INTEGER NOT NULL DEFAULT 1,
        payload TEXT NOT NULL,
        PRIMARY KEY (entity, id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_records_status
    ON records(entity, sync_status)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_records_modified
    ON records(entity, last_modified)
    """,
    """
    CREATE TABLE IF NOT EXISTS deleted_records (
        entity TEXT NOT NULL,
        id TEXT NOT NULL,
        server_id TEXT,
        deleted_at TEXT NOT NULL,
        PRIMARY KEY (entity, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        user_id TEXT NOT NULL,
        action TEXT NOT NULL,
        entity TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        details TEXT NOT NULL,
        previous_data TEXT,
        new_data TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
)


class LocalDatabase:
    """
    Thread-safe access to the local SQLite file.

    This class provides:
    - Schema creation on first use
    - Re-entrant transactions (inner blocks join the outer one)
    - Rollback and StorageError on any SQLite failure
    - A small key/value table for persisted cursors
    """

    DEFAULT_DB_PATH = "agrosync.db"

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the database.

        Args:
            db_path: Path to the SQLite database file. If None, uses default.
                     Use ":memory:" for in-memory database (useful for testing).
        """
        self.db_path = db_path or self.DEFAULT_DB_PATH
        self._lock = threading.RLock()
        self._is_memory = self.db_path == ":memory:"
        self._shared_conn: Optional[sqlite3.Connection] = None
        self._active_conn: Optional[sqlite3.Connection] = None
        self._init_database()

    def _init_database(self) -> None:
        """Initialize the SQLite database schema."""
        with self.transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        # For in-memory databases, reuse the same connection
        if self._is_memory:
            if self._shared_conn is None:
                self._shared_conn = sqlite3.connect(":memory:", check_same_thread=False)
                self._shared_conn.row_factory = sqlite3.Row
            return self._shared_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block inside one SQLite transaction.

        Nested calls from the same thread reuse the open connection and commit
        together with the outermost block.

        Raises:
            StorageError: If SQLite fails; the whole transaction is rolled back.
        """
        with self._lock:
            if self._active_conn is not None:
                yield self._active_conn
                return

            conn = self._get_connection()
            self._active_conn = conn
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error(f"Local storage failure, transaction rolled back: {e}")
                raise StorageError(f"Local storage write failed: {e}") from e
            except Exception:
                conn.rollback()
                raise
            finally:
                self._active_conn = None
                if not self._is_memory:
                    conn.close()

    def get_meta(self, key: str) -> Optional[str]:
        """Read a persisted value, or None if never written."""
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT value FROM sync_meta WHERE key = ?", (key,)
            ).fetchone()
            return row['value'] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Persist a value under ``key``, replacing any previous one."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO sync_meta (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value)
            )

    def close(self) -> None:
        """Close the database and any open connections."""
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None
