"""
SQLite-backed local session store.

Each capture produces one session row:

    id          INTEGER PRIMARY KEY AUTOINCREMENT
    timestamp   ISO-8601 creation time (indexed, used for ordering)
    url         page URL at capture time (indexed, used for dedup lookups)
    form_data   JSON array of validated fields (wire format)
    synced      0/1, flipped only after the collector accepted the session
    duplicate   0/1, decided once at insert time

The store is an explicit handle: every component that needs it receives it
as an argument. Writes (insert, mark-synced, clear-all) are serialized by an
internal lock and run inside an IMMEDIATE transaction; the dedup check and
the insert share one transaction so a session is never visible before its
duplicate flag is final.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from formharvest.config import get_settings
from formharvest.dedup import is_duplicate
from formharvest.ir import Session, ValidatedField, utc_now_iso
from formharvest.logger import get_logger

logger = get_logger(__name__)

DuplicateCheck = Callable[[str, Sequence[ValidatedField], List[Session]], bool]


class StoreError(RuntimeError):
    """Raised when the underlying database rejects a read or write."""


class SessionStore:
    """
    Durable, ordered collection of capture sessions.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.RLock()
        self.sync_guard = threading.Lock()
        try:
            if db_path != ":memory:":
                Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._init_db()
        except sqlite3.Error as exc:
            logger.error("Failed to open session store %s: %s", db_path, exc, exc_info=True)
            raise StoreError(f"Failed to open session store: {exc}") from exc

    @classmethod
    def from_settings(cls) -> "SessionStore":
        return cls(get_settings().STORE_PATH)

    def _init_db(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    url TEXT NOT NULL,
                    form_data TEXT NOT NULL,
                    synced INTEGER NOT NULL DEFAULT 0,
                    duplicate INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_sessions_timestamp ON sessions(timestamp);
                CREATE INDEX IF NOT EXISTS idx_sessions_url ON sessions(url);
                """
            )

    # -- helpers -------------------------------------------------------------

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self._conn
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                logger.error("Session store write failed: %s", exc, exc_info=True)
                raise StoreError(f"Session store write failed: {exc}") from exc

    def _read(self, query: str, params: Sequence = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            logger.error("Session store read failed: %s", exc, exc_info=True)
            raise StoreError(f"Session store read failed: {exc}") from exc

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            timestamp=row["timestamp"],
            url=row["url"],
            fields=[ValidatedField.model_validate(item) for item in json.loads(row["form_data"])],
            synced=bool(row["synced"]),
            duplicate=bool(row["duplicate"]),
        )

    # -- writes --------------------------------------------------------------

    def add_session(
        self,
        url: str,
        fields: Sequence[ValidatedField],
        timestamp: Optional[str] = None,
        duplicate_check: DuplicateCheck = is_duplicate,
    ) -> Session:
        """
        Insert a new session, deciding its duplicate flag in the same transaction.

        Raises ValueError for an empty field list; sessions without a valid
        field are never persisted.
        """
        if not fields:
            raise ValueError("A session needs at least one valid field")

        form_data = json.dumps([field.to_wire() for field in fields], ensure_ascii=False)
        timestamp = timestamp or utc_now_iso()

        with self._write() as conn:
            rows = conn.execute(
                "SELECT * FROM sessions WHERE url = ? AND synced = 1 ORDER BY id", (url,)
            ).fetchall()
            history = [self._row_to_session(row) for row in rows]
            duplicate = bool(duplicate_check(url, fields, history))
            cursor = conn.execute(
                "INSERT INTO sessions (timestamp, url, form_data, synced, duplicate) VALUES (?, ?, ?, 0, ?)",
                (timestamp, url, form_data, int(duplicate)),
            )
            session_id = cursor.lastrowid

        logger.info(
            "Stored session id=%d url=%s fields=%d duplicate=%s",
            session_id, url, len(fields), duplicate,
        )
        return Session(
            id=session_id,
            timestamp=timestamp,
            url=url,
            fields=list(fields),
            synced=False,
            duplicate=duplicate,
        )

    def mark_synced(self, session_id: int) -> bool:
        """Flip ``synced`` to true; returns False when the session no longer exists."""
        with self._write() as conn:
            cursor = conn.execute("UPDATE sessions SET synced = 1 WHERE id = ?", (session_id,))
            updated = cursor.rowcount > 0
        if updated:
            logger.debug("Marked session id=%d as synced", session_id)
        else:
            logger.warning("mark_synced: session id=%d not found", session_id)
        return updated

    def clear_all(self) -> int:
        """Delete every session. Returns the number of rows removed."""
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM sessions")
            removed = cursor.rowcount
        logger.info("Cleared %d stored session(s)", removed)
        return removed

    # -- reads ---------------------------------------------------------------

    def get(self, session_id: int) -> Optional[Session]:
        rows = self._read("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return self._row_to_session(rows[0]) if rows else None

    def list_sessions(self, only_unsynced: bool = False) -> List[Session]:
        """
        Sessions newest-first. With ``only_unsynced`` only sessions that are
        neither synced nor duplicates are returned.
        """
        query = "SELECT * FROM sessions"
        if only_unsynced:
            query += " WHERE synced = 0 AND duplicate = 0"
        query += " ORDER BY timestamp DESC, id DESC"
        return [self._row_to_session(row) for row in self._read(query)]

    def pending_sessions(self) -> List[Session]:
        """Sessions eligible for sync, oldest-first by insertion order."""
        rows = self._read("SELECT * FROM sessions WHERE synced = 0 AND duplicate = 0 ORDER BY id ASC")
        return [self._row_to_session(row) for row in rows]

    def history(self) -> List[Session]:
        """All sessions in insertion order."""
        return [self._row_to_session(row) for row in self._read("SELECT * FROM sessions ORDER BY id ASC")]

    def count(self) -> int:
        return int(self._read("SELECT COUNT(*) AS n FROM sessions")[0]["n"])

    # -- lifecycle -----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SessionStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
