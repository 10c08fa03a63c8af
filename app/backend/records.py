"""
Collector record store (sqlite3).

Schema mirrors the collector's wire contract:

    id, url, title, aadhar, pan, name, email, phone,
    raw_data (JSON), validation_status (JSON), created_at, updated_at

Timestamps are ISO-8601 UTC strings with millisecond precision, so they sort
and compare lexicographically.
"""

import json
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from formharvest.ir import utc_now_iso
from formharvest.logger import get_logger

logger = get_logger(__name__)

COLUMNS = (
    "id", "url", "title", "aadhar", "pan", "name", "email", "phone",
    "raw_data", "validation_status", "created_at", "updated_at",
)
WRITABLE_COLUMNS = ("url", "title", "aadhar", "pan", "name", "email", "phone", "raw_data", "validation_status")
JSON_COLUMNS = ("raw_data", "validation_status")
SORTABLE_COLUMNS = ("created_at", "updated_at", "url", "name")


def to_iso(value: datetime) -> str:
    """Render *value* in the stored timestamp format (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RecordStore:
    """Persistence for records accepted by the collector."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.RLock()
        if db_path != ":memory:":
            Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS form_data (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    url TEXT NOT NULL,
                    title TEXT,
                    aadhar TEXT,
                    pan TEXT,
                    name TEXT,
                    email TEXT,
                    phone TEXT,
                    raw_data TEXT NOT NULL,
                    validation_status TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_form_data_url ON form_data(url);
                CREATE INDEX IF NOT EXISTS idx_form_data_created_at ON form_data(created_at);
                CREATE INDEX IF NOT EXISTS idx_form_data_aadhar ON form_data(aadhar);
                CREATE INDEX IF NOT EXISTS idx_form_data_pan ON form_data(pan);
                CREATE INDEX IF NOT EXISTS idx_form_data_email ON form_data(email);
                """
            )
            self._conn.commit()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        record = {key: row[key] for key in COLUMNS}
        for key in JSON_COLUMNS:
            if record[key] is not None:
                record[key] = json.loads(record[key])
        return record

    @staticmethod
    def _encode(column: str, value: Any) -> Any:
        if column in JSON_COLUMNS and value is not None:
            return json.dumps(value, ensure_ascii=False)
        return value

    # -- queries -------------------------------------------------------------

    def ping(self) -> str:
        """Round-trip to the database; returns the current timestamp."""
        self._conn.execute("SELECT 1").fetchone()
        return utc_now_iso()

    def create(self, data: Dict[str, Any], validation_status: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now_iso()
        values = {column: data.get(column) for column in WRITABLE_COLUMNS}
        values["raw_data"] = data.get("raw_data") if data.get("raw_data") is not None else []
        values["validation_status"] = validation_status
        with self._lock:
            cursor = self._conn.execute(
                "INSERT INTO form_data (url, title, aadhar, pan, name, email, phone, raw_data, "
                "validation_status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                tuple(self._encode(c, values[c]) for c in WRITABLE_COLUMNS) + (now, now),
            )
            self._conn.commit()
            record_id = cursor.lastrowid
        logger.info("Collector stored record id=%d url=%s", record_id, values["url"])
        return self.get(record_id)

    def get(self, record_id: int) -> Optional[Dict[str, Any]]:
        row = self._conn.execute("SELECT * FROM form_data WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_dict(row) if row else None

    def list_records(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        url: Optional[str] = None,
        aadhar: Optional[str] = None,
        pan: Optional[str] = None,
        email: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Filtered, sorted page of records plus the total match count."""
        conditions: List[str] = []
        params: List[Any] = []
        if url:
            conditions.append("LOWER(url) LIKE ?")
            params.append(f"%{url.lower()}%")
        for column, value in (("aadhar", aadhar), ("pan", pan), ("email", email)):
            if value:
                conditions.append(f"{column} = ?")
                params.append(value)
        if start_date:
            conditions.append("created_at >= ?")
            params.append(to_iso(start_date))
        if end_date:
            conditions.append("created_at <= ?")
            params.append(to_iso(end_date))

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        if sort_by not in SORTABLE_COLUMNS:
            sort_by = "created_at"
        direction = "ASC" if sort_order.lower() == "asc" else "DESC"

        total = self._conn.execute(f"SELECT COUNT(*) FROM form_data {where}", params).fetchone()[0]
        rows = self._conn.execute(
            f"SELECT * FROM form_data {where} ORDER BY {sort_by} {direction}, id {direction} LIMIT ? OFFSET ?",
            params + [limit, (page - 1) * limit],
        ).fetchall()
        return [self._row_to_dict(row) for row in rows], int(total)

    def latest_per_identity(self) -> List[Dict[str, Any]]:
        """Newest record for each distinct (url, aadhar, pan, email)."""
        rows = self._conn.execute(
            """
            SELECT * FROM form_data AS f
            WHERE f.id = (
                SELECT g.id FROM form_data AS g
                WHERE g.url = f.url AND g.aadhar IS f.aadhar AND g.pan IS f.pan AND g.email IS f.email
                ORDER BY g.created_at DESC, g.id DESC
                LIMIT 1
            )
            ORDER BY f.url, f.aadhar, f.pan, f.email, f.created_at DESC
            """
        ).fetchall()
        return [self._row_to_dict(row) for row in rows]

    def update(
        self,
        record_id: int,
        changes: Dict[str, Any],
        validation_status: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Apply *changes*; returns None when the record does not exist."""
        values = {c: v for c, v in changes.items() if c in WRITABLE_COLUMNS}
        if validation_status:
            values["validation_status"] = validation_status
        with self._lock:
            if self.get(record_id) is None:
                return None
            if not values:
                return self.get(record_id)
            assignments = ", ".join(f"{column} = ?" for column in values)
            params = [self._encode(column, value) for column, value in values.items()]
            self._conn.execute(
                f"UPDATE form_data SET {assignments}, updated_at = ? WHERE id = ?",
                params + [utc_now_iso(), record_id],
            )
            self._conn.commit()
        return self.get(record_id)

    def delete(self, record_id: int) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM form_data WHERE id = ?", (record_id,))
            self._conn.commit()
        return cursor.rowcount > 0

    def summary(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.now(timezone.utc)
        since = {
            "records_last_24h": to_iso(now - timedelta(hours=24)),
            "records_last_7d": to_iso(now - timedelta(days=7)),
            "records_last_30d": to_iso(now - timedelta(days=30)),
        }
        row = self._conn.execute(
            """
            SELECT
                COUNT(*) AS total_records,
                COUNT(CASE WHEN created_at >= :d1 THEN 1 END) AS records_last_24h,
                COUNT(CASE WHEN created_at >= :d7 THEN 1 END) AS records_last_7d,
                COUNT(CASE WHEN created_at >= :d30 THEN 1 END) AS records_last_30d,
                COUNT(CASE WHEN aadhar IS NOT NULL AND aadhar != '' THEN 1 END) AS records_with_aadhar,
                COUNT(CASE WHEN pan IS NOT NULL AND pan != '' THEN 1 END) AS records_with_pan,
                COUNT(CASE WHEN email IS NOT NULL AND email != '' THEN 1 END) AS records_with_email,
                COUNT(CASE WHEN phone IS NOT NULL AND phone != '' THEN 1 END) AS records_with_phone
            FROM form_data
            """,
            {"d1": since["records_last_24h"], "d7": since["records_last_7d"], "d30": since["records_last_30d"]},
        ).fetchone()
        return {key: int(row[key]) for key in row.keys()}

    def close(self) -> None:
        with self._lock:
            self._conn.close()
