"""Record and template lookup for document downloads.

Records (seminars, elections, payments, membership applications) are stored
as JSON blobs keyed by ``(record_type, id)``.  Admin-configured templates are
kept per document type.  ``InMemoryRecordStore`` offers the same interface for
tests and the local dev server.
"""
import json
import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Tuple

# Database configuration
DB_PATH = os.environ.get('DATABASE_URL', 'documents.db')

# Record fields that may carry a record-specific template.
RECORD_TEMPLATE_FIELDS = ('offline_form_html', 'html_content')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordSource(Protocol):
    def fetch(self, record_type: str, record_id: str) -> Optional[Dict[str, Any]]: ...

    def get_template(self, document_type: str) -> Optional[str]: ...

    def save_artifact_path(self, record_type: str, record_id: str, path: str) -> None: ...


def record_template(record: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the template stored on *record* itself, if any."""
    if not record:
        return None
    for field_name in RECORD_TEMPLATE_FIELDS:
        value = record.get(field_name)
        if isinstance(value, str) and value.strip():
            return value
    return None


def resolve_template(source: RecordSource, document_type: str, record: Optional[Dict[str, Any]]) -> Optional[str]:
    """Record-specific template, then the global one; ``None`` selects the built-in default."""
    template = record_template(record)
    if template:
        return template
    return source.get_template(document_type)


class SqliteRecordStore:
    """SQLite backed ``RecordSource``."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or DB_PATH
        self.logger = logging.getLogger(__name__)

    def get_connection(self):
        """Return a new SQLite connection."""
        return sqlite3.connect(self.db_path)

    def init_db(self):
        """Create tables if they do not exist."""
        with self.get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    record_type TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    artifact_path TEXT,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (record_type, id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS templates (
                    document_type TEXT PRIMARY KEY,
                    html TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()

    def put(self, record_type: str, record_id: str, data: Dict[str, Any]) -> None:
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO records (record_type, id, data, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(record_type, id) DO UPDATE SET data=excluded.data, updated_at=excluded.updated_at
                """,
                (record_type, str(record_id), json.dumps(data, default=str), _now()),
            )
            conn.commit()

    def fetch(self, record_type: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT data, artifact_path FROM records WHERE record_type=? AND id=?",
                (record_type, str(record_id)),
            )
            row = cur.fetchone()
        if not row:
            return None
        record = json.loads(row[0])
        record.setdefault('id', record_id)
        if row[1]:
            record['artifact_path'] = row[1]
        return record

    def set_template(self, document_type: str, html: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO templates (document_type, html, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(document_type) DO UPDATE SET html=excluded.html, updated_at=excluded.updated_at
                """,
                (document_type, html, _now()),
            )
            conn.commit()

    def get_template(self, document_type: str) -> Optional[str]:
        with self.get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT html FROM templates WHERE document_type=?", (document_type,))
            row = cur.fetchone()
        return row[0] if row and row[0] and row[0].strip() else None

    def save_artifact_path(self, record_type: str, record_id: str, path: str) -> None:
        with self.get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE records SET artifact_path=?, updated_at=? WHERE record_type=? AND id=?",
                (path, _now(), record_type, str(record_id)),
            )
            conn.commit()
            updated = cur.rowcount
        if not updated:
            self.logger.warning("No %s record %s to attach artifact %s to", record_type, record_id, path)


class InMemoryRecordStore:
    """Dictionary backed ``RecordSource``."""

    def __init__(self, records: Optional[Dict[Tuple[str, str], Dict[str, Any]]] = None,
                 templates: Optional[Dict[str, str]] = None) -> None:
        self.records: Dict[Tuple[str, str], Dict[str, Any]] = {
            (rtype, str(rid)): dict(data) for (rtype, rid), data in (records or {}).items()
        }
        self.templates: Dict[str, str] = dict(templates or {})
        self.artifacts: Dict[Tuple[str, str], str] = {}

    def put(self, record_type: str, record_id: str, data: Dict[str, Any]) -> None:
        self.records[(record_type, str(record_id))] = dict(data)

    def fetch(self, record_type: str, record_id: str) -> Optional[Dict[str, Any]]:
        record = self.records.get((record_type, str(record_id)))
        if record is None:
            return None
        result = dict(record)
        result.setdefault('id', record_id)
        return result

    def set_template(self, document_type: str, html: str) -> None:
        self.templates[document_type] = html

    def get_template(self, document_type: str) -> Optional[str]:
        template = self.templates.get(document_type)
        return template if template and template.strip() else None

    def save_artifact_path(self, record_type: str, record_id: str, path: str) -> None:
        self.artifacts[(record_type, str(record_id))] = path
        record = self.records.get((record_type, str(record_id)))
        if record is not None:
            record['artifact_path'] = path
