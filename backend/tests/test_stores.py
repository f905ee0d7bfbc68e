"""Tests for artifact persistence and record lookup."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from artifact_store import LocalArtifactStore, S3ArtifactStore, artifact_filename  # noqa: E402
from record_store import InMemoryRecordStore, SqliteRecordStore, resolve_template  # noqa: E402
from render_models import ErrorKind, RenderResult  # noqa: E402


class RecordingS3Client:
    def __init__(self) -> None:
        self.calls = []

    def put_object(self, **kwargs) -> dict:
        self.calls.append(kwargs)
        return {}


def test_artifact_filename() -> None:
    """Artifacts are named by document type and millisecond timestamp."""

    assert artifact_filename("election_form", 1767225600000, "pdf") == "election_form_1767225600000.pdf"
    assert artifact_filename("seminar form", 5, ".html") == "seminar_form_5.html"


def test_local_store_writes_file(tmp_path) -> None:
    """Local artifacts land in the configured directory."""

    store = LocalArtifactStore(base_dir=str(tmp_path), url_prefix="/uploads/")

    path = store.save("seminar_form", RenderResult.html(b"<p>x</p>", reason="offline"), timestamp_ms=99)

    assert path == "/uploads/seminar_form_99.html"
    assert (tmp_path / "seminar_form_99.html").read_bytes() == b"<p>x</p>"


def test_store_rejects_error_results(tmp_path) -> None:
    """Failed renders are never persisted."""

    store = LocalArtifactStore(base_dir=str(tmp_path))

    with pytest.raises(ValueError):
        store.save("election_form", RenderResult.error(ErrorKind.PACKAGING))


def test_s3_store_uploads_with_content_type() -> None:
    """S3 artifacts keep the result's content type."""

    client = RecordingS3Client()
    store = S3ArtifactStore(client, "docs-bucket", prefix="generated")

    path = store.save("election_form", RenderResult.pdf(b"%PDF-1.4", engine="chromium"), timestamp_ms=1)

    assert path == "s3://docs-bucket/generated/election_form_1.pdf"
    assert client.calls == [
        {
            "Bucket": "docs-bucket",
            "Key": "generated/election_form_1.pdf",
            "Body": b"%PDF-1.4",
            "ContentType": "application/pdf",
        }
    ]


def test_sqlite_record_store_round_trip(tmp_path) -> None:
    """Records, templates and artifact paths persist in SQLite."""

    store = SqliteRecordStore(str(tmp_path / "documents.db"))
    store.init_db()
    store.put("seminar", "3", {"name": "Annual CME"})
    store.set_template("seminar_form", "<p>{{SEMINAR_NAME}}</p>")
    store.save_artifact_path("seminar", "3", "/uploads/seminar_form_1.pdf")

    record = store.fetch("seminar", "3")

    assert record == {"name": "Annual CME", "id": "3", "artifact_path": "/uploads/seminar_form_1.pdf"}
    assert store.fetch("seminar", "4") is None
    assert store.get_template("seminar_form") == "<p>{{SEMINAR_NAME}}</p>"
    assert store.get_template("election_form") is None


def test_resolve_template_order() -> None:
    """Record templates beat the global template; blanks are ignored."""

    store = InMemoryRecordStore(templates={"seminar_form": "GLOBAL"})

    assert resolve_template(store, "seminar_form", {"html_content": "RECORD"}) == "RECORD"
    assert resolve_template(store, "seminar_form", {"offline_form_html": "  "}) == "GLOBAL"
    assert resolve_template(store, "election_form", None) is None


def test_sqlite_timestamps_are_utc(tmp_path) -> None:
    """Stored timestamps carry an explicit UTC offset."""

    store = SqliteRecordStore(str(tmp_path / "documents.db"))
    store.init_db()
    store.put("election", "7", {"title": "BOA Election 2026"})
    store.set_template("election_form", "<p>{{ELECTION_TITLE}}</p>")

    with store.get_connection() as conn:
        record_stamp = conn.execute("SELECT updated_at FROM records").fetchone()[0]
        template_stamp = conn.execute("SELECT updated_at FROM templates").fetchone()[0]

    assert record_stamp.endswith("+00:00")
    assert template_stamp.endswith("+00:00")
