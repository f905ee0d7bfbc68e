"""Tests for the API Gateway handlers and router."""

from __future__ import annotations

import base64
import json
import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from artifact_store import LocalArtifactStore  # noqa: E402
from browser_manager import BrowserProcessManager  # noqa: E402
from document_adapters import DocumentType  # noqa: E402
from document_formatting import OrganisationDetails  # noqa: E402
from handlers import (  # noqa: E402
    create_document_download_handler,
    create_generate_and_store_handler,
    create_generate_pdf_handler,
    create_health_handler,
)
from handlers.responses import file_response  # noqa: E402
from pdf_generation import PDFGenerationService  # noqa: E402
from pdf_settings import RenderSettings  # noqa: E402
from record_store import InMemoryRecordStore  # noqa: E402
from render_loop import BackgroundEventLoop  # noqa: E402
from render_models import ErrorKind, RenderResult  # noqa: E402
from router import LambdaRouter  # noqa: E402

from playwright_fakes import FakeLauncher  # noqa: E402

LOGGER = logging.getLogger("test_handlers")
ELECTION = {"title": "BOA Election 2026", "deadline": "2026-04-01"}


class Harness:
    def __init__(self, launcher: FakeLauncher, tmp_path: Path, enable_secondary: bool = True) -> None:
        settings = RenderSettings(content_timeout_ms=500, render_timeout_ms=500, launch_timeout_ms=500, no_sandbox=True)
        self.launcher = launcher
        self.loop = BackgroundEventLoop(name="test-render-loop")
        self.service = PDFGenerationService(
            manager=BrowserProcessManager(settings, launcher=launcher),
            organisation=OrganisationDetails(),
            enable_secondary=enable_secondary,
        )
        self.records = InMemoryRecordStore({("election", "7"): ELECTION, ("payment", "42"): {"amount": 10}})
        self.artifacts = LocalArtifactStore(base_dir=str(tmp_path / "uploads"), url_prefix="/uploads")
        self.router = LambdaRouter()
        run = lambda coro: self.loop.run(coro, timeout=10)  # noqa: E731
        self.router.add("GET", "/api/health", create_health_handler(self.service))
        self.router.add("POST", "/api/generate-pdf", create_generate_pdf_handler(LOGGER, self.service, run))
        self.router.add(
            "GET",
            "/api/membership/form",
            create_document_download_handler(
                LOGGER, self.service, self.records, run, DocumentType.MEMBERSHIP_FORM, "membership", record_required=False
            ),
        )
        self.router.add(
            "GET",
            "/api/elections/{id}/form",
            create_document_download_handler(LOGGER, self.service, self.records, run, DocumentType.ELECTION_FORM, "election"),
        )
        self.router.add(
            "POST",
            "/api/elections/{id}/pdf",
            create_generate_and_store_handler(
                LOGGER, self.service, self.records, self.artifacts, run, DocumentType.ELECTION_FORM, "election"
            ),
        )

    def request(self, method: str, path: str, body=None, query=None, content_type="application/json"):
        if body is not None and not isinstance(body, str):
            body = json.dumps(body)
        event = {
            "httpMethod": method,
            "path": path,
            "headers": {"Content-Type": content_type},
            "queryStringParameters": query,
            "body": body or "",
        }
        return self.router.handle(event)

    def close(self) -> None:
        self.loop.stop(self.service.shutdown())


@pytest.fixture
def harness(tmp_path):
    h = Harness(FakeLauncher(), tmp_path)
    yield h
    h.close()


@pytest.fixture
def offline_harness(tmp_path):
    h = Harness(FakeLauncher(error=RuntimeError("no chromium")), tmp_path, enable_secondary=False)
    yield h
    h.close()


def _decode(response) -> bytes:
    assert response["isBase64Encoded"] is True
    return base64.b64decode(response["body"])


def test_election_form_download(harness) -> None:
    """A known election is served as a PDF attachment named after its title."""

    response = harness.request("GET", "/api/elections/7/form")

    assert response["statusCode"] == 200
    headers = response["headers"]
    assert headers["Content-Type"] == "application/pdf"
    assert headers["Content-Disposition"] == 'attachment; filename="BOA_Election_2026_Nomination_Form.pdf"'
    assert headers["Cache-Control"] == "no-store"
    assert "X-Render-Warning" not in headers
    assert headers["Access-Control-Allow-Origin"] == "*"
    assert _decode(response).startswith(b"%PDF")


def test_unknown_record_is_404(harness) -> None:
    """Missing records never reach the renderer."""

    response = harness.request("GET", "/api/elections/999/form")

    assert response["statusCode"] == 404
    assert json.loads(response["body"])["error"] == "Election not found"
    assert harness.launcher.calls == 0


def test_template_lookup_prefers_record_then_global(harness) -> None:
    """Record templates win over the global template, which wins over the default."""

    harness.records.set_template("election_form", "<p>GLOBAL {{ELECTION_TITLE}}</p>")
    harness.request("GET", "/api/elections/7/form")
    harness.records.put("election", "7", dict(ELECTION, offline_form_html="<p>RECORD {{ELECTION_TITLE}}</p>"))
    harness.request("GET", "/api/elections/7/form")

    loaded = harness.launcher.browsers[0].loaded
    assert "GLOBAL BOA Election 2026" in loaded[0]
    assert "RECORD BOA Election 2026" in loaded[1]


def test_membership_form_without_record(harness) -> None:
    """The blank membership form needs no id."""

    response = harness.request("GET", "/api/membership/form")

    assert response["statusCode"] == 200
    assert 'filename="BOA_Membership_Application_Form.pdf"' in response["headers"]["Content-Disposition"]


def test_html_fallback_carries_warning(offline_harness) -> None:
    """An HTML download is labelled as a degraded result."""

    response = offline_harness.request("GET", "/api/elections/7/form")

    headers = response["headers"]
    assert response["statusCode"] == 200
    assert headers["Content-Type"] == "text/html; charset=utf-8"
    assert headers["X-Render-Warning"] == "generated in printable HTML instead of PDF"
    assert headers["Content-Disposition"].endswith('_Nomination_Form.html"')
    assert b"BOA Election 2026" in _decode(response)


def test_error_result_maps_to_json_500() -> None:
    """The error variant is never served as a document."""

    response = file_response(RenderResult.error(ErrorKind.PACKAGING, "encoding failed"), "x.pdf")

    assert response["statusCode"] == 500
    assert json.loads(response["body"])["cause"] == "packaging"


def test_generate_pdf_endpoint(harness) -> None:
    """Ad-hoc templates are composed with the supplied tokens."""

    response = harness.request(
        "POST",
        "/api/generate-pdf",
        body={"html": "<p>{{NAME}}</p>", "tokens": {"NAME": "Dr. Singh"}, "filename": "Welcome Letter.pdf"},
    )

    assert response["statusCode"] == 200
    assert response["headers"]["Content-Disposition"] == 'attachment; filename="Welcome_Letter.pdf"'
    assert "Dr. Singh" in harness.launcher.browsers[0].loaded[0]


def test_generate_pdf_validation(harness) -> None:
    """Missing or malformed templates are client errors."""

    assert harness.request("POST", "/api/generate-pdf", body={})["statusCode"] == 400
    broken = harness.request("POST", "/api/generate-pdf", body={"html": "<style>p { color: red; }<p>x</p>"})
    assert broken["statusCode"] == 400
    assert "Template could not be composed" in json.loads(broken["body"])["error"]


def test_generate_and_store(harness, tmp_path) -> None:
    """Stored artifacts are written to disk and linked back to the record."""

    response = harness.request("POST", "/api/elections/7/pdf")

    payload = json.loads(response["body"])
    assert response["statusCode"] == 200
    assert payload["kind"] == "pdf"
    assert payload["path"].startswith("/uploads/election_form_")
    assert payload["path"].endswith(".pdf")
    stored = tmp_path / "uploads" / payload["path"].rsplit("/", 1)[1]
    assert stored.read_bytes().startswith(b"%PDF")
    assert harness.records.artifacts[("election", "7")] == payload["path"]
    assert harness.records.fetch("election", "7")["artifact_path"] == payload["path"]


def test_health_and_routing(harness) -> None:
    """Health reports browser state; unknown routes and preflight are handled."""

    health = harness.request("GET", "/api/health")
    body = json.loads(health["body"])
    assert health["statusCode"] == 200
    assert body["status"] == "healthy"
    assert body["browser_available"] is None

    assert harness.request("GET", "/api/nope")["statusCode"] == 404
    preflight = harness.request("OPTIONS", "/api/elections/7/form")
    assert preflight["statusCode"] == 200
    assert "Access-Control-Allow-Methods" in preflight["headers"]


def test_router_captures_path_parameters() -> None:
    """Route templates capture named segments."""

    router = LambdaRouter()
    seen = {}

    def handler(event):
        seen.update(event["pathParameters"])
        return {"statusCode": 204}

    router.add("GET", "/api/payments/{id}/receipt", handler)
    response = router.handle({"httpMethod": "GET", "path": "/api/payments/42/receipt/"})

    assert response["statusCode"] == 204
    assert seen == {"id": "42"}
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"


def test_raw_html_body_and_inline_display(harness) -> None:
    """A text/html body is rendered as-is and ``inline=1`` switches the disposition."""

    response = harness.request(
        "POST",
        "/api/generate-pdf",
        body="<html><body><p>Plain notice</p></body></html>",
        query={"inline": "1"},
        content_type="text/html; charset=utf-8",
    )

    assert response["statusCode"] == 200
    assert response["headers"]["Content-Disposition"] == 'inline; filename="document.pdf"'
    assert "Plain notice" in harness.launcher.browsers[0].loaded[0]


def test_invalid_json_body_is_rejected(harness) -> None:
    """Unparseable JSON is a client error."""

    response = harness.request("POST", "/api/generate-pdf", body="{not json")

    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "Request body must be JSON"
