"""Handlers for ad-hoc HTML rendering and generate-and-store."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from artifact_store import ArtifactStore
from document_adapters import DocumentType, get_adapter
from filename_utils import download_filename, sanitize_filename
from pdf_settings import LayoutOptions
from record_store import RecordSource, resolve_template
from render_errors import TemplateCompositionError
from render_models import RenderRequest, ResultKind
from request_parser import RequestParser

from .responses import HTML_FALLBACK_WARNING, bad_request, file_response, json_response, not_found, server_error

Runner = Callable[[Awaitable[Any]], Any]


class GeneratePdfHandler:
    """Render a caller supplied template.

    Body: ``{"html": str, "tokens": {...}, "options": {...}, "filename": str,
    "escape": bool}``.  A ``text/html`` body is taken as the template itself,
    rendered without tokens.
    """

    def __init__(self, logger, pdf_service, run: Runner) -> None:
        self._logger = logger
        self._service = pdf_service
        self._run = run

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        try:
            parser = RequestParser(event)
            if parser.content_type == "text/html":
                data = {"html": parser.body.decode("utf-8", "replace")}
            else:
                try:
                    data = parser.json()
                except ValueError:
                    return bad_request("Request body must be JSON")

            template = data.get("html") or data.get("template")
            if not isinstance(template, str) or not template.strip():
                return bad_request("html is required")
            tokens = data.get("tokens") or data.get("data") or {}
            options = data.get("options") or data.get("layout") or {}
            if not isinstance(tokens, dict) or not isinstance(options, dict):
                return bad_request("tokens and options must be objects")

            request = RenderRequest(
                html_template=template,
                token_values={str(k): "" if v is None else str(v) for k, v in tokens.items()},
                layout=LayoutOptions.from_mapping(options, base=self._service.default_layout),
                document_type=str(data.get("document_type") or "document"),
                escape_values=bool(data.get("escape", False)),
            )
            result = self._run(self._service.render(request))
            base = sanitize_filename(str(data.get("filename") or ""), default="document")
            filename = download_filename(base, None, result.file_extension or "pdf")
            return file_response(result, filename, inline=parser.flag("inline"))
        except TemplateCompositionError as exc:
            self._logger.error("Submitted template could not be composed: %s", exc)
            return bad_request(f"Template could not be composed: {exc}")
        except Exception as exc:  # pragma: no cover - defensive
            self._logger.error("Error in handle_generate_pdf: %s", exc)
            return server_error("Document generation failed")


class GenerateAndStoreHandler:
    """Render a record's document and persist it through the artifact store."""

    def __init__(
        self,
        logger,
        pdf_service,
        records: RecordSource,
        artifacts: ArtifactStore,
        run: Runner,
        document_type: DocumentType,
        record_type: str,
    ) -> None:
        self._logger = logger
        self._service = pdf_service
        self._records = records
        self._artifacts = artifacts
        self._run = run
        self._adapter = get_adapter(document_type)
        self._record_type = record_type

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        document_type = self._adapter.document_type.value
        try:
            record_id = RequestParser(event).param("id")
            if not record_id:
                return bad_request("Missing record id")
            record = self._records.fetch(self._record_type, record_id)
            if record is None:
                return not_found(f"{self._record_type.title()} not found")

            template = resolve_template(self._records, document_type, record)
            result = self._run(self._adapter.render(self._service, record, template))
            if result.kind is ResultKind.ERROR:
                return file_response(result, "")

            path = self._artifacts.save(document_type, result)
            self._records.save_artifact_path(self._record_type, record_id, path)
            payload = {
                "path": path,
                "kind": result.kind.value,
                "engine": result.engine,
                "filename": self._adapter.filename(record, result.file_extension),
            }
            if result.kind is ResultKind.HTML:
                payload["warning"] = HTML_FALLBACK_WARNING
                payload["reason"] = result.reason
            self._logger.info("Stored %s for %s %s at %s", document_type, self._record_type, record_id, path)
            return json_response(200, payload)
        except TemplateCompositionError as exc:
            self._logger.error("Template for %s could not be composed: %s", document_type, exc)
            return server_error(f"Template could not be composed: {exc}")
        except Exception as exc:  # pragma: no cover - defensive
            self._logger.error("Error storing %s: %s", document_type, exc)
            return server_error("Document generation failed")


def create_generate_pdf_handler(logger, pdf_service, run: Runner):
    handler = GeneratePdfHandler(logger=logger, pdf_service=pdf_service, run=run)
    return handler.handle


def create_generate_and_store_handler(
    logger,
    pdf_service,
    records: RecordSource,
    artifacts: ArtifactStore,
    run: Runner,
    document_type: DocumentType,
    record_type: str,
):
    handler = GenerateAndStoreHandler(
        logger=logger,
        pdf_service=pdf_service,
        records=records,
        artifacts=artifacts,
        run=run,
        document_type=document_type,
        record_type=record_type,
    )
    return handler.handle


def create_health_handler(pdf_service, service_name: str = "boa-document-service"):
    def handle_health(event: Dict[str, Any]) -> Dict[str, Any]:
        """Report service health and the state of the shared browser."""
        payload = {"status": "healthy", "service": service_name}
        payload.update(pdf_service.health())
        return json_response(200, payload)

    return handle_health
