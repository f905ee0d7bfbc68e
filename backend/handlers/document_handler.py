"""Handlers that render association documents as downloads."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from document_adapters import DocumentType, get_adapter
from record_store import RecordSource, resolve_template
from render_errors import TemplateCompositionError
from request_parser import RequestParser

from .responses import bad_request, file_response, not_found, server_error

Runner = Callable[[Awaitable[Any]], Any]


class DocumentDownloadHandler:
    """Fetch a record, render its document and return it as an attachment.

    With ``record_required=False`` the document renders without a record (the
    blank membership application form) unless an ``id`` is supplied.
    """

    def __init__(
        self,
        logger,
        pdf_service,
        records: RecordSource,
        run: Runner,
        document_type: DocumentType,
        record_type: str,
        record_required: bool = True,
    ) -> None:
        self._logger = logger
        self._service = pdf_service
        self._records = records
        self._run = run
        self._adapter = get_adapter(document_type)
        self._record_type = record_type
        self._record_required = record_required

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        document_type = self._adapter.document_type.value
        try:
            parser = RequestParser(event)
            record_id = parser.param("id")
            record = None
            if not record_id and self._record_required:
                return bad_request("Missing record id")
            if record_id:
                record = self._records.fetch(self._record_type, record_id)
                if record is None:
                    self._logger.warning("%s record %s not found", self._record_type, record_id)
                    return not_found(f"{self._record_type.title()} not found")

            template = resolve_template(self._records, document_type, record)
            self._logger.info(
                "Rendering %s for %s %s (%s template)",
                document_type,
                self._record_type,
                record_id or "-",
                "configured" if template else "built-in",
            )
            result = self._run(self._adapter.render(self._service, record, template))
            return file_response(
                result,
                self._adapter.filename(record, result.file_extension or "pdf"),
                inline=parser.flag("inline"),
            )
        except TemplateCompositionError as exc:
            self._logger.error("Template for %s could not be composed: %s", document_type, exc)
            return server_error(f"Template could not be composed: {exc}")
        except Exception as exc:  # pragma: no cover - defensive
            self._logger.error("Error rendering %s: %s", document_type, exc)
            return server_error("Document generation failed")


def create_document_download_handler(
    logger,
    pdf_service,
    records: RecordSource,
    run: Runner,
    document_type: DocumentType,
    record_type: str,
    record_required: bool = True,
):
    handler = DocumentDownloadHandler(
        logger=logger,
        pdf_service=pdf_service,
        records=records,
        run=run,
        document_type=document_type,
        record_type=record_type,
        record_required=record_required,
    )
    return handler.handle
