import atexit
import functools
import logging
import os
from typing import Any, Dict

import boto3

from artifact_store import ArtifactStore, create_artifact_store
from document_adapters import DocumentType
from handlers import (
    create_document_download_handler,
    create_generate_and_store_handler,
    create_generate_pdf_handler,
    create_health_handler,
)
from logging_utils import configure_logging
from pdf_generation import PDFGenerationService
from record_store import RecordSource, SqliteRecordStore
from render_loop import BackgroundEventLoop
from router import LambdaRouter


configure_logging()
logger = logging.getLogger(__name__)

S3_BUCKET = os.environ.get('S3_BUCKET')

# record type, document type, route for downloads
DOCUMENT_ROUTES = (
    ("seminar", DocumentType.SEMINAR_FORM, "/api/seminars/{id}/form"),
    ("election", DocumentType.ELECTION_FORM, "/api/elections/{id}/form"),
    ("payment", DocumentType.PAYMENT_RECEIPT, "/api/payments/{id}/receipt"),
)
# record type, document type, route for generate-and-store
STORED_DOCUMENT_ROUTES = (
    ("seminar", DocumentType.SEMINAR_FORM, "/api/seminars/{id}/pdf"),
    ("election", DocumentType.ELECTION_FORM, "/api/elections/{id}/pdf"),
)


def render_timeout_seconds(service: PDFGenerationService) -> float:
    """Upper bound for one request: launch, load and print plus slack."""
    settings = service.settings
    total_ms = settings.launch_timeout_ms + settings.content_timeout_ms + settings.render_timeout_ms
    return total_ms / 1000.0 + 15.0


def register_routes(
    router: LambdaRouter,
    service: PDFGenerationService,
    records: RecordSource,
    artifacts: ArtifactStore,
    run,
) -> LambdaRouter:
    router.add("GET", "/api/health", create_health_handler(service))
    router.add("POST", "/api/generate-pdf", create_generate_pdf_handler(logger=logger, pdf_service=service, run=run))
    router.add(
        "GET",
        "/api/membership/form",
        create_document_download_handler(
            logger=logger,
            pdf_service=service,
            records=records,
            run=run,
            document_type=DocumentType.MEMBERSHIP_FORM,
            record_type="membership",
            record_required=False,
        ),
    )
    for record_type, document_type, path in DOCUMENT_ROUTES:
        router.add(
            "GET",
            path,
            create_document_download_handler(
                logger=logger,
                pdf_service=service,
                records=records,
                run=run,
                document_type=document_type,
                record_type=record_type,
            ),
        )
    for record_type, document_type, path in STORED_DOCUMENT_ROUTES:
        router.add(
            "POST",
            path,
            create_generate_and_store_handler(
                logger=logger,
                pdf_service=service,
                records=records,
                artifacts=artifacts,
                run=run,
                document_type=document_type,
                record_type=record_type,
            ),
        )
    return router


# =====================
# Service wiring
# =====================

pdf_service = PDFGenerationService(logger=logging.getLogger('pdf_generation'))
render_loop = BackgroundEventLoop(logger=logger)
run_on_render_loop = functools.partial(render_loop.run, timeout=render_timeout_seconds(pdf_service))

record_store = SqliteRecordStore()
record_store.init_db()
artifact_store = create_artifact_store(boto3.client('s3') if S3_BUCKET else None, logger=logger)

router = register_routes(LambdaRouter(), pdf_service, record_store, artifact_store, run_on_render_loop)


@atexit.register
def _shutdown_browser() -> None:
    render_loop.stop(pdf_service.shutdown())


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main Lambda entry point. The browser stays warm between invocations."""
    try:
        return router.handle(event)
    finally:
        logger.info("Lambda handler completed")
