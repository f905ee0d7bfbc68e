"""Factories for Lambda request handlers."""

from .document_handler import create_document_download_handler
from .generate_handler import (
    create_generate_and_store_handler,
    create_generate_pdf_handler,
    create_health_handler,
)

__all__ = [
    "create_document_download_handler",
    "create_generate_and_store_handler",
    "create_generate_pdf_handler",
    "create_health_handler",
]
