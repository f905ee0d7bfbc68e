"""Persistence of generated documents ("generate-and-store")."""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional, Protocol

from filename_utils import sanitize_filename
from render_models import RenderResult


def artifact_filename(document_type: str, timestamp_ms: Optional[int] = None, extension: str = "pdf") -> str:
    """``{document-type}_{timestamp-ms}.{ext}``"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    safe_type = sanitize_filename(document_type, default="document").replace(" ", "_")
    return f"{safe_type}_{timestamp_ms}.{extension.lstrip('.')}"


class ArtifactStore(Protocol):
    def save(self, document_type: str, result: RenderResult, timestamp_ms: Optional[int] = None) -> str: ...


def _require_content(result: RenderResult) -> str:
    extension = result.file_extension
    if extension is None:
        raise ValueError(f"Cannot store a failed render ({result.cause.value if result.cause else 'error'})")
    return extension


class LocalArtifactStore:
    """Writes artifacts below ``base_dir`` and returns their public path."""

    def __init__(self, base_dir: Optional[str] = None, url_prefix: Optional[str] = None, logger=None) -> None:
        self.base_dir = Path(base_dir or os.environ.get("ARTIFACT_DIR", "uploads"))
        self.url_prefix = (url_prefix or os.environ.get("ARTIFACT_URL_PREFIX", "/uploads")).rstrip("/")
        self._logger = logger or logging.getLogger(__name__)

    def save(self, document_type: str, result: RenderResult, timestamp_ms: Optional[int] = None) -> str:
        name = artifact_filename(document_type, timestamp_ms, _require_content(result))
        self.base_dir.mkdir(parents=True, exist_ok=True)
        target = self.base_dir / name
        target.write_bytes(result.content)
        self._logger.info("Stored %s artifact at %s (%d bytes)", document_type, target, len(result.content))
        return f"{self.url_prefix}/{name}"


class S3ArtifactStore:
    """Uploads artifacts to S3 and returns ``s3://bucket/key``."""

    def __init__(self, s3_client, bucket: str, prefix: Optional[str] = None, logger=None) -> None:
        if not bucket:
            raise ValueError("S3 bucket is required")
        self._s3 = s3_client
        self._bucket = bucket
        self._prefix = (prefix if prefix is not None else os.environ.get("S3_PREFIX", "documents")).strip("/")
        self._logger = logger or logging.getLogger(__name__)

    def save(self, document_type: str, result: RenderResult, timestamp_ms: Optional[int] = None) -> str:
        name = artifact_filename(document_type, timestamp_ms, _require_content(result))
        key = f"{self._prefix}/{name}" if self._prefix else name
        self._s3.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=result.content,
            ContentType=result.content_type,
        )
        self._logger.info("Uploaded %s artifact to s3://%s/%s", document_type, self._bucket, key)
        return f"s3://{self._bucket}/{key}"


def create_artifact_store(s3_client=None, logger=None) -> ArtifactStore:
    """S3 when ``S3_BUCKET`` is configured, the local ``ARTIFACT_DIR`` otherwise."""
    bucket = os.environ.get("S3_BUCKET")
    if bucket and s3_client is not None:
        return S3ArtifactStore(s3_client, bucket, logger=logger)
    return LocalArtifactStore(logger=logger)


__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "S3ArtifactStore",
    "artifact_filename",
    "create_artifact_store",
]
