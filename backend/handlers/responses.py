"""API Gateway response builders shared by the document handlers."""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict, Optional

from render_models import RenderResult, ResultKind

HTML_FALLBACK_WARNING = "generated in printable HTML instead of PDF"


def json_response(status: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def bad_request(message: str) -> Dict[str, Any]:
    return json_response(400, {"error": message})


def not_found(message: str) -> Dict[str, Any]:
    return json_response(404, {"error": message})


def server_error(message: str) -> Dict[str, Any]:
    return json_response(500, {"error": message})


def file_response(
    result: RenderResult,
    filename: str,
    extra_headers: Optional[Dict[str, str]] = None,
    inline: bool = False,
) -> Dict[str, Any]:
    """Map a PDF or HTML ``RenderResult`` to a base64 download response.

    ``inline`` asks the browser to display the document instead of saving it.

    An ``error`` result becomes a JSON 500 so a failed render is never served
    as a document.
    """
    if result.kind is ResultKind.ERROR:
        cause = result.cause.value if result.cause else "unknown"
        return json_response(500, {"error": "Document generation failed", "cause": cause, "detail": result.reason})

    headers = {
        "Content-Type": result.content_type,
        "Content-Disposition": f'{"inline" if inline else "attachment"}; filename="{filename}"',
        "Cache-Control": "no-store",
        "X-Content-SHA256": hashlib.sha256(result.content).hexdigest(),
        "X-Original-Length": str(len(result.content)),
        "X-Render-Engine": result.engine or "",
    }
    if result.kind is ResultKind.HTML:
        headers["X-Render-Warning"] = HTML_FALLBACK_WARNING
    if extra_headers:
        headers.update(extra_headers)
    return {
        "statusCode": 200,
        "headers": headers,
        "body": base64.b64encode(result.content).decode("utf-8"),
        "isBase64Encoded": True,
    }
