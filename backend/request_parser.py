import base64
import json
from typing import Any, Dict, Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}


class RequestParser:
    """Read-only view over an API Gateway proxy event."""

    def __init__(self, event: Dict[str, Any]):
        self.event = event or {}
        self.headers = {str(k).lower(): v for k, v in (self.event.get("headers") or {}).items()}
        self.path_params: Dict[str, str] = dict(self.event.get("pathParameters") or {})
        self.query: Dict[str, str] = dict(self.event.get("queryStringParameters") or {})
        self.body = self._decode_body()

    def _decode_body(self) -> bytes:
        raw = self.event.get("body") or b""
        if self.event.get("isBase64Encoded"):
            return base64.b64decode(raw)
        return raw.encode("utf-8", errors="ignore") if isinstance(raw, str) else bytes(raw)

    @property
    def content_type(self) -> str:
        return str(self.headers.get("content-type") or "").split(";")[0].strip().lower()

    def json(self) -> Dict[str, Any]:
        """Return the JSON object body, ``{}`` when absent or not an object.

        Raises ``ValueError`` for a body that is present but not valid JSON.
        """
        text = self.body.decode("utf-8", "ignore").strip()
        if not text:
            return {}
        data = json.loads(text)
        return data if isinstance(data, dict) else {}

    def param(self, name: str) -> Optional[str]:
        """Path parameter, falling back to the query string."""
        value = self.path_params.get(name) or self.query.get(name)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def flag(self, name: str) -> bool:
        return str(self.query.get(name, "")).strip().lower() in _TRUE_VALUES
