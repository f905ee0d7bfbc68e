"""Value objects passed between the rendering pipeline's components."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from pdf_settings import LayoutOptions

PDF_CONTENT_TYPE = "application/pdf"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


class ResultKind(str, Enum):
    PDF = "pdf"
    HTML = "html"
    ERROR = "error"


class ErrorKind(str, Enum):
    BROWSER_LAUNCH = "browser_launch"
    RENDER_TIMEOUT = "render_timeout"
    RENDER = "render"
    TEMPLATE_COMPOSITION = "template_composition"
    PACKAGING = "packaging"


@dataclass(frozen=True)
class RenderRequest:
    """One document generation call: template, token values and layout."""

    html_template: str
    token_values: Mapping[str, str] = field(default_factory=dict)
    layout: LayoutOptions = field(default_factory=LayoutOptions)
    document_type: str = "document"
    escape_values: bool = False
    raw_keys: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        # Freeze private copies so callers mutating their containers cannot leak in.
        object.__setattr__(self, "token_values", MappingProxyType(dict(self.token_values)))
        object.__setattr__(self, "raw_keys", frozenset(self.raw_keys))


@dataclass(frozen=True)
class RenderResult:
    """Outcome of a render: a PDF, a downloadable HTML file, or an error.

    Callers must switch on ``kind`` before treating ``content`` as a PDF.
    """

    kind: ResultKind
    content: bytes = b""
    reason: Optional[str] = None
    cause: Optional[ErrorKind] = None
    engine: Optional[str] = None

    @classmethod
    def pdf(cls, content: bytes, engine: str) -> "RenderResult":
        return cls(kind=ResultKind.PDF, content=bytes(content), engine=engine)

    @classmethod
    def html(cls, content: bytes, reason: str) -> "RenderResult":
        return cls(kind=ResultKind.HTML, content=bytes(content), reason=reason, engine="html")

    @classmethod
    def error(cls, cause: ErrorKind, reason: Optional[str] = None) -> "RenderResult":
        return cls(kind=ResultKind.ERROR, cause=cause, reason=reason)

    @property
    def is_pdf(self) -> bool:
        return self.kind is ResultKind.PDF

    @property
    def content_type(self) -> Optional[str]:
        if self.kind is ResultKind.PDF:
            return PDF_CONTENT_TYPE
        if self.kind is ResultKind.HTML:
            return HTML_CONTENT_TYPE
        return None

    @property
    def file_extension(self) -> Optional[str]:
        if self.kind is ResultKind.ERROR:
            return None
        return self.kind.value


__all__ = [
    "ErrorKind",
    "HTML_CONTENT_TYPE",
    "LayoutOptions",
    "PDF_CONTENT_TYPE",
    "RenderRequest",
    "RenderResult",
    "ResultKind",
]
