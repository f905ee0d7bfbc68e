"""Document rendering with a three tier fallback chain.

Rendering is modelled as a small state machine::

    ATTEMPT_PRIMARY    Chromium via Playwright            -> DONE(pdf) | ATTEMPT_SECONDARY
    ATTEMPT_SECONDARY  FPDF text-only rendering           -> DONE(pdf) | ATTEMPT_TERTIARY
    ATTEMPT_TERTIARY   the composed HTML as a download    -> DONE(html)

Each state is handled by its own method returning ``(next_state, result)`` so
every transition can be exercised on its own.  ``PDFGenerationService`` wires
the chain to the template compositor and owns the shared browser.
"""
from __future__ import annotations

import asyncio
import io
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from pypdf import PdfReader

from browser_manager import BrowserProcessManager
from document_formatting import OrganisationDetails
from pdf_settings import LayoutOptions, RenderSettings, resolve_pdf_layout_settings
from render_engine import RenderEngine
from render_errors import DocumentRenderError, PackagingError, RenderError
from render_models import ErrorKind, RenderRequest, RenderResult
from template_compositor import TOKEN_RE, compose
from text_pdf import TextPdfGenerator


class PrimaryRenderer(Protocol):
    name: str

    async def render_pdf(self, html: str, layout: LayoutOptions) -> bytes: ...


class SecondaryRenderer(Protocol):
    name: str

    def render(self, html: str, layout: LayoutOptions) -> bytes: ...


class ChainState(str, Enum):
    ATTEMPT_PRIMARY = "attempt_primary"
    ATTEMPT_SECONDARY = "attempt_secondary"
    ATTEMPT_TERTIARY = "attempt_tertiary"
    DONE = "done"


Transition = Tuple[ChainState, Optional[RenderResult]]


def validate_pdf_bytes(data: bytes) -> int:
    """Return the page count of *data*, raising ``RenderError`` if it is not a PDF."""
    if not data or not bytes(data[:5]).startswith(b"%PDF"):
        raise RenderError("Renderer output is not a PDF document")
    try:
        pages = len(PdfReader(io.BytesIO(data)).pages)
    except Exception as exc:
        raise RenderError(f"Renderer produced an unreadable PDF: {exc}") from exc
    if pages < 1:
        raise RenderError("Renderer produced a PDF without pages")
    return pages


def package_html(html: str) -> bytes:
    """Encode the composed document for download as a UTF-8 HTML file.

    Unencodable code points (lone surrogates from JSON input) become ``?``.
    """
    if not isinstance(html, str):
        raise PackagingError(f"Document must be text, got {type(html).__name__}")
    return html.encode("utf-8", errors="replace")


class FallbackChainController:
    """Runs the rendering tiers in order until one produces a download."""

    def __init__(
        self,
        primary: Optional[PrimaryRenderer],
        secondary: Optional[SecondaryRenderer],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.logger = logger or logging.getLogger(__name__)
        self._handlers: Dict[ChainState, Callable[[str, LayoutOptions, List[str]], Awaitable[Transition]]] = {
            ChainState.ATTEMPT_PRIMARY: self.attempt_primary,
            ChainState.ATTEMPT_SECONDARY: self.attempt_secondary,
            ChainState.ATTEMPT_TERTIARY: self.attempt_tertiary,
        }

    async def run(self, html: str, layout: LayoutOptions) -> RenderResult:
        state = ChainState.ATTEMPT_PRIMARY
        failures: List[str] = []
        result: Optional[RenderResult] = None
        start = time.monotonic()
        while state is not ChainState.DONE:
            self.logger.debug("Fallback chain entering %s", state.value)
            state, result = await self._handlers[state](html, layout, failures)
        self.logger.info(
            "Document rendered as %s by %s in %.2fs",
            result.kind.value,
            result.engine,
            time.monotonic() - start,
        )
        return result

    async def attempt_primary(self, html: str, layout: LayoutOptions, failures: List[str]) -> Transition:
        if self.primary is None:
            failures.append("primary renderer disabled")
            return ChainState.ATTEMPT_SECONDARY, None
        try:
            data = await self.primary.render_pdf(html, layout)
            validate_pdf_bytes(data)
        except DocumentRenderError as exc:
            self.logger.warning("%s rendering failed (%s): %s", self.primary.name, type(exc).__name__, exc)
            failures.append(f"{self.primary.name}: {exc}")
            return ChainState.ATTEMPT_SECONDARY, None
        except Exception as exc:
            self.logger.exception("Unexpected %s rendering failure", self.primary.name)
            failures.append(f"{self.primary.name}: {exc}")
            return ChainState.ATTEMPT_SECONDARY, None
        return ChainState.DONE, RenderResult.pdf(data, engine=self.primary.name)

    async def attempt_secondary(self, html: str, layout: LayoutOptions, failures: List[str]) -> Transition:
        if self.secondary is None:
            failures.append("fallback PDF generator disabled")
            return ChainState.ATTEMPT_TERTIARY, None
        self.logger.info("Falling back to %s text-only PDF generation", self.secondary.name)
        try:
            data = await asyncio.to_thread(self.secondary.render, html, layout)
            validate_pdf_bytes(data)
        except Exception as exc:
            self.logger.error("%s fallback PDF generation failed: %s", self.secondary.name, exc)
            failures.append(f"{self.secondary.name}: {exc}")
            return ChainState.ATTEMPT_TERTIARY, None
        return ChainState.DONE, RenderResult.pdf(data, engine=self.secondary.name)

    async def attempt_tertiary(self, html: str, layout: LayoutOptions, failures: List[str]) -> Transition:
        reason = "PDF rendering failed"
        if failures:
            reason = f"{reason}: {'; '.join(failures)}"
        try:
            content = package_html(html)
        except PackagingError as exc:
            self.logger.error("HTML packaging failed: %s", exc)
            return ChainState.DONE, RenderResult.error(ErrorKind.PACKAGING, f"{reason}; packaging: {exc}")
        self.logger.warning("Returning printable HTML instead of PDF (%s)", reason)
        return ChainState.DONE, RenderResult.html(content, reason=reason)


class PDFGenerationService:
    """Compose templates and render them through the fallback chain.

    Owns the ``BrowserProcessManager`` unless one is injected.
    """

    def __init__(
        self,
        manager: Optional[BrowserProcessManager] = None,
        settings: Optional[RenderSettings] = None,
        organisation: Optional[OrganisationDetails] = None,
        secondary: Optional[SecondaryRenderer] = None,
        enable_secondary: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.settings = settings or (manager.settings if manager else RenderSettings.from_env())
        self.organisation = organisation or OrganisationDetails.from_env()
        self.default_layout = resolve_pdf_layout_settings()
        self.manager = manager or BrowserProcessManager(self.settings, logger=self.logger)
        self.engine = RenderEngine(self.manager, self.settings, logger=self.logger)
        if secondary is None and enable_secondary:
            secondary = TextPdfGenerator(letterhead=self.organisation.name, logger=self.logger)
        self.chain = FallbackChainController(self.engine, secondary, logger=self.logger)

    # Public API -----------------------------------------------------
    async def render(self, request: RenderRequest) -> RenderResult:
        """Compose *request* and render it.

        ``TemplateCompositionError`` propagates; every rendering failure is
        absorbed by the fallback chain.
        """
        self.logger.info(
            "Rendering %s (%d template chars, %d tokens, format=%s)",
            request.document_type,
            len(request.html_template or ""),
            len(request.token_values),
            request.layout.page_format,
        )
        html = compose(
            request.html_template,
            request.token_values,
            escape=request.escape_values,
            raw_keys=request.raw_keys,
        )
        missing = sorted(set(TOKEN_RE.findall(html)))
        if missing:
            self.logger.info("Tokens without a value in %s: %s", request.document_type, ", ".join(missing))
        return await self.chain.run(html, request.layout)

    async def render_html(self, html: str, layout: Optional[LayoutOptions] = None) -> RenderResult:
        """Render an already complete HTML document without composition."""
        return await self.chain.run(html, layout or self.default_layout)

    def health(self) -> Dict[str, object]:
        session = self.manager.session
        return {
            "browser_available": self.manager.available,
            "browser_connected": bool(session and session.is_alive()),
            "browser_launches": self.manager.launch_count,
            "open_pages": self.engine.open_pages,
            "last_launch_error": self.manager.last_launch_error,
        }

    async def shutdown(self) -> None:
        await self.manager.shutdown()


__all__ = [
    "ChainState",
    "FallbackChainController",
    "PDFGenerationService",
    "package_html",
    "validate_pdf_bytes",
]
