"""Error taxonomy for the document rendering pipeline."""
from __future__ import annotations

from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

# Fragments Playwright uses when the browser or page went away underneath us.
_CRASH_MARKERS: tuple[str, ...] = (
    "browser has been closed",
    "target closed",
    "target page, context or browser has been closed",
    "connection closed",
    "crashed",
    "protocol error",
)


class DocumentRenderError(Exception):
    """Base class for every error raised by the rendering pipeline."""


class BrowserLaunchError(DocumentRenderError):
    """The headless browser could not be started."""


class RenderError(DocumentRenderError):
    """Generic engine failure while turning HTML into a PDF."""

    def __init__(self, message: str, *, browser_crashed: bool = False) -> None:
        super().__init__(message)
        self.browser_crashed = browser_crashed


class RenderTimeoutError(RenderError):
    """Content never reached a loaded state within the timeout."""


class TemplateCompositionError(DocumentRenderError):
    """The template is malformed in a way no fallback tier can repair."""


class PackagingError(DocumentRenderError):
    """The final HTML packaging tier failed."""


def is_browser_crash(exc: Optional[BaseException]) -> bool:
    """Return ``True`` when *exc* looks like a dead browser or closed target."""
    if exc is None:
        return False
    lowered = (str(exc) or "").lower()
    return any(marker in lowered for marker in _CRASH_MARKERS)


def classify_playwright_error(exc: BaseException, stage: str) -> RenderError:
    """Convert a raw Playwright exception into the pipeline's taxonomy."""
    if isinstance(exc, RenderError):
        return exc
    if isinstance(exc, PlaywrightTimeoutError):
        return RenderTimeoutError(f"Timed out during {stage}: {exc}")
    return RenderError(
        f"Browser failed during {stage}: {exc}",
        browser_crashed=is_browser_crash(exc),
    )


__all__ = [
    "BrowserLaunchError",
    "DocumentRenderError",
    "PackagingError",
    "RenderError",
    "RenderTimeoutError",
    "TemplateCompositionError",
    "classify_playwright_error",
    "is_browser_crash",
]
