"""Chromium based HTML -> PDF rendering on the shared browser session."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from browser_manager import BrowserProcessManager
from pdf_settings import LayoutOptions, RenderSettings
from render_errors import RenderError, RenderTimeoutError, classify_playwright_error

_PAGE_CLOSE_TIMEOUT_S = 5.0


class RenderEngine:
    """Renders complete HTML documents into PDF bytes.

    Each call gets its own page on the shared browser; the page is closed on
    every exit path (success, timeout, engine error or cancellation).
    """

    name = "chromium"

    def __init__(
        self,
        manager: BrowserProcessManager,
        settings: Optional[RenderSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.manager = manager
        self.settings = settings or manager.settings
        self.logger = logger or logging.getLogger(__name__)
        self.open_pages = 0

    async def render_pdf(self, html: str, layout: LayoutOptions) -> bytes:
        session = await self.manager.acquire()
        session.renders += 1
        page = None
        start = time.monotonic()
        try:
            try:
                page = await session.browser.new_page()
            except Exception as exc:
                raise classify_playwright_error(exc, "page creation") from exc
            session.active_pages += 1
            self.open_pages += 1

            page.set_default_timeout(self.settings.content_timeout_ms)
            await self._load_content(page, html)
            self.logger.info("Content loaded in %.2fs", time.monotonic() - start)

            pdf_bytes = await self._print(page, layout)
            self.logger.info(
                "PDF generated with Chromium in %.2fs (%d bytes)",
                time.monotonic() - start,
                len(pdf_bytes),
            )
            return pdf_bytes
        except RenderError as err:
            if err.browser_crashed:
                self.manager.invalidate(session)
            raise
        finally:
            if page is not None:
                await self._close_page(page)
                session.active_pages -= 1
                self.open_pages -= 1
            await self.manager.release(session)

    async def _load_content(self, page, html: str) -> None:
        timeout_ms = self.settings.content_timeout_ms
        self.logger.info("Setting page content (%d characters)", len(html))
        try:
            await asyncio.wait_for(
                page.set_content(html, wait_until="networkidle", timeout=timeout_ms),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError as exc:
            raise RenderTimeoutError(
                f"Content did not reach network idle within {timeout_ms}ms"
            ) from exc
        except Exception as exc:
            raise classify_playwright_error(exc, "content load") from exc

    async def _print(self, page, layout: LayoutOptions) -> bytes:
        timeout_ms = self.settings.render_timeout_ms
        try:
            pdf_bytes = await asyncio.wait_for(
                page.pdf(**layout.to_pdf_kwargs()),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError as exc:
            raise RenderTimeoutError(f"PDF printing exceeded {timeout_ms}ms") from exc
        except Exception as exc:
            raise classify_playwright_error(exc, "pdf printing") from exc
        if not pdf_bytes:
            raise RenderError("Chromium returned an empty PDF buffer")
        return bytes(pdf_bytes)

    async def _close_page(self, page) -> None:
        try:
            await asyncio.wait_for(page.close(), timeout=_PAGE_CLOSE_TIMEOUT_S)
        except Exception as exc:
            self.logger.warning("Failed to close page cleanly: %s", exc)


__all__ = ["RenderEngine"]
