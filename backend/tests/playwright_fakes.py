"""In-process stand-ins for the Playwright objects the renderer touches."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from fpdf import FPDF

SLOW_MARKER = "<!-- slow -->"


def make_pdf(text: str = "Fake document") -> bytes:
    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("helvetica", size=12)
    pdf.cell(0, 10, text)
    return bytes(pdf.output())


class FakePage:
    def __init__(self, browser: "FakeBrowser", fail_with: Optional[BaseException] = None,
                 pdf_bytes: Optional[bytes] = None, slow_seconds: float = 5.0) -> None:
        self.browser = browser
        self.fail_with = fail_with
        self.pdf_bytes = make_pdf() if pdf_bytes is None else pdf_bytes
        self.slow_seconds = slow_seconds
        self.default_timeout: Optional[int] = None
        self.content: Optional[str] = None
        self.pdf_kwargs: Dict[str, Any] = {}
        self.closed = False

    def set_default_timeout(self, timeout: int) -> None:
        self.default_timeout = timeout

    async def set_content(self, html: str, wait_until: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.content = html
        self.browser.loaded.append(html)
        if SLOW_MARKER in html:
            await asyncio.sleep(self.slow_seconds)
        if self.fail_with is not None:
            raise self.fail_with

    async def pdf(self, **kwargs: Any) -> bytes:
        self.pdf_kwargs = kwargs
        return self.pdf_bytes

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, **page_options: Any) -> None:
        self.page_options = page_options
        self.connected = True
        self.closed = False
        self.pages: List[FakePage] = []
        self.loaded: List[str] = []
        self._handlers: Dict[str, List[Callable[[Any], None]]] = {}

    def is_connected(self) -> bool:
        return self.connected

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self._handlers.setdefault(event, []).append(callback)

    async def new_page(self) -> FakePage:
        page = FakePage(self, **self.page_options)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.connected = False
        self.closed = True

    def crash(self) -> None:
        """Simulate the Chromium process dying underneath its pages."""
        self.connected = False
        for callback in self._handlers.get("disconnected", []):
            callback(self)


class FakeDriver:
    def __init__(self) -> None:
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakeLauncher:
    """Callable matching ``browser_manager.Launcher``."""

    def __init__(self, error: Optional[BaseException] = None, delay: float = 0.0, **page_options: Any) -> None:
        self.error = error
        self.delay = delay
        self.page_options = page_options
        self.calls = 0
        self.args: List[list] = []
        self.browsers: List[FakeBrowser] = []
        self.drivers: List[FakeDriver] = []

    async def __call__(self, args: list, sandbox: bool, timeout_ms: int):
        self.calls += 1
        self.args.append(list(args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        driver, browser = FakeDriver(), FakeBrowser(**self.page_options)
        self.drivers.append(driver)
        self.browsers.append(browser)
        return driver, browser
