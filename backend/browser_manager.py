"""Ownership of the single shared headless Chromium process.

The ``BrowserProcessManager`` launches Chromium lazily on first demand, hands
the same ``BrowserSession`` to every concurrent render call and relaunches it
when the process crashes or disconnects.  All mutation of the session (launch,
relaunch, recycle, shutdown) is funnelled through ``acquire``/``shutdown`` so
two launches can never race: callers arriving while a launch is in flight
await that same launch.

The manager is bound to the event loop it is first used on.  Threaded hosts
reach it through ``render_loop.BackgroundEventLoop``.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

from playwright.async_api import async_playwright

from pdf_settings import RenderSettings
from playwright_environment import (
    chromium_launch_args,
    cleanup_browser_processes,
    install_chromium,
    is_missing_browser_error,
    running_in_container,
)
from render_errors import BrowserLaunchError

# (args, sandbox, timeout_ms) -> (driver, browser).  The driver is whatever
# must be stopped after the browser closes (the Playwright instance).
Launcher = Callable[[list, bool, int], Awaitable[Tuple[Any, Any]]]

_session_ids = itertools.count(1)


async def launch_chromium(args: list, sandbox: bool, timeout_ms: int) -> Tuple[Any, Any]:
    """Start Playwright and launch headless Chromium with *args*."""
    driver = await async_playwright().start()
    try:
        browser = await driver.chromium.launch(
            headless=True,
            args=args,
            chromium_sandbox=sandbox,
            timeout=timeout_ms,
        )
    except BaseException:
        await driver.stop()
        raise
    return driver, browser


@dataclass(eq=False)
class BrowserSession:
    """A live browser process shared by concurrent render calls."""

    browser: Any
    driver: Any = None
    session_id: int = field(default_factory=lambda: next(_session_ids))
    launched_at: float = field(default_factory=time.time)
    renders: int = 0
    active_pages: int = 0
    retired: bool = False

    def is_alive(self) -> bool:
        try:
            return bool(self.browser.is_connected())
        except Exception:
            return False


class BrowserProcessManager:
    """Lazily launched, single-flight owner of the shared ``BrowserSession``."""

    def __init__(
        self,
        settings: Optional[RenderSettings] = None,
        launcher: Optional[Launcher] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or RenderSettings.from_env()
        self.logger = logger or logging.getLogger(__name__)
        self._launcher = launcher or launch_chromium
        self._session: Optional[BrowserSession] = None
        self._pending: Optional[asyncio.Future] = None
        self._retired: Set[BrowserSession] = set()
        self._background: Set[asyncio.Task] = set()
        self._install_attempted = False
        self.launch_count = 0
        self.last_launch_error: Optional[str] = None

    # Public API -----------------------------------------------------
    @property
    def session(self) -> Optional[BrowserSession]:
        return self._session

    @property
    def available(self) -> Optional[bool]:
        """Outcome of the most recent launch, ``None`` before the first one."""
        if self.launch_count == 0 and self.last_launch_error is None:
            return None
        return self.last_launch_error is None

    async def acquire(self) -> BrowserSession:
        """Return the live session, launching or relaunching it if needed."""
        session = self._session
        if session is not None:
            if not session.is_alive():
                self.logger.warning(
                    "Browser session %s is no longer connected; relaunching", session.session_id
                )
                self._detach(session)
            elif self._should_recycle(session):
                self.logger.info(
                    "Browser session %s served %s renders; recycling",
                    session.session_id,
                    session.renders,
                )
                self._detach(session)
            else:
                return session

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._launch())
        return await asyncio.shield(self._pending)

    async def release(self, session: BrowserSession) -> None:
        """Hand a session back after a render.

        Sessions are shared, so this only closes a session that was retired
        while pages were still open on it.
        """
        if session.retired and session.active_pages <= 0 and session in self._retired:
            self._retired.discard(session)
            await self._close_session(session)

    def invalidate(self, session: BrowserSession) -> None:
        """Drop a session believed to be crashed; the next ``acquire`` relaunches."""
        if session is self._session:
            self.logger.warning("Invalidating browser session %s after crash", session.session_id)
            self._detach(session)

    async def shutdown(self) -> None:
        """Close the browser process.  Idempotent and safe with no session."""
        pending = self._pending
        if pending is not None:
            try:
                await asyncio.shield(pending)
            except BrowserLaunchError:
                pass

        sessions = [s for s in (self._session, *self._retired) if s is not None]
        self._session = None
        self._retired.clear()

        clean = True
        for session in sessions:
            if not await self._close_session(session):
                clean = False

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

        if not clean:
            await asyncio.to_thread(cleanup_browser_processes, self.logger)
        if sessions:
            self.logger.info("Browser process manager shut down (%d session(s) closed)", len(sessions))

    # Internal helpers -----------------------------------------------
    def _should_recycle(self, session: BrowserSession) -> bool:
        limit = self.settings.max_renders_per_browser
        return limit > 0 and session.renders >= limit

    def _detach(self, session: BrowserSession) -> None:
        if session is self._session:
            self._session = None
        session.retired = True
        if session.active_pages > 0 and session.is_alive():
            self._retired.add(session)
            return
        self._spawn(self._close_session(session))

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_disconnected(self, session: BrowserSession) -> None:
        if session is self._session:
            self.logger.warning("Browser session %s disconnected", session.session_id)
            self._detach(session)

    async def _launch(self) -> BrowserSession:
        try:
            sandbox_disabled = (
                running_in_container() if self.settings.no_sandbox is None else self.settings.no_sandbox
            )
            args = chromium_launch_args(sandbox_disabled)
            self.logger.info(
                "Launching Chromium (sandbox=%s) with %d flags", not sandbox_disabled, len(args)
            )
            self.logger.debug("Chrome args: %s", args)

            start = time.monotonic()
            try:
                driver, browser = await self._start(args, not sandbox_disabled)
            except BrowserLaunchError as err:
                if not self._should_install(err):
                    raise
                self._install_attempted = True
                self.logger.warning("Chromium executable missing; attempting playwright install")
                installed = await asyncio.to_thread(install_chromium, self.logger)
                if not installed:
                    raise
                driver, browser = await self._start(args, not sandbox_disabled)

            session = BrowserSession(browser=browser, driver=driver)
            browser.on("disconnected", lambda _browser: self._on_disconnected(session))
            self._session = session
            self.launch_count += 1
            self.last_launch_error = None
            self.logger.info(
                "Browser session %s launched in %.2fs", session.session_id, time.monotonic() - start
            )
            return session
        except BrowserLaunchError as err:
            self.last_launch_error = str(err)
            self.logger.error("Browser launch failed: %s", err)
            raise
        finally:
            self._pending = None

    async def _start(self, args: list, sandbox: bool) -> Tuple[Any, Any]:
        timeout_ms = self.settings.launch_timeout_ms
        try:
            return await asyncio.wait_for(
                self._launcher(args, sandbox, timeout_ms),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError as exc:
            raise BrowserLaunchError(
                f"Chromium did not start within {timeout_ms}ms"
            ) from exc
        except Exception as exc:
            raise BrowserLaunchError(f"Chromium failed to start: {exc}") from exc

    def _should_install(self, err: BrowserLaunchError) -> bool:
        return (
            self.settings.auto_install_browser
            and not self._install_attempted
            and is_missing_browser_error(err.__cause__)
        )

    async def _close_session(self, session: BrowserSession) -> bool:
        clean = True
        try:
            if session.is_alive():
                await session.browser.close()
        except Exception as exc:
            clean = False
            self.logger.warning("Failed to close browser session %s: %s", session.session_id, exc)
        finally:
            if session.driver is not None:
                try:
                    await session.driver.stop()
                except Exception as exc:
                    clean = False
                    self.logger.warning("Failed to stop Playwright driver: %s", exc)
        return clean


__all__ = ["BrowserProcessManager", "BrowserSession", "Launcher", "launch_chromium"]
