"""Tests for the shared browser lifecycle."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from browser_manager import BrowserProcessManager  # noqa: E402
from pdf_settings import RenderSettings  # noqa: E402
from playwright_environment import NO_SANDBOX_CHROME_ARGS  # noqa: E402
from render_errors import BrowserLaunchError  # noqa: E402

from playwright_fakes import FakeLauncher  # noqa: E402

SETTINGS = RenderSettings(content_timeout_ms=500, render_timeout_ms=500, launch_timeout_ms=500, no_sandbox=True)


def test_concurrent_acquire_launches_once() -> None:
    """Many callers arriving before the first launch share one browser."""

    launcher = FakeLauncher(delay=0.05)
    manager = BrowserProcessManager(SETTINGS, launcher=launcher)

    async def scenario():
        sessions = await asyncio.gather(*(manager.acquire() for _ in range(10)))
        await manager.shutdown()
        return sessions

    sessions = asyncio.run(scenario())

    assert launcher.calls == 1
    assert len({id(s) for s in sessions}) == 1
    assert manager.launch_count == 1


def test_launch_failure_is_shared_by_waiters() -> None:
    """Every waiter of a failed launch sees the same BrowserLaunchError."""

    launcher = FakeLauncher(error=RuntimeError("no display"), delay=0.02)
    manager = BrowserProcessManager(SETTINGS, launcher=launcher)

    async def scenario():
        return await asyncio.gather(*(manager.acquire() for _ in range(5)), return_exceptions=True)

    results = asyncio.run(scenario())

    assert launcher.calls == 1
    assert all(isinstance(r, BrowserLaunchError) for r in results)
    assert manager.available is False
    assert "no display" in manager.last_launch_error


def test_launch_is_retried_after_failure() -> None:
    """A failed launch does not poison later requests."""

    launcher = FakeLauncher(error=RuntimeError("transient"))
    manager = BrowserProcessManager(SETTINGS, launcher=launcher)

    async def scenario():
        with pytest.raises(BrowserLaunchError):
            await manager.acquire()
        launcher.error = None
        session = await manager.acquire()
        await manager.shutdown()
        return session

    session = asyncio.run(scenario())

    assert launcher.calls == 2
    assert session.browser is launcher.browsers[0]
    assert manager.available is True
    assert manager.last_launch_error is None


def test_launch_timeout_raises_browser_launch_error() -> None:
    """A launcher that hangs is bounded by the launch timeout."""

    settings = RenderSettings(launch_timeout_ms=50, no_sandbox=True)
    manager = BrowserProcessManager(settings, launcher=FakeLauncher(delay=1.0))

    with pytest.raises(BrowserLaunchError, match="did not start within 50ms"):
        asyncio.run(manager.acquire())


def test_relaunch_after_disconnect() -> None:
    """A crashed browser is replaced on the next acquire."""

    launcher = FakeLauncher()
    manager = BrowserProcessManager(SETTINGS, launcher=launcher)

    async def scenario():
        first = await manager.acquire()
        first.browser.crash()
        assert manager.session is None
        second = await manager.acquire()
        await manager.shutdown()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not second
    assert launcher.calls == 2
    assert launcher.drivers[0].stopped
    assert manager.launch_count == 2


def test_dead_session_detected_without_event() -> None:
    """A browser that silently lost its connection is relaunched too."""

    launcher = FakeLauncher()
    manager = BrowserProcessManager(SETTINGS, launcher=launcher)

    async def scenario():
        first = await manager.acquire()
        first.browser.connected = False
        second = await manager.acquire()
        await manager.shutdown()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not second
    assert launcher.calls == 2


def test_browser_recycled_after_render_limit() -> None:
    """With BROWSER_MAX_RENDERS set the process is replaced periodically."""

    settings = RenderSettings(max_renders_per_browser=2, no_sandbox=True)
    launcher = FakeLauncher()
    manager = BrowserProcessManager(settings, launcher=launcher)

    async def scenario():
        first = await manager.acquire()
        first.renders = 2
        second = await manager.acquire()
        await manager.shutdown()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not second
    assert first.retired
    assert launcher.browsers[0].closed


def test_retired_session_closes_when_last_page_released() -> None:
    """A retired browser with open pages stays up until they are released."""

    settings = RenderSettings(max_renders_per_browser=1, no_sandbox=True)
    launcher = FakeLauncher()
    manager = BrowserProcessManager(settings, launcher=launcher)

    async def scenario():
        first = await manager.acquire()
        first.renders = 1
        first.active_pages = 1
        await manager.acquire()
        still_open = not launcher.browsers[0].closed
        first.active_pages = 0
        await manager.release(first)
        closed_after_release = launcher.browsers[0].closed
        await manager.shutdown()
        return still_open, closed_after_release

    still_open, closed_after_release = asyncio.run(scenario())

    assert still_open
    assert closed_after_release


def test_shutdown_is_idempotent() -> None:
    """Shutdown works with no session and can be repeated."""

    launcher = FakeLauncher()
    manager = BrowserProcessManager(SETTINGS, launcher=launcher)

    async def scenario():
        await manager.shutdown()
        await manager.acquire()
        await manager.shutdown()
        await manager.shutdown()

    asyncio.run(scenario())

    assert launcher.browsers[0].closed
    assert launcher.drivers[0].stopped
    assert manager.session is None


def test_no_sandbox_flags_follow_settings() -> None:
    """Sandbox flags are only passed when the sandbox is disabled."""

    sandboxed = FakeLauncher()
    unsandboxed = FakeLauncher()

    async def scenario():
        m1 = BrowserProcessManager(RenderSettings(no_sandbox=False), launcher=sandboxed)
        m2 = BrowserProcessManager(RenderSettings(no_sandbox=True), launcher=unsandboxed)
        await m1.acquire()
        await m2.acquire()
        await m1.shutdown()
        await m2.shutdown()

    asyncio.run(scenario())

    assert not set(NO_SANDBOX_CHROME_ARGS) & set(sandboxed.args[0])
    assert set(NO_SANDBOX_CHROME_ARGS) <= set(unsandboxed.args[0])


def test_missing_executable_triggers_single_install(monkeypatch) -> None:
    """With auto-install enabled a missing Chromium build is downloaded once."""

    import browser_manager

    launcher = FakeLauncher(error=RuntimeError("Executable doesn't exist at /ms-playwright/chromium"))
    installs = []

    def fake_install(logger):
        installs.append(logger)
        launcher.error = None
        return True

    monkeypatch.setattr(browser_manager, "install_chromium", fake_install)
    settings = RenderSettings(no_sandbox=True, auto_install_browser=True)
    manager = BrowserProcessManager(settings, launcher=launcher)

    async def scenario():
        session = await manager.acquire()
        await manager.shutdown()
        return session

    session = asyncio.run(scenario())

    assert len(installs) == 1
    assert launcher.calls == 2
    assert session.browser is launcher.browsers[0]
