"""A long lived event loop for synchronous hosts (Lambda, Flask).

The browser manager binds its Playwright driver to the loop it was first used
on, so every coroutine touching it must run on the same loop.  Handlers submit
work with ``BackgroundEventLoop.run`` and block on the result.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Optional


class BackgroundEventLoop:
    def __init__(self, name: str = "document-render-loop", logger: Optional[logging.Logger] = None) -> None:
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _ensure_started(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None or not self.running:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=self._serve, args=(loop,), name=self.name, daemon=True)
                thread.start()
                self._loop, self._thread = loop, thread
                self.logger.debug("Started background event loop %s", self.name)
            return self._loop

    @staticmethod
    def _serve(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        loop.run_forever()

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Run *coro* on the background loop and return its result.

        On timeout the coroutine is cancelled before the error is raised.
        """
        loop = self._ensure_started()
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            self.logger.warning("Cancelled work on %s after %ss", self.name, timeout)
            raise

    def stop(self, cleanup: Optional[Awaitable[Any]] = None, timeout: float = 10.0) -> None:
        """Optionally run *cleanup* on the loop, then stop the thread."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None or thread is None:
            if cleanup is not None and hasattr(cleanup, "close"):
                cleanup.close()
            return
        if cleanup is not None:
            try:
                asyncio.run_coroutine_threadsafe(cleanup, loop).result(timeout)
            except Exception as exc:
                self.logger.warning("Cleanup on %s failed: %s", self.name, exc)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        if not loop.is_running():
            loop.close()


__all__ = ["BackgroundEventLoop"]
