"""Utilities for running Chromium under Playwright on constrained hosts."""
from __future__ import annotations

import glob
import os
import shutil
import subprocess
import sys
from typing import Optional, Protocol

import psutil


class LoggerLike(Protocol):
    def info(self, msg: str, *args, **kwargs) -> None: ...
    def warning(self, msg: str, *args, **kwargs) -> None: ...
    def error(self, msg: str, *args, **kwargs) -> None: ...
    def debug(self, msg: str, *args, **kwargs) -> None: ...


_CONTAINER_CGROUP_MARKERS = ("docker", "kubepods", "containerd", "lxc", "podman")
_MISSING_EXECUTABLE_MARKERS = ("executable doesn't exist", "playwright install", "download new browsers")
_INSTALL_TIMEOUT_S = 600

# Flags applied to every launch, sandboxed or not.
BASE_CHROME_ARGS: tuple[str, ...] = (
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--font-render-hinting=none",
)
NO_SANDBOX_CHROME_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
)


def running_in_container() -> bool:
    """Best effort detection of Lambda, Docker and Kubernetes style hosts."""
    if os.environ.get("AWS_LAMBDA_FUNCTION_NAME") or os.environ.get("AWS_EXECUTION_ENV"):
        return True
    if os.environ.get("KUBERNETES_SERVICE_HOST"):
        return True
    if os.path.exists("/.dockerenv") or os.path.exists("/run/.containerenv"):
        return True
    try:
        with open("/proc/1/cgroup", "r", encoding="utf-8") as handle:
            cgroup = handle.read()
    except OSError:
        return False
    return any(marker in cgroup for marker in _CONTAINER_CGROUP_MARKERS)


def chromium_launch_args(no_sandbox: Optional[bool] = None) -> list[str]:
    """Return Chromium flags; the OS sandbox is only dropped inside containers.

    *no_sandbox* overrides detection when not ``None``.
    """
    disable_sandbox = running_in_container() if no_sandbox is None else no_sandbox
    args = list(BASE_CHROME_ARGS)
    if disable_sandbox:
        args.extend(NO_SANDBOX_CHROME_ARGS)
    return args


def cleanup_browser_processes(logger: LoggerLike) -> int:
    """Terminate Chromium processes spawned by this process and left behind.

    Returns the number of processes that were asked to terminate.
    """
    terminated = 0
    try:
        children = psutil.Process().children(recursive=True)
    except psutil.Error as e:
        logger.warning(f"Failed to enumerate child processes: {e}")
        return 0

    for proc in children:
        try:
            name = (proc.name() or "").lower()
            cmdline = " ".join(proc.cmdline() or []).lower()
            if not any(b in name or b in cmdline for b in ("chrome", "chromium", "headless_shell")):
                continue
            logger.info("Terminating browser process: %s (PID: %s)", name, proc.pid)
            proc.terminate()
            terminated += 1
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    if terminated:
        _, alive = psutil.wait_procs(children, timeout=3)
        for proc in alive:
            try:
                proc.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

    for pattern in ("/tmp/playwright_chromiumdev_profile-*",):
        for path in glob.glob(pattern):
            try:
                if os.path.isdir(path):
                    shutil.rmtree(path, ignore_errors=True)
            except OSError as e:
                logger.warning(f"Failed to clean temp profile {path}: {e}")
    return terminated


def is_missing_browser_error(exc: Optional[BaseException]) -> bool:
    """Return ``True`` when *exc* says the Chromium build was never downloaded."""
    lowered = str(exc or "").lower()
    return bool(lowered) and any(marker in lowered for marker in _MISSING_EXECUTABLE_MARKERS)


def install_chromium(logger: LoggerLike) -> bool:
    """Download the Playwright Chromium build.  Blocking; run it off the event loop."""
    for command in (
        [sys.executable, "-m", "playwright", "install", "chromium"],
        ["playwright", "install", "chromium"],
    ):
        label = " ".join(command)
        try:
            completed = subprocess.run(command, capture_output=True, text=True, timeout=_INSTALL_TIMEOUT_S)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Could not run %s: %s", label, e)
            continue
        if completed.returncode == 0:
            logger.info("Installed Chromium with %s", label)
            return True
        logger.warning("%s exited with %s: %s", label, completed.returncode, (completed.stderr or "").strip()[-500:])
    logger.error("Automatic Chromium installation failed")
    return False


__all__ = [
    "BASE_CHROME_ARGS",
    "NO_SANDBOX_CHROME_ARGS",
    "chromium_launch_args",
    "cleanup_browser_processes",
    "install_chromium",
    "is_missing_browser_error",
    "running_in_container",
]
