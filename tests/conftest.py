"""Shared test fixtures for cachewire.

Provides isolated config environments, output state management, a CLI
runner, and :class:`ScriptedTransport`, a counting exchange double built
on :class:`httpx.MockTransport`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Union

import httpx
import pytest

from cachewire.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When CliRunner redirects those streams during a test
    the cached references become stale, so force a fresh manager.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_library_logger() -> None:
    """Undo :meth:`OutputManager.configure_logging` so caplog sees library records."""
    yield
    log = logging.getLogger("cachewire")
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.setLevel(logging.NOTSET)
    log.propagate = True


# ---------------------------------------------------------------------------
# Exchange double
# ---------------------------------------------------------------------------


Step = Union[int, httpx.Response, Exception]


class ScriptedTransport(httpx.MockTransport):
    """Exchange double replaying a fixed script and counting calls.

    Each step is a status code (answered with a small text body), a ready
    response, or an exception instance to raise. The last step repeats
    once the script runs out.
    """

    def __init__(self, steps: Iterable[Step], body: bytes = b"payload") -> None:
        self.steps = list(steps)
        self.body = body
        self.calls = 0
        self.requests: list[httpx.Request] = []
        self.closed = False
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        step = self.steps[min(self.calls, len(self.steps) - 1)]
        self.calls += 1
        self.requests.append(request)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, httpx.Response):
            return step
        return httpx.Response(
            step,
            headers={"Content-Type": "text/plain", "X-Attempt": str(self.calls)},
            content=self.body,
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted() -> Callable[..., ScriptedTransport]:
    """Factory for :class:`ScriptedTransport` instances."""
    return ScriptedTransport


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_CACHE_HOME to subdirectories of tmp_path
    so that tests never touch real user config, forces the XDG code path,
    clears all CACHEWIRE_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("cachewire.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))

    for var in [
        "CACHEWIRE_RETRY_COUNT",
        "CACHEWIRE_USER_AGENT",
        "CACHEWIRE_RATE_LIMIT",
        "CACHEWIRE_CACHE_DIR",
        "CACHEWIRE_CACHE_BACKEND",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the duration of a test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
