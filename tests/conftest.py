"""
Shared fixtures for toolbox tests.

Provides temp directories, a sample PNG, and an in-memory observer that
lets tests push watchdog events straight into a watch session's handler
without touching the real filesystem notification APIs.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from agent_toolbox.watch_sessions import WatchSessionManager

# ---- Fake observer -----------------------------------------------------------


class FakeObserver:
    """Stands in for watchdog's Observer; records schedule/start/stop calls."""

    instances: list[FakeObserver] = []

    def __init__(self) -> None:
        self.handler: Any = None
        self.path: str | None = None
        self.recursive: bool | None = None
        self.started = False
        self.stop_calls = 0
        self.joined = False
        FakeObserver.instances.append(self)

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.handler = handler
        self.path = path
        self.recursive = recursive

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stop_calls += 1

    def join(self, timeout: float | None = None) -> None:
        self.joined = True


# ---- Fixtures ----------------------------------------------------------------


@pytest.fixture()
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test files."""
    return tmp_path


@pytest.fixture()
def watch_dir(tmp_dir: Path) -> Path:
    """A directory with a couple of files to watch."""
    root = tmp_dir / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.js").write_text("console.log('hi')\n", encoding="utf-8")
    (root / "README.md").write_text("# project\n", encoding="utf-8")
    return root


@pytest.fixture()
def fake_observers() -> list[FakeObserver]:
    """Observers created by the fake factory during the test, in order."""
    FakeObserver.instances = []
    return FakeObserver.instances


@pytest.fixture()
async def manager(fake_observers: list[FakeObserver]):
    """A session manager backed by FakeObserver; closed after the test."""
    mgr = WatchSessionManager(observer_factory=FakeObserver)
    yield mgr
    await mgr.close()


@pytest.fixture()
def png_bytes() -> bytes:
    """A 200x100 RGB PNG."""
    img = Image.new("RGB", (200, 100), (255, 0, 0))
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()
