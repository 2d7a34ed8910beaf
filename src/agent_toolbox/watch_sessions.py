"""
File-watch session manager.

Owns the table of named watch sessions. Each session wraps one watchdog
observer, an append-only change log fed from the observer thread, and an
optional expiry task that stops observing after a fixed duration.

Lifecycle: starting -> active -> (expired | stopped). Expiry releases the
observer and marks the session inactive but leaves it in the table; only
stop() removes an entry, after which the id may be reused.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import os
import threading
import time
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from fnmatch import fnmatch
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from agent_toolbox.mcp_base import (
    CapabilityError,
    DuplicateWatchError,
    NotFoundError,
    ValidationError,
)
from agent_toolbox.validation import normalize_path

_logger = logging.getLogger("agent_toolbox.watch_sessions")

# ── Constants ────────────────────────────────────────────────────────────────

WATCH_EVENTS: tuple[str, ...] = ("add", "change", "unlink", "addDir", "unlinkDir")
DEFAULT_EVENTS: tuple[str, ...] = ("add", "change", "unlink")
DEFAULT_DURATION: float = 60.0
RECENT_CHANGES_LIMIT: int = 10
OBSERVER_JOIN_TIMEOUT: float = 5.0

# VCS metadata and dependency caches are never reported
IGNORED_DIRECTORIES: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "__pycache__",
        ".venv",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
    }
)

# (watchdog event type, is_directory) -> change kind; moves are split in _ChangeSink
_EVENT_KINDS: dict[tuple[str, bool], str] = {
    ("created", False): "add",
    ("created", True): "addDir",
    ("modified", False): "change",
    ("deleted", False): "unlink",
    ("deleted", True): "unlinkDir",
}

ObserverFactory = Callable[[], BaseObserver]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g} seconds"


def matches_pattern(relative_path: str, pattern: str) -> bool:
    """Glob match against the path relative to the watch root, or its basename."""
    rel = relative_path.replace(os.sep, "/")
    if fnmatch(rel, pattern):
        return True
    name = rel.rsplit("/", 1)[-1]
    simple = pattern[3:] if pattern.startswith("**/") else pattern
    return "/" not in simple and fnmatch(name, simple)


# ── Session ──────────────────────────────────────────────────────────────────


@dataclass(eq=False)
class WatchSession:
    """One named watcher and everything it has seen."""

    watch_id: str
    path: str
    pattern: str | None
    events: list[str]
    duration: float
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: float = field(default_factory=time.monotonic)
    active: bool = False
    changes: list[dict[str, str]] = field(default_factory=list)
    _observer: BaseObserver | None = field(default=None, repr=False)
    _expiry_task: asyncio.Task[None] | None = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, event: str, path: str) -> None:
        """Append a change; called from the observer thread."""
        entry = {"event": event, "path": path, "timestamp": _utc_now_iso()}
        with self._lock:
            if not self.active:
                return
            self.changes.append(entry)
        _logger.info("[%s] %s: %s", self.watch_id, event, path)

    def change_count(self) -> int:
        with self._lock:
            return len(self.changes)

    def snapshot_changes(self, limit: int | None = None) -> list[dict[str, str]]:
        with self._lock:
            changes = self.changes if limit is None else self.changes[-limit:]
            return [dict(c) for c in changes]

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def cancel_expiry(self) -> None:
        task, self._expiry_task = self._expiry_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def release(self) -> bool:
        """Stop observing. Safe to call any number of times; only the first does work."""
        with self._lock:
            observer, self._observer = self._observer, None
            self.active = False
        if observer is None:
            return False
        observer.stop()
        await asyncio.to_thread(observer.join, OBSERVER_JOIN_TIMEOUT)
        return True


class _ChangeSink(FileSystemEventHandler):
    """Translates watchdog events into change-log entries for one session."""

    def __init__(self, session: WatchSession, root: str, target_file: str | None) -> None:
        super().__init__()
        self._session = session
        self._root = root
        self._target_file = target_file

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type == "moved":
            self._emit("unlinkDir" if event.is_directory else "unlink", event.src_path)
            self._emit("addDir" if event.is_directory else "add", event.dest_path)
            return
        kind = _EVENT_KINDS.get((event.event_type, event.is_directory))
        if kind is not None:
            self._emit(kind, event.src_path)

    def _emit(self, kind: str, raw_path: str | bytes) -> None:
        path = os.fsdecode(raw_path)
        if kind in self._session.events and self._accepts(path):
            self._session.record(kind, path)

    def _accepts(self, path: str) -> bool:
        resolved = os.path.realpath(path)
        if self._target_file is not None and resolved != self._target_file:
            return False
        rel = os.path.relpath(resolved, self._root)
        if any(part in IGNORED_DIRECTORIES for part in rel.split(os.sep)):
            return False
        pattern = self._session.pattern
        return pattern is None or matches_pattern(rel, pattern)


@dataclass
class _IdLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


# ── Manager ──────────────────────────────────────────────────────────────────


class WatchSessionManager:
    """
    Table of watch sessions keyed by watch id.

    start/stop and expiry on the same id are serialized with a per-id lock;
    different ids never wait on each other.
    """

    def __init__(self, observer_factory: ObserverFactory = Observer) -> None:
        self._observer_factory = observer_factory
        self._sessions: dict[str, WatchSession] = {}
        self._id_locks: dict[str, _IdLock] = {}
        self._counter = itertools.count(1)

    def __contains__(self, watch_id: object) -> bool:
        return watch_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, watch_id: str) -> WatchSession:
        session = self._sessions.get(watch_id)
        if session is None:
            raise NotFoundError(f"No watcher found with ID '{watch_id}'")
        return session

    @contextlib.asynccontextmanager
    async def _serialized(self, watch_id: str) -> AsyncIterator[None]:
        entry = self._id_locks.get(watch_id)
        if entry is None:
            entry = self._id_locks[watch_id] = _IdLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._id_locks[watch_id]

    def _generate_id(self) -> str:
        return f"watch_{int(time.time() * 1000)}_{next(self._counter)}"

    # ── Operations ──────────────────────────────────────────────────────────

    async def start(
        self,
        path: str,
        pattern: str | None = None,
        events: Iterable[str] | None = None,
        watch_id: str | None = None,
        duration: float = DEFAULT_DURATION,
    ) -> dict[str, Any]:
        """
        Begin watching a path.

        Raises:
            DuplicateWatchError: watch_id is already in the table.
            ValidationError: unknown event kinds or a negative duration.
            CapabilityError: the path does not exist or cannot be observed.
        """
        event_list = list(dict.fromkeys(events)) if events else list(DEFAULT_EVENTS)
        unknown = [e for e in event_list if e not in WATCH_EVENTS]
        if unknown:
            raise ValidationError(
                f"Unknown events: {', '.join(unknown)}. Use: {', '.join(WATCH_EVENTS)}"
            )
        if duration < 0:
            raise ValidationError("duration must be 0 (unlimited) or a positive number of seconds")

        watch_id = watch_id or self._generate_id()

        async with self._serialized(watch_id):
            if watch_id in self._sessions:
                raise DuplicateWatchError(f"Watcher with ID '{watch_id}' already exists")

            session = WatchSession(
                watch_id=watch_id,
                path=path,
                pattern=pattern,
                events=event_list,
                duration=duration,
            )
            session._observer = await asyncio.to_thread(self._open_observer, session)
            session.active = True
            self._sessions[watch_id] = session

            if duration > 0:
                session._expiry_task = asyncio.create_task(
                    self._expire_after(session, duration), name=f"watch-expiry-{watch_id}"
                )

        _logger.info(
            "[%s] Watching %s (pattern=%s, events=%s, duration=%s)",
            watch_id,
            path,
            pattern or "all files",
            ",".join(event_list),
            _format_seconds(duration) if duration > 0 else "unlimited",
        )
        return {
            "message": "File watcher started",
            "watch_id": watch_id,
            "path": path,
            "pattern": pattern or "all files",
            "events": event_list,
            "duration": _format_seconds(duration) if duration > 0 else "unlimited",
            "active": session.active,
            "instructions": (
                f'Use file_watcher with action="status" and watch_id="{watch_id}" '
                "to check results"
            ),
        }

    async def stop(self, watch_id: str) -> dict[str, Any]:
        """Release a session's observer, summarize it and remove it from the table."""
        async with self._serialized(watch_id):
            session = self.get(watch_id)
            session.cancel_expiry()
            await session.release()
            changes = session.snapshot_changes()
            summary = {
                "watch_id": watch_id,
                "path": session.path,
                "duration": f"{session.elapsed():.1f} seconds",
                "total_changes": len(changes),
                "changes": changes,
            }
            del self._sessions[watch_id]

        _logger.info("[%s] Stopped with %d changes", watch_id, summary["total_changes"])
        return {"message": "File watcher stopped", "summary": summary}

    def status(self, watch_id: str | None = None) -> dict[str, Any]:
        """Snapshot of one session, or a lightweight listing of every session."""
        if watch_id is not None:
            session = self.get(watch_id)
            return {
                "watch_id": watch_id,
                "active": session.active,
                "path": session.path,
                "pattern": session.pattern or "all files",
                "events": list(session.events),
                "start_time": session.start_time.isoformat(),
                "duration": f"{session.elapsed():.1f} seconds",
                "changes_detected": session.change_count(),
                "recent_changes": session.snapshot_changes(RECENT_CHANGES_LIMIT),
            }

        watchers = [
            {
                "watch_id": sid,
                "active": session.active,
                "path": session.path,
                "pattern": session.pattern or "all files",
                "start_time": session.start_time.isoformat(),
                "changes_detected": session.change_count(),
            }
            for sid, session in self._sessions.items()
        ]
        return {
            "total_watchers": len(watchers),
            "active_watchers": sum(1 for w in watchers if w["active"]),
            "watchers": watchers,
        }

    async def close(self) -> None:
        """Stop every session."""
        for watch_id in list(self._sessions):
            with contextlib.suppress(NotFoundError):
                await self.stop(watch_id)

    # ── Internals ───────────────────────────────────────────────────────────

    def _open_observer(self, session: WatchSession) -> BaseObserver:
        target = os.path.realpath(normalize_path(session.path))
        if not os.path.exists(target):
            raise CapabilityError(f"Path does not exist: {session.path}")

        if os.path.isdir(target):
            root, target_file, recursive = target, None, True
        else:
            root, target_file, recursive = os.path.dirname(target), target, False

        observer = self._observer_factory()
        try:
            observer.schedule(_ChangeSink(session, root, target_file), root, recursive=recursive)
            observer.start()
        except OSError as exc:
            raise CapabilityError(f"Cannot watch {session.path}: {exc}") from exc
        return observer

    async def _expire_after(self, session: WatchSession, duration: float) -> None:
        await asyncio.sleep(duration)
        async with self._serialized(session.watch_id):
            # The id may have been stopped, or stopped and reused, meanwhile
            if self._sessions.get(session.watch_id) is not session or not session.active:
                return
            await session.release()
        _logger.info("[%s] Auto-stopped after %s", session.watch_id, _format_seconds(duration))
