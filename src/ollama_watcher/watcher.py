"""Filesystem observation.

watchdog delivers events on its own thread; the handler only classifies the
path and hands the resulting `ChangeEvent` to the event loop.

Excluded directories (`node_modules`, `.git`, ...) never get a watch. A
directory is watched recursively when nothing below it is excluded; otherwise
it is watched flat and its kept children are planned one by one. Inside the
git directory only `HEAD` and `refs/heads` are watched.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .models import ChangeEvent
from .paths import EXCLUDED_DIRS, classify_path

logger = logging.getLogger(__name__)


def plan_watches(base_dir: Path, git_dir: Path | None = None) -> list[tuple[Path, bool]]:
    """Return `(directory, recursive)` pairs covering the work tree and git refs."""

    base_dir = base_dir.resolve()
    git_dir = (git_dir or base_dir / ".git").resolve()

    children: dict[Path, list[Path]] = {}
    flat: set[Path] = set()
    for root, dirs, _files in os.walk(base_dir):
        current = Path(root)
        kept: list[str] = []
        for name in sorted(dirs):
            if name in EXCLUDED_DIRS or (current / name) == git_dir:
                node = current
                while node not in flat:
                    flat.add(node)
                    if node == base_dir:
                        break
                    node = node.parent
            else:
                kept.append(name)
        dirs[:] = kept
        children[current] = [current / name for name in kept]

    plan: list[tuple[Path, bool]] = []
    pending = [base_dir]
    while pending:
        directory = pending.pop(0)
        if directory in flat:
            plan.append((directory, False))
            pending.extend(children.get(directory, []))
        else:
            plan.append((directory, True))

    if git_dir.is_dir():
        plan.append((git_dir, False))
        heads = git_dir / "refs" / "heads"
        if heads.is_dir():
            plan.append((heads, True))
    return plan


class ChangeEventHandler(FileSystemEventHandler):
    def __init__(
        self,
        base_dir: Path,
        loop: asyncio.AbstractEventLoop,
        sink: Callable[[ChangeEvent], None],
        *,
        git_dir: Path | None = None,
        on_new_directory: Callable[[Path], None] | None = None,
    ) -> None:
        super().__init__()
        self._base_dir = base_dir
        self._git_dir = git_dir
        self._loop = loop
        self._sink = sink
        self._on_new_directory = on_new_directory

    def _hand_over(self, callback: Callable[..., None], *args: object) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop already closed during shutdown.
            logger.debug("Dropping %s; event loop is closed", args)

    def _emit(self, raw_path: str | bytes) -> None:
        path = raw_path.decode() if isinstance(raw_path, bytes) else raw_path
        event = classify_path(path, self._base_dir, self._git_dir)
        if event is not None:
            self._hand_over(self._sink, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(event.src_path)
        elif self._on_new_directory is not None:
            path = event.src_path
            self._hand_over(self._on_new_directory, Path(path.decode() if isinstance(path, bytes) else path))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors and git both save by writing a temp file and renaming it.
        if not event.is_directory and isinstance(event, FileSystemMovedEvent):
            self._emit(event.dest_path)


def start_observer(
    base_dir: Path,
    loop: asyncio.AbstractEventLoop,
    sink: Callable[[ChangeEvent], None],
    *,
    git_dir: Path | None = None,
) -> BaseObserver:
    observer = Observer()
    plan = plan_watches(base_dir, git_dir)
    git_root = (git_dir or base_dir / ".git").resolve()
    flat_dirs = {directory for directory, recursive in plan if not recursive and directory != git_root}

    def watch_new_directory(path: Path) -> None:
        # Flat watches do not see inside directories created after startup.
        if path.parent in flat_dirs and path.name not in EXCLUDED_DIRS and path.is_dir():
            observer.schedule(handler, str(path), recursive=True)
            logger.debug("Watching new directory %s", path)

    handler = ChangeEventHandler(
        base_dir,
        loop,
        sink,
        git_dir=git_dir,
        on_new_directory=watch_new_directory,
    )
    for directory, recursive in plan:
        observer.schedule(handler, str(directory), recursive=recursive)
    observer.daemon = True
    observer.start()
    logger.debug("Watching %s (%d watches)", base_dir, len(plan))
    return observer


def stop_observer(observer: BaseObserver, *, timeout: float = 2.0) -> None:
    observer.stop()
    observer.join(timeout=timeout)
