"""Per-invocation watch state.

Everything mutable lives on one `WatchSession`, owned by the engine and only
touched from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .backend import CancelToken
from .models import Verbosity

logger = logging.getLogger(__name__)


def _log_task_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Triggered task failed", exc_info=exc)


class TriggerSlot:
    """A single debounce timer: arming replaces whatever was pending.

    Once the timer fires the slot is free again and the callback runs as a
    background task that later `arm()` calls leave alone.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> int:
        return len(self._tasks)

    def arm(self, delay: float, callback: Callable[[], Awaitable[Any]]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], Awaitable[Any]]) -> None:
        self._handle = None
        task = asyncio.ensure_future(callback())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)

    async def drain(self) -> None:
        """Wait for fired callbacks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self.cancel()
        for task in list(self._tasks):
            task.cancel()


@dataclass
class WatchSession:
    """`base_dir` is what the user watches; `repo_root` is the work tree root.

    Paths handed to git and used as guard keys are relative to `repo_root`.
    The two differ when a subdirectory of a repository is watched.
    """

    base_dir: Path
    repo_root: Path | None = None
    verbosity: Verbosity = Verbosity.FULL
    last_revision: str | None = None
    in_flight: set[str] = field(default_factory=set)
    processing_commit: bool = False
    outstanding: CancelToken | None = None
    file_trigger: TriggerSlot = field(default_factory=lambda: TriggerSlot("file"))
    commit_trigger: TriggerSlot = field(default_factory=lambda: TriggerSlot("commit"))

    def __post_init__(self) -> None:
        if self.repo_root is None:
            self.repo_root = self.base_dir

    @property
    def root(self) -> Path:
        return self.repo_root or self.base_dir

    def begin_call(self) -> CancelToken:
        """Claim the single backend slot, cancelling whoever held it."""
        if self.outstanding is not None:
            self.outstanding.cancel()
        token = CancelToken()
        self.outstanding = token
        return token

    def end_call(self, token: CancelToken) -> None:
        if self.outstanding is token:
            self.outstanding = None

    async def drain(self) -> None:
        await self.file_trigger.drain()
        await self.commit_trigger.drain()

    def close(self) -> None:
        self.file_trigger.close()
        self.commit_trigger.close()
        if self.outstanding is not None:
            self.outstanding.cancel()
            self.outstanding = None
