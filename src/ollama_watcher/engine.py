"""Review orchestration.

Raw observer events arrive through `dispatch()`. Each event class has one
debounce slot (file saves, commit detection); only the last event of a burst
fires. When a slot fires, everything is re-checked against the current state
of the work tree, because it may have changed since the event was queued.

Guards, all on the session:
- `in_flight`: a path already being reviewed is not reviewed again; a second
  save during a review is dropped, not queued.
- `processing_commit`: one commit pass at a time.
- `outstanding`: one backend call process-wide; a new call cancels the old
  one and the old response is never rendered.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .backend import OllamaReviewClient
from .diff_selector import DiffSelector
from .errors import BackendError, FileUnreadable, ReviewCancelled, VcsQueryFailed
from .models import ChangeClass, ChangeEvent, CommitSnapshot, FileSaved, HeadMoved, ReviewRequest
from .paths import is_reviewable, to_repo_relative
from .render import ConsoleRenderer
from .session import WatchSession
from .settings import Settings
from .vcs import GitRepository

logger = logging.getLogger(__name__)


class ReviewEngine:
    def __init__(
        self,
        session: WatchSession,
        *,
        settings: Settings,
        git: GitRepository,
        backend: OllamaReviewClient,
        renderer: ConsoleRenderer,
        selector: DiffSelector | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.git = git
        self.backend = backend
        self.renderer = renderer
        self.selector = selector or DiffSelector(git)

    async def start(self) -> None:
        """Remember the current HEAD so an untouched ref does not look like a commit."""
        try:
            self.session.last_revision = await self.git.rev_parse("HEAD")
        except VcsQueryFailed:
            # No commits yet.
            self.session.last_revision = None
        logger.debug("Initial HEAD: %s", self.session.last_revision)

    def dispatch(self, event: ChangeEvent) -> None:
        if isinstance(event, FileSaved):
            path = event.path
            self.session.file_trigger.arm(
                self.settings.debounce_seconds,
                lambda: self.process_file_change(path),
            )
        elif isinstance(event, HeadMoved):
            self.session.commit_trigger.arm(
                self.settings.commit_debounce_seconds,
                self.process_commit,
            )

    # -------------------------------------------------------------------------
    # File saves
    # -------------------------------------------------------------------------

    async def process_file_change(self, path: str | Path) -> bool:
        """Review one saved file. Returns True when a review was rendered."""
        if to_repo_relative(path, self.session.base_dir) is None:
            logger.debug("Ignoring path outside %s: %s", self.session.base_dir, path)
            return False
        rel = to_repo_relative(Path(self.session.base_dir, path), self.session.root)
        if rel is None:
            return False

        if not is_reviewable(rel):
            logger.debug("Not reviewable: %s", rel)
            return False

        if await self._is_ignored(rel):
            self.renderer.skipped(rel, "ignored")
            return False

        if rel in self.session.in_flight:
            logger.info("Review of %s already running; dropping save", rel)
            return False

        self.session.in_flight.add(rel)
        try:
            self.renderer.analyzing(rel)
            return await self._review_file(rel, ChangeClass.UNCOMMITTED)
        finally:
            self.session.in_flight.discard(rel)

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------

    async def process_commit(self) -> CommitSnapshot | None:
        """Review every file of a newly detected commit, one at a time."""
        if self.session.processing_commit:
            logger.info("Commit already being processed; dropping trigger")
            return None

        self.session.processing_commit = True
        try:
            try:
                revision = await self.git.rev_parse("HEAD")
            except VcsQueryFailed as exc:
                logger.debug("Cannot resolve HEAD: %s", exc)
                return None

            if revision == self.session.last_revision:
                return None
            self.session.last_revision = revision

            snapshot = await self._snapshot(revision)
            self.renderer.commit_detected(snapshot)
            if not snapshot.files:
                return snapshot

            for rel in snapshot.files:
                if not self._is_watched(rel):
                    logger.debug("Outside %s: %s", self.session.base_dir, rel)
                    continue
                if not is_reviewable(rel):
                    logger.debug("Not reviewable: %s", rel)
                    continue
                if await self._is_ignored(rel):
                    continue
                await self._review_file(rel, ChangeClass.COMMITTED)

            self.renderer.commit_finished(snapshot)
            return snapshot
        finally:
            self.session.processing_commit = False

    async def _snapshot(self, revision: str) -> CommitSnapshot:
        try:
            info = await self.git.last_commit()
            message = info.message
        except VcsQueryFailed:
            message = ""
        return CommitSnapshot(revision=revision, message=message, files=await self._committed_files())

    async def _committed_files(self) -> list[str]:
        try:
            await self.git.rev_parse("HEAD~1")
        except VcsQueryFailed:
            # Root commit: list what the commit itself introduced.
            try:
                return await self.git.commit_file_names("HEAD")
            except VcsQueryFailed:
                return []
        try:
            return await self.git.diff_tree_names("HEAD")
        except VcsQueryFailed:
            return []

    # -------------------------------------------------------------------------
    # Shared review path
    # -------------------------------------------------------------------------

    def _is_watched(self, rel: str) -> bool:
        """Commit paths are repo-root relative; only those under `base_dir` count."""
        return to_repo_relative(self.session.root / rel, self.session.base_dir) is not None

    async def _is_ignored(self, rel: str) -> bool:
        try:
            return await self.git.is_ignored(rel)
        except VcsQueryFailed as exc:
            logger.debug("check-ignore failed for %s: %s", rel, exc)
            return False

    async def _read_working_copy(self, rel: str) -> str:
        absolute = self.session.root / rel
        try:
            return await asyncio.to_thread(absolute.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FileUnreadable(f"Cannot read {rel}: {exc}", path=rel) from exc

    async def _read_content(self, rel: str) -> str | None:
        """Working-tree content, else the HEAD version, else None."""
        try:
            return await self._read_working_copy(rel)
        except FileUnreadable as exc:
            logger.debug("%s; falling back to HEAD", exc.message)
            try:
                return await self.git.show(rel, "HEAD")
            except VcsQueryFailed:
                return None

    async def _review_file(self, rel: str, change_class: ChangeClass) -> bool:
        content = await self._read_content(rel)
        if content is None:
            self.renderer.skipped(rel, "unreadable or deleted")
            return False

        diff = await self.selector.select(rel, change_class)
        request = ReviewRequest(
            path=rel,
            content=content,
            diff=diff,
            change_class=change_class,
            verbosity=self.session.verbosity,
        )

        self.renderer.requesting(rel, change_class)
        token = self.session.begin_call()
        try:
            text = await self.backend.review(request.prompt, token)
        except ReviewCancelled:
            logger.info("Review of %s superseded by a newer request", rel)
            return False
        except BackendError as exc:
            logger.debug("Backend failure for %s", rel, exc_info=exc)
            self.renderer.backend_failure(rel, exc)
            return False
        finally:
            self.session.end_call(token)

        if token.cancelled:
            return False
        self.renderer.review(rel, text, change_class)
        return True
