"""Pick the diff a review should focus on.

Uncommitted changes prefer the narrow "not yet committed" view (working tree
vs HEAD) and only fall back to the feature-branch view (working tree vs base
branch) when HEAD shows nothing. Committed changes compare HEAD with its
parent, or with the base branch for a root commit.

An empty string means "no diff": either a brand-new file or a query that
could not be answered. Callers then review the whole file.
"""

from __future__ import annotations

import logging

from .errors import VcsQueryFailed
from .models import ChangeClass
from .vcs import GitRepository

logger = logging.getLogger(__name__)

FALLBACK_BASE_BRANCH = "main"
_BASE_BRANCH_NAMES = ("main", "master")


class DiffSelector:
    def __init__(self, git: GitRepository) -> None:
        self._git = git

    async def resolve_base_branch(self) -> str:
        try:
            local = await self._git.local_branches()
        except VcsQueryFailed:
            local = []
        for name in _BASE_BRANCH_NAMES:
            if name in local:
                return name

        try:
            remote = await self._git.remote_branches()
        except VcsQueryFailed:
            remote = []
        for name in _BASE_BRANCH_NAMES:
            for branch in remote:
                if branch.rsplit("/", 1)[-1] == name:
                    return branch

        try:
            return await self._git.current_upstream()
        except VcsQueryFailed:
            return FALLBACK_BASE_BRANCH

    async def select(self, path: str, change_class: ChangeClass) -> str:
        if change_class is ChangeClass.COMMITTED:
            return await self._committed_diff(path)
        return await self._uncommitted_diff(path)

    async def _safe_diff(self, *revisions: str, path: str) -> str:
        try:
            return await self._git.diff(*revisions, path=path)
        except VcsQueryFailed as exc:
            logger.debug("diff %s for %s unavailable: %s", revisions, path, exc)
            return ""

    async def _uncommitted_diff(self, path: str) -> str:
        base = await self.resolve_base_branch()

        try:
            tracked = await self._git.is_tracked(path)
        except VcsQueryFailed:
            tracked = False

        if tracked:
            head_diff = await self._safe_diff("HEAD", path=path)
            if head_diff.strip():
                return head_diff
            return await self._safe_diff(base, path=path)

        try:
            in_base = await self._git.exists_in(base, path)
        except VcsQueryFailed:
            in_base = False
        if not in_base:
            logger.debug("%s is new (not tracked, not in %s)", path, base)
            return ""
        return await self._safe_diff(base, path=path)

    async def _committed_diff(self, path: str) -> str:
        try:
            return await self._git.diff("HEAD~1", "HEAD", path=path)
        except VcsQueryFailed:
            # Root commit: there is no HEAD~1.
            base = await self.resolve_base_branch()
            return await self._safe_diff(base, "HEAD", path=path)
