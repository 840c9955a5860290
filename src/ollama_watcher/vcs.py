"""Git query adapter.

Thin wrapper over the `git` command line. Every query runs in a worker thread
(`asyncio.to_thread`) so the event loop never blocks on a subprocess.

All failures surface as `VcsQueryFailed`; deciding what an empty/fallback
result means is left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .errors import RepositoryNotFound, VcsQueryFailed

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30


def _run_git(
    repo: Path,
    args: list[str],
    *,
    timeout: int = _DEFAULT_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """Run `git -C repo args...` and return the completed process."""
    cmd = ["git", "-C", str(repo), *args]
    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise VcsQueryFailed(f"git timed out: {' '.join(args)}", command=cmd) from exc
    except FileNotFoundError as exc:
        raise VcsQueryFailed("git executable not found", command=cmd) from exc


def _checked(repo: Path, args: list[str]) -> str:
    result = _run_git(repo, args)
    if result.returncode != 0:
        raise VcsQueryFailed(
            f"git {args[0]} failed",
            command=["git", *args],
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result.stdout


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


@dataclass(frozen=True)
class CommitInfo:
    revision: str
    message: str


class GitRepository:
    """Async git queries against one work tree."""

    def __init__(self, root: Path) -> None:
        self.root = root

    async def _git(self, *args: str) -> str:
        return await asyncio.to_thread(_checked, self.root, list(args))

    # -------------------------------------------------------------------------
    # Repository / revisions
    # -------------------------------------------------------------------------

    async def ensure_work_tree(self) -> None:
        """Raise RepositoryNotFound unless `root` is inside a git work tree."""
        try:
            out = await self._git("rev-parse", "--is-inside-work-tree")
        except VcsQueryFailed as exc:
            raise RepositoryNotFound(
                f"{self.root} is not a git repository", path=str(self.root)
            ) from exc
        if out.strip() != "true":
            raise RepositoryNotFound(
                f"{self.root} is not a git work tree", path=str(self.root)
            )

    async def toplevel(self) -> Path:
        """Root of the work tree containing `root` (which may be a subdirectory)."""
        out = await self._git("rev-parse", "--show-toplevel")
        return Path(out.strip()).resolve()

    async def git_dir(self) -> Path:
        out = await self._git("rev-parse", "--absolute-git-dir")
        return Path(out.strip()).resolve()

    async def rev_parse(self, ref: str) -> str:
        out = await self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        revision = out.strip()
        if not revision:
            raise VcsQueryFailed(f"unknown revision: {ref}")
        return revision

    async def last_commit(self) -> CommitInfo:
        out = await self._git("log", "-1", "--format=%H%x00%s")
        revision, _, message = out.strip().partition("\x00")
        if not revision:
            raise VcsQueryFailed("repository has no commits")
        return CommitInfo(revision=revision, message=message)

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    async def local_branches(self) -> list[str]:
        return _lines(await self._git("branch", "--format=%(refname:short)"))

    async def remote_branches(self) -> list[str]:
        out = await self._git("branch", "-r", "--format=%(refname:short)")
        # Skip symbolic entries such as "origin/HEAD" / "origin".
        return [b for b in _lines(out) if "/" in b and not b.endswith("/HEAD")]

    async def current_upstream(self) -> str:
        out = await self._git("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")
        upstream = out.strip()
        if not upstream:
            raise VcsQueryFailed("current branch has no upstream")
        return upstream

    # -------------------------------------------------------------------------
    # Diffs and trees
    # -------------------------------------------------------------------------

    async def diff(self, *revisions: str, path: str) -> str:
        """`git diff <revisions...> -- path` (working tree when one revision)."""
        return await self._git("diff", *revisions, "--", path)

    async def diff_tree_names(self, revision: str = "HEAD") -> list[str]:
        out = await self._git("diff-tree", "--no-commit-id", "--name-only", "-r", revision)
        return _lines(out)

    async def commit_file_names(self, revision: str = "HEAD") -> list[str]:
        out = await self._git("show", "--name-only", "--pretty=format:", revision)
        return _lines(out)

    async def show(self, path: str, revision: str = "HEAD") -> str:
        return await self._git("show", f"{revision}:{path}")

    # -------------------------------------------------------------------------
    # Path membership
    # -------------------------------------------------------------------------

    async def is_tracked(self, path: str) -> bool:
        result = await asyncio.to_thread(
            _run_git, self.root, ["ls-files", "--error-unmatch", "--", path]
        )
        return result.returncode == 0

    async def exists_in(self, ref: str, path: str) -> bool:
        out = await self._git("ls-tree", "--name-only", ref, "--", path)
        return bool(out.strip())

    async def is_ignored(self, path: str) -> bool:
        """`git check-ignore`: exit 0 ignored, exit 1 not ignored, else error."""
        result = await asyncio.to_thread(
            _run_git, self.root, ["check-ignore", "-q", "--", path]
        )
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise VcsQueryFailed(
            "git check-ignore failed",
            command=["git", "check-ignore", path],
            returncode=result.returncode,
            stderr=result.stderr,
        )
