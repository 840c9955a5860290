"""Error types for the watcher.

Every error carries a human-readable message, a `recoverable` flag and a
metadata-only `context` dict. Only startup failures end the process; the rest
are handled where they occur:

- VcsQueryFailed: replaced by an empty result by the caller.
- FileUnreadable: content is fetched from git instead, else the file is skipped.
- BackendError / BackendUnreachable: reported to the user, session keeps running.
- ReviewCancelled: a newer review superseded this one; logged, never shown as an error.
"""

from __future__ import annotations

from typing import Any


class WatcherError(Exception):
    """Base class for all watcher errors."""

    error_type = "watcher"

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.context: dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "message": self.message,
            "recoverable": self.recoverable,
            **self.context,
        }


class VcsQueryFailed(WatcherError):
    """A git command exited non-zero or could not be started."""

    error_type = "vcs"

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        context: dict[str, Any] = {}
        if command is not None:
            context["command"] = " ".join(command)
        if returncode is not None:
            context["returncode"] = returncode
        if stderr:
            # Keep the payload bounded.
            context["stderr"] = stderr.strip()[-500:]
        super().__init__(message, recoverable=True, context=context)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class RepositoryNotFound(WatcherError):
    """The watched directory is not inside a git work tree."""

    error_type = "repository"

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message, context={"path": path} if path else None)
        self.path = path


class FileUnreadable(WatcherError):
    error_type = "file"

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message, recoverable=True, context={"path": path})
        self.path = path


class BackendError(WatcherError):
    """The review backend answered with something other than a usable success."""

    error_type = "backend"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        base_url: str | None = None,
        recoverable: bool = False,
    ) -> None:
        context: dict[str, Any] = {}
        if status is not None:
            context["status"] = status
        if base_url:
            context["base_url"] = base_url
        super().__init__(message, recoverable=recoverable, context=context)
        self.status = status
        self.base_url = base_url


class BackendUnreachable(BackendError):
    """No connection could be made to the review backend."""

    error_type = "backend_unreachable"

    def __init__(self, message: str, *, base_url: str | None = None) -> None:
        super().__init__(message, base_url=base_url, recoverable=True)


class ReviewCancelled(WatcherError):
    """A newer review request superseded this one."""

    error_type = "cancelled"

    def __init__(self, message: str = "Review superseded by a newer request") -> None:
        super().__init__(message, recoverable=True)
