from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .prompts import build_prompt


class ChangeClass(str, Enum):
    UNCOMMITTED = "uncommitted"
    COMMITTED = "committed"


class Verbosity(str, Enum):
    FULL = "full"
    LIGHT = "light"


# ============================================================================
# Change events (observer -> engine)
# ============================================================================


@dataclass(frozen=True)
class FileSaved:
    path: str


@dataclass(frozen=True)
class HeadMoved:
    pass


ChangeEvent = FileSaved | HeadMoved


# ============================================================================
# Review units
# ============================================================================


@dataclass(frozen=True)
class ReviewRequest:
    """Everything needed to ask the backend for one file review."""

    path: str
    content: str
    diff: str
    change_class: ChangeClass
    verbosity: Verbosity = Verbosity.FULL

    @property
    def is_new_file(self) -> bool:
        return not self.diff.strip()

    @property
    def prompt(self) -> str:
        return build_prompt(
            self.path,
            self.content,
            self.diff,
            committed=self.change_class is ChangeClass.COMMITTED,
            light=self.verbosity is Verbosity.LIGHT,
        )


@dataclass(frozen=True)
class CommitSnapshot:
    revision: str
    message: str
    files: list[str] = field(default_factory=list)

    @property
    def short_revision(self) -> str:
        return self.revision[:7]
