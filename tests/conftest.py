from __future__ import annotations

import asyncio
import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from ollama_watcher.backend import CancelToken
from ollama_watcher.errors import ReviewCancelled
from ollama_watcher.render import ConsoleRenderer
from ollama_watcher.settings import Settings


def run_git(repo: Path, args: list[str]) -> str:
    """Run git command with GPG signing disabled."""
    completed = subprocess.run(
        ["git", "-C", str(repo), "-c", "commit.gpgsign=false", *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def write(repo: Path, rel: str, text: str) -> Path:
    path = repo / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repo on `main` with one commit."""

    repo = tmp_path / "repo"
    repo.mkdir(parents=True, exist_ok=True)

    run_git(repo, ["init"])
    run_git(repo, ["symbolic-ref", "HEAD", "refs/heads/main"])
    run_git(repo, ["config", "user.email", "test@example.com"])
    run_git(repo, ["config", "user.name", "Watcher Test"])

    write(repo, "src/app.js", "function hello() {\n  return 'hello';\n}\n")
    write(repo, "README.md", "# Demo\n")
    write(repo, ".gitignore", "dist/\n*.log\n")

    run_git(repo, ["add", "."])
    run_git(repo, ["commit", "-m", "initial"])
    return repo.resolve()


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(debounce_seconds=0.05, commit_debounce_seconds=0.05)


@pytest.fixture
def renderer() -> MagicMock:
    return MagicMock(spec=ConsoleRenderer)


class MockReviewBackend:
    """Stands in for OllamaReviewClient.

    Prompts containing a key of `hold` block until that event is set; the
    cancel token is honoured while blocked.
    """

    def __init__(self, review_text: str = "LGTM. No issues found.") -> None:
        self.review_text = review_text
        self.prompts: list[str] = []
        self.hold: dict[str, asyncio.Event] = {}
        self.started = asyncio.Event()

    @property
    def model(self) -> str:
        return "mock-model"

    async def review(self, prompt: str, cancel_token: CancelToken) -> str:
        self.prompts.append(prompt)
        self.started.set()
        for marker, gate in self.hold.items():
            if marker in prompt:
                waiter = asyncio.ensure_future(gate.wait())
                cancelled = asyncio.ensure_future(cancel_token.wait())
                await asyncio.wait({waiter, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                waiter.cancel()
                cancelled.cancel()
        if cancel_token.cancelled:
            raise ReviewCancelled()
        return self.review_text

    async def aclose(self) -> None:
        return None


@pytest.fixture
def mock_backend() -> MockReviewBackend:
    return MockReviewBackend()


def rendered_paths(renderer: MagicMock) -> list[str]:
    return [c.args[0] for c in renderer.review.call_args_list]


def call_names(mock: Any) -> list[str]:
    return [c[0] for c in mock.method_calls]
