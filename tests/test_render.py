from __future__ import annotations

import io

import pytest
from rich.console import Console

from ollama_watcher.errors import BackendError, BackendUnreachable
from ollama_watcher.models import ChangeClass, CommitSnapshot
from ollama_watcher.render import ConsoleRenderer, Sentiment, classify_sentiment, format_review


def _renderer(**kwargs) -> tuple[ConsoleRenderer, io.StringIO]:
    buf = io.StringIO()
    console = Console(file=buf, force_terminal=False, color_system=None, width=200)
    return ConsoleRenderer(console, **kwargs), buf


class TestClassifySentiment:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Clean, readable code. Good naming and excellent structure.", Sentiment.POSITIVE),
            ("Bug: null dereference. Another issue: missing error handling.", Sentiment.NEGATIVE),
            ("The function renames a variable.", Sentiment.NEUTRAL),
            ("Good structure but one bug.", Sentiment.NEUTRAL),
        ],
    )
    def test_keyword_balance(self, text: str, expected: Sentiment) -> None:
        assert classify_sentiment(text) is expected


class TestFormatReview:
    def test_styles(self) -> None:
        out = format_review("1. **Summary**: ok\n- use `const`\n```js\nx\n```")

        assert out.plain == "1. Summary: ok\n- use const\njs\nx\n"
        styled = [(out.plain[span.start:span.end], str(span.style)) for span in out.spans]
        assert ("1.", "green") in styled
        assert ("Summary", "bold yellow") in styled
        assert ("-", "cyan") in styled
        assert ("const", "grey58") in styled

    def test_model_brackets_are_escaped(self) -> None:
        renderer, buf = _renderer()
        renderer.review("a.py", "Use list[str] and [red]not markup[/red]", ChangeClass.UNCOMMITTED)
        assert "list[str]" in buf.getvalue()
        assert "[red]not markup[/red]" in buf.getvalue()

    @pytest.mark.parametrize(
        ("text", "visible"),
        [
            ("Use C:\\**Windows** paths carefully", "Use C:\\Windows paths carefully"),
            ("Escape with \\`re.escape`", "Escape with \\re.escape"),
            ("trailing backslash \\", "trailing backslash \\"),
        ],
    )
    def test_backslashes_render_verbatim(self, text: str, visible: str) -> None:
        renderer, buf = _renderer()

        renderer.review("a.py", text, ChangeClass.UNCOMMITTED)

        out = buf.getvalue()
        assert visible in out
        assert "[/" not in out


class TestConsoleRenderer:
    def test_review_uses_injected_classifier(self) -> None:
        renderer, buf = _renderer(classifier=lambda text: Sentiment.NEGATIVE)

        renderer.review("src/a.js", "All fine.", ChangeClass.COMMITTED)

        out = buf.getvalue()
        assert "Code Review (committed): src/a.js" in out
        assert "[needs attention]" in out
        assert "All fine." in out

    def test_unreachable_guidance(self) -> None:
        renderer, buf = _renderer()

        renderer.backend_failure("a.js", BackendUnreachable("refused", base_url="http://localhost:11434"))

        out = buf.getvalue()
        assert "Make sure Ollama is running at http://localhost:11434" in out
        assert "OLLAMA_HOST and OLLAMA_PORT" in out

    def test_status_error_guidance(self) -> None:
        renderer, buf = _renderer()
        renderer.backend_failure("a.js", BackendError("Ollama API error: 404 Not Found", status=404))
        assert "OLLAMA_MODEL" in buf.getvalue()

    def test_commit_messages(self) -> None:
        renderer, buf = _renderer()
        snapshot = CommitSnapshot(revision="abc1234def", message="fix [urgent] bug", files=["x.js"])

        renderer.commit_detected(snapshot)
        renderer.commit_finished(snapshot)

        out = buf.getvalue()
        assert "New commit detected: abc1234 - fix [urgent] bug" in out
        assert "Reviewing 1 file(s) in commit" in out
        assert "Finished reviewing commit abc1234" in out

    def test_empty_commit_message(self) -> None:
        renderer, buf = _renderer()
        renderer.commit_detected(CommitSnapshot(revision="abc1234", message="empty"))
        assert "No files changed in this commit." in buf.getvalue()

    def test_banner(self) -> None:
        renderer, buf = _renderer()
        renderer.banner(base_dir="/work", base_url="http://localhost:11434", model="llama2", light=True)

        out = buf.getvalue()
        assert "Base directory: /work" in out
        assert "Ollama: http://localhost:11434" in out
        assert "Model: llama2" in out
        assert "Mode: light" in out
