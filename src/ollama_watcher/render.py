"""Terminal presentation.

Stateless: the engine tells the renderer what happened and the renderer
decides how it looks. Sentiment tagging is a plain keyword count kept apart
from rendering so it can be swapped out.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import Enum

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.text import Text

from .errors import BackendError, BackendUnreachable
from .models import ChangeClass, CommitSnapshot


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


_POSITIVE_WORDS = re.compile(
    r"\b(good|great|excellent|well[- ]structured|clean|clear|readable|solid|"
    r"correct(ly)?|nice|looks fine|no issues)\b",
    re.IGNORECASE,
)
_NEGATIVE_WORDS = re.compile(
    r"\b(bugs?|issues?|errors?|problems?|vulnerab\w*|incorrect|fails?|failure|"
    r"missing|crash(es)?|leaks?|unsafe|broken|race condition|injection)\b",
    re.IGNORECASE,
)


def classify_sentiment(text: str) -> Sentiment:
    positive = len(_POSITIVE_WORDS.findall(text))
    negative = len(_NEGATIVE_WORDS.findall(text))
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


_SENTIMENT_STYLE: dict[Sentiment, tuple[str, str]] = {
    Sentiment.POSITIVE: ("green", "looks good"),
    Sentiment.NEUTRAL: ("blue", "mixed"),
    Sentiment.NEGATIVE: ("red", "needs attention"),
}


_LIST_MARKER = re.compile(r"^(\s*(?:\d+\.|[-•]))(\s+)")
_INLINE = re.compile(r"\*\*(.+?)\*\*|`([^`\n]+)`")


def format_review(text: str) -> Text:
    """Turn model markdown into styled text (bold, lists, inline code).

    The model's text is never parsed as markup; styles are attached as spans.
    """

    out = Text()
    for index, line in enumerate(text.replace("```", "").split("\n")):
        if index:
            out.append("\n")
        marker = _LIST_MARKER.match(line)
        if marker:
            bullet = marker.group(1)
            out.append(bullet, style="green" if bullet.strip()[0].isdigit() else "cyan")
            out.append(marker.group(2))
            line = line[marker.end():]
        pos = 0
        for match in _INLINE.finditer(line):
            out.append(line[pos:match.start()])
            if match.group(1) is not None:
                out.append(match.group(1), style="bold yellow")
            else:
                out.append(match.group(2), style="grey58")
            pos = match.end()
        out.append(line[pos:])
    return out


class ConsoleRenderer:
    def __init__(
        self,
        console: Console | None = None,
        *,
        classifier: Callable[[str], Sentiment] = classify_sentiment,
    ) -> None:
        self.console = console or Console()
        self._classify = classifier

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    def connected(self, base_url: str) -> None:
        self.console.print(f"[green]Connected to Ollama at {escape(base_url)}[/green]")

    def banner(self, *, base_dir: str, base_url: str, model: str, light: bool) -> None:
        self.console.print()
        self.console.print("[bold green]Watching for file changes and commits...[/bold green]")
        self.console.print(f"[dim]   Base directory: {escape(base_dir)}[/dim]")
        self.console.print(f"[dim]   Ollama: {escape(base_url)}[/dim]")
        self.console.print(f"[dim]   Model: {escape(model)}[/dim]")
        if light:
            self.console.print("[dim]   Mode: light[/dim]")
        self.console.print("[dim]   Press Ctrl+C to stop[/dim]")
        self.console.print()

    def stopping(self) -> None:
        self.console.print("\n[yellow]Stopping watcher...[/yellow]")

    def fatal(self, message: str, hint: str | None = None) -> None:
        self.console.print(f"[red]Error: {escape(message)}[/red]")
        if hint:
            self.console.print(f"[red]   {escape(hint)}[/red]")

    # -------------------------------------------------------------------------
    # Per-file progress
    # -------------------------------------------------------------------------

    def analyzing(self, path: str) -> None:
        self.console.print(f"\n[yellow]Analyzing: {escape(path)}[/yellow]")

    def skipped(self, path: str, reason: str) -> None:
        self.console.print(f"[dim]Skipping {escape(reason)} file: {escape(path)}[/dim]")

    def requesting(self, path: str, change_class: ChangeClass) -> None:
        if change_class is ChangeClass.COMMITTED:
            self.console.print(f"[dim]Requesting review for committed file: {escape(path)}...[/dim]")
        else:
            self.console.print("[dim]Requesting review from Ollama...[/dim]")

    def review(self, path: str, text: str, change_class: ChangeClass) -> None:
        style, label = _SENTIMENT_STYLE[self._classify(text)]
        title = f"Code Review ({change_class.value}): {escape(path)}"
        self.console.print()
        self.console.print(Rule(f"[bold cyan]{title}[/bold cyan]", style="cyan"))
        self.console.print(f"[{style}]\\[{label}][/{style}]\n")
        self.console.print(format_review(text))
        self.console.print(Rule(style="cyan"))

    def backend_failure(self, path: str, exc: BackendError) -> None:
        self.console.print(f"\n[red]Error processing {escape(path)}: {escape(exc.message)}[/red]")
        if isinstance(exc, BackendUnreachable):
            where = exc.base_url or "the configured address"
            self.console.print(f"[red]   Make sure Ollama is running at {escape(where)}[/red]")
            self.console.print("[red]   Start Ollama or check your OLLAMA_HOST and OLLAMA_PORT settings.[/red]")
        elif exc.status is not None and exc.status == 404:
            self.console.print("[red]   Check that the model in OLLAMA_MODEL has been pulled.[/red]")

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------

    def commit_detected(self, snapshot: CommitSnapshot) -> None:
        self.console.print(
            f"\n[magenta]New commit detected: {snapshot.short_revision} - "
            f"{escape(snapshot.message)}[/magenta]\n"
        )
        if snapshot.files:
            self.console.print(f"[yellow]Reviewing {len(snapshot.files)} file(s) in commit...[/yellow]")
        else:
            self.console.print("[dim]No files changed in this commit.[/dim]")

    def commit_finished(self, snapshot: CommitSnapshot) -> None:
        self.console.print(f"\n[green]Finished reviewing commit {snapshot.short_revision}[/green]\n")
