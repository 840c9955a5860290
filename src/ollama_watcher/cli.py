"""Command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path

from . import __version__
from .backend import OllamaReviewClient
from .engine import ReviewEngine
from .errors import RepositoryNotFound, VcsQueryFailed
from .logging_setup import configure_logging
from .models import Verbosity
from .render import ConsoleRenderer
from .session import WatchSession
from .settings import Settings, load_settings
from .vcs import GitRepository
from .watcher import start_observer, stop_observer

logger = logging.getLogger(__name__)

USAGE_EXAMPLES = """
examples:
  ollama-watcher --watch
  ollama-watcher --watch --dir ../my-project
  ollama-watcher -w -l                 short, line-numbered suggestions

environment:
  OLLAMA_HOST   (default http://localhost)
  OLLAMA_PORT   (default 11434)
  OLLAMA_MODEL  (default DEFAULT_MODEL, then llama2)
"""


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-watcher",
        description="Watch code files and get AI-powered reviews via Ollama",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-w", "--watch", action="store_true",
        help="Watch files for changes and review with Ollama",
    )
    parser.add_argument(
        "-d", "--dir", default=os.getcwd(), metavar="DIRECTORY",
        help="Directory to watch (default: current directory)",
    )
    parser.add_argument(
        "-l", "--light", action="store_true",
        help="Light mode: 2-3 short, line-numbered suggestions per review",
    )
    parser.add_argument("-m", "--model", default=None, help="Override the configured Ollama model")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


async def _wait_forever() -> None:
    """Park the watch loop until the interrupt cancels the main task."""
    await asyncio.Event().wait()


async def run_watch(
    base_dir: Path,
    settings: Settings,
    renderer: ConsoleRenderer,
    *,
    light: bool = False,
    model: str | None = None,
) -> int:
    """Check prerequisites, then watch until cancelled. Returns an exit status."""

    try:
        probe = GitRepository(base_dir)
        await probe.ensure_work_tree()
        repo_root = await probe.toplevel()
        git_dir = await probe.git_dir()
    except (RepositoryNotFound, VcsQueryFailed) as exc:
        renderer.fatal(exc.message, "Please run this command in a git repository.")
        return 1
    logger.debug("Work tree %s, git dir %s", repo_root, git_dir)

    backend = OllamaReviewClient(settings, model=model)
    health = await backend.check_health()
    if not health.reachable:
        logger.debug("Liveness probe failed: %s", health.error)
        await backend.aclose()
        renderer.fatal(
            f"Cannot connect to Ollama at {settings.base_url}",
            "Please ensure Ollama is running and accessible "
            f"(OLLAMA_HOST={settings.ollama_host}, OLLAMA_PORT={settings.ollama_port}).",
        )
        return 1
    renderer.connected(settings.base_url)

    session = WatchSession(
        base_dir=base_dir,
        repo_root=repo_root,
        verbosity=Verbosity.LIGHT if light else Verbosity.FULL,
    )
    engine = ReviewEngine(
        session,
        settings=settings,
        git=GitRepository(repo_root),
        backend=backend,
        renderer=renderer,
    )
    await engine.start()

    observer = start_observer(
        base_dir, asyncio.get_running_loop(), engine.dispatch, git_dir=git_dir
    )
    renderer.banner(
        base_dir=str(base_dir),
        base_url=settings.base_url,
        model=backend.model,
        light=light,
    )
    try:
        await _wait_forever()
    finally:
        stop_observer(observer)
        session.close()
        await backend.aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.watch:
        parser.print_help()
        return 0

    configure_logging(verbose=args.verbose)
    settings = load_settings()
    renderer = ConsoleRenderer()
    base_dir = Path(args.dir).expanduser().resolve()

    try:
        return asyncio.run(
            run_watch(base_dir, settings, renderer, light=args.light, model=args.model)
        )
    except KeyboardInterrupt:
        renderer.stopping()
        return 0
