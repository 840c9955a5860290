"""ollama-watcher - review saved files and new commits with a local Ollama model."""

from __future__ import annotations

__version__ = "1.0.0"

__all__ = ["__version__"]
