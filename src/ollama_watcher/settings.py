"""Runtime configuration.

Settings come from the process environment. A `.env` file in the working
directory is loaded first, without overriding variables that are already set.

Recognised variables:
- OLLAMA_HOST (default: http://localhost)
- OLLAMA_PORT (default: 11434)
- OLLAMA_MODEL, falling back to DEFAULT_MODEL, then llama2
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HOST = "http://localhost"
DEFAULT_PORT = "11434"
DEFAULT_MODEL = "llama2"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    ollama_host: str = DEFAULT_HOST
    ollama_port: str = DEFAULT_PORT
    ollama_model: str = DEFAULT_MODEL

    # Quiet period before a burst of saves / ref updates is acted on.
    debounce_seconds: float = Field(default=1.0, ge=0.0)
    commit_debounce_seconds: float = Field(default=2.0, ge=0.0)

    # None means a review request may take as long as the model needs.
    request_timeout_seconds: float | None = None
    connect_timeout_seconds: float = 5.0
    health_timeout_seconds: float = 2.0

    @property
    def base_url(self) -> str:
        return f"{self.ollama_host.rstrip('/')}:{self.ollama_port}"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        model = env.get("OLLAMA_MODEL") or env.get("DEFAULT_MODEL") or DEFAULT_MODEL
        return cls(
            ollama_host=env.get("OLLAMA_HOST") or DEFAULT_HOST,
            ollama_port=env.get("OLLAMA_PORT") or DEFAULT_PORT,
            ollama_model=model,
        )


def load_settings(*, env_file: Path | None = None) -> Settings:
    """Load `.env` (if present) and build settings from the environment."""

    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True), override=False)
    return Settings.from_env()
