"""Ollama review backend.

Reviews go through the non-streaming `/api/generate` endpoint. Only one call
is meaningful at a time: the caller passes a `CancelToken`, and cancelling it
abandons the HTTP request and makes `review()` raise `ReviewCancelled`, so a
superseded response can never reach the user.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import BackendError, BackendUnreachable, ReviewCancelled
from .settings import Settings

logger = logging.getLogger(__name__)


class CancelToken:
    """One-shot cancellation flag that can also be awaited."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class BackendHealth:
    reachable: bool
    model_count: int | None
    error: str | None


class OllamaReviewClient:
    def __init__(
        self,
        settings: Settings,
        *,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._url = settings.base_url + "/api/generate"
        self._model = model or settings.ollama_model
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.request_timeout_seconds,
                connect=settings.connect_timeout_seconds,
            ),
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._model

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check_health(self) -> BackendHealth:
        """Probe the tags endpoint. Never raises.

        Privacy: does not send any user content.
        """

        url = self._settings.base_url + "/api/tags"
        try:
            res = await self._client.get(url, timeout=self._settings.health_timeout_seconds)
            res.raise_for_status()
            payload = res.json()
            models = payload.get("models") or []
            return BackendHealth(reachable=True, model_count=len(models), error=None)
        except Exception as exc:  # noqa: BLE001
            return BackendHealth(reachable=False, model_count=None, error=str(exc))

    async def review(self, prompt: str, cancel_token: CancelToken) -> str:
        """Send `prompt` and return the model's text, unless cancelled first."""
        if cancel_token.cancelled:
            raise ReviewCancelled()

        request = asyncio.create_task(self._generate(prompt))
        cancelled = asyncio.create_task(cancel_token.wait())
        try:
            await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            cancelled.cancel()

        if cancel_token.cancelled:
            # A late response is collected and dropped.
            request.cancel()
            await asyncio.gather(request, return_exceptions=True)
            raise ReviewCancelled()

        return request.result()

    async def _generate(self, prompt: str) -> str:
        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
        }
        base_url = self._settings.base_url
        try:
            res = await self._client.post(self._url, json=payload)
        except httpx.TransportError as exc:
            raise BackendUnreachable(
                f"Failed to connect to Ollama at {base_url}: {exc}", base_url=base_url
            ) from exc

        if not res.is_success:
            raise BackendError(
                f"Ollama API error: {res.status_code} {res.reason_phrase}",
                status=res.status_code,
                base_url=base_url,
            )

        try:
            data = res.json()
        except ValueError as exc:
            raise BackendError(
                "Unexpected Ollama response: body is not JSON",
                status=res.status_code,
                base_url=base_url,
            ) from exc

        text = data.get("response") if isinstance(data, dict) else None
        if text is None:
            return ""
        if not isinstance(text, str):
            raise BackendError(
                "Unexpected Ollama response: response is not text",
                status=res.status_code,
                base_url=base_url,
            )
        return text.strip()
