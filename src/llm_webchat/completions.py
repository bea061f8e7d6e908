"""Async client for the remote chat-completion endpoint."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from .exceptions import RemoteCallError
from .request_builder import CompletionRequest

LOGGER = logging.getLogger(__name__)


class CompletionsClient:
    """Single-attempt POST to ``{base_url}/chat/completions``.

    There is no retry and no cancellation; a ``timeout`` of ``0`` or ``None``
    waits indefinitely.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        timeout: float | None = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def __aenter__(self) -> CompletionsClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def complete(self, request: CompletionRequest, api_key: str) -> str:
        """Send the request and return the assistant message text."""
        started = time.perf_counter()
        LOGGER.info(
            "completions.request.start",
            extra={
                "event": "completions.request.start",
                "model": request.model,
                "policy": request.policy,
                "message_count": len(request.messages),
            },
        )
        try:
            response = await self._client.post(
                self.endpoint,
                json=request.to_payload(),
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Network error: {exc}") from exc

        if not response.is_success:
            raise RemoteCallError(
                self._error_message(response), status_code=response.status_code
            )

        content = self._extract_content(response)
        LOGGER.info(
            "completions.request.complete",
            extra={
                "event": "completions.request.complete",
                "model": request.model,
                "elapsed_ms": round((time.perf_counter() - started) * 1000),
            },
        )
        return content

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        message = f"API Error: {response.status_code} {response.reason_phrase}"
        try:
            payload: Any = response.json()
        except ValueError:
            LOGGER.warning(
                "completions.error_body_unparsable",
                extra={
                    "event": "completions.error_body_unparsable",
                    "status_code": response.status_code,
                },
            )
            return message
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict) and error.get("message"):
            message += f" - {error['message']}"
        return message

    @staticmethod
    def _extract_content(response: httpx.Response) -> str:
        try:
            payload = response.json()
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise RemoteCallError(
                "Malformed completion response.", status_code=response.status_code
            ) from exc
        if not isinstance(content, str) or not content.strip():
            raise RemoteCallError(
                "Completion response contained no text.",
                status_code=response.status_code,
            )
        return content
