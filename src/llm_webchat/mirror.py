"""Client for the local config mirror endpoints.

The mirror is a convenience copy of the API key and model; every failure
here is logged and reported as "nothing mirrored" rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

import httpx

LOGGER = logging.getLogger(__name__)

GET_CONFIG_PATH = "/api/get-config"
UPDATE_CONFIG_PATH = "/api/update-config"


@dataclass(frozen=True)
class MirroredConfig:
    api_key: str
    model: str

    @property
    def complete(self) -> bool:
        return bool(self.api_key and self.model)


class ConfigMirrorClient:
    """Read and write ``{apiKey, model}`` through the helper server."""

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self) -> MirroredConfig | None:
        try:
            response = await self._client.get(f"{self.base_url}{GET_CONFIG_PATH}")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.info(
                "mirror.fetch_failed",
                extra={"event": "mirror.fetch_failed", "reason": str(exc)},
            )
            return None
        if not isinstance(payload, dict):
            return None
        return MirroredConfig(
            api_key=str(payload.get("apiKey") or ""),
            model=str(payload.get("model") or ""),
        )

    async def push(self, api_key: str, model: str) -> bool:
        try:
            response = await self._client.post(
                f"{self.base_url}{UPDATE_CONFIG_PATH}",
                json={"apiKey": api_key, "model": model},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "mirror.push_failed",
                extra={"event": "mirror.push_failed", "reason": str(exc)},
            )
            return False
        LOGGER.info("mirror.pushed", extra={"event": "mirror.pushed", "model": model})
        return True
