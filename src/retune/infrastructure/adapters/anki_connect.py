import logging
import os
from typing import Any

import httpx

from retune.domain.constants import REQUEST_TIMEOUT, RESPONSIVENESS_TIMEOUT


class AnkiConnectError(Exception):
    """AnkiConnect answered with an error message."""


class AnkiConnectClient:
    """Minimal client for the AnkiConnect add-on (HTTP API, version 6)."""

    def __init__(self, url: str = "http://127.0.0.1:8765"):
        """Initialize with AnkiConnect URL, honouring the ANKI_CONNECT_HOST override."""
        self.logger = logging.getLogger(__name__)
        self._client: httpx.AsyncClient | None = None

        env_host = os.environ.get("ANKI_CONNECT_HOST")
        if env_host:
            url = f"http://{env_host}:8765"
            self.logger.info(f"Using ANKI_CONNECT_HOST override: {url}")

        self.url = url
        self.logger.debug(f"AnkiConnectClient initialized with url={self.url}")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        return self._client

    async def is_responsive(self) -> bool:
        """Check if AnkiConnect is reachable and has the expected API version."""
        try:
            payload = {"action": "version", "version": 6}
            resp = await self._get_client().post(
                self.url, json=payload, timeout=RESPONSIVENESS_TIMEOUT
            )
            if resp.status_code == 200:
                data = resp.json()
                return int(data.get("result", 0)) >= 6
            return False
        except (httpx.HTTPError, ValueError):
            return False

    async def invoke(self, action: str, **params) -> Any:
        payload = {"action": action, "version": 6, "params": params}
        try:
            resp = await self._get_client().post(self.url, json=payload)
            resp.raise_for_status()
            data = resp.json()

            if len(data) != 2:
                raise ValueError("response has an unexpected number of fields")
            if "error" not in data:
                raise ValueError("response is missing required error field")
            if "result" not in data:
                raise ValueError("response is missing required result field")
            if data["error"] is not None:
                raise AnkiConnectError(data["error"])
            return data["result"]
        except Exception as e:
            self.logger.error(f"AnkiConnect call '{action}' failed: {e}")
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
