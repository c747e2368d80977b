import logging
from typing import Any, Optional

import httpx

from bridge_console.config import DEFAULT_BRIDGE_URL, REQUEST_TIMEOUT
from bridge_console.errors import TransportError
from bridge_console.models import CommandReceipt

logger = logging.getLogger(__name__)

LAST_MESSAGE_ID_HEADER = "X-Last-Message-Id"


class BridgeClient:
    """HTTP access to the bridge's /api endpoints.

    Every failure, whether a non-2xx status or a connection problem, is
    raised as TransportError.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BRIDGE_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self):
        await self._client.aclose()

    async def get_state(self) -> Any:
        response = await self._request("GET", "/api/state")
        if response.status_code != 200:
            raise TransportError(f"STATE {response.status_code}", response.status_code)
        return self._json(response)

    async def get_messages(self, after: int) -> tuple[str, Optional[str]]:
        """Return the body and the last-message-id header for entries newer than ``after``."""
        response = await self._request("GET", "/api/messages", params={"after": after})
        if response.status_code != 200:
            raise TransportError(f"MESSAGES {response.status_code}", response.status_code)
        return response.text, response.headers.get(LAST_MESSAGE_ID_HEADER)

    async def send_command(self, payload: dict) -> CommandReceipt:
        response = await self._post("/api/cmd", payload)
        return CommandReceipt.model_validate(self._json(response) or {})

    async def get_thresholds(self) -> Any:
        response = await self._request("GET", "/api/thresholds")
        if not response.is_success:
            raise TransportError(f"THRESHOLDS {response.status_code}", response.status_code)
        return self._json(response)

    async def update_thresholds(self, payload: dict) -> Any:
        response = await self._post("/api/thresholds", payload)
        return self._json(response)

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        response = await self._request("POST", path, json=payload)
        if not response.is_success:
            # The bridge explains rejections in the body
            message = response.text or f"HTTP {response.status_code}"
            raise TransportError(message, response.status_code)
        return response

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.debug(f"Timeout on {method} {path}")
            raise TransportError(f"timeout contacting bridge at {self.base_url}") from e
        except httpx.HTTPError as e:
            logger.debug(f"Cannot reach bridge for {method} {path}: {e}")
            raise TransportError(str(e) or type(e).__name__) from e

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"invalid JSON from {response.request.url.path}", response.status_code) from e
