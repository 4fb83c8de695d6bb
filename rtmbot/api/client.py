"""Minimal web API client: session resolution and rich message posting."""

import json
from dataclasses import dataclass
from typing import Any, Sequence

import httpx
from loguru import logger

from rtmbot.bus.events import Attachment
from rtmbot.errors import BootstrapError, DeliveryError


@dataclass(frozen=True)
class SessionInfo:
    """Result of ``rtm.start``: where to connect and who we are."""

    endpoint: str
    self_id: str


class SlackWebClient:
    """
    Async client for the two web API calls the bot needs.

    Pass ``http_client`` to share a connection pool or to inject a mock
    transport in tests. A client created here is closed by ``aclose()``.
    """

    def __init__(
        self,
        token: str,
        api_base: str = "https://slack.com/api",
        timeout_s: float = 20.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def rtm_start(self) -> SessionInfo:
        """
        Resolve the realtime endpoint and the bot's own identity.

        Raises:
            BootstrapError: On network failure, a non-200 status, an
                undecodable body, or an ``ok: false`` response.
        """
        url = f"{self.api_base}/rtm.start"
        try:
            resp = await self._http.get(url, params={"token": self.token})
        except httpx.HTTPError as e:
            raise BootstrapError(f"API request failed: {e}") from e

        if resp.status_code != 200:
            raise BootstrapError(f"API request failed with code {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise BootstrapError(f"API response is not JSON: {e}") from e
        if not isinstance(body, dict):
            raise BootstrapError("API response is not a JSON object")

        if not body.get("ok"):
            raise BootstrapError(f"Slack error: {body.get('error', '')}")

        endpoint = body.get("url") or ""
        if not isinstance(endpoint, str):
            raise BootstrapError(f"API response has a non-string url: {endpoint!r}")
        self_obj = body.get("self") or {}
        if not isinstance(self_obj, dict):
            raise BootstrapError("API response has a non-object self field")
        self_id = self_obj.get("id") or ""
        if not isinstance(self_id, str):
            raise BootstrapError(f"API response has a non-string self id: {self_id!r}")
        return SessionInfo(endpoint=endpoint, self_id=self_id)

    async def post_message(
        self,
        channel: str,
        text: str,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        """
        Post a message through ``chat.postMessage``.

        Only network and transport failures are reported. Neither the HTTP
        status nor the response body is inspected.

        Raises:
            DeliveryError: If the request could not be completed.
        """
        url = f"{self.api_base}/chat.postMessage"
        form: dict[str, Any] = {
            "token": self.token,
            "parse": "full",
            "channel": channel,
            "text": text,
            "attachments": json.dumps([a.to_dict() for a in attachments]),
        }
        try:
            await self._http.post(url, data=form)
        except httpx.HTTPError as e:
            logger.error(f"chat.postMessage to {channel} failed: {e}")
            raise DeliveryError(f"chat.postMessage failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
