"""Realtime transport over a websocket connection."""

import asyncio
from typing import Any

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException

from rtmbot.channels.base import Transport
from rtmbot.errors import HandshakeError, TransportError


class WebSocketTransport(Transport):
    """
    Transport backed by the ``websockets`` client.

    Keepalive pings are handled by the library.
    """

    def __init__(self, ws: Any, url: str = ""):
        self._ws = ws
        self.url = url
        self._closed = False

    @classmethod
    async def connect(cls, url: str, **kwargs: Any) -> "WebSocketTransport":
        """Open a websocket at ``url``. Raises HandshakeError on failure."""
        logger.info(f"Connecting to realtime endpoint {url}...")
        try:
            ws = await websockets.connect(url, **kwargs)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise HandshakeError(f"Websocket handshake with {url} failed: {e}") from e
        logger.info("Connected to realtime endpoint")
        return cls(ws, url=url)

    async def receive(self) -> str | bytes:
        try:
            return await self._ws.recv()
        except (ConnectionClosed, WebSocketException, OSError) as e:
            raise TransportError(f"Websocket read failed: {e}") from e

    async def send(self, data: str) -> None:
        try:
            await self._ws.send(data)
        except (ConnectionClosed, WebSocketException, OSError) as e:
            raise TransportError(f"Websocket write failed: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except (WebSocketException, OSError) as e:
            logger.warning(f"Error closing websocket: {e}")


async def connect_websocket(url: str) -> Transport:
    """Default transport factory."""
    return await WebSocketTransport.connect(url)
