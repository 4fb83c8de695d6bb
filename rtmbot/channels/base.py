"""Realtime transport interface."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable


class Transport(ABC):
    """
    Duplex channel of JSON text frames.

    Implementations raise ``TransportError`` when the connection fails.
    Writes are serialized by the caller.
    """

    @abstractmethod
    async def receive(self) -> str | bytes:
        """Wait for and return the next frame."""
        pass

    @abstractmethod
    async def send(self, data: str) -> None:
        """Write one frame."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        pass


TransportFactory = Callable[[str], Awaitable[Transport]]
