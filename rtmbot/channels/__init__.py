"""Realtime transports for rtmbot."""

from rtmbot.channels.base import Transport, TransportFactory
from rtmbot.channels.websocket import WebSocketTransport, connect_websocket

__all__ = ["Transport", "TransportFactory", "WebSocketTransport", "connect_websocket"]
