"""Web API client for rtmbot."""

from rtmbot.api.client import SessionInfo, SlackWebClient

__all__ = ["SessionInfo", "SlackWebClient"]
