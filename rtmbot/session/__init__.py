"""Realtime session: bootstrap, dispatch and the receive loop."""

from rtmbot.session.bootstrap import resolve_session
from rtmbot.session.dispatcher import OutgoingDispatcher
from rtmbot.session.engine import RtmBot, SessionState
from rtmbot.session.handle import SessionHandle

__all__ = ["OutgoingDispatcher", "RtmBot", "SessionHandle", "SessionState", "resolve_session"]
