"""rtmbot - realtime chat bots built from hear/respond actions."""

from rtmbot.actions import Action, ActionContext, ActionRegistry
from rtmbot.bus import Attachment, AttachmentField, Message, normalize
from rtmbot.config import BotConfig, ReconnectConfig, load_config
from rtmbot.errors import (
    BootstrapError,
    DeliveryError,
    FatalSessionError,
    HandshakeError,
    MalformedFrameError,
    PatternError,
    RtmBotError,
    TransportError,
)
from rtmbot.session import OutgoingDispatcher, RtmBot, SessionHandle, SessionState

__version__ = "0.1.0"
__all__ = [
    "Action",
    "ActionContext",
    "ActionRegistry",
    "Attachment",
    "AttachmentField",
    "BootstrapError",
    "BotConfig",
    "DeliveryError",
    "FatalSessionError",
    "HandshakeError",
    "MalformedFrameError",
    "Message",
    "OutgoingDispatcher",
    "PatternError",
    "ReconnectConfig",
    "RtmBot",
    "RtmBotError",
    "SessionHandle",
    "SessionState",
    "TransportError",
    "load_config",
    "normalize",
]
