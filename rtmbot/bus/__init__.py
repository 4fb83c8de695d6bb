"""Message types and frame normalization for rtmbot."""

from rtmbot.bus.events import Attachment, AttachmentField, Message
from rtmbot.bus.normalizer import normalize

__all__ = ["Attachment", "AttachmentField", "Message", "normalize"]
