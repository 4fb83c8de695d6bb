"""Decode raw realtime frames into canonical messages."""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, ValidationError

from rtmbot.bus.events import Message
from rtmbot.errors import MalformedFrameError

RawFrame = str | bytes | Mapping[str, Any]


class _InboundEnvelope(BaseModel):
    """Wire shape of an inbound frame. ``channel`` and ``user`` are decoded later."""

    model_config = ConfigDict(strict=True)

    id: int | None = Field(default=None, ge=0, le=2**64 - 1)
    type: str | None = None
    text: str | None = None
    channel: Any = None
    user: Any = None


class _IdRef(BaseModel):
    """Object form of a channel or user reference: ``{"id": "C123", ...}``."""

    model_config = ConfigDict(strict=True)

    id: str | None = None


_BARE_ID = TypeAdapter(StrictStr)


def decode_ref(value: Any) -> str:
    """
    Decode a polymorphic channel/user reference to a flat identifier.

    Tries the bare string form first, then the object form carrying ``id``.
    Anything else decodes to an empty string.
    """
    if value is None:
        return ""
    try:
        return _BARE_ID.validate_python(value)
    except ValidationError:
        pass
    try:
        return _IdRef.model_validate(value).id or ""
    except ValidationError:
        logger.warning(f"Could not decode reference {value!r}, leaving it empty")
        return ""


def normalize(raw: RawFrame) -> Message:
    """
    Normalize one inbound frame.

    Args:
        raw: JSON text or bytes from the transport, or an already decoded mapping.

    Returns:
        The canonical message. ``attachments`` is always empty for inbound frames.

    Raises:
        MalformedFrameError: If the frame is not a JSON object with the expected
            envelope field types.
    """
    try:
        if isinstance(raw, (str, bytes)):
            envelope = _InboundEnvelope.model_validate_json(raw)
        else:
            envelope = _InboundEnvelope.model_validate(dict(raw))
    except (ValidationError, TypeError, ValueError) as e:
        raise MalformedFrameError(f"Malformed frame: {e}") from e

    message = Message(
        sequence_id=envelope.id or 0,
        kind=envelope.type or "",
        channel_id=decode_ref(envelope.channel),
        sender_id=decode_ref(envelope.user),
        text=envelope.text or "",
    )
    logger.debug(f"MESSAGE: {message}")
    return message
