"""Message types shared by the normalizer, the registries and the dispatcher."""

from dataclasses import dataclass, field, fields, replace
from typing import Any

USER_MESSAGE_KIND = "message"


@dataclass(frozen=True)
class AttachmentField:
    """A title/value pair rendered inside an attachment."""

    title: str
    value: str
    short: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "value": self.value, "short": self.short}


@dataclass(frozen=True)
class Attachment:
    """
    Presentational block for outgoing messages.

    Every field is optional and only the ones that are set end up in the
    payload. The platform ignores attachments on inbound messages.
    """

    fallback: str | None = None
    color: str | None = None
    text: str | None = None
    pretext: str | None = None
    author_name: str | None = None
    author_link: str | None = None
    author_icon: str | None = None
    title: str | None = None
    title_link: str | None = None
    image_url: str | None = None
    thumb_url: str | None = None
    fields: tuple[AttachmentField, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "fields":
                if value:
                    data["fields"] = [item.to_dict() for item in value]
            elif value is not None:
                data[f.name] = value
        return data


@dataclass(frozen=True)
class Message:
    """Canonical message, inbound or outgoing."""

    sequence_id: int = 0
    kind: str = USER_MESSAGE_KIND
    channel_id: str = ""
    sender_id: str = ""
    text: str = ""
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    @property
    def is_user_message(self) -> bool:
        return self.kind == USER_MESSAGE_KIND

    def with_text(self, text: str, attachments: tuple[Attachment, ...] = ()) -> "Message":
        """Copy this message with new text, e.g. to reply on the same channel."""
        return replace(self, text=text, attachments=tuple(attachments))

    def with_sequence_id(self, sequence_id: int) -> "Message":
        return replace(self, sequence_id=sequence_id)

    def to_frame(self) -> dict[str, Any]:
        """Outbound wire envelope. ``attachments`` is omitted when empty."""
        frame: dict[str, Any] = {
            "id": self.sequence_id,
            "type": self.kind,
            "channel": self.channel_id,
            "text": self.text,
            "user": self.sender_id,
        }
        if self.attachments:
            frame["attachments"] = [a.to_dict() for a in self.attachments]
        return frame
