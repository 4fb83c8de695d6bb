"""Outgoing message dispatch: sequencing, single-writer transport access, mute."""

import asyncio
import json
import threading
from typing import Literal, Sequence

from loguru import logger

from rtmbot.api.client import SlackWebClient
from rtmbot.bus.events import Attachment, Message
from rtmbot.channels.base import Transport
from rtmbot.errors import DeliveryError, TransportError

Delivery = Literal["rtm", "web"]


class OutgoingDispatcher:
    """
    Sends outgoing messages over the realtime transport or the web API.

    Every send is stamped with a sequence id from one counter shared by all
    senders. Transport writes go through a single lock, so handlers may call
    ``say`` from concurrently spawned tasks.
    """

    def __init__(
        self,
        web_client: SlackWebClient | None = None,
        default_delivery: Delivery = "web",
    ):
        self.web_client = web_client
        self.default_delivery = default_delivery
        self._transport: Transport | None = None
        self._write_lock = asyncio.Lock()
        self._counter = 0
        self._counter_lock = threading.Lock()
        self._muted = False
        self._unmute_task: asyncio.Task[None] | None = None

    def attach(self, transport: Transport | None) -> None:
        """Set (or clear) the transport used for ``rtm`` delivery."""
        self._transport = transport

    @property
    def is_muted(self) -> bool:
        return self._muted

    def next_sequence_id(self) -> int:
        with self._counter_lock:
            self._counter += 1
            return self._counter

    async def send(self, message: Message) -> Message:
        """
        Write a message to the realtime transport.

        Returns:
            The message as sent, carrying its sequence id.

        Raises:
            DeliveryError: If there is no transport or the write fails.
        """
        async with self._write_lock:
            transport = self._transport
            if transport is None:
                raise DeliveryError("Realtime transport is not connected")
            stamped = message.with_sequence_id(self.next_sequence_id())
            try:
                await transport.send(json.dumps(stamped.to_frame()))
            except TransportError as e:
                raise DeliveryError(str(e)) from e
        logger.debug(f"Sent message {stamped.sequence_id} to {stamped.channel_id}")
        return stamped

    async def post(self, message: Message) -> Message:
        """
        Deliver a message through the web API's rich post call.

        Raises:
            DeliveryError: If no web client is configured or the post fails.
        """
        if self.web_client is None:
            raise DeliveryError("No web client configured for rich posts")
        stamped = message.with_sequence_id(self.next_sequence_id())
        await self.web_client.post_message(
            stamped.channel_id,
            stamped.text,
            stamped.attachments,
        )
        logger.debug(f"Posted message {stamped.sequence_id} to {stamped.channel_id}")
        return stamped

    async def say(
        self,
        origin: Message,
        text: str,
        *,
        attachments: Sequence[Attachment] = (),
        via: Delivery | None = None,
    ) -> Message | None:
        """
        Reply with ``text`` on the channel ``origin`` came from.

        Dropped silently while muted. With ``via=None`` messages carrying
        attachments go through the web API, others use the default delivery.

        Returns:
            The sent message, or None if the bot is muted.
        """
        if self._muted:
            logger.debug(f"Muted, dropping reply to {origin.channel_id}")
            return None

        message = origin.with_text(text, tuple(attachments))
        mode = via or ("web" if message.attachments else self.default_delivery)
        if mode == "rtm":
            return await self.send(message)
        if mode == "web":
            return await self.post(message)
        raise ValueError(f"Unknown delivery mode: {mode!r}")

    def mute(self, seconds: float) -> None:
        """
        Suppress ``say`` for ``seconds``. Returns immediately.

        A pending unmute from an earlier call is cancelled, so the most recent
        call decides when the bot speaks again. Must be called from the event loop.
        """
        self._cancel_unmute()
        if seconds <= 0:
            self.unmute()
            return
        logger.info(f"Muting for {seconds:g} seconds")
        self._muted = True
        self._unmute_task = asyncio.create_task(self._unmute_after(seconds))

    def unmute(self) -> None:
        self._cancel_unmute()
        if self._muted:
            self._muted = False
            logger.info("Unmuting")

    async def _unmute_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        self._unmute_task = None
        self._muted = False
        logger.info("Unmuting")

    def _cancel_unmute(self) -> None:
        task = self._unmute_task
        self._unmute_task = None
        if task and not task.done():
            task.cancel()

    def close(self) -> None:
        """Cancel any pending unmute and drop the transport."""
        self._cancel_unmute()
        self._transport = None
