"""Capability handle passed to action handlers."""

import asyncio
from typing import Any, Coroutine, Sequence

from loguru import logger

from rtmbot.actions.registry import Action, ActionRegistry
from rtmbot.bus.events import Attachment, Message
from rtmbot.session.dispatcher import Delivery, OutgoingDispatcher


class SessionHandle:
    """
    What a handler may see and do during a session.

    Identity and registered actions are read-only here; registration happens
    on the bot itself. Sends go through the session's dispatcher.
    """

    __slots__ = ("_name", "_self_id", "_hear", "_respond", "_dispatcher", "_tasks")

    def __init__(
        self,
        *,
        name: str,
        self_id: str,
        hear: ActionRegistry,
        respond: ActionRegistry,
        dispatcher: OutgoingDispatcher,
        tasks: set[asyncio.Task[Any]],
    ):
        self._name = name
        self._self_id = self_id
        self._hear = hear
        self._respond = respond
        self._dispatcher = dispatcher
        self._tasks = tasks

    @property
    def name(self) -> str:
        return self._name

    @property
    def self_id(self) -> str:
        return self._self_id

    @property
    def is_muted(self) -> bool:
        return self._dispatcher.is_muted

    @property
    def hear_actions(self) -> tuple[Action, ...]:
        return self._hear.actions()

    @property
    def respond_actions(self) -> tuple[Action, ...]:
        return self._respond.actions()

    def help_lines(self) -> list[str]:
        """Help text for every registered action, respond actions first."""
        return self._respond.help_lines() + self._hear.help_lines()

    async def say(
        self,
        origin: Message,
        text: str,
        *,
        attachments: Sequence[Attachment] = (),
        via: Delivery | None = None,
    ) -> Message | None:
        return await self._dispatcher.say(origin, text, attachments=attachments, via=via)

    async def send(self, message: Message) -> Message:
        return await self._dispatcher.send(message)

    async def post(self, message: Message) -> Message:
        return await self._dispatcher.post(message)

    def mute(self, seconds: float) -> None:
        self._dispatcher.mute(seconds)

    def unmute(self) -> None:
        self._dispatcher.unmute()

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """
        Run ``coro`` without blocking the receive loop.

        Failures are logged; the task is tracked until it finishes.
        """
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(_finish_spawned)
        task.add_done_callback(self._tasks.discard)
        return task


def _finish_spawned(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error(f"Spawned handler task failed: {exc}")
