"""Session engine: owns the realtime connection and routes inbound messages."""

import asyncio
import inspect
from enum import Enum
from typing import Any

from loguru import logger

from rtmbot.actions.registry import Action, ActionContext, ActionHandler, ActionRegistry
from rtmbot.api.client import SlackWebClient
from rtmbot.bus.events import Message
from rtmbot.bus.normalizer import normalize
from rtmbot.channels.base import Transport, TransportFactory
from rtmbot.channels.websocket import connect_websocket
from rtmbot.config.schema import BotConfig
from rtmbot.errors import (
    BootstrapError,
    DeliveryError,
    FatalSessionError,
    HandshakeError,
    TransportError,
)
from rtmbot.session.bootstrap import resolve_session
from rtmbot.session.dispatcher import OutgoingDispatcher
from rtmbot.session.handle import SessionHandle


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TERMINATED = "terminated"


class RtmBot:
    """
    A chat bot holding one realtime session.

    Register actions with ``hear`` (every message) and ``respond`` (messages
    that start with a mention of the bot), then call ``run()`` or await
    ``connect()``::

        bot = RtmBot(BotConfig(name="pinger", token=token))

        @bot.respond("ping")
        async def pong(session, ctx):
            await session.say(ctx.message, "pong")

        bot.run()
    """

    def __init__(
        self,
        config: BotConfig | None = None,
        *,
        web_client: SlackWebClient | None = None,
        transport_factory: TransportFactory | None = None,
    ):
        self.config = config or BotConfig()
        self.name = self.config.name
        self.hear_registry = ActionRegistry("hear")
        self.respond_registry = ActionRegistry("respond")
        self.web_client = web_client or SlackWebClient(
            self.config.token,
            api_base=self.config.api_base,
            timeout_s=self.config.http_timeout_s,
        )
        self.dispatcher = OutgoingDispatcher(self.web_client, self.config.delivery)
        self.state = SessionState.DISCONNECTED
        self.self_id = ""
        self._transport_factory = transport_factory or connect_websocket
        self._transport: Transport | None = None
        self._handle: SessionHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def hear(
        self,
        pattern: str,
        handler: ActionHandler | None = None,
        friendly_pattern: str = "",
        description: str = "",
    ) -> Any:
        """
        Call ``handler`` for every message whose text matches ``pattern``.

        Without ``handler`` this returns a decorator.
        """
        return self._register(self.hear_registry, pattern, handler, friendly_pattern, description)

    def respond(
        self,
        pattern: str,
        handler: ActionHandler | None = None,
        friendly_pattern: str = "",
        description: str = "",
    ) -> Any:
        """
        Call ``handler`` for addressed messages whose text matches ``pattern``.

        Without ``handler`` this returns a decorator.
        """
        return self._register(self.respond_registry, pattern, handler, friendly_pattern, description)

    def hear_action(self, action: Action) -> None:
        self.hear_registry.register(action)

    def respond_action(self, action: Action) -> None:
        self.respond_registry.register(action)

    @staticmethod
    def _register(
        registry: ActionRegistry,
        pattern: str,
        handler: ActionHandler | None,
        friendly_pattern: str,
        description: str,
    ) -> Any:
        if handler is not None:
            return registry.add(pattern, handler, friendly_pattern, description)

        def decorator(fn: ActionHandler) -> ActionHandler:
            registry.add(pattern, fn, friendly_pattern, description)
            return fn

        return decorator

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def handle(self) -> SessionHandle:
        if self._handle is None:
            raise RuntimeError("Bot is not connected")
        return self._handle

    @property
    def is_connected(self) -> bool:
        return self.state == SessionState.CONNECTED

    def run(self) -> None:
        """Connect and block until the session ends. Fatal errors exit with status 1."""
        try:
            asyncio.run(self.connect())
        except FatalSessionError as e:
            logger.critical(f"{self.name} terminated: {e}")
            raise SystemExit(1) from e
        except KeyboardInterrupt:
            logger.info(f"{self.name} interrupted, exiting")

    async def connect(self) -> None:
        """
        Bootstrap, open the transport and run the receive loop.

        Only returns by raising: a ``FatalSessionError`` on bootstrap,
        handshake, transport read or frame decoding failure.
        """
        try:
            await self._open_session()
            logger.info(f"{self.name} ready, ^C exits")
            await self._receive_loop()
        except FatalSessionError as e:
            logger.error(f"Fatal session error: {e}")
            raise
        finally:
            self.state = SessionState.TERMINATED
            await self.close()

    async def close(self) -> None:
        """Cancel spawned tasks and release the transport and HTTP client."""
        for task in list(self._tasks):
            task.cancel()
        self.dispatcher.close()
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()
        await self.web_client.aclose()

    async def _open_session(self) -> None:
        self.state = SessionState.CONNECTING
        info = await resolve_session(self.web_client)
        if not self.self_id:
            self.self_id = info.self_id
        elif info.self_id != self.self_id:
            logger.warning(f"Session resolved to {info.self_id}, keeping identity {self.self_id}")

        transport = await self._transport_factory(info.endpoint)
        self._transport = transport
        self.dispatcher.attach(transport)
        if self._handle is None:
            self._handle = SessionHandle(
                name=self.name,
                self_id=self.self_id,
                hear=self.hear_registry,
                respond=self.respond_registry,
                dispatcher=self.dispatcher,
                tasks=self._tasks,
            )
        self.state = SessionState.CONNECTED

    async def _receive_loop(self) -> None:
        while True:
            transport = self._transport
            if transport is None:
                raise TransportError("Realtime transport is not connected")
            try:
                raw = await transport.receive()
            except TransportError as e:
                if not self.config.reconnect.enabled:
                    raise
                logger.warning(f"Realtime connection lost: {e}")
                await self._reconnect()
                continue

            await self.dispatch(normalize(raw))

    async def _reconnect(self) -> None:
        policy = self.config.reconnect
        self.dispatcher.attach(None)
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()

        attempt = 0
        while True:
            attempt += 1
            if policy.max_attempts and attempt > policy.max_attempts:
                raise TransportError(f"Giving up after {policy.max_attempts} reconnect attempts")
            delay = policy.delay_for(attempt)
            self.state = SessionState.CONNECTING
            logger.info(f"Reconnecting in {delay:g} seconds (attempt {attempt})...")
            await asyncio.sleep(delay)
            try:
                await self._open_session()
            except (BootstrapError, HandshakeError) as e:
                logger.warning(f"Reconnect attempt {attempt} failed: {e}")
                continue
            logger.info(f"{self.name} reconnected")
            return

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def is_addressed(self, message: Message) -> bool:
        """True if the text starts with a mention of the bot itself."""
        return message.text.startswith(self.config.mention_token(self.self_id))

    async def dispatch(self, message: Message) -> None:
        """
        Route one normalized message to the hear and respond registries.

        Non-user events and the bot's own messages are ignored. Addressed
        messages that match no respond action get the fallback reply.
        """
        if not message.is_user_message:
            return
        if self.self_id and message.sender_id == self.self_id:
            return

        handle = self.handle
        for action, matches in self.hear_registry.match_all(message.text):
            await self._invoke(handle, action, matches, message)

        if not self.is_addressed(message):
            return

        matched = self.respond_registry.match_all(message.text)
        for action, matches in matched:
            await self._invoke(handle, action, matches, message)
        if not matched:
            await self._fallback(handle, message)

    async def _invoke(
        self,
        handle: SessionHandle,
        action: Action,
        matches: list[list[str]],
        message: Message,
    ) -> None:
        context = ActionContext(action=action, matches=matches, message=message)
        logger.debug(f"Action {action.pattern!r} matched message from {message.sender_id}")
        try:
            result = action.handler(handle, context)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Action {action.pattern!r} failed: {e}")

    async def _fallback(self, handle: SessionHandle, message: Message) -> None:
        try:
            await handle.say(message, self.config.fallback_reply)
        except DeliveryError as e:
            logger.error(f"Fallback reply to {message.channel_id} failed: {e}")
