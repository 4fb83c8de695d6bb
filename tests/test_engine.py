import asyncio
import json

import httpx
import pytest

from rtmbot.actions.registry import Action
from rtmbot.api.client import SessionInfo, SlackWebClient
from rtmbot.channels.base import Transport
from rtmbot.config.schema import BotConfig, ReconnectConfig
from rtmbot.errors import (
    BootstrapError,
    HandshakeError,
    MalformedFrameError,
    PatternError,
    TransportError,
)
from rtmbot.session.engine import RtmBot, SessionState


class _FakeTransport(Transport):
    def __init__(self) -> None:
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False

    def feed(self, item) -> None:
        if isinstance(item, dict):
            item = json.dumps(item)
        self.inbox.put_nowait(item)

    async def receive(self) -> str:
        item = await self.inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True


class _FakeWebClient:
    def __init__(
        self,
        self_id: str = "U1",
        fail_with: Exception | None = None,
        fail_on: dict[int, Exception] | None = None,
    ) -> None:
        self.self_id = self_id
        self.fail_with = fail_with
        self.fail_on = fail_on or {}
        self.rtm_calls = 0
        self.posts: list[tuple[str, str]] = []
        self.closed = False

    async def rtm_start(self) -> SessionInfo:
        self.rtm_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        if self.rtm_calls in self.fail_on:
            raise self.fail_on[self.rtm_calls]
        return SessionInfo(endpoint=f"wss://rtm.example/{self.rtm_calls}", self_id=self.self_id)

    async def post_message(self, channel, text, attachments=()):
        self.posts.append((channel, text))

    async def aclose(self) -> None:
        self.closed = True


def _msg(text: str, user="U2", channel="C1", kind="message") -> dict:
    return {"id": 1, "type": kind, "channel": channel, "user": user, "text": text}


def _bot(transports, web=None, **config):
    web = web or _FakeWebClient()
    queue = list(transports)
    opened: list[str] = []

    async def factory(url: str) -> Transport:
        opened.append(url)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    bot = RtmBot(BotConfig(name="testbot", **config), web_client=web, transport_factory=factory)
    return bot, web, opened


async def _run_frames(bot: RtmBot, transport: _FakeTransport, frames) -> None:
    for frame in frames:
        transport.feed(frame)
    transport.feed(TransportError("connection closed"))
    with pytest.raises(TransportError):
        await bot.connect()


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


async def test_hear_action_fires_on_unaddressed_text() -> None:
    transport = _FakeTransport()
    bot, web, opened = _bot([transport])
    seen = []

    @bot.hear("hello")
    async def greet(session, ctx):
        seen.append(ctx)

    await _run_frames(bot, transport, [_msg("hello there")])

    assert opened == ["wss://rtm.example/1"]
    assert len(seen) == 1
    assert seen[0].matches == [["hello"]]
    assert seen[0].message.text == "hello there"
    assert seen[0].action.pattern == "hello"
    assert web.posts == []


async def test_respond_action_fires_on_addressed_text() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])
    calls = []

    async def pong(session, ctx):
        calls.append(ctx.matches)
        await session.say(ctx.message, "pong")

    bot.respond("ping", pong)

    await _run_frames(bot, transport, [_msg("<@U1> ping")])

    assert calls == [[["ping"]]]
    assert web.posts == [("C1", "pong")]


async def test_unmatched_addressed_message_gets_single_fallback() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])
    fired = []
    bot.respond("ping", lambda session, ctx: fired.append("respond"))
    bot.hear("ping", lambda session, ctx: fired.append("hear"))

    await _run_frames(bot, transport, [_msg("<@U1> xyz")])

    assert fired == []
    assert web.posts == [("C1", "uhhhmmm...")]


async def test_fallback_never_fires_for_unaddressed_traffic() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])
    bot.respond("ping", lambda session, ctx: None)

    await _run_frames(bot, transport, [_msg("xyz"), _msg("ping <@U1>"), _msg("<@U9> xyz")])

    assert web.posts == []


async def test_all_matching_actions_fire_for_one_message() -> None:
    transport = _FakeTransport()
    bot, _, _ = _bot([transport])
    fired = set()
    bot.hear("deploy", lambda s, c: fired.add("hear-deploy"))
    bot.hear("prod", lambda s, c: fired.add("hear-prod"))
    bot.respond("deploy", lambda s, c: fired.add("respond-deploy"))
    bot.respond("prod", lambda s, c: fired.add("respond-prod"))

    await _run_frames(bot, transport, [_msg("<@U1> deploy prod")])

    assert fired == {"hear-deploy", "hear-prod", "respond-deploy", "respond-prod"}


async def test_own_messages_are_never_dispatched() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])
    fired = []
    bot.hear(".*", lambda s, c: fired.append("hear"))
    bot.respond(".*", lambda s, c: fired.append("respond"))

    await _run_frames(bot, transport, [_msg("<@U1> hello", user="U1"), _msg("hi", user={"id": "U1"})])

    assert fired == []
    assert web.posts == []


async def test_non_message_events_are_not_routed() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])
    fired = []
    bot.hear("hello", lambda s, c: fired.append(c))

    await _run_frames(
        bot,
        transport,
        [{"type": "hello"}, _msg("hello", kind="presence_change"), _msg("<@U1> hello", kind="user_typing")],
    )

    assert fired == []
    assert web.posts == []


async def test_reregistered_pattern_only_runs_latest_handler() -> None:
    transport = _FakeTransport()
    bot, _, _ = _bot([transport])
    fired = []
    bot.hear("hello", lambda s, c: fired.append("old"))
    bot.hear_action(Action(pattern="hello", handler=lambda s, c: fired.append("new")))

    await _run_frames(bot, transport, [_msg("hello")])

    assert fired == ["new"]


async def test_handler_failures_do_not_stop_the_loop() -> None:
    transport = _FakeTransport()
    bot, _, _ = _bot([transport])
    seen = []

    async def flaky(session, ctx):
        seen.append(ctx.message.text)
        if ctx.message.text == "boom":
            raise RuntimeError("handler exploded")

    bot.hear(".+", flaky)

    await _run_frames(bot, transport, [_msg("boom"), _msg("still alive")])

    assert seen == ["boom", "still alive"]


async def test_spawned_concurrent_says_get_unique_ids() -> None:
    transport = _FakeTransport()
    bot, _, _ = _bot([transport], delivery="rtm")

    @bot.hear("count")
    async def fan_out(session, ctx):
        for i in range(5):
            session.spawn(session.say(ctx.message, f"{ctx.message.text} {i}"))

    runner = asyncio.create_task(bot.connect())
    for _ in range(4):
        transport.feed(_msg("count"))
    await _wait_for(lambda: len(transport.sent) == 20)
    transport.feed(TransportError("bye"))
    with pytest.raises(TransportError):
        await runner

    ids = [frame["id"] for frame in transport.sent]
    assert len(set(ids)) == 20
    assert all(frame["channel"] == "C1" for frame in transport.sent)


async def test_mute_from_handler_suppresses_replies() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])

    @bot.respond("shut up")
    def hush(session, ctx):
        session.mute(60)

    @bot.respond("ping")
    async def pong(session, ctx):
        await session.say(ctx.message, "pong")

    await _run_frames(bot, transport, [_msg("<@U1> shut up"), _msg("<@U1> ping"), _msg("<@U1> ???")])

    assert web.posts == []


async def test_malformed_frame_is_fatal() -> None:
    transport = _FakeTransport()
    bot, web, _ = _bot([transport])
    transport.feed("{not json")

    with pytest.raises(MalformedFrameError):
        await bot.connect()

    assert bot.state == SessionState.TERMINATED
    assert transport.closed
    assert web.closed


async def test_bootstrap_failure_is_fatal_before_connecting() -> None:
    web = _FakeWebClient(fail_with=BootstrapError("Slack error: invalid_auth"))
    bot, _, opened = _bot([], web=web)

    with pytest.raises(BootstrapError, match="invalid_auth"):
        await bot.connect()

    assert opened == []
    assert bot.state == SessionState.TERMINATED


async def test_handshake_failure_is_fatal() -> None:
    bot, _, opened = _bot([HandshakeError("refused")])

    with pytest.raises(HandshakeError):
        await bot.connect()

    assert len(opened) == 1


async def test_state_and_identity_while_connected() -> None:
    transport = _FakeTransport()
    bot, _, _ = _bot([transport])
    assert bot.state == SessionState.DISCONNECTED

    runner = asyncio.create_task(bot.connect())
    await _wait_for(lambda: bot.is_connected)

    assert bot.self_id == "U1"
    assert bot.handle.self_id == "U1"
    assert bot.handle.name == "testbot"

    transport.feed(TransportError("bye"))
    with pytest.raises(TransportError):
        await runner
    assert bot.state == SessionState.TERMINATED


async def test_handle_is_read_only_view_of_registries() -> None:
    transport = _FakeTransport()
    bot, _, _ = _bot([transport])
    bot.respond("ping", lambda s, c: None, friendly_pattern="ping", description="Check liveness")
    bot.hear("hello", lambda s, c: None)
    captured = []
    bot.hear("inspect", lambda s, c: captured.append(s))

    await _run_frames(bot, transport, [_msg("inspect")])

    handle = captured[0]
    assert [a.pattern for a in handle.respond_actions] == ["ping"]
    assert {a.pattern for a in handle.hear_actions} == {"hello", "inspect"}
    assert handle.help_lines()[0] == "ping - Check liveness"
    assert not hasattr(handle, "hear")
    with pytest.raises(AttributeError):
        handle.extra = 1


def test_invalid_pattern_is_raised_to_the_registering_caller() -> None:
    bot = RtmBot(BotConfig(), web_client=_FakeWebClient())

    with pytest.raises(PatternError):
        bot.respond("[a-", lambda s, c: None)


def test_run_exits_with_status_one_on_fatal_error() -> None:
    web = _FakeWebClient(fail_with=BootstrapError("API request failed with code 500"))
    bot = RtmBot(BotConfig(), web_client=web)

    with pytest.raises(SystemExit) as exc:
        bot.run()

    assert exc.value.code == 1


def test_run_exits_with_status_one_on_undecodable_bootstrap_body() -> None:
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"\xff\xfe\xfa"))
    )
    web = SlackWebClient("xoxb-test", api_base="https://api.example/api", http_client=http)
    bot = RtmBot(BotConfig(), web_client=web)

    with pytest.raises(SystemExit) as exc:
        bot.run()

    assert exc.value.code == 1


async def test_reconnect_mode_rebootstraps_after_read_error() -> None:
    first, second = _FakeTransport(), _FakeTransport()
    bot, web, opened = _bot(
        [first, second],
        reconnect=ReconnectConfig(enabled=True, initial_delay_s=0.01, max_delay_s=0.02),
    )
    seen = []
    bot.hear("hello", lambda s, c: seen.append(c.message.text))

    first.feed(_msg("hello one"))
    first.feed(TransportError("connection reset"))
    second.feed(_msg("hello two"))
    second.feed("garbage")

    with pytest.raises(MalformedFrameError):
        await bot.connect()

    assert seen == ["hello one", "hello two"]
    assert web.rtm_calls == 2
    assert opened == ["wss://rtm.example/1", "wss://rtm.example/2"]
    assert first.closed


async def test_reconnect_mode_retries_a_failed_bootstrap() -> None:
    first, second = _FakeTransport(), _FakeTransport()
    web = _FakeWebClient(fail_on={2: BootstrapError("API request failed with code 503")})
    bot, _, opened = _bot(
        [first, second],
        web=web,
        reconnect=ReconnectConfig(enabled=True, initial_delay_s=0.01, max_delay_s=0.02),
    )
    seen = []
    bot.hear("hello", lambda s, c: seen.append(c.message.text))

    first.feed(TransportError("connection reset"))
    second.feed(_msg("hello again"))
    second.feed("garbage")

    with pytest.raises(MalformedFrameError):
        await bot.connect()

    assert web.rtm_calls == 3
    assert opened == ["wss://rtm.example/1", "wss://rtm.example/3"]
    assert seen == ["hello again"]
    assert bot.self_id == "U1"


async def test_reconnect_mode_gives_up_after_max_attempts() -> None:
    first = _FakeTransport()
    bot, _, opened = _bot(
        [first, HandshakeError("refused"), HandshakeError("refused")],
        reconnect=ReconnectConfig(enabled=True, initial_delay_s=0.01, max_attempts=2),
    )
    first.feed(TransportError("connection reset"))

    with pytest.raises(TransportError, match="Giving up after 2"):
        await bot.connect()

    assert len(opened) == 3
