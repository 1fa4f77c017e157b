"""Tests for message dispatch and top-level error reporting."""

import contextlib
import re

import pytest
from structlog.testing import capture_logs

from tablebot.dispatch import Dispatcher
from tablebot.embed import Embed
from tablebot.exceptions import (
    BotException,
    IndexOutOfRange,
    MessageSendFailure,
    ParseFailure,
    show_user_error,
)
from tablebot.models import IncomingMessage
from tablebot.plugin_base import Command, InlineCommand, MessageContext, plug
from tablebot.plugin_loader import compose_plugins
from tablebot.plugins import say_plugin
from tablebot.transport import MemoryTransport


def _ctx(text, transport, author="42", channel="room", storage=None):
    message = IncomingMessage(author_id=author, channel=channel, content=text)
    return MessageContext(message, transport, storage)


def _recording(label, calls):
    def parse(text):
        async def run(ctx):
            calls.append((label, text))
        return run
    return parse


def _dispatcher(*plugins, prefix="!", rich_errors=False):
    return Dispatcher(compose_plugins(list(plugins)), prefix=prefix, rich_errors=rich_errors)


@pytest.mark.asyncio
async def test_say_end_to_end():
    transport = MemoryTransport()
    dispatcher = _dispatcher(say_plugin)
    await dispatcher.dispatch(_ctx("!say hello world", transport, author=42))
    assert transport.sent == [("room", "> hello world\n - <@42>")]


@pytest.mark.asyncio
async def test_plain_messages_are_ignored():
    transport = MemoryTransport()
    dispatcher = _dispatcher(say_plugin)
    await dispatcher.dispatch(_ctx("say hello", transport))
    await dispatcher.dispatch(_ctx("!unknown thing", transport))
    assert transport.sent == []


# -------------------------------------------------------------------
# Command resolution
# -------------------------------------------------------------------

def test_resolve_prefers_subcommand_then_falls_back_to_parent():
    calls = []
    command = Command("roll", _recording("roll", calls), [
        Command("stats", _recording("stats", calls)),
    ])
    dispatcher = _dispatcher(plug("dice", commands=[command]))

    resolved, args, path = dispatcher.resolve("!roll stats 4d6")
    assert resolved.name == "stats"
    assert args == "4d6"
    assert path == ("roll", "stats")

    resolved, args, path = dispatcher.resolve("!roll 2d20")
    assert resolved is command
    assert args == "2d20"
    assert path == ("roll",)


def test_resolve_nested_subcommands():
    leaf = Command("c", _recording("c", []))
    tree = Command("a", _recording("a", []), [Command("b", _recording("b", []), [leaf])])
    dispatcher = _dispatcher(plug("p", commands=[tree]))
    resolved, args, path = dispatcher.resolve("!a b c rest of it")
    assert resolved is leaf
    assert args == "rest of it"
    assert path == ("a", "b", "c")


def test_first_declared_sibling_wins():
    first = Command("x", _recording("first", []))
    second = Command("x", _recording("second", []))
    dispatcher = _dispatcher(plug("p", commands=[Command("p", _recording("p", []), [first, second])]))
    resolved, _, _ = dispatcher.resolve("!p x")
    assert resolved is first


def test_custom_prefix():
    dispatcher = _dispatcher(say_plugin, prefix="tb.")
    assert dispatcher.resolve("!say hi") is None
    resolved, args, _ = dispatcher.resolve("tb.say hi")
    assert resolved.name == "say"
    assert args == "hi"


# -------------------------------------------------------------------
# Error reporting
# -------------------------------------------------------------------

def _failing_parser(exc):
    def parse(text):
        raise exc
    return parse


@pytest.mark.asyncio
async def test_parse_failure_is_reported_once_to_channel():
    transport = MemoryTransport()
    error = ParseFailure("bad arg")
    dispatcher = _dispatcher(plug("p", commands=[Command("bad", _failing_parser(error))]))
    await dispatcher.dispatch(_ctx("!bad input", transport))
    assert transport.sent == [("room", show_user_error(error))]


@pytest.mark.asyncio
async def test_handler_failure_is_reported():
    def parse(text):
        async def run(ctx):
            raise IndexOutOfRange(5, (0, 3))
        return run

    transport = MemoryTransport()
    dispatcher = _dispatcher(plug("p", commands=[Command("idx", parse)]))
    await dispatcher.dispatch(_ctx("!idx", transport))
    assert len(transport.sent) == 1
    assert "Index value of 5 is not in the valid range [0, 3]." in transport.sent[0][1]


@pytest.mark.asyncio
async def test_rich_errors_send_embed():
    transport = MemoryTransport()
    dispatcher = _dispatcher(
        plug("p", commands=[Command("bad", _failing_parser(ParseFailure("x")))]),
        rich_errors=True,
    )
    await dispatcher.dispatch(_ctx("!bad", transport))
    (_, content), = transport.sent
    assert isinstance(content, Embed)
    assert content.title == "⚠ **ParseFailure** ⚠"


@pytest.mark.asyncio
async def test_undeliverable_error_report_is_dropped():
    transport = MemoryTransport(fail_sends=True)
    dispatcher = _dispatcher(plug("p", commands=[Command("bad", _failing_parser(ParseFailure("x")))]))
    # Must not raise
    await dispatcher.dispatch(_ctx("!bad", transport))
    assert transport.sent == []


@pytest.mark.asyncio
async def test_unresolvable_bot_exception_is_logged_not_raised():
    class Unlisted(BotException):
        pass

    transport = MemoryTransport()
    dispatcher = _dispatcher(plug("p", commands=[Command("odd", _failing_parser(Unlisted()))]))
    with capture_logs() as logs:
        await dispatcher.dispatch(_ctx("!odd", transport))
    assert transport.sent == []
    (event,) = [e for e in logs if e["event"] == "error_unresolvable"]
    assert event["error_type"] == "Unlisted"
    assert event["log_level"] == "error"


@pytest.mark.asyncio
async def test_send_failure_in_handler_becomes_message_send_failure():
    transport = MemoryTransport(fail_sends=True)
    ctx = _ctx("!say hi", transport)
    with pytest.raises(MessageSendFailure):
        await ctx.send_message("hi")


@pytest.mark.asyncio
async def test_unexpected_error_is_logged_not_raised():
    def parse(text):
        async def run(ctx):
            raise RuntimeError("bug")
        return run

    transport = MemoryTransport()
    dispatcher = _dispatcher(plug("p", commands=[Command("bug", parse)]))
    await dispatcher.dispatch(_ctx("!bug", transport))
    assert transport.sent == []


# -------------------------------------------------------------------
# Storage transactions and inline commands
# -------------------------------------------------------------------

class RecordingStorage:
    def __init__(self):
        self.events = []

    @contextlib.asynccontextmanager
    async def transaction(self):
        self.events.append("begin")
        try:
            yield "tx"
        finally:
            self.events.append("end")


@pytest.mark.asyncio
async def test_handler_runs_inside_transaction():
    seen = []

    def parse(text):
        async def run(ctx):
            seen.append(ctx.transaction)
        return run

    storage = RecordingStorage()
    dispatcher = _dispatcher(plug("p", commands=[Command("db", parse)]))
    await dispatcher.dispatch(_ctx("!db", MemoryTransport(), storage=storage))
    assert seen == ["tx"]
    assert storage.events == ["begin", "end"]


@pytest.mark.asyncio
async def test_inline_command_runs_on_plain_message():
    async def reply(ctx, match):
        await ctx.send_message(f"issue #{match.group(1)}")

    inline = InlineCommand("issues", re.compile(r"#(\d+)").search, reply)
    transport = MemoryTransport()
    dispatcher = _dispatcher(plug("p", inline_commands=[inline]))
    await dispatcher.dispatch(_ctx("see #12 please", transport))
    await dispatcher.dispatch(_ctx("nothing here", transport))
    assert transport.sent_texts == ["issue #12"]


@pytest.mark.asyncio
async def test_reply_addresses_the_author_in_the_same_channel():
    transport = MemoryTransport()
    ctx = _ctx("!anything", transport, author="7", channel="games")
    await ctx.reply("your turn")
    assert transport.sent == [("games", "<@7> your turn")]


@pytest.mark.asyncio
async def test_reply_failure_becomes_message_send_failure():
    ctx = _ctx("!anything", MemoryTransport(fail_sends=True))
    with pytest.raises(MessageSendFailure):
        await ctx.reply("lost")
