"""Tests for the built-in plugins."""

from unittest.mock import patch

import pytest

from tablebot.dispatch import Dispatcher
from tablebot.exceptions import IndexOutOfRange, ParseFailure, RandomSourceFailure
from tablebot.models import IncomingMessage
from tablebot.parser import integer, no_arguments, ordinal, split_first, until_end, words
from tablebot.plugin_base import MessageContext
from tablebot.plugin_loader import compose_plugins
from tablebot.plugins import BUILTIN_PLUGINS
from tablebot.plugins import flip
from tablebot.transport import MemoryTransport


async def _run(text, author="7"):
    transport = MemoryTransport()
    dispatcher = Dispatcher(compose_plugins(list(BUILTIN_PLUGINS)), prefix="!")
    message = IncomingMessage(author_id=author, channel="room", content=text)
    await dispatcher.dispatch(MessageContext(message, transport))
    return transport.sent_texts


# -------------------------------------------------------------------
# Parser helpers
# -------------------------------------------------------------------

def test_until_end_keeps_inner_whitespace():
    assert until_end("  a  b ") == "a  b "


def test_no_arguments():
    no_arguments("   ")
    with pytest.raises(ParseFailure):
        no_arguments("extra")


def test_words_and_quotes():
    assert words('one "two three"') == ["one", "two three"]
    with pytest.raises(ParseFailure):
        words('"unclosed')
    with pytest.raises(ParseFailure):
        words("a", minimum=2)


def test_integer_and_ordinal():
    assert integer("-3") == -3
    with pytest.raises(ParseFailure):
        integer("three")
    assert ordinal("2", (1, 3)) == 2
    with pytest.raises(IndexOutOfRange) as exc_info:
        ordinal("5", (0, 3))
    assert exc_info.value == IndexOutOfRange(5, (0, 3))


def test_split_first():
    assert split_first("  say hello  world") == ("say", "hello  world")
    assert split_first("say") == ("say", "")
    assert split_first("   ") == ("", "")


# -------------------------------------------------------------------
# say / ping
# -------------------------------------------------------------------

@pytest.mark.asyncio
async def test_say():
    assert await _run("!say hello world", author="42") == ["> hello world\n - <@42>"]


@pytest.mark.asyncio
async def test_ping_pong():
    assert await _run("!ping") == ["pong"]
    assert await _run("!pong") == ["ping"]


@pytest.mark.asyncio
async def test_ping_rejects_arguments():
    (text,) = await _run("!ping now")
    assert text.startswith("⚠ **ParseFailure** ⚠")


# -------------------------------------------------------------------
# flip
# -------------------------------------------------------------------

@pytest.mark.asyncio
async def test_flip_coin():
    with patch.object(flip, "random_index", return_value=1):
        assert await _run("!flip") == ["Tails"]
        assert await _run("!flip coin") == ["Tails"]


@pytest.mark.asyncio
async def test_flip_between_options():
    with patch.object(flip, "random_index", return_value=0):
        assert await _run("!flip tea, coffee") == ["tea"]


@pytest.mark.asyncio
async def test_flip_number_in_range():
    with patch.object(flip, "random_index", return_value=4):
        assert await _run("!flip number 10 20") == ["14"]


@pytest.mark.asyncio
async def test_flip_number_bad_bound_uses_usage_message():
    (text,) = await _run("!flip number one 20")
    assert f"> `{flip.NUMBER_USAGE}`" in text


@pytest.mark.asyncio
async def test_flip_number_reversed_bounds():
    (text,) = await _run("!flip number 5 1")
    assert "lower bound 5 is above the upper bound 1" in text


@pytest.mark.asyncio
async def test_flip_pick_by_position():
    assert await _run("!flip pick 2 tea, coffee, juice") == ["coffee"]


@pytest.mark.asyncio
async def test_flip_pick_out_of_range():
    (text,) = await _run("!flip pick 5 tea, coffee, juice")
    assert "Index value of 5 is not in the valid range [1, 3]." in text


@pytest.mark.asyncio
async def test_random_source_failure_is_reported():
    with patch.object(flip._rng, "randrange", side_effect=NotImplementedError("no entropy")):
        with pytest.raises(RandomSourceFailure):
            flip.random_index(2)
        (text,) = await _run("!flip")
    assert text.startswith("⚠ **RandomSourceFailure** ⚠")
