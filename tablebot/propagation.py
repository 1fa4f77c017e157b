"""Raise, catch and rewrite BotExceptions inside any computation.

A computation is either a zero-argument callable or an awaitable. When
the callable returns an awaitable (a coroutine function, an aiohttp
call, a storage transaction) the combinators return an awaitable too,
so the same functions serve synchronous checks and suspending handlers::

    value = catch_bot(lambda: parse(text), lambda e: default)
    value = await catch_bot(fetch_quote, lambda e: fallback_quote)

Only BotException is caught. Anything else propagates to the host, and
errors raised by a recovery function are never caught by the same
combinator, so recovery runs at most once per failing run.
"""

import functools
import inspect
from typing import Any, Awaitable, Callable, NoReturn, TypeVar, Union

from .exceptions import BotException

T = TypeVar("T")

Computation = Union[Callable[[], Any], Awaitable[Any]]
Recovery = Callable[[BotException], Any]


def throw_bot(e: BotException) -> NoReturn:
    """Raise ``e``; only BotExceptions are accepted."""
    if not isinstance(e, BotException):
        raise TypeError(f"throw_bot expects a BotException, got {type(e).__name__}")
    raise e


def failing(e: BotException) -> Callable[[], NoReturn]:
    """The computation that always fails with ``e``."""
    def run() -> NoReturn:
        throw_bot(e)
    return run


async def _await_recovering(awaitable: Awaitable[Any], recover: Recovery) -> Any:
    try:
        return await awaitable
    except BotException as e:
        caught = e
    result = recover(caught)
    if inspect.isawaitable(result):
        return await result
    return result


def catch_bot(m: Computation, recover: Recovery) -> Any:
    """Run ``m``; if it fails with a BotException, run ``recover`` instead.

    Args:
        m: Zero-argument callable or awaitable.
        recover: Called with the caught exception; may return a plain
            value or an awaitable.

    Returns:
        ``m``'s result (or an awaitable of it when ``m`` suspends).
    """
    if inspect.isawaitable(m):
        return _await_recovering(m, recover)
    try:
        result = m()
    except BotException as e:
        caught = e
    else:
        if inspect.isawaitable(result):
            return _await_recovering(result, recover)
        return result
    return recover(caught)


def transform_exception(
    m: Computation, transformer: Callable[[BotException], BotException]
) -> Any:
    """Reclassify a BotException raised by ``m`` with ``transformer``.

    The new exception is chained to the original via ``__cause__``.
    """
    def rethrow(e: BotException) -> NoReturn:
        raise transformer(e) from e
    return catch_bot(m, rethrow)


def transform_exception_const(m: Computation, e: BotException) -> Any:
    """Replace any BotException raised by ``m`` with the fixed ``e``.

    ``e`` itself is raised, so its ``__cause__`` and ``__traceback__`` are
    overwritten on every failure. Pass a fresh instance per call rather
    than a shared module-level constant when calls can run concurrently.
    """
    def rethrow(original: BotException) -> NoReturn:
        raise e from original
    return catch_bot(m, rethrow)


def recovers_with(recover: Recovery):
    """Decorator form of ``catch_bot`` for async functions."""
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await catch_bot(lambda: func(*args, **kwargs), recover)
        return wrapper
    return decorator


def reraises_as(transformer: Callable[[BotException], BotException]):
    """Decorator form of ``transform_exception`` for async functions."""
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await transform_exception(lambda: func(*args, **kwargs), transformer)
        return wrapper
    return decorator
