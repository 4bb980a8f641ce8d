"""Adapters between callback-style operations and ``concurrent.futures.Future``.

Device clients and transports report completion through callbacks so the
polling state machine never blocks a thread while it waits. Public
methods accept an optional ``callback``; when the caller omits it they
return a ``Future`` instead. The helpers below implement that switch once.

Callback conventions:
    - ``Callback``:             ``callback(error, result)``
    - ``ErrorCallback``:        ``callback(error)``
    - ``NoErrorCallback``:      ``callback(result)``
    - ``DoubleValueCallback``:  ``callback(value1, value2)``; either may be an exception
    - ``TripleValueCallback``:  ``callback(error, value1, value2)``

Example::

    def _register(callback):
        ...

    def register(callback=None):
        return callback_to_future(_register, callback)

    register(lambda err, result: print(err or result))  # callback style
    result = register().result(timeout=60)                # future style
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
T1 = TypeVar("T1")
T2 = TypeVar("T2")

Callback = Callable[[BaseException | None, Any], None]
ErrorCallback = Callable[[BaseException | None], None]
NoErrorCallback = Callable[[Any], None]
DoubleValueCallback = Callable[[Any, Any], None]
TripleValueCallback = Callable[[BaseException | None, Any, Any], None]


def _settle(future: Future[Any], error: BaseException | None, result: Any = None) -> None:
    """Resolve *future* once; later settlements are ignored."""
    if future.done():
        logger.debug("Ignoring late completion of an already settled future")
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def callback_to_future(
    operation: Callable[[Callback], None],
    user_callback: Callback | None = None,
) -> Future[Any] | None:
    """Run *operation* with *user_callback*, or return a ``Future`` of its result.

    Args:
        operation: Callable taking a single ``callback(error, result)``.
        user_callback: Optional caller-provided callback. When given, no
            ``Future`` is created and ``None`` is returned.

    Returns:
        ``None`` when *user_callback* is given, otherwise a ``Future``
        that resolves with the result or raises the error.
    """
    if user_callback is not None:
        operation(user_callback)
        return None

    future: Future[Any] = Future()
    operation(lambda error=None, result=None: _settle(future, error, result))
    return future


def error_callback_to_future(
    operation: Callable[[ErrorCallback], None],
    user_callback: ErrorCallback | None = None,
) -> Future[None] | None:
    """Like ``callback_to_future`` for operations that only report an error."""
    if user_callback is not None:
        operation(user_callback)
        return None

    future: Future[None] = Future()
    operation(lambda error=None: _settle(future, error))
    return future


def no_error_callback_to_future(
    operation: Callable[[NoErrorCallback], None],
    user_callback: NoErrorCallback | None = None,
) -> Future[Any] | None:
    """Like ``callback_to_future`` for operations that cannot fail; the future never raises."""
    if user_callback is not None:
        operation(user_callback)
        return None

    future: Future[Any] = Future()
    operation(lambda result=None: _settle(future, None, result))
    return future


def double_value_callback_to_future(
    operation: Callable[[DoubleValueCallback], None],
    pack_results: Callable[[Any, Any], T],
    user_callback: DoubleValueCallback | None = None,
) -> Future[T] | None:
    """Adapt a two-value callback; either value being an exception fails the future.

    Args:
        operation: Callable taking ``callback(value1, value2)``.
        pack_results: Combines both values into the future's single result.
        user_callback: Optional caller-provided callback.
    """
    if user_callback is not None:
        operation(user_callback)
        return None

    future: Future[T] = Future()

    def _done(value1: Any = None, value2: Any = None) -> None:
        if isinstance(value1, BaseException):
            _settle(future, value1)
        elif isinstance(value2, BaseException):
            _settle(future, value2)
        else:
            _settle(future, None, pack_results(value1, value2))

    operation(_done)
    return future


def triple_value_callback_to_future(
    operation: Callable[[TripleValueCallback], None],
    pack_results: Callable[[Any, Any], T],
) -> Future[T]:
    """Adapt a ``callback(error, value1, value2)`` operation to a ``Future``."""
    future: Future[T] = Future()

    def _done(error: BaseException | None = None, value1: Any = None, value2: Any = None) -> None:
        if error is not None:
            _settle(future, error)
        else:
            _settle(future, None, pack_results(value1, value2))

    operation(_done)
    return future
