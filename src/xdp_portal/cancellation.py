"""Caller cancellation signal and its bridge to ``Request.Close``."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .errors import TransportError
from .protocols import AsyncPortalTransport
from .request import REQUEST_INTERFACE

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Cancellable:
    """Cancellation signal a caller hands to one or more portal calls.

    Callbacks run synchronously, once, in connection order when ``cancel()`` is
    first called. Later ``cancel()`` calls do nothing.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._ids = itertools.count(1)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def connect(self, callback: Callable[[], None]) -> int:
        handler_id = next(self._ids)
        self._callbacks[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._callbacks.pop(handler_id, None)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True

        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                # One broken callback must not keep the others from running.
                logger.exception("cancellation callback failed")


class CancellationBridge:
    """Forwards a caller's cancellation to the portal request object.

    Once armed, cancelling sends a fire-and-forget ``Close`` to the request
    path and then calls ``on_cancelled``. ``disarm()`` is idempotent and must be
    called as soon as a response has been received.
    """

    def __init__(
        self,
        transport: AsyncPortalTransport,
        cancellable: Cancellable | None,
        request_path: str,
        on_cancelled: Callable[[], None],
    ) -> None:
        self._transport = transport
        self._cancellable = cancellable
        self._request_path = request_path
        self._on_cancelled = on_cancelled
        self._handler_id: int | None = None

    @property
    def armed(self) -> bool:
        return self._handler_id is not None

    def arm(self) -> None:
        if self._cancellable is None or self._handler_id is not None:
            return
        self._handler_id = self._cancellable.connect(self._handle_cancelled)

    def disarm(self) -> None:
        handler_id, self._handler_id = self._handler_id, None
        if handler_id is None or self._cancellable is None:
            return
        self._cancellable.disconnect(handler_id)

    def close_request(self) -> None:
        try:
            self._transport.send_method(
                path=self._request_path,
                interface=REQUEST_INTERFACE,
                member="Close",
            )
        except TransportError as error:
            # The call is terminating either way.
            logger.debug("failed to close request %s: %s", self._request_path, error)
        else:
            logger.debug("sent Close to %s", self._request_path)

    def _handle_cancelled(self) -> None:
        self._handler_id = None
        self.close_request()
        self._on_cancelled()


async def run_cancellable(
    awaitable: Awaitable[T],
    cancellable: Cancellable | None,
    on_cancelled: Callable[[], BaseException],
) -> T:
    """Await ``awaitable`` unless ``cancellable`` fires first.

    When the caller cancels, the pending work is cancelled and the exception
    built by ``on_cancelled`` is raised.
    """
    if cancellable is None:
        return await awaitable
    if cancellable.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise on_cancelled()

    task = asyncio.ensure_future(awaitable)
    handler_id = cancellable.connect(task.cancel)
    try:
        return await task
    except asyncio.CancelledError:
        if cancellable.cancelled:
            raise on_cancelled() from None
        raise
    finally:
        cancellable.disconnect(handler_id)
