"""Generic portal request lifecycle.

A ``PortalCall`` drives one portal request through four states:

1. ``RESOLVING_PARENT``: the parent window is exported into a handle. This is
   the first suspension point; a call without a parent does not suspend.
2. ``ISSUING``: a request identity is allocated, the ``Response`` listener is
   subscribed and the cancellation bridge armed (in that order), then the
   method call is sent.
3. ``AWAITING_RESPONSE``: the call waits for the ``Response`` signal or for
   the caller to cancel. This is the second suspension point.
4. ``COMPLETED``: the outcome is recorded and every resource is released in
   reverse acquisition order before ``run()`` returns or raises.

Response codes map the same way for every action: 0 hands the results to the
action's ``parse_result``, 1 raises ``PortalCancelledError`` and anything else
raises ``PortalFailedError``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from dbus_next import Variant

from .cancellation import Cancellable, CancellationBridge, run_cancellable
from .config import PortalConfig
from .errors import (
    PortalCancelledError,
    PortalError,
    ResponseDetails,
    TransportError,
    classify_response,
)
from .hooks import CallRecord, HookRegistry
from .models import PortalResponse
from .parent import ParentResolver
from .protocols import AsyncPortalTransport, ParentWindow
from .request import RequestIdentity, ResponseListener, allocate_request_identity
from .transport import unpack_variants

T = TypeVar("T")

ResultParser = Callable[[dict[str, Any], ResponseDetails], T]


class CallState(Enum):
    RESOLVING_PARENT = 1
    ISSUING = 2
    AWAITING_RESPONSE = 3
    COMPLETED = 4


class OutcomeKind(Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CallOutcome:
    kind: OutcomeKind
    value: Any = None
    error: BaseException | None = None


@dataclass(slots=True)
class Invocation:
    """Per-call payload an action builds once the call is issuing."""

    options: dict[str, Variant] = field(default_factory=dict)
    arguments: tuple[Any, ...] = ()
    unix_fds: list[int] = field(default_factory=list)

    def close_fds(self) -> None:
        fds, self.unix_fds = self.unix_fds, []
        for fd in fds:
            try:
                os.close(fd)
            except OSError:
                continue


@dataclass(frozen=True)
class ActionAdapter(Generic[T]):
    """What one portal action contributes to the generic call.

    ``signature`` describes the method arguments after the parent handle,
    which is always the first argument. ``build`` runs at most once per call.
    """

    name: str
    interface: str
    method: str
    build: Callable[[], Invocation]
    parse_result: ResultParser[T]
    signature: str = "a{sv}"


class PortalCall(Generic[T]):
    """One in-flight portal request. Each instance runs once."""

    def __init__(
        self,
        transport: AsyncPortalTransport,
        adapter: ActionAdapter[T],
        *,
        parent: ParentWindow | None = None,
        cancellable: Cancellable | None = None,
        config: PortalConfig | None = None,
        hooks: HookRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.adapter = adapter
        self.state = CallState.RESOLVING_PARENT
        self.parent_handle: str | None = None
        self.identity: RequestIdentity | None = None
        self.outcome: CallOutcome | None = None

        self._transport = transport
        self._cancellable = cancellable
        self._config = config or PortalConfig()
        self._hooks = hooks or HookRegistry()
        self._logger = logger or logging.getLogger(__name__)
        self._resolver = ParentResolver(parent)
        self._record = CallRecord(
            action=adapter.name,
            interface=adapter.interface,
            method=adapter.method,
            request_path="",
        )
        self._response: asyncio.Future[PortalResponse] | None = None
        self._bridge: CancellationBridge | None = None
        self._invocation_task: asyncio.Future[list[Any]] | None = None
        self._started = False

    @property
    def request_token(self) -> str | None:
        return self.identity.token if self.identity else None

    @property
    def request_path(self) -> str | None:
        return self.identity.path if self.identity else None

    async def run(self) -> T:
        if self._started:
            raise RuntimeError("a portal call can only run once")
        self._started = True

        try:
            async with AsyncExitStack() as stack:
                value = await self._run(stack)
            # A failing after hook fails the call.
            await self._hooks.run_after(self._record, value)
        except BaseException as error:
            self._complete(error=error)
            if isinstance(error, Exception):
                await self._hooks.run_error(self._record, error)
            raise

        self._complete(value=value)
        return value

    async def _run(self, stack: AsyncExitStack) -> T:
        handle = self._resolver.resolve_now()
        if handle is None:
            stack.push_async_callback(self._resolver.release)
            handle = await run_cancellable(self._resolver.resolve(), self._cancellable, self._cancelled_error)
        self.parent_handle = handle

        self._transition(CallState.ISSUING)
        identity = allocate_request_identity(
            self._transport.sender,
            token_prefix=self._config.token_prefix,
            request_path_prefix=self._config.request_path_prefix,
        )
        self.identity = identity
        self._record.request_path = identity.path

        invocation = self.adapter.build()
        stack.callback(invocation.close_fds)
        options = {**invocation.options, "handle_token": Variant("s", identity.token)}
        self._record.options = unpack_variants(options)
        await self._hooks.run_before(self._record)

        self._response = asyncio.get_running_loop().create_future()
        listener = ResponseListener(self._transport, identity.path, self._handle_response)
        listener.subscribe()
        stack.callback(listener.unsubscribe)

        self._bridge = CancellationBridge(self._transport, self._cancellable, identity.path, self._handle_cancelled)
        self._bridge.arm()
        stack.callback(self._bridge.disarm)

        if self._cancellable is not None and self._cancellable.cancelled:
            raise self._cancelled_error()

        self._logger.debug("issuing %s.%s at %s", self.adapter.interface, self.adapter.method, identity.path)
        self._invocation_task = asyncio.ensure_future(
            self._transport.call_method(
                path=self._config.object_path,
                interface=self.adapter.interface,
                member=self.adapter.method,
                signature=f"s{self.adapter.signature}",
                body=[handle, *invocation.arguments, options],
                unix_fds=invocation.unix_fds or None,
            )
        )
        self._invocation_task.add_done_callback(self._handle_invocation_done)
        stack.callback(self._abandon_invocation)

        self._transition(CallState.AWAITING_RESPONSE)
        try:
            response = await asyncio.shield(self._response)
        except asyncio.CancelledError:
            if not self._response.done():
                # The awaiting task was cancelled, not the request.
                self._response.cancel()
                self._bridge.disarm()
                self._bridge.close_request()
            elif not self._response.cancelled():
                # Mark a late error as retrieved.
                self._response.exception()
            raise

        details = ResponseDetails(
            action=self.adapter.name,
            request_path=identity.path,
            response_code=response.code,
            results=response.results,
        )
        error = classify_response(details)
        if error is not None:
            raise error
        return self.adapter.parse_result(response.results, details)

    def _handle_response(self, response: PortalResponse) -> None:
        if self._bridge is not None:
            self._bridge.disarm()
        if self._response is not None and not self._response.done():
            self._response.set_result(response)

    def _handle_cancelled(self) -> None:
        if self._response is not None and not self._response.done():
            self._response.set_exception(self._cancelled_error())

    def _handle_invocation_done(self, task: asyncio.Future[list[Any]]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            if self._response is not None and not self._response.done():
                if not isinstance(error, PortalError):
                    error = TransportError(f"{self.adapter.name} call failed: {error}")
                self._response.set_exception(error)
            return

        reply = task.result()
        returned_path = reply[0] if reply else None
        if returned_path != self.request_path:
            self._logger.debug("portal returned request handle %s, expected %s", returned_path, self.request_path)

    def _abandon_invocation(self) -> None:
        if self._invocation_task is not None and not self._invocation_task.done():
            self._invocation_task.cancel()

    def _cancelled_error(self) -> PortalCancelledError:
        return PortalCancelledError(
            f"{self.adapter.name} canceled",
            details=ResponseDetails(action=self.adapter.name, request_path=self.request_path),
        )

    def _transition(self, state: CallState) -> None:
        if state.value != self.state.value + 1:
            raise RuntimeError(f"invalid portal call transition {self.state.name} -> {state.name}")
        self._logger.debug("%s call %s -> %s", self.adapter.name, self.state.name, state.name)
        self.state = state

    def _complete(self, *, value: Any = None, error: BaseException | None = None) -> None:
        if self.outcome is not None:
            raise RuntimeError("portal call outcome was already recorded")

        if error is None:
            self.outcome = CallOutcome(OutcomeKind.SUCCESS, value=value)
        elif isinstance(error, (PortalCancelledError, asyncio.CancelledError)):
            self.outcome = CallOutcome(OutcomeKind.CANCELLED, error=error)
        else:
            self.outcome = CallOutcome(OutcomeKind.FAILED, error=error)
        self.state = CallState.COMPLETED
