"""Protocol contracts for xdp-portal client extension points."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .hooks import CallRecord

SignalHandler = Callable[[list[Any]], None]


@runtime_checkable
class SignalSubscription(Protocol):
    def unsubscribe(self) -> None: ...


@runtime_checkable
class AsyncPortalTransport(Protocol):
    """Bus operations the portal call lifecycle relies on.

    ``sender`` is the caller's unique bus name already converted to an object
    path element (``:1.42`` becomes ``1_42``).
    """

    sender: str

    def subscribe_signal(
        self,
        *,
        path: str,
        interface: str,
        member: str,
        handler: SignalHandler,
    ) -> SignalSubscription: ...

    async def call_method(
        self,
        *,
        path: str,
        interface: str,
        member: str,
        signature: str,
        body: Sequence[Any],
        unix_fds: Sequence[int] | None = None,
    ) -> list[Any]: ...

    def send_method(
        self,
        *,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> None: ...


@runtime_checkable
class ParentWindow(Protocol):
    async def export(self) -> str: ...

    async def unexport(self) -> None: ...


@runtime_checkable
class SyncHookMiddleware(Protocol):
    def before(self, call: CallRecord) -> None: ...

    def after(self, call: CallRecord, result: Any) -> None: ...

    def on_error(self, call: CallRecord, error: Exception) -> None: ...


@runtime_checkable
class AsyncHookMiddleware(Protocol):
    async def before(self, call: CallRecord) -> None: ...

    async def after(self, call: CallRecord, result: Any) -> None: ...

    async def on_error(self, call: CallRecord, error: Exception) -> None: ...
