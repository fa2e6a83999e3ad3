from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from xdp_portal.client import Portal
from xdp_portal.transport import unpack_variants

REQUEST_PREFIX = "/org/freedesktop/portal/desktop/request"


@dataclass
class FakeSubscription:
    transport: "FakeTransport"
    path: str
    interface: str
    member: str
    handler: Callable[[list[Any]], None]
    unsubscribe_calls: int = 0

    @property
    def active(self) -> bool:
        return self.unsubscribe_calls == 0

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        self.transport.events.append("unsubscribe")


@dataclass
class FakeTransport:
    sender: str = "1_42"
    calls: list[dict[str, Any]] = field(default_factory=list)
    sent: list[dict[str, Any]] = field(default_factory=list)
    subscriptions: list[FakeSubscription] = field(default_factory=list)
    events: list[str] = field(default_factory=list)
    on_call: Callable[["FakeTransport", dict[str, Any]], None] | None = None
    call_error: Exception | None = None

    def subscribe_signal(self, *, path: str, interface: str, member: str, handler: Callable[[list[Any]], None]) -> FakeSubscription:
        subscription = FakeSubscription(self, path, interface, member, handler)
        self.subscriptions.append(subscription)
        self.events.append("subscribe")
        return subscription

    async def call_method(self, **kwargs: Any) -> list[Any]:
        call = dict(kwargs)
        call["unix_fds"] = list(kwargs.get("unix_fds") or ())
        self.calls.append(call)
        self.events.append("call")
        if self.call_error is not None:
            raise self.call_error
        if self.on_call is not None:
            self.on_call(self, call)
        return [self.request_path(call)]

    def send_method(self, **kwargs: Any) -> None:
        self.sent.append(dict(kwargs))
        self.events.append(f"send:{kwargs['member']}")

    def request_path(self, call: dict[str, Any] | None = None) -> str:
        call = call or self.calls[-1]
        token = call["body"][-1]["handle_token"].value
        return f"{REQUEST_PREFIX}/{self.sender}/{token}"

    def options(self, index: int = -1) -> dict[str, Any]:
        return unpack_variants(self.calls[index]["body"][-1])

    def respond(self, code: int, results: dict[str, Any] | None = None, *, path: str | None = None) -> None:
        target = path or self.request_path()
        for subscription in list(self.subscriptions):
            if subscription.active and subscription.path == target and subscription.member == "Response":
                subscription.handler([code, dict(results or {})])


def responds_with(code: int, results: dict[str, Any] | None = None) -> Callable[[FakeTransport, dict[str, Any]], None]:
    def on_call(transport: FakeTransport, call: dict[str, Any]) -> None:
        transport.respond(code, results, path=transport.request_path(call))

    return on_call


async def wait_until(predicate: Callable[[], bool], *, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


@dataclass
class RecordingParent:
    handle: str = "x11:3a00004"
    events: list[str] = field(default_factory=list)
    export_error: Exception | None = None

    async def export(self) -> str:
        self.events.append("export")
        if self.export_error is not None:
            raise self.export_error
        return self.handle

    async def unexport(self) -> None:
        self.events.append("unexport")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def portal(transport: FakeTransport) -> Portal:
    return Portal(transport)
