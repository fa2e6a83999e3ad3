"""Portal call hook registry."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .protocols import AsyncHookMiddleware, SyncHookMiddleware


@dataclass(slots=True)
class CallRecord:
    action: str
    interface: str
    method: str
    request_path: str
    options: dict[str, Any] = field(default_factory=dict)


BeforeHook = Callable[[CallRecord], None | Awaitable[None]]
AfterHook = Callable[[CallRecord, Any], None | Awaitable[None]]
ErrorHook = Callable[[CallRecord, Exception], None | Awaitable[None]]


@dataclass(slots=True)
class HookRegistry:
    _before: dict[str, list[BeforeHook]] = field(default_factory=dict)
    _after: dict[str, list[AfterHook]] = field(default_factory=dict)
    _error: dict[str, list[ErrorHook]] = field(default_factory=dict)

    def add_before(self, action: str, hook: BeforeHook) -> None:
        self._before.setdefault(action, []).append(hook)

    def add_after(self, action: str, hook: AfterHook) -> None:
        self._after.setdefault(action, []).append(hook)

    def add_error(self, action: str, hook: ErrorHook) -> None:
        self._error.setdefault(action, []).append(hook)

    def add_middleware(self, action: str, middleware: SyncHookMiddleware | AsyncHookMiddleware) -> None:
        before = _require_hook_callable(middleware, "before")
        after = _require_hook_callable(middleware, "after")
        on_error = _require_hook_callable(middleware, "on_error")
        self.add_before(action, before)
        self.add_after(action, after)
        self.add_error(action, on_error)

    async def run_before(self, call: CallRecord) -> None:
        for hook in self._match(self._before, call.action):
            result = hook(call)
            if inspect.isawaitable(result):
                await result

    async def run_after(self, call: CallRecord, response: Any) -> None:
        for hook in self._match(self._after, call.action):
            result = hook(call, response)
            if inspect.isawaitable(result):
                await result

    async def run_error(self, call: CallRecord, error: Exception) -> None:
        for hook in self._match(self._error, call.action):
            result = hook(call, error)
            if inspect.isawaitable(result):
                await result

    @staticmethod
    def _match(registry: dict[str, list[Any]], action: str) -> list[Any]:
        exact = registry.get(action, [])
        wildcards = registry.get("*", [])
        return [*wildcards, *exact]


def _require_hook_callable(middleware: object, name: str) -> Callable[..., Any]:
    hook = getattr(middleware, name, None)
    if not callable(hook):
        raise TypeError(f"hook middleware must provide callable {name}()")
    return hook
