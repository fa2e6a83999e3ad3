"""Top-level xdp-portal client."""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from .actions import AccountApi, EmailApi, FileChooserApi, ScreenshotApi
from .call import ActionAdapter, PortalCall
from .cancellation import Cancellable
from .config import PortalConfig
from .hooks import CallRecord, HookRegistry
from .protocols import AsyncHookMiddleware, AsyncPortalTransport, ParentWindow, SyncHookMiddleware
from .transport import DBusTransport

T = TypeVar("T")


class Portal:
    """Asynchronous desktop portal client.

    Actions are grouped by portal interface::

        async with await Portal.connect() as portal:
            info = await portal.account.get_user_information(reason="Sign in")
    """

    def __init__(
        self,
        transport: AsyncPortalTransport,
        *,
        config: PortalConfig | None = None,
        hook_registry: HookRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or PortalConfig()
        self._transport = transport
        self._hooks = hook_registry or HookRegistry()
        self._logger = logger or logging.getLogger("xdp_portal")

        self.account = AccountApi(self._call)
        self.email = EmailApi(self._call)
        self.file_chooser = FileChooserApi(self._call)
        self.screenshot = ScreenshotApi(self._call)

    @classmethod
    async def connect(
        cls,
        config: PortalConfig | None = None,
        *,
        hook_registry: HookRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> "Portal":
        cfg = config or PortalConfig()
        transport = await DBusTransport.connect(cfg)
        return cls(transport, config=cfg, hook_registry=hook_registry, logger=logger)

    @classmethod
    async def from_env(cls) -> "Portal":
        return await cls.connect(PortalConfig.from_env())

    @classmethod
    async def from_profile(cls, profile: str | None = None) -> "Portal":
        return await cls.connect(PortalConfig.from_profile(profile))

    @property
    def transport(self) -> AsyncPortalTransport:
        return self._transport

    def before(self, action: str = "*") -> Callable[[Callable[[CallRecord], Any]], Callable[[CallRecord], Any]]:
        def decorator(func: Callable[[CallRecord], Any]) -> Callable[[CallRecord], Any]:
            self._hooks.add_before(action, func)
            return func

        return decorator

    def after(self, action: str = "*") -> Callable[[Callable[[CallRecord, Any], Any]], Callable[[CallRecord, Any], Any]]:
        def decorator(func: Callable[[CallRecord, Any], Any]) -> Callable[[CallRecord, Any], Any]:
            self._hooks.add_after(action, func)
            return func

        return decorator

    def on_error(self, action: str = "*") -> Callable[[Callable[[CallRecord, Exception], Any]], Callable[[CallRecord, Exception], Any]]:
        def decorator(func: Callable[[CallRecord, Exception], Any]) -> Callable[[CallRecord, Exception], Any]:
            self._hooks.add_error(action, func)
            return func

        return decorator

    def use_middleware(self, middleware: SyncHookMiddleware | AsyncHookMiddleware, *, action: str = "*") -> None:
        self._hooks.add_middleware(action, middleware)

    async def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if callable(close):
            close()

    async def __aenter__(self) -> "Portal":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _call(
        self,
        adapter: ActionAdapter[T],
        *,
        parent: ParentWindow | None = None,
        cancellable: Cancellable | None = None,
    ) -> T:
        call = PortalCall(
            self._transport,
            adapter,
            parent=parent,
            cancellable=cancellable,
            config=self.config,
            hooks=self._hooks,
            logger=self._logger,
        )
        return await call.run()
