"""xdp-portal: asyncio client for XDG desktop portals.

This module uses lazy exports so lightweight utilities (for example config parsing)
can be imported without immediately importing the D-Bus dependency.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AsyncHookMiddleware",
    "AsyncPortalTransport",
    "CallRecord",
    "CallState",
    "Cancellable",
    "Color",
    "DBusTransport",
    "FileChoice",
    "FileChooserResult",
    "FileFilter",
    "HookRegistry",
    "ParentExportError",
    "ParentWindow",
    "Portal",
    "PortalCall",
    "PortalCancelledError",
    "PortalConfig",
    "PortalError",
    "PortalFailedError",
    "PortalPayloadError",
    "PortalResponseError",
    "ResponseDetails",
    "StaticParent",
    "SyncHookMiddleware",
    "TransportError",
    "UserInformation",
    "WaylandParent",
    "X11Parent",
]

_EXPORTS: dict[str, tuple[str, str]] = {
    "Portal": (".client", "Portal"),
    "PortalCall": (".call", "PortalCall"),
    "CallState": (".call", "CallState"),
    "Cancellable": (".cancellation", "Cancellable"),
    "PortalConfig": (".config", "PortalConfig"),
    "DBusTransport": (".transport", "DBusTransport"),
    "CallRecord": (".hooks", "CallRecord"),
    "HookRegistry": (".hooks", "HookRegistry"),
    "ParentExportError": (".errors", "ParentExportError"),
    "PortalCancelledError": (".errors", "PortalCancelledError"),
    "PortalError": (".errors", "PortalError"),
    "PortalFailedError": (".errors", "PortalFailedError"),
    "PortalPayloadError": (".errors", "PortalPayloadError"),
    "PortalResponseError": (".errors", "PortalResponseError"),
    "ResponseDetails": (".errors", "ResponseDetails"),
    "TransportError": (".errors", "TransportError"),
    "Color": (".models", "Color"),
    "FileChoice": (".models", "FileChoice"),
    "FileChooserResult": (".models", "FileChooserResult"),
    "FileFilter": (".models", "FileFilter"),
    "UserInformation": (".models", "UserInformation"),
    "StaticParent": (".parent", "StaticParent"),
    "WaylandParent": (".parent", "WaylandParent"),
    "X11Parent": (".parent", "X11Parent"),
    "AsyncHookMiddleware": (".protocols", "AsyncHookMiddleware"),
    "AsyncPortalTransport": (".protocols", "AsyncPortalTransport"),
    "ParentWindow": (".protocols", "ParentWindow"),
    "SyncHookMiddleware": (".protocols", "SyncHookMiddleware"),
}

if TYPE_CHECKING:
    from .call import CallState, PortalCall
    from .cancellation import Cancellable
    from .client import Portal
    from .config import PortalConfig
    from .errors import (
        ParentExportError,
        PortalCancelledError,
        PortalError,
        PortalFailedError,
        PortalPayloadError,
        PortalResponseError,
        ResponseDetails,
        TransportError,
    )
    from .hooks import CallRecord, HookRegistry
    from .models import Color, FileChoice, FileChooserResult, FileFilter, UserInformation
    from .parent import StaticParent, WaylandParent, X11Parent
    from .protocols import AsyncHookMiddleware, AsyncPortalTransport, ParentWindow, SyncHookMiddleware
    from .transport import DBusTransport


def __getattr__(name: str) -> Any:
    module_info = _EXPORTS.get(name)
    if module_info is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attribute = module_info
    module = import_module(module_name, __name__)
    value = getattr(module, attribute)
    globals()[name] = value
    return value
