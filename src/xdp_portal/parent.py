"""Parent window references and their export to portal handles."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

from .errors import ParentExportError
from .protocols import ParentWindow

logger = logging.getLogger(__name__)

NO_PARENT_HANDLE = ""


class StaticParent:
    """A parent whose handle is already known, e.g. ``"x11:3a00004"``."""

    def __init__(self, handle: str) -> None:
        self._handle = handle

    async def export(self) -> str:
        return self._handle

    async def unexport(self) -> None:
        return None


class X11Parent(StaticParent):
    def __init__(self, xid: int) -> None:
        if xid <= 0:
            raise ValueError("xid must be > 0")
        super().__init__(f"x11:{xid:x}")
        self.xid = xid


class WaylandParent:
    """A Wayland surface exported through a toolkit-supplied exporter.

    ``export_handle`` returns the foreign toplevel handle (sync or async);
    ``unexport_handle`` receives it back when the call is done.
    """

    def __init__(
        self,
        export_handle: Callable[[], str | Awaitable[str]],
        unexport_handle: Callable[[str], None | Awaitable[None]] | None = None,
    ) -> None:
        self._export_handle = export_handle
        self._unexport_handle = unexport_handle
        self._handle: str | None = None

    async def export(self) -> str:
        handle = self._export_handle()
        if inspect.isawaitable(handle):
            handle = await handle
        self._handle = handle
        return f"wayland:{handle}"

    async def unexport(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None or self._unexport_handle is None:
            return
        result = self._unexport_handle(handle)
        if inspect.isawaitable(result):
            await result


class ParentResolver:
    """Owns the single parent export of one portal call."""

    def __init__(self, parent: ParentWindow | None) -> None:
        self._parent = parent
        self._exported = False
        self.handle: str | None = None

    def resolve_now(self) -> str | None:
        """Return the handle if it is known without exporting, else ``None``."""
        if self._parent is None:
            self.handle = NO_PARENT_HANDLE
        return self.handle

    async def resolve(self) -> str:
        if self.handle is not None:
            return self.handle
        if self._parent is None:
            self.handle = NO_PARENT_HANDLE
            return self.handle

        try:
            handle = await self._parent.export()
        except ParentExportError:
            raise
        except Exception as error:
            raise ParentExportError(f"failed to export parent window: {error}") from error
        if not isinstance(handle, str):
            raise ParentExportError(f"parent window export returned {type(handle).__name__}, expected str")

        self._exported = True
        self.handle = handle
        return handle

    async def release(self) -> None:
        if not self._exported or self._parent is None:
            return
        self._exported = False
        try:
            await self._parent.unexport()
        except Exception:
            logger.exception("failed to unexport parent window %s", self.handle)
