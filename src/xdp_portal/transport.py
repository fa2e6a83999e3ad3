"""D-Bus transport for the xdp-portal client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Callable

from dbus_next import BusType, Message, MessageFlag, MessageType, Variant
from dbus_next.aio import MessageBus

from .config import DEFAULT_BUS_NAME, PortalConfig
from .errors import TransportError
from .protocols import SignalHandler
from .request import sender_path_element

logger = logging.getLogger(__name__)

DBUS_NAME = "org.freedesktop.DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
NAME_HAS_NO_OWNER = "org.freedesktop.DBus.Error.NameHasNoOwner"


def unpack_variants(value: Any) -> Any:
    """Recursively replace ``Variant`` wrappers with their plain values."""
    if isinstance(value, Variant):
        return unpack_variants(value.value)
    if isinstance(value, dict):
        return {key: unpack_variants(item) for key, item in value.items()}
    if isinstance(value, list):
        return [unpack_variants(item) for item in value]
    if isinstance(value, tuple):
        return tuple(unpack_variants(item) for item in value)
    return value


class _MessageHandlerSubscription:
    def __init__(
        self,
        bus: MessageBus,
        *,
        path: str,
        interface: str,
        member: str,
        handler: SignalHandler,
        expected_sender: Callable[[], str | None],
    ) -> None:
        self._bus = bus
        self._path = path
        self._interface = interface
        self._member = member
        self._handler = handler
        self._expected_sender = expected_sender
        self._active = True
        bus.add_message_handler(self._on_message)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus.remove_message_handler(self._on_message)

    def _on_message(self, message: Message) -> None:
        if not self._active or message.message_type != MessageType.SIGNAL:
            return None
        if message.path != self._path or message.interface != self._interface or message.member != self._member:
            return None
        expected = self._expected_sender()
        if expected is None or message.sender != expected:
            logger.debug(
                "ignoring %s.%s at %s from unexpected sender %s (portal owner %s)",
                self._interface,
                self._member,
                self._path,
                message.sender,
                expected,
            )
            return None

        try:
            self._handler(unpack_variants(list(message.body)))
        except Exception:
            # A broken handler must not break message dispatch for the bus.
            logger.exception("signal handler failed for %s.%s at %s", self._interface, self._member, self._path)
        return None


class DBusTransport:
    """Portal bus operations on top of a ``dbus_next`` asyncio ``MessageBus``.

    Portal signals are unicast to the requesting connection, so subscriptions
    filter incoming messages locally. Only signals sent by the current owner
    of the portal bus name are delivered; the owner is resolved on connect and
    followed through ``NameOwnerChanged``.
    """

    def __init__(
        self,
        bus: MessageBus,
        *,
        bus_name: str = DEFAULT_BUS_NAME,
        name_owner: str | None = None,
    ) -> None:
        self._bus = bus
        self._bus_name = bus_name
        self._name_owner = name_owner
        bus.add_message_handler(self._track_name_owner)

    @classmethod
    async def connect(cls, config: PortalConfig | None = None) -> "DBusTransport":
        cfg = config or PortalConfig()
        bus = MessageBus(
            bus_address=cfg.bus_address,
            bus_type=BusType.SESSION,
            negotiate_unix_fd=True,
        )
        try:
            await bus.connect()
        except Exception as error:
            raise TransportError(f"failed to connect to the session bus: {error}") from error

        transport = cls(bus, bus_name=cfg.bus_name)
        try:
            await transport.resolve_name_owner()
        except BaseException:
            transport.close()
            raise
        return transport

    @property
    def bus(self) -> MessageBus:
        return self._bus

    @property
    def name_owner(self) -> str | None:
        """Unique name currently owning the portal bus name, if any."""
        return self._name_owner

    @property
    def sender(self) -> str:
        unique_name = self._bus.unique_name
        if not unique_name:
            raise TransportError("bus connection has no unique name")
        return sender_path_element(unique_name)

    async def resolve_name_owner(self) -> str | None:
        """Watch the portal bus name and look up its current owner.

        An unowned name is not an error: activation by the first portal call
        announces the new owner through ``NameOwnerChanged``.
        """
        rule = (
            f"type='signal',sender='{DBUS_NAME}',interface='{DBUS_INTERFACE}',"
            f"path='{DBUS_PATH}',member='NameOwnerChanged',arg0='{self._bus_name}'"
        )
        await self._call(
            DBUS_NAME,
            path=DBUS_PATH,
            interface=DBUS_INTERFACE,
            member="AddMatch",
            signature="s",
            body=[rule],
        )
        try:
            reply = await self._call(
                DBUS_NAME,
                path=DBUS_PATH,
                interface=DBUS_INTERFACE,
                member="GetNameOwner",
                signature="s",
                body=[self._bus_name],
            )
        except TransportError as error:
            if NAME_HAS_NO_OWNER not in str(error):
                raise
            logger.debug("%s has no owner yet", self._bus_name)
            return self._name_owner
        self._name_owner = reply[0] if reply else None
        logger.debug("%s is owned by %s", self._bus_name, self._name_owner)
        return self._name_owner

    def subscribe_signal(
        self,
        *,
        path: str,
        interface: str,
        member: str,
        handler: SignalHandler,
    ) -> _MessageHandlerSubscription:
        return _MessageHandlerSubscription(
            self._bus,
            path=path,
            interface=interface,
            member=member,
            handler=handler,
            expected_sender=lambda: self._name_owner,
        )

    async def call_method(
        self,
        *,
        path: str,
        interface: str,
        member: str,
        signature: str,
        body: Sequence[Any],
        unix_fds: Sequence[int] | None = None,
    ) -> list[Any]:
        return await self._call(
            self._bus_name,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=body,
            unix_fds=unix_fds,
        )

    async def _call(
        self,
        destination: str,
        *,
        path: str,
        interface: str,
        member: str,
        signature: str,
        body: Sequence[Any],
        unix_fds: Sequence[int] | None = None,
    ) -> list[Any]:
        message = Message(
            destination=destination,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=list(body),
            unix_fds=list(unix_fds or ()),
        )
        try:
            reply = await self._bus.call(message)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            raise TransportError(f"{interface}.{member} failed: {error}") from error

        if reply is None:
            return []
        if reply.message_type == MessageType.ERROR:
            detail = reply.body[0] if reply.body else ""
            raise TransportError(f"{interface}.{member} failed: {reply.error_name}: {detail}")
        return list(reply.body)

    def send_method(
        self,
        *,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> None:
        message = Message(
            destination=self._bus_name,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=list(body),
            flags=MessageFlag.NO_REPLY_EXPECTED,
        )
        try:
            sent = self._bus.send(message)
        except Exception as error:
            raise TransportError(f"{interface}.{member} failed: {error}") from error
        if isinstance(sent, asyncio.Future):
            sent.add_done_callback(_log_send_failure)

    def close(self) -> None:
        self._bus.remove_message_handler(self._track_name_owner)
        self._bus.disconnect()

    def _track_name_owner(self, message: Message) -> None:
        if message.message_type != MessageType.SIGNAL or message.sender != DBUS_NAME:
            return None
        if message.interface != DBUS_INTERFACE or message.member != "NameOwnerChanged":
            return None
        if not message.body or message.body[0] != self._bus_name:
            return None
        # Body is (name, old_owner, new_owner); an empty new owner means the name was released.
        self._name_owner = message.body[2] or None
        logger.debug("%s owner changed to %s", self._bus_name, self._name_owner)
        return None


def _log_send_failure(future: asyncio.Future[Any]) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug("fire-and-forget send failed: %s", error)
