"""Portal actions and their API namespaces."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from dbus_next import Variant

from .call import ActionAdapter, Invocation
from .cancellation import Cancellable
from .errors import PortalCancelledError, PortalPayloadError, ResponseDetails
from .models import Color, FileChoice, FileChooserResult, FileFilter, UserInformation, validate_result
from .protocols import ParentWindow

T = TypeVar("T")

CallFn = Callable[..., Awaitable[Any]]
DoneCallback = Callable[["asyncio.Task[Any]"], None]
PathLike = str | os.PathLike[str]

ACCOUNT_INTERFACE = "org.freedesktop.portal.Account"
EMAIL_INTERFACE = "org.freedesktop.portal.Email"
FILE_CHOOSER_INTERFACE = "org.freedesktop.portal.FileChooser"
SCREENSHOT_INTERFACE = "org.freedesktop.portal.Screenshot"

logger = logging.getLogger(__name__)


def _path_bytes(path: PathLike) -> bytes:
    # The portal expects NUL-terminated byte strings for paths.
    return os.fsencode(path) + b"\0"


def open_attachments(paths: Iterable[PathLike]) -> list[int]:
    """Open each path for passing over the bus; unopenable paths are skipped."""
    flags = getattr(os, "O_PATH", os.O_RDONLY) | getattr(os, "O_CLOEXEC", 0)
    fds: list[int] = []
    for path in paths:
        try:
            fds.append(os.open(path, flags))
        except OSError as error:
            logger.warning("Failed to open %s, skipping: %s", os.fspath(path), error.strerror)
    return fds


def account_action(*, reason: str | None = None) -> ActionAdapter[UserInformation]:
    def build() -> Invocation:
        options: dict[str, Variant] = {}
        if reason is not None:
            options["reason"] = Variant("s", reason)
        return Invocation(options=options)

    def parse(results: dict[str, Any], details: ResponseDetails) -> UserInformation:
        return validate_result(UserInformation, results, details=details)

    return ActionAdapter(
        name="Account",
        interface=ACCOUNT_INTERFACE,
        method="GetUserInformation",
        build=build,
        parse_result=parse,
    )


def email_action(
    *,
    address: str | None = None,
    subject: str | None = None,
    body: str | None = None,
    attachments: Iterable[PathLike] | None = None,
) -> ActionAdapter[bool]:
    attachment_paths = list(attachments or ())

    def build() -> Invocation:
        options: dict[str, Variant] = {}
        if address is not None:
            options["address"] = Variant("s", address)
        if subject is not None:
            options["subject"] = Variant("s", subject)
        if body is not None:
            options["body"] = Variant("s", body)

        fds = open_attachments(attachment_paths)
        if fds:
            # Handles index into the message's fd list.
            options["attachment_fds"] = Variant("ah", list(range(len(fds))))
        return Invocation(options=options, unix_fds=fds)

    return ActionAdapter(
        name="Email",
        interface=EMAIL_INTERFACE,
        method="ComposeEmail",
        build=build,
        parse_result=lambda _results, _details: True,
    )


def _file_chooser_options(
    *,
    modal: bool,
    filters: Iterable[FileFilter] | None,
    choices: Iterable[FileChoice] | None,
) -> dict[str, Variant]:
    options: dict[str, Variant] = {"modal": Variant("b", modal)}
    filter_list = [item.to_wire() for item in filters or ()]
    if filter_list:
        options["filters"] = Variant("a(sa(us))", filter_list)
    choice_list = [item.to_wire() for item in choices or ()]
    if choice_list:
        options["choices"] = Variant("a(ssa(ss)s)", choice_list)
    return options


def _parse_file_chooser(results: dict[str, Any], details: ResponseDetails) -> FileChooserResult:
    return validate_result(FileChooserResult, results, details=details)


def open_file_action(
    title: str,
    *,
    modal: bool = True,
    multiple: bool = False,
    filters: Iterable[FileFilter] | None = None,
    choices: Iterable[FileChoice] | None = None,
) -> ActionAdapter[FileChooserResult]:
    filters = list(filters or ())
    choices = list(choices or ())

    def build() -> Invocation:
        options = _file_chooser_options(modal=modal, filters=filters, choices=choices)
        if multiple:
            options["multiple"] = Variant("b", True)
        return Invocation(options=options, arguments=(title,))

    return ActionAdapter(
        name="Filechooser",
        interface=FILE_CHOOSER_INTERFACE,
        method="OpenFile",
        build=build,
        parse_result=_parse_file_chooser,
        signature="sa{sv}",
    )


def save_file_action(
    title: str,
    *,
    modal: bool = True,
    current_name: str | None = None,
    current_folder: PathLike | None = None,
    current_file: PathLike | None = None,
    filters: Iterable[FileFilter] | None = None,
    choices: Iterable[FileChoice] | None = None,
) -> ActionAdapter[FileChooserResult]:
    filters = list(filters or ())
    choices = list(choices or ())

    def build() -> Invocation:
        options = _file_chooser_options(modal=modal, filters=filters, choices=choices)
        if current_name is not None:
            options["current_name"] = Variant("s", current_name)
        if current_folder is not None:
            options["current_folder"] = Variant("ay", _path_bytes(current_folder))
        if current_file is not None:
            options["current_file"] = Variant("ay", _path_bytes(current_file))
        return Invocation(options=options, arguments=(title,))

    return ActionAdapter(
        name="Filechooser",
        interface=FILE_CHOOSER_INTERFACE,
        method="SaveFile",
        build=build,
        parse_result=_parse_file_chooser,
        signature="sa{sv}",
    )


def screenshot_action(*, modal: bool = True, interactive: bool = False) -> ActionAdapter[str]:
    def build() -> Invocation:
        return Invocation(
            options={
                "modal": Variant("b", modal),
                "interactive": Variant("b", interactive),
            }
        )

    def parse(results: dict[str, Any], details: ResponseDetails) -> str:
        uri = results.get("uri")
        if not isinstance(uri, str) or not uri:
            raise PortalPayloadError("Screenshot not received", details=details)
        return uri

    return ActionAdapter(
        name="Screenshot",
        interface=SCREENSHOT_INTERFACE,
        method="Screenshot",
        build=build,
        parse_result=parse,
    )


def pick_color_action() -> ActionAdapter[Color]:
    def parse(results: dict[str, Any], details: ResponseDetails) -> Color:
        color = results.get("color")
        if color is None:
            raise PortalPayloadError("Color not received", details=details)
        red, green, blue = validate_result(tuple[float, float, float], color, details=details)
        return Color(red=red, green=green, blue=blue)

    return ActionAdapter(
        name="Pick color",
        interface=SCREENSHOT_INTERFACE,
        method="PickColor",
        build=Invocation,
        parse_result=parse,
    )


def start_call(call: Awaitable[T], *, name: str, callback: DoneCallback | None = None) -> asyncio.Task[T]:
    """Schedule ``call`` on the running loop; ``callback(task)`` runs once when it is done."""
    task = asyncio.ensure_future(call)
    task.set_name(name)
    if callback is not None:
        task.add_done_callback(callback)
    return task


def finish_call(task: asyncio.Task[T]) -> T:
    """Return the result of a started call, or raise its error."""
    if not task.done():
        raise asyncio.InvalidStateError("portal call has not completed yet")
    if task.cancelled():
        name = task.get_name()
        raise PortalCancelledError(f"{name} canceled", details=ResponseDetails(action=name))
    return task.result()


class AccountApi:
    def __init__(self, call: CallFn) -> None:
        self._call = call

    def get_user_information(
        self,
        *,
        parent: ParentWindow | None = None,
        reason: str | None = None,
        cancellable: Cancellable | None = None,
    ) -> Awaitable[UserInformation]:
        return self._call(account_action(reason=reason), parent=parent, cancellable=cancellable)

    def get_user_information_start(
        self,
        *,
        parent: ParentWindow | None = None,
        reason: str | None = None,
        cancellable: Cancellable | None = None,
        callback: DoneCallback | None = None,
    ) -> asyncio.Task[UserInformation]:
        call = self.get_user_information(parent=parent, reason=reason, cancellable=cancellable)
        return start_call(call, name="Account", callback=callback)

    def get_user_information_finish(self, task: asyncio.Task[UserInformation]) -> UserInformation:
        return finish_call(task)


class EmailApi:
    def __init__(self, call: CallFn) -> None:
        self._call = call

    def compose_email(
        self,
        *,
        parent: ParentWindow | None = None,
        address: str | None = None,
        subject: str | None = None,
        body: str | None = None,
        attachments: Iterable[PathLike] | None = None,
        cancellable: Cancellable | None = None,
    ) -> Awaitable[bool]:
        action = email_action(address=address, subject=subject, body=body, attachments=attachments)
        return self._call(action, parent=parent, cancellable=cancellable)

    def compose_email_start(
        self,
        *,
        parent: ParentWindow | None = None,
        address: str | None = None,
        subject: str | None = None,
        body: str | None = None,
        attachments: Iterable[PathLike] | None = None,
        cancellable: Cancellable | None = None,
        callback: DoneCallback | None = None,
    ) -> asyncio.Task[bool]:
        call = self.compose_email(
            parent=parent,
            address=address,
            subject=subject,
            body=body,
            attachments=attachments,
            cancellable=cancellable,
        )
        return start_call(call, name="Email", callback=callback)

    def compose_email_finish(self, task: asyncio.Task[bool]) -> bool:
        return finish_call(task)


class FileChooserApi:
    def __init__(self, call: CallFn) -> None:
        self._call = call

    def open_file(
        self,
        title: str,
        *,
        parent: ParentWindow | None = None,
        modal: bool = True,
        multiple: bool = False,
        filters: Iterable[FileFilter] | None = None,
        choices: Iterable[FileChoice] | None = None,
        cancellable: Cancellable | None = None,
    ) -> Awaitable[FileChooserResult]:
        action = open_file_action(title, modal=modal, multiple=multiple, filters=filters, choices=choices)
        return self._call(action, parent=parent, cancellable=cancellable)

    def open_file_start(
        self,
        title: str,
        *,
        parent: ParentWindow | None = None,
        modal: bool = True,
        multiple: bool = False,
        filters: Iterable[FileFilter] | None = None,
        choices: Iterable[FileChoice] | None = None,
        cancellable: Cancellable | None = None,
        callback: DoneCallback | None = None,
    ) -> asyncio.Task[FileChooserResult]:
        call = self.open_file(
            title,
            parent=parent,
            modal=modal,
            multiple=multiple,
            filters=filters,
            choices=choices,
            cancellable=cancellable,
        )
        return start_call(call, name="Filechooser", callback=callback)

    def open_file_finish(self, task: asyncio.Task[FileChooserResult]) -> FileChooserResult:
        return finish_call(task)

    def save_file(
        self,
        title: str,
        *,
        parent: ParentWindow | None = None,
        modal: bool = True,
        current_name: str | None = None,
        current_folder: PathLike | None = None,
        current_file: PathLike | None = None,
        filters: Iterable[FileFilter] | None = None,
        choices: Iterable[FileChoice] | None = None,
        cancellable: Cancellable | None = None,
    ) -> Awaitable[FileChooserResult]:
        action = save_file_action(
            title,
            modal=modal,
            current_name=current_name,
            current_folder=current_folder,
            current_file=current_file,
            filters=filters,
            choices=choices,
        )
        return self._call(action, parent=parent, cancellable=cancellable)

    def save_file_start(
        self,
        title: str,
        *,
        parent: ParentWindow | None = None,
        modal: bool = True,
        current_name: str | None = None,
        current_folder: PathLike | None = None,
        current_file: PathLike | None = None,
        filters: Iterable[FileFilter] | None = None,
        choices: Iterable[FileChoice] | None = None,
        cancellable: Cancellable | None = None,
        callback: DoneCallback | None = None,
    ) -> asyncio.Task[FileChooserResult]:
        call = self.save_file(
            title,
            parent=parent,
            modal=modal,
            current_name=current_name,
            current_folder=current_folder,
            current_file=current_file,
            filters=filters,
            choices=choices,
            cancellable=cancellable,
        )
        return start_call(call, name="Filechooser", callback=callback)

    def save_file_finish(self, task: asyncio.Task[FileChooserResult]) -> FileChooserResult:
        return finish_call(task)


class ScreenshotApi:
    def __init__(self, call: CallFn) -> None:
        self._call = call

    def take_screenshot(
        self,
        *,
        parent: ParentWindow | None = None,
        modal: bool = True,
        interactive: bool = False,
        cancellable: Cancellable | None = None,
    ) -> Awaitable[str]:
        action = screenshot_action(modal=modal, interactive=interactive)
        return self._call(action, parent=parent, cancellable=cancellable)

    def take_screenshot_start(
        self,
        *,
        parent: ParentWindow | None = None,
        modal: bool = True,
        interactive: bool = False,
        cancellable: Cancellable | None = None,
        callback: DoneCallback | None = None,
    ) -> asyncio.Task[str]:
        call = self.take_screenshot(parent=parent, modal=modal, interactive=interactive, cancellable=cancellable)
        return start_call(call, name="Screenshot", callback=callback)

    def take_screenshot_finish(self, task: asyncio.Task[str]) -> str:
        return finish_call(task)

    def pick_color(
        self,
        *,
        parent: ParentWindow | None = None,
        cancellable: Cancellable | None = None,
    ) -> Awaitable[Color]:
        return self._call(pick_color_action(), parent=parent, cancellable=cancellable)

    def pick_color_start(
        self,
        *,
        parent: ParentWindow | None = None,
        cancellable: Cancellable | None = None,
        callback: DoneCallback | None = None,
    ) -> asyncio.Task[Color]:
        call = self.pick_color(parent=parent, cancellable=cancellable)
        return start_call(call, name="Pick color", callback=callback)

    def pick_color_finish(self, task: asyncio.Task[Color]) -> Color:
        return finish_call(task)
