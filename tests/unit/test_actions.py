from __future__ import annotations

import logging

import pytest
from conftest import FakeTransport, responds_with

from xdp_portal.client import Portal
from xdp_portal.errors import PortalCancelledError, PortalFailedError, PortalPayloadError
from xdp_portal.models import Color, FileChoice, FileChooserResult, FileFilter, UserInformation


@pytest.mark.asyncio
async def test_get_user_information(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {"id": "u1", "name": "Ann", "image": "file:///a.png"})

    info = await portal.account.get_user_information(reason="Share your name")

    assert info == UserInformation(id="u1", name="Ann", image="file:///a.png")
    assert transport.calls[0]["body"][0] == ""
    assert transport.options()["reason"] == "Share your name"


@pytest.mark.asyncio
async def test_get_user_information_requires_id(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {"name": "Ann"})

    with pytest.raises(PortalPayloadError, match="Account returned invalid results"):
        await portal.account.get_user_information()


@pytest.mark.asyncio
async def test_compose_email_skips_unopenable_attachments(
    portal: Portal,
    transport: FakeTransport,
    tmp_path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    present = tmp_path / "present.txt"
    present.write_text("hello", encoding="utf-8")
    missing = tmp_path / "missing.txt"
    transport.on_call = responds_with(0)

    with caplog.at_level(logging.WARNING, logger="xdp_portal.actions"):
        sent = await portal.email.compose_email(
            address="ann@example.com",
            subject="Hi",
            attachments=[present, missing],
        )

    assert sent is True
    assert len(transport.calls[0]["unix_fds"]) == 1
    options = transport.calls[0]["body"][-1]
    assert options["attachment_fds"].signature == "ah"
    assert options["attachment_fds"].value == [0]
    assert transport.options()["address"] == "ann@example.com"
    assert "body" not in options
    assert "Failed to open" in caplog.text and str(missing) in caplog.text


@pytest.mark.asyncio
async def test_compose_email_without_attachments_sends_no_fds(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0)

    await portal.email.compose_email(body="text")

    assert transport.calls[0]["unix_fds"] == []
    assert "attachment_fds" not in transport.calls[0]["body"][-1]


@pytest.mark.asyncio
async def test_compose_email_cancelled_by_user(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(1)

    with pytest.raises(PortalCancelledError, match="Email canceled"):
        await portal.email.compose_email(address="ann@example.com")


@pytest.mark.asyncio
async def test_open_file_encodes_filters_and_choices(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(
        0,
        {
            "uris": ["file:///home/ann/a.png"],
            "choices": [["encoding", "utf8"]],
            "current_filter": ["Images", [[0, "*.png"]]],
        },
    )

    result = await portal.file_chooser.open_file(
        "Pick an image",
        filters=[FileFilter("Images", patterns=("*.png",), mime_types=("image/png",))],
        choices=[FileChoice("encoding", "Encoding", options=(("utf8", "UTF-8"), ("latin1", "Latin-1")), initial="utf8")],
    )

    assert result == FileChooserResult(
        uris=["file:///home/ann/a.png"],
        choices=[("encoding", "utf8")],
        current_filter=("Images", [(0, "*.png")]),
    )
    call = transport.calls[0]
    assert call["member"] == "OpenFile"
    assert call["signature"] == "ssa{sv}"
    assert call["body"][:2] == ["", "Pick an image"]
    options = call["body"][-1]
    assert options["filters"].signature == "a(sa(us))"
    assert options["filters"].value == [["Images", [[0, "*.png"], [1, "image/png"]]]]
    assert options["choices"].signature == "a(ssa(ss)s)"
    assert options["choices"].value == [["encoding", "Encoding", [["utf8", "UTF-8"], ["latin1", "Latin-1"]], "utf8"]]
    assert options["modal"].value is True
    assert "multiple" not in options


@pytest.mark.asyncio
async def test_open_file_multiple_is_sent_when_requested(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {"uris": []})

    await portal.file_chooser.open_file("Pick", modal=False, multiple=True)

    options = transport.options()
    assert options["multiple"] is True
    assert options["modal"] is False
    assert "filters" not in options and "choices" not in options


@pytest.mark.asyncio
async def test_open_file_without_uris_is_a_payload_error(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {})

    with pytest.raises(PortalPayloadError):
        await portal.file_chooser.open_file("Pick")


@pytest.mark.asyncio
async def test_file_chooser_failure_names_the_portal(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(2)

    with pytest.raises(PortalFailedError, match="^Filechooser failed$"):
        await portal.file_chooser.save_file("Save notes")


@pytest.mark.asyncio
async def test_save_file_without_parent(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {"uris": ["file:///tmp/notes.txt"]})

    result = await portal.file_chooser.save_file(
        "Save notes",
        current_name="notes.txt",
        current_folder="/tmp",
    )

    assert result.uris == ["file:///tmp/notes.txt"]
    call = transport.calls[0]
    assert call["member"] == "SaveFile"
    assert call["body"][:2] == ["", "Save notes"]
    options = call["body"][-1]
    assert options["current_name"].value == "notes.txt"
    assert options["current_folder"].signature == "ay"
    assert options["current_folder"].value == b"/tmp\0"
    assert "current_file" not in options


def test_file_choice_requires_id_and_label() -> None:
    with pytest.raises(ValueError):
        FileChoice("", "Encoding")


@pytest.mark.asyncio
async def test_take_screenshot(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {"uri": "file:///tmp/shot.png"})

    uri = await portal.screenshot.take_screenshot(interactive=True)

    assert uri == "file:///tmp/shot.png"
    assert transport.calls[0]["interface"] == "org.freedesktop.portal.Screenshot"
    options = transport.options()
    assert set(options) == {"modal", "interactive", "handle_token"}
    assert options["modal"] is True and options["interactive"] is True


@pytest.mark.asyncio
async def test_take_screenshot_without_uri(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {})

    with pytest.raises(PortalPayloadError, match="Screenshot not received"):
        await portal.screenshot.take_screenshot()


@pytest.mark.asyncio
async def test_pick_color(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {"color": (0.25, 0.5, 1.0)})

    color = await portal.screenshot.pick_color()

    assert color == Color(red=0.25, green=0.5, blue=1.0)
    assert transport.calls[0]["member"] == "PickColor"


@pytest.mark.asyncio
async def test_pick_color_without_color(portal: Portal, transport: FakeTransport) -> None:
    transport.on_call = responds_with(0, {})

    with pytest.raises(PortalPayloadError, match="Color not received"):
        await portal.screenshot.pick_color()
