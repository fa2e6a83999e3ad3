from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest
from conftest import FakeTransport, responds_with

from xdp_portal import Cancellable, Portal

DEMO_PATH = Path(__file__).resolve().parents[2] / "examples" / "portal_demo.py"


def _load_demo():
    spec = importlib.util.spec_from_file_location("portal_demo", DEMO_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.asyncio
async def test_demo_email_passes_every_compose_field(transport: FakeTransport) -> None:
    demo = _load_demo()
    transport.on_call = responds_with(0)
    args = demo.build_parser().parse_args(
        ["email", "--address", "ann@example.com", "--subject", "Hi", "--body", "See you soon"]
    )

    assert await demo.run_action(Portal(transport), args, Cancellable()) is True

    options = transport.options()
    assert options["address"] == "ann@example.com"
    assert options["subject"] == "Hi"
    assert options["body"] == "See you soon"


def test_demo_parses_filters() -> None:
    demo = _load_demo()

    args = demo.build_parser().parse_args(["open", "--filter", "Images:*.png, *.jpg"])

    assert args.filter[0].name == "Images"
    assert args.filter[0].patterns == ("*.png", "*.jpg")
