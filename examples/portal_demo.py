"""Exercise desktop portals from the command line.

Run inside a desktop session that has xdg-desktop-portal available::

    python examples/portal_demo.py account --reason "Show who I am"
    python examples/portal_demo.py open --title "Pick an image" --filter "Images:*.png,*.jpg"
    python examples/portal_demo.py color --cancel-after 5
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any

from xdp_portal import Cancellable, FileFilter, Portal, PortalConfig, PortalError, X11Parent


def _parse_filter(value: str) -> FileFilter:
    name, _, patterns = value.partition(":")
    if not name or not patterns:
        raise argparse.ArgumentTypeError("filters look like NAME:GLOB[,GLOB...]")
    return FileFilter(name, patterns=tuple(item.strip() for item in patterns.split(",") if item.strip()))


async def run_action(portal: Portal, args: argparse.Namespace, cancellable: Cancellable) -> Any:
    parent = X11Parent(args.xid) if args.xid else None
    if args.action == "account":
        return await portal.account.get_user_information(parent=parent, reason=args.reason, cancellable=cancellable)
    if args.action == "email":
        return await portal.email.compose_email(
            parent=parent,
            address=args.address,
            subject=args.subject,
            body=args.body,
            attachments=args.attach,
            cancellable=cancellable,
        )
    if args.action == "open":
        return await portal.file_chooser.open_file(
            args.title,
            parent=parent,
            multiple=args.multiple,
            filters=args.filter,
            cancellable=cancellable,
        )
    if args.action == "save":
        return await portal.file_chooser.save_file(
            args.title,
            parent=parent,
            current_name=args.name,
            filters=args.filter,
            cancellable=cancellable,
        )
    if args.action == "screenshot":
        return await portal.screenshot.take_screenshot(
            parent=parent,
            interactive=args.interactive,
            cancellable=cancellable,
        )
    return await portal.screenshot.pick_color(parent=parent, cancellable=cancellable)


async def run(args: argparse.Namespace) -> int:
    cfg = PortalConfig.from_profile(args.profile)
    cancellable = Cancellable()
    async with await Portal.connect(cfg) as portal:
        if args.cancel_after:
            asyncio.get_running_loop().call_later(args.cancel_after, cancellable.cancel)
        try:
            result = await run_action(portal, args, cancellable)
        except PortalError as error:
            print(f"{args.action}: {error}")
            return 1
    print(result)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("action", choices=("account", "email", "open", "save", "screenshot", "color"))
    parser.add_argument("--profile", default=None, help="profile name in $XDG_CONFIG_HOME/xdp-portal/config.json")
    parser.add_argument("--xid", type=lambda value: int(value, 0), default=0, help="X11 window id of the parent")
    parser.add_argument("--cancel-after", type=float, default=0.0, help="cancel the request after N seconds")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--reason", default=None)
    parser.add_argument("--address", default=None)
    parser.add_argument("--subject", default=None)
    parser.add_argument("--body", default=None)
    parser.add_argument("--attach", action="append", default=[])
    parser.add_argument("--title", default="Choose a file")
    parser.add_argument("--name", default=None, help="suggested file name for save")
    parser.add_argument("--filter", type=_parse_filter, action="append", default=[])
    parser.add_argument("--multiple", action="store_true")
    parser.add_argument("--interactive", action="store_true")
    return parser


def main() -> int:
    args = build_parser().parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
