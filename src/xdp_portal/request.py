"""Request identity allocation and the single-shot response listener."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_REQUEST_PATH_PREFIX, DEFAULT_TOKEN_PREFIX
from .models import PortalResponse
from .protocols import AsyncPortalTransport, SignalSubscription

REQUEST_INTERFACE = "org.freedesktop.portal.Request"
RESPONSE_SIGNAL = "Response"

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RequestIdentity:
    token: str
    path: str


def sender_path_element(unique_name: str) -> str:
    """Turn a unique bus name such as ``:1.42`` into ``1_42``."""
    return unique_name.lstrip(":").replace(".", "_")


def allocate_request_identity(
    sender: str,
    *,
    token_prefix: str = DEFAULT_TOKEN_PREFIX,
    request_path_prefix: str = DEFAULT_REQUEST_PATH_PREFIX,
) -> RequestIdentity:
    token = f"{token_prefix}{uuid.uuid4().hex}"
    path = f"{request_path_prefix.rstrip('/')}/{sender}/{token}"
    return RequestIdentity(token=token, path=path)


class ResponseListener:
    """Subscription to the ``Response`` signal of one request object.

    ``on_response`` fires at most once; the listener unsubscribes itself right
    before delivering it. ``unsubscribe()`` may be called any number of times.
    """

    def __init__(
        self,
        transport: AsyncPortalTransport,
        request_path: str,
        on_response: Callable[[PortalResponse], None],
    ) -> None:
        self._transport = transport
        self._request_path = request_path
        self._on_response = on_response
        self._subscription: SignalSubscription | None = None
        self._fired = False
        self._used = False

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    @property
    def fired(self) -> bool:
        return self._fired

    def subscribe(self) -> None:
        if self._used:
            raise RuntimeError(f"listener for {self._request_path} was already used")
        self._used = True
        self._subscription = self._transport.subscribe_signal(
            path=self._request_path,
            interface=REQUEST_INTERFACE,
            member=RESPONSE_SIGNAL,
            handler=self._handle_signal,
        )

    def unsubscribe(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def _handle_signal(self, body: list[Any]) -> None:
        if self._fired or self._subscription is None:
            return

        try:
            code, results = body
        except (TypeError, ValueError):
            logger.debug("ignoring malformed Response on %s: %r", self._request_path, body)
            return

        self._fired = True
        self.unsubscribe()
        self._on_response(
            PortalResponse(
                code=int(code),
                results=dict(results) if isinstance(results, dict) else {},
            )
        )
