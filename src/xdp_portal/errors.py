"""Error hierarchy for the xdp-portal client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

RESPONSE_SUCCESS = 0
RESPONSE_CANCELLED = 1


@dataclass(slots=True)
class ResponseDetails:
    action: str
    request_path: str | None = None
    response_code: int | None = None
    results: dict[str, Any] = field(default_factory=dict)


class PortalError(Exception):
    """Base class for all client errors."""


class TransportError(PortalError):
    """Raised on bus connection/call failures."""


class ParentExportError(PortalError):
    """Raised when the parent window could not be exported."""


class PortalResponseError(PortalError):
    """Raised when a portal request does not complete successfully."""

    def __init__(self, message: str, *, details: ResponseDetails) -> None:
        super().__init__(message)
        self.details = details


class PortalCancelledError(PortalResponseError):
    """Raised when the user or the caller cancelled the request."""


class PortalFailedError(PortalResponseError):
    """Raised when the portal reports a failure."""


class PortalPayloadError(PortalResponseError):
    """Raised when a successful response lacks the expected results."""


def classify_response(details: ResponseDetails) -> PortalResponseError | None:
    code = details.response_code
    if code == RESPONSE_SUCCESS:
        return None
    if code == RESPONSE_CANCELLED:
        return PortalCancelledError(f"{details.action} canceled", details=details)
    return PortalFailedError(f"{details.action} failed", details=details)
