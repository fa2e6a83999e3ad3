"""Configuration helpers for the xdp-portal client."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_BUS_NAME = "org.freedesktop.portal.Desktop"
DEFAULT_OBJECT_PATH = "/org/freedesktop/portal/desktop"
DEFAULT_REQUEST_PATH_PREFIX = "/org/freedesktop/portal/desktop/request"
DEFAULT_SESSION_PATH_PREFIX = "/org/freedesktop/portal/desktop/session"
DEFAULT_TOKEN_PREFIX = "portal"
DEFAULT_PROFILE = "default"

# Profile keys in config.json, mapped to PortalConfig fields.
PROFILE_KEYS = {
    "busAddress": "bus_address",
    "busName": "bus_name",
    "objectPath": "object_path",
    "requestPathPrefix": "request_path_prefix",
    "sessionPathPrefix": "session_path_prefix",
    "tokenPrefix": "token_prefix",
}

_PATH_ELEMENT_RE = re.compile(r"^[A-Za-z0-9_]+$")

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PortalConfig:
    bus_address: str | None = None
    bus_name: str = DEFAULT_BUS_NAME
    object_path: str = DEFAULT_OBJECT_PATH
    request_path_prefix: str = DEFAULT_REQUEST_PATH_PREFIX
    session_path_prefix: str = DEFAULT_SESSION_PATH_PREFIX
    token_prefix: str = DEFAULT_TOKEN_PREFIX

    def __post_init__(self) -> None:
        self.bus_name = _clean_text(self.bus_name) or DEFAULT_BUS_NAME
        self.object_path = normalize_path(self.object_path, DEFAULT_OBJECT_PATH)
        self.request_path_prefix = normalize_path(self.request_path_prefix, DEFAULT_REQUEST_PATH_PREFIX)
        self.session_path_prefix = normalize_path(self.session_path_prefix, DEFAULT_SESSION_PATH_PREFIX)
        self.token_prefix = validate_token_prefix(_clean_text(self.token_prefix) or DEFAULT_TOKEN_PREFIX)

    @classmethod
    def from_env(cls) -> "PortalConfig":
        return cls(
            bus_address=_clean_text(os.getenv("XDP_PORTAL_BUS_ADDRESS")),
            bus_name=os.getenv("XDP_PORTAL_BUS_NAME", DEFAULT_BUS_NAME),
            token_prefix=os.getenv("XDP_PORTAL_TOKEN_PREFIX", DEFAULT_TOKEN_PREFIX),
        )

    @classmethod
    def from_profile(
        cls,
        profile: str | None = None,
        *,
        config_path: str | Path | None = None,
    ) -> "PortalConfig":
        entry = select_profile(load_config_file(config_path=config_path), profile)
        values = {field: _clean_text(entry.get(key)) for key, field in PROFILE_KEYS.items()}
        # Unset keys keep the dataclass defaults.
        return cls(**{field: value for field, value in values.items() if value is not None})


def normalize_path(value: str | None, fallback: str) -> str:
    trimmed = (value or "").strip().rstrip("/")
    if not trimmed:
        return fallback
    return trimmed if trimmed.startswith("/") else f"/{trimmed}"


def validate_token_prefix(value: str) -> str:
    # The token becomes the last element of an object path.
    if not _PATH_ELEMENT_RE.match(value):
        raise ValueError(f"invalid token_prefix {value!r}; expected only [A-Za-z0-9_]")
    return value


def default_config_path() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    root = Path(xdg) if xdg else Path.home() / ".config"
    return root / "xdp-portal" / "config.json"


def load_config_file(*, config_path: str | Path | None = None) -> dict[str, Any]:
    """Read the profile file; a missing or unreadable file yields no profiles."""
    path = Path(config_path) if config_path else default_config_path()
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as error:
        logger.debug("ignoring unreadable portal config %s: %s", path, error)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def select_profile(payload: dict[str, Any], profile: str | None = None) -> dict[str, Any]:
    """Pick ``profile``, else ``currentProfile``, else the default profile entry."""
    profiles = payload.get("profiles")
    if not isinstance(profiles, dict):
        return {}

    requested = _clean_text(profile) or _clean_text(payload.get("currentProfile")) or DEFAULT_PROFILE
    for name in (requested, DEFAULT_PROFILE):
        entry = profiles.get(name)
        if isinstance(entry, dict):
            return entry
    return {}


def _clean_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None
