from __future__ import annotations

import json
from pathlib import Path

import pytest

from xdp_portal.config import PortalConfig, select_profile


def test_from_profile_loads_cli_shape(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "currentProfile": "sandbox",
                "profiles": {
                    "sandbox": {
                        "busAddress": "unix:path=/run/user/1000/test-bus",
                        "busName": "org.example.portal.Test",
                        "objectPath": "org/example/portal/",
                        "requestPathPrefix": "/org/example/portal/request",
                        "tokenPrefix": "myapp",
                    }
                },
            }
        ),
        encoding="utf-8",
    )

    cfg = PortalConfig.from_profile(config_path=config_path)
    assert cfg.bus_address == "unix:path=/run/user/1000/test-bus"
    assert cfg.bus_name == "org.example.portal.Test"
    assert cfg.object_path == "/org/example/portal"
    assert cfg.request_path_prefix == "/org/example/portal/request"
    assert cfg.session_path_prefix == "/org/freedesktop/portal/desktop/session"
    assert cfg.token_prefix == "myapp"


def test_from_profile_falls_back_to_default_profile(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"profiles": {"default": {"tokenPrefix": "fallback"}}}),
        encoding="utf-8",
    )

    cfg = PortalConfig.from_profile("missing", config_path=config_path)
    assert cfg.token_prefix == "fallback"
    assert cfg.bus_address is None


def test_from_profile_tolerates_missing_or_broken_file(tmp_path: Path) -> None:
    assert PortalConfig.from_profile(config_path=tmp_path / "absent.json") == PortalConfig()

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert PortalConfig.from_profile(config_path=broken) == PortalConfig()


def test_from_profile_reads_xdg_config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "xdp-portal" / "config.json"
    target.parent.mkdir()
    target.write_text(json.dumps({"profiles": {"default": {"busName": "org.example.Portal"}}}), encoding="utf-8")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert PortalConfig.from_profile().bus_name == "org.example.Portal"


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDP_PORTAL_BUS_ADDRESS", " unix:path=/tmp/bus ")
    monkeypatch.setenv("XDP_PORTAL_BUS_NAME", "")
    monkeypatch.setenv("XDP_PORTAL_TOKEN_PREFIX", "envapp")

    cfg = PortalConfig.from_env()
    assert cfg.bus_address == "unix:path=/tmp/bus"
    assert cfg.bus_name == "org.freedesktop.portal.Desktop"
    assert cfg.token_prefix == "envapp"


def test_token_prefix_must_be_a_path_element() -> None:
    with pytest.raises(ValueError):
        PortalConfig(token_prefix="my-app")


def test_blank_profile_values_keep_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"profiles": {"default": {"busName": "   ", "tokenPrefix": 7, "objectPath": ""}}}),
        encoding="utf-8",
    )

    assert PortalConfig.from_profile(config_path=config_path) == PortalConfig()


def test_select_profile_prefers_argument_then_current_profile() -> None:
    payload = {
        "currentProfile": "work",
        "profiles": {"default": {"busName": "d"}, "work": {"busName": "w"}, "home": {"busName": "h"}},
    }

    assert select_profile(payload, "home") == {"busName": "h"}
    assert select_profile(payload) == {"busName": "w"}
    assert select_profile({"profiles": ["not", "a", "mapping"]}) == {}
