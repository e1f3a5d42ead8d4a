from __future__ import annotations

import pytest

from pynxm.config import NxmConfig


def test_from_env_reads_connection_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NXM_HOST", "10.0.0.5")
    monkeypatch.setenv("NXM_USERNAME", "admin")
    monkeypatch.setenv("NXM_PASSWORD", "secret")
    monkeypatch.setenv("NXM_ALLOW_SELF_SIGNED", "yes")
    monkeypatch.setenv("NXM_RECONNECT_DELAY", "2.5")

    config = NxmConfig.from_env()

    assert config.host == "10.0.0.5"
    assert config.username == "admin"
    assert config.password == "secret"
    assert config.allow_self_signed is True
    assert config.reconnect_delay == 2.5
    assert config.keepalive_interval == 30.0
    assert config.base_url == "https://10.0.0.5"


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NXM_HOST", "10.0.0.5")
    monkeypatch.setenv("NXM_KEEPALIVE_INTERVAL", "12")
    monkeypatch.setenv("NXM_ALLOW_SELF_SIGNED", "1")

    config = NxmConfig.from_env(host="switcher.local", keepalive_interval=5.0, allow_self_signed=False)

    assert config.host == "switcher.local"
    assert config.keepalive_interval == 5.0
    assert config.allow_self_signed is False


def test_from_env_without_host_leaves_it_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("NXM_HOST", "NXM_USERNAME", "NXM_PASSWORD", "NXM_ALLOW_SELF_SIGNED"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NXM_ALLOW_SELF_SIGNED", "maybe")

    config = NxmConfig.from_env()

    assert config.host == ""
    assert config.allow_self_signed is False
