from __future__ import annotations

import pytest

from fleetsync._constants import DEFAULT_CHANNEL, REPLAY_LATEST
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncConfigError


def test_defaults() -> None:
    config = FleetSyncConfig()

    assert config.channel_name == DEFAULT_CHANNEL
    assert config.replay_id == REPLAY_LATEST
    assert config.page_size is None
    assert config.reject_stale_events is False
    assert config.push_available is False


def test_from_env_reads_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSYNC_BASE_URL", "https://fleet.example.com")
    monkeypatch.setenv("FLEETSYNC_PAGE_SIZE", "25")
    monkeypatch.setenv("FLEETSYNC_REQUEST_TIMEOUT", "5.5")
    monkeypatch.setenv("FLEETSYNC_MQTT_HOST", "broker.example.com")
    monkeypatch.setenv("FLEETSYNC_REJECT_STALE_EVENTS", "yes")

    config = FleetSyncConfig.from_env()

    assert config.base_url == "https://fleet.example.com"
    assert config.page_size == 25
    assert config.request_timeout == 5.5
    assert config.reject_stale_events is True
    assert config.push_available is True


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSYNC_PAGE_SIZE", "25")
    monkeypatch.setenv("FLEETSYNC_LIVE_UPDATES", "off")

    config = FleetSyncConfig.from_env(page_size=10, live_updates_enabled=True, mqtt_host="broker")

    assert config.page_size == 10
    assert config.push_available is True


def test_live_updates_flag_disables_push(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSYNC_MQTT_HOST", "broker.example.com")
    monkeypatch.setenv("FLEETSYNC_LIVE_UPDATES", "0")

    assert FleetSyncConfig.from_env().push_available is False


def test_bad_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSYNC_PAGE_SIZE", "lots")

    with pytest.raises(FleetSyncConfigError):
        FleetSyncConfig.from_env()


@pytest.mark.parametrize("kwargs", [{"page_size": 0}, {"request_timeout": 0}])
def test_invalid_values_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(FleetSyncConfigError):
        FleetSyncConfig(**kwargs)  # type: ignore[arg-type]
