"""Client configuration for fleetsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleetsync._constants import BASE_URL, DEFAULT_CHANNEL, REPLAY_LATEST
from fleetsync.exceptions import FleetSyncConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise FleetSyncConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class FleetSyncConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Dashboard backend root URL.
    access_token : str or None
        Bearer token sent as ``Authorization`` header when set.
    page_size : int or None
        Page size hint forwarded to both fetch operations. ``None`` lets
        the backend pick its own threshold.
    request_timeout : float
        Total seconds allowed per backend round trip. A timeout is
        treated as a fetch failure.
    live_updates_enabled : bool
        Availability flag for the push channel. When ``False`` the live
        update subscription is skipped entirely.
    channel_name : str
        Name of the telemetry change-event topic.
    replay_id : int
        Replay position for the subscription. ``-1`` means newest only.
    mqtt_host : str or None
        Broker host. ``None`` means no push mechanism is available.
    mqtt_port : int
        Broker port.
    mqtt_username : str or None
        Broker username.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Connect to the broker over TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    reject_stale_events : bool
        Drop live events whose ``sourceTs`` is older than the stored row's.
        Off by default: events are applied in arrival order.
    stale_skew_allowance_seconds : float
        Clock skew tolerated before an older event counts as stale.
    """

    base_url: str = BASE_URL
    access_token: str | None = None
    page_size: int | None = None
    request_timeout: float = 30.0
    live_updates_enabled: bool = True
    channel_name: str = DEFAULT_CHANNEL
    replay_id: int = REPLAY_LATEST
    mqtt_host: str | None = None
    mqtt_port: int = 8883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = True
    mqtt_keepalive: int = 120
    reject_stale_events: bool = False
    stale_skew_allowance_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.page_size is not None and self.page_size <= 0:
            raise FleetSyncConfigError(f"page_size must be positive, got {self.page_size}")
        if self.request_timeout <= 0:
            raise FleetSyncConfigError(f"request_timeout must be positive, got {self.request_timeout}")

    @property
    def push_available(self) -> bool:
        """Whether a push channel can be built from this configuration."""
        return self.live_updates_enabled and bool(self.mqtt_host)

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetSyncConfig:
        """Create configuration from environment variables.

        Reads optional ``FLEETSYNC_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetSyncConfig
            Populated configuration.

        Raises
        ------
        FleetSyncConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "FLEETSYNC_BASE_URL": "base_url",
            "FLEETSYNC_ACCESS_TOKEN": "access_token",
            "FLEETSYNC_CHANNEL": "channel_name",
            "FLEETSYNC_MQTT_HOST": "mqtt_host",
            "FLEETSYNC_MQTT_USERNAME": "mqtt_username",
            "FLEETSYNC_MQTT_PASSWORD": "mqtt_password",
        }
        _ENV_INT_MAP = {
            "FLEETSYNC_PAGE_SIZE": "page_size",
            "FLEETSYNC_REPLAY_ID": "replay_id",
            "FLEETSYNC_MQTT_PORT": "mqtt_port",
            "FLEETSYNC_MQTT_KEEPALIVE": "mqtt_keepalive",
        }
        _ENV_FLOAT_MAP = {
            "FLEETSYNC_REQUEST_TIMEOUT": "request_timeout",
            "FLEETSYNC_STALE_SKEW_SECONDS": "stale_skew_allowance_seconds",
        }
        _ENV_BOOL_MAP = {
            "FLEETSYNC_LIVE_UPDATES": ("live_updates_enabled", True),
            "FLEETSYNC_MQTT_TLS": ("mqtt_tls", True),
            "FLEETSYNC_REJECT_STALE_EVENTS": ("reject_stale_events", False),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, int)

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, float)

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
