from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import pytest

from fleetsync._mqtt import MqttPushChannel, channel_to_topic, decode_message
from fleetsync.client import FleetSyncClient
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncChannelError
from fleetsync.models.responses import InitialFetchResponse, PageFetchResponse
from fleetsync.subscription import SubscriptionState

CHANNEL = "/event/Vehicle_Status__e"
TOPIC = "event/Vehicle_Status__e"


@dataclass
class _ReasonCode:
    value: int

    @property
    def is_failure(self) -> bool:
        return self.value >= 0x80

    def __str__(self) -> str:
        return f"rc={self.value}"


@dataclass
class FakeMqttClient:
    connect_rc: int = 0
    connect_error: OSError | None = None
    subscribed: list[str] = field(default_factory=list)
    unsubscribed: list[str] = field(default_factory=list)
    disconnected: bool = False
    loop_stopped: bool = False
    on_connect: Any = None
    on_message: Any = None
    on_disconnect: Any = None

    def enable_logger(self, _logger: Any) -> None:
        pass

    def connect(self, host: str, port: int, keepalive: int = 60) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    def loop_start(self) -> None:
        self.on_connect(self, None, None, _ReasonCode(self.connect_rc), None)

    def loop_stop(self) -> None:
        self.loop_stopped = True

    def disconnect(self) -> None:
        self.disconnected = True

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscribed.append(topic)

    def unsubscribe(self, topic: str) -> None:
        self.unsubscribed.append(topic)

    def deliver(self, topic: str, payload: bytes) -> None:
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))


def _channel(fake: FakeMqttClient) -> MqttPushChannel:
    config = FleetSyncConfig(mqtt_host="broker.example.com", request_timeout=1.0)
    return MqttPushChannel(config, client_factory=lambda: fake)  # type: ignore[arg-type,return-value]


def test_channel_to_topic() -> None:
    assert channel_to_topic(CHANNEL) == "event/Vehicle_Status__e"
    with pytest.raises(ValueError):
        channel_to_topic(" / ")


def test_decode_message_requires_object() -> None:
    assert decode_message(b'{"data": {}}') == {"data": {}}
    with pytest.raises(ValueError):
        decode_message(b"[1, 2]")


def test_enabled_follows_config() -> None:
    assert MqttPushChannel(FleetSyncConfig()).is_enabled is False
    assert MqttPushChannel(FleetSyncConfig(mqtt_host="broker")).is_enabled is True


@pytest.mark.asyncio
async def test_subscribe_delivers_messages_on_loop() -> None:
    fake = FakeMqttClient()
    channel = _channel(fake)
    received: list[dict[str, Any]] = []

    handle = await channel.subscribe(CHANNEL, -1, received.append)

    assert handle.topic == "event/Vehicle_Status__e"
    assert handle.replay_id == -1
    assert fake.subscribed == ["event/Vehicle_Status__e"]
    assert channel.is_running is True

    message = {"data": {"payload": {"VIN__c": "V1", "AccountId__c": "ACC-1"}}}
    fake.deliver(handle.topic, json.dumps(message).encode())
    fake.deliver(handle.topic, b"not json")
    fake.deliver("other/topic", json.dumps(message).encode())
    await asyncio.sleep(0)

    assert received == [message]

    await channel.unsubscribe(handle)

    assert fake.unsubscribed == ["event/Vehicle_Status__e"]
    assert fake.disconnected is True
    assert fake.loop_stopped is True
    assert channel.is_running is False


@pytest.mark.asyncio
async def test_refused_connection_raises_and_reports() -> None:
    fake = FakeMqttClient(connect_rc=5)
    channel = _channel(fake)
    errors: list[FleetSyncChannelError] = []
    channel.on_error(errors.append)

    with pytest.raises(FleetSyncChannelError):
        await channel.subscribe(CHANNEL, -1, lambda _m: None)
    await asyncio.sleep(0)

    assert len(errors) == 1
    assert fake.loop_stopped is True
    assert channel.is_running is False


@pytest.mark.asyncio
async def test_unreachable_broker_raises() -> None:
    fake = FakeMqttClient(connect_error=OSError("connection refused"))
    channel = _channel(fake)

    with pytest.raises(FleetSyncChannelError):
        await channel.subscribe(CHANNEL, -1, lambda _m: None)

    assert channel.is_running is False


@pytest.mark.asyncio
async def test_unexpected_disconnect_is_reported() -> None:
    fake = FakeMqttClient()
    channel = _channel(fake)
    errors: list[FleetSyncChannelError] = []
    channel.on_error(errors.append)
    await channel.subscribe(CHANNEL, -1, lambda _m: None)

    fake.on_disconnect(fake, None, None, _ReasonCode(0x8D), None)
    await asyncio.sleep(0)

    assert len(errors) == 1
    assert "disconnected" in str(errors[0])
    await channel.close()


@dataclass
class SnapshotBackend:
    rows_by_owner: dict[str, list[dict[str, Any]]]

    async def initial_fetch(self, owner_id: str, *, nonce: str, page_size: int | None = None) -> InitialFetchResponse:
        return InitialFetchResponse.model_validate({"mode": "SNAPSHOT", "snapshot": self.rows_by_owner[owner_id]})

    async def page_fetch(
        self,
        owner_id: str,
        continuation_token: str,
        *,
        nonce: str,
        page_size: int | None = None,
    ) -> PageFetchResponse:
        raise AssertionError("snapshot datasets are never paged")


def _status_event(owner_id: str, vin: str, fuel: float) -> bytes:
    message = {"data": {"payload": {"AccountId__c": owner_id, "VIN__c": vin, "FuelLevelPct__c": fuel}}}
    return json.dumps(message).encode()


@pytest.mark.asyncio
async def test_subscribers_on_one_topic_are_independent() -> None:
    fake = FakeMqttClient()
    channel = _channel(fake)
    first: list[dict[str, Any]] = []
    second: list[dict[str, Any]] = []

    first_handle = await channel.subscribe(CHANNEL, -1, first.append)
    second_handle = await channel.subscribe(CHANNEL, -1, second.append)
    assert first_handle.subscription_id != second_handle.subscription_id

    fake.deliver(TOPIC, b'{"n": 1}')
    await asyncio.sleep(0)
    assert first == [{"n": 1}]
    assert second == [{"n": 1}]

    await channel.unsubscribe(second_handle)
    assert fake.unsubscribed == []
    assert channel.is_running is True

    fake.deliver(TOPIC, b'{"n": 2}')
    await asyncio.sleep(0)
    assert first == [{"n": 1}, {"n": 2}]
    assert second == [{"n": 1}]

    # Releasing the same handle twice does not touch the other subscriber.
    await channel.unsubscribe(second_handle)
    assert channel.is_running is True

    await channel.unsubscribe(first_handle)
    assert fake.unsubscribed == [TOPIC]
    assert channel.is_running is False


@pytest.mark.asyncio
async def test_concurrent_subscribes_share_one_connection() -> None:
    fake = FakeMqttClient()
    builds: list[FakeMqttClient] = []

    def _factory() -> FakeMqttClient:
        builds.append(fake)
        return fake

    config = FleetSyncConfig(mqtt_host="broker.example.com", request_timeout=1.0)
    channel = MqttPushChannel(config, client_factory=_factory)  # type: ignore[arg-type]

    await asyncio.gather(
        channel.subscribe(CHANNEL, -1, lambda _m: None),
        channel.subscribe(CHANNEL, -1, lambda _m: None),
    )

    assert len(builds) == 1
    assert fake.subscribed == [TOPIC]
    await channel.close()


@pytest.mark.asyncio
async def test_removed_error_handler_is_not_called() -> None:
    fake = FakeMqttClient()
    channel = _channel(fake)
    closed_errors: list[FleetSyncChannelError] = []
    open_errors: list[FleetSyncChannelError] = []
    remove = channel.on_error(closed_errors.append)
    channel.on_error(open_errors.append)
    await channel.subscribe(CHANNEL, -1, lambda _m: None)

    remove()
    fake.on_disconnect(fake, None, None, _ReasonCode(0x8D), None)
    await asyncio.sleep(0)

    assert closed_errors == []
    assert len(open_errors) == 1
    await channel.close()


@pytest.mark.asyncio
async def test_dashboards_sharing_channel_each_get_live_updates() -> None:
    fake = FakeMqttClient()
    config = FleetSyncConfig(mqtt_host="broker.example.com", request_timeout=1.0)
    channel = MqttPushChannel(config, client_factory=lambda: fake)  # type: ignore[arg-type,return-value]
    backend = SnapshotBackend(
        rows_by_owner={
            "ACC-A": [{"vin": "VA", "fuelLevelPct": 50}],
            "ACC-B": [{"vin": "VB", "fuelLevelPct": 70}],
        }
    )

    async with FleetSyncClient(config, backend=backend, channel=channel) as client:
        first, second = await asyncio.gather(client.open_dashboard("ACC-A"), client.open_dashboard("ACC-B"))
        assert first.subscription.state == SubscriptionState.ACTIVE
        assert second.subscription.state == SubscriptionState.ACTIVE

        fake.deliver(TOPIC, _status_event("ACC-A", "VA", 10))
        fake.deliver(TOPIC, _status_event("ACC-B", "VB", 20))
        await asyncio.sleep(0)
        assert first.rows[0].fuel_level_pct == 10
        assert second.rows[0].fuel_level_pct == 20

        await second.close()
        assert channel.is_running is True
        assert fake.unsubscribed == []

        fake.deliver(TOPIC, _status_event("ACC-A", "VA", 5))
        await asyncio.sleep(0)
        assert first.rows[0].fuel_level_pct == 5
        assert second.rows[0].fuel_level_pct == 20

    assert fake.unsubscribed == [TOPIC]
    assert channel.is_running is False
