"""Push channel capability and its MQTT implementation."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from fleetsync._constants import REPLAY_LATEST
from fleetsync._redact import redact_for_log
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncChannelError

MessageHandler = Callable[[dict[str, Any]], None]
ErrorHandler = Callable[[FleetSyncChannelError], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque handle returned by :meth:`PushChannel.subscribe`.

    ``subscription_id`` identifies the handler registered by that call, so
    several subscribers of one channel can be released independently.
    """

    channel: str
    topic: str
    replay_id: int
    subscription_id: int


class PushChannel(Protocol):
    """Push-event channel consumed by the subscription manager.

    Injected rather than looked up globally so tests can substitute a fake.
    """

    @property
    def is_enabled(self) -> bool: ...

    async def subscribe(self, channel: str, replay_id: int, on_message: MessageHandler) -> SubscriptionHandle: ...

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]: ...

    async def unsubscribe(self, handle: SubscriptionHandle) -> None: ...


def channel_to_topic(channel: str) -> str:
    """Map a channel name such as ``/event/Vehicle_Status__e`` to an MQTT topic."""
    topic = channel.strip().strip("/")
    if not topic:
        raise ValueError("channel name is empty")
    return topic


def decode_message(payload: bytes) -> dict[str, Any]:
    """Decode an MQTT payload into a JSON object."""
    parsed = json.loads(payload.decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("push payload is not a JSON object")
    return parsed


class MqttPushChannel:
    """Threaded paho-mqtt channel that emits parsed messages onto an asyncio loop.

    One broker connection serves every subscriber. A topic may have several
    handlers (one per dashboard controller); each message is delivered to
    all of them. The paho network loop runs in its own thread and handlers
    are always invoked on the event loop that started the connection.

    Handler registries are replaced rather than mutated so the network
    thread can read them without locking.
    """

    def __init__(
        self,
        config: FleetSyncConfig,
        *,
        client_factory: Callable[[], mqtt.Client] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._logger = logger or logging.getLogger(__name__)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: mqtt.Client | None = None
        self._connected: asyncio.Future[None] | None = None
        self._running = False
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._handlers: dict[str, dict[int, MessageHandler]] = {}
        self._error_handlers: tuple[ErrorHandler, ...] = ()

    @property
    def is_enabled(self) -> bool:
        return self._config.push_available

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        """Register *handler* for channel errors; returns a callable that removes it."""
        self._error_handlers = (*self._error_handlers, handler)

        def _remove() -> None:
            self._error_handlers = tuple(h for h in self._error_handlers if h is not handler)

        return _remove

    def _report(self, error: FleetSyncChannelError) -> None:
        """Hand a channel error to the registered handlers (thread-safe)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self._logger.debug("Channel error with no loop: %s", error)
            return
        for handler in self._error_handlers:
            loop.call_soon_threadsafe(handler, error)

    def _resolve_connected(self, error: FleetSyncChannelError | None) -> None:
        waiter = self._connected
        if waiter is None or waiter.done():
            return
        if error is None:
            waiter.set_result(None)
        else:
            waiter.set_exception(error)

    def _add_handler(self, topic: str, subscription_id: int, handler: MessageHandler) -> bool:
        """Register *handler*; returns ``True`` if *topic* had no handlers yet."""
        current = self._handlers.get(topic, {})
        self._handlers = {**self._handlers, topic: {**current, subscription_id: handler}}
        return not current

    def _remove_handler(self, topic: str, subscription_id: int) -> bool | None:
        """Drop one handler.

        Returns ``None`` if it was not registered, otherwise whether *topic*
        is now without handlers.
        """
        current = self._handlers.get(topic)
        if current is None or subscription_id not in current:
            return None
        remaining = {sid: h for sid, h in current.items() if sid != subscription_id}
        handlers = dict(self._handlers)
        if remaining:
            handlers[topic] = remaining
        else:
            del handlers[topic]
        self._handlers = handlers
        return not remaining

    def _build_client(self) -> mqtt.Client:
        if self._client_factory is not None:
            return self._client_factory()
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        if self._config.mqtt_username:
            client.username_pw_set(self._config.mqtt_username, self._config.mqtt_password)
        if self._config.mqtt_tls:
            client.tls_set()
        return client

    def _start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Connect and start the network loop. Runs in an executor thread."""
        host = self._config.mqtt_host
        if not host:
            raise FleetSyncChannelError("No MQTT host configured")

        client = self._build_client()
        client.enable_logger(self._logger)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                error = FleetSyncChannelError(f"MQTT connect failed: {reason_code}")
                loop.call_soon_threadsafe(self._resolve_connected, error)
                self._report(error)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            # Also runs after paho reconnects, so subscriptions survive a drop.
            for topic in self._handlers:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)
            loop.call_soon_threadsafe(self._resolve_connected, None)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            handlers = self._handlers.get(msg.topic)
            if not handlers:
                return
            try:
                parsed = decode_message(msg.payload)
            except ValueError:
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            self._logger.debug("Received PUBLISH topic=%s parsed=%s", msg.topic, redact_for_log(parsed))
            for handler in handlers.values():
                loop.call_soon_threadsafe(handler, parsed)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if not self._running:
                return
            self._logger.debug("MQTT disconnected: %s", reason_code)
            if getattr(reason_code, "is_failure", False):
                self._report(FleetSyncChannelError(f"MQTT disconnected: {reason_code}"))

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(host, self._config.mqtt_port, keepalive=self._config.mqtt_keepalive)
        except OSError as exc:
            raise FleetSyncChannelError(f"MQTT connect to {host}:{self._config.mqtt_port} failed: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def _stop(self) -> None:
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    async def subscribe(self, channel: str, replay_id: int, on_message: MessageHandler) -> SubscriptionHandle:
        """Subscribe *on_message* to *channel*.

        MQTT has no replay; any ``replay_id`` other than ``-1`` still starts
        from the newest message.

        Raises
        ------
        FleetSyncChannelError
            If the broker cannot be reached or refuses the connection.
        """
        if replay_id != REPLAY_LATEST:
            self._logger.debug("Replay id %s not supported over MQTT; starting from latest", replay_id)
        topic = channel_to_topic(channel)
        subscription_id = next(self._ids)

        async with self._lock:
            first_for_topic = self._add_handler(topic, subscription_id, on_message)
            if self._client is None:
                loop = asyncio.get_running_loop()
                self._loop = loop
                self._connected = loop.create_future()
                try:
                    await loop.run_in_executor(None, self._start, loop)
                    await asyncio.wait_for(self._connected, self._config.request_timeout)
                except TimeoutError as exc:
                    self._remove_handler(topic, subscription_id)
                    await loop.run_in_executor(None, self._stop)
                    raise FleetSyncChannelError(f"MQTT connect timed out for {channel}", channel=channel) from exc
                except FleetSyncChannelError:
                    self._remove_handler(topic, subscription_id)
                    await loop.run_in_executor(None, self._stop)
                    raise
            elif first_for_topic:
                self._client.subscribe(topic, qos=0)

        return SubscriptionHandle(
            channel=channel,
            topic=topic,
            replay_id=replay_id,
            subscription_id=subscription_id,
        )

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Release the handler behind *handle*.

        The topic is unsubscribed once its last handler is gone, and the
        broker connection is closed once no topic is left.
        """
        async with self._lock:
            topic_empty = self._remove_handler(handle.topic, handle.subscription_id)
            if not topic_empty:
                return
            client = self._client
            if client is not None:
                client.unsubscribe(handle.topic)
            if not self._handlers:
                await self._shutdown()

    async def close(self) -> None:
        """Stop and disconnect the MQTT client if running."""
        async with self._lock:
            await self._shutdown()

    async def _shutdown(self) -> None:
        self._handlers = {}
        if self._client is None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._stop)
