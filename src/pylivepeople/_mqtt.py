"""Internal MQTT bootstrap and runtime feeding presence push events."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from pylivepeople.config import PeopleConfig
from pylivepeople.events import parse_presence_message
from pylivepeople.models.presence import PresenceEvent


@dataclass(frozen=True)
class MqttBootstrap:
    """Broker connection details for the presence push channel."""

    broker_host: str
    broker_port: int
    topic: str
    client_id: str
    username: str | None
    password: str | None
    tls: bool


def build_mqtt_bootstrap(config: PeopleConfig) -> MqttBootstrap | None:
    """Derive broker details from *config*; ``None`` when no broker is configured."""
    host = (config.mqtt_host or "").strip()
    if not host:
        return None
    username = config.mqtt_username
    return MqttBootstrap(
        broker_host=host,
        broker_port=config.mqtt_port,
        topic=config.mqtt_topic,
        client_id=f"pylivepeople_{secrets.token_hex(6)}",
        username=username,
        # The broker authenticates with the same bearer token as the REST API.
        password=config.access_token if username else None,
        tls=config.mqtt_tls,
    )


class PresenceMqttRuntime:
    """Threaded paho-mqtt runtime that emits presence events onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_event: Callable[[PresenceEvent], None],
        keepalive: int = 120,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_event = on_event
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def handle_payload(self, topic: str, payload: bytes) -> None:
        """Parse one inbound message and hand it to the loop.

        Runs on the paho network thread.
        """
        try:
            event = parse_presence_message(payload)
        except ValueError:
            self._logger.debug("MQTT payload parse failure topic=%s", topic, exc_info=True)
            return
        if event is None:
            return
        self._logger.debug("MQTT presence event subject=%s status=%s", event.subject, event.status)
        self._loop.call_soon_threadsafe(self._on_event, event)

    def start(self, bootstrap: MqttBootstrap) -> None:
        """Connect and subscribe with provided broker details."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            bootstrap.broker_host,
            bootstrap.broker_port,
            bootstrap.topic,
            bootstrap.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=bootstrap.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if bootstrap.username:
            client.username_pw_set(bootstrap.username, bootstrap.password)
        if bootstrap.tls:
            client.tls_set()

        self._topic = bootstrap.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            if self._topic:
                self._logger.debug("MQTT subscribing topic=%s", self._topic)
                c.subscribe(self._topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_payload(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(bootstrap.broker_host, bootstrap.broker_port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
