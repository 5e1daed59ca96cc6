"""MQTT client core for mqtt-bridge.

MQTTClient owns the single broker connection and its state. It
(re)subscribes the action topics and announces discovery configs on every
connect, routes inbound messages through CommandRouter and retracts
discovery configs on graceful shutdown only. All outbound publishes go
through ``MQTTClient.publish`` and are serialized on one lock.
"""

from __future__ import annotations

import asyncio
import os
import time

import aiomqtt

from mqtt_bridge.const import (
    AVAILABILITY_OFFLINE,
    AVAILABILITY_ONLINE,
    MQTTBRIDGE_CONNECT_ATTEMPTS,
    MQTTBRIDGE_RECONNECT_MAX_DELAY,
    MQTTBRIDGE_RECONNECT_MIN_DELAY,
    MQTTBRIDGE_RECONNECT_STABLE_AFTER,
)
from mqtt_bridge.exceptions import BrokerConnectionError
from mqtt_bridge.executor import CommandExecutor
from mqtt_bridge.logging_abstraction import get_logger
from mqtt_bridge.mqtt.command_routing import CommandRouter
from mqtt_bridge.mqtt.discovery import DiscoveryHelper
from mqtt_bridge.registry import ActionRegistry
from mqtt_bridge.retry_policy import ReconnectPolicy
from mqtt_bridge.structs import ConnectionState, MqttConfig

logger = get_logger(__name__)

# CONNACK codes for rejected credentials: MQTT 3.1.1 (4, 5) and MQTT 5 (134, 135)
_AUTH_REJECTED_CODES = {4, 5, 134, 135}


def _is_auth_failure(exc: aiomqtt.MqttError) -> bool:
    if isinstance(exc, aiomqtt.MqttCodeError):
        rc = getattr(exc.rc, "value", exc.rc)
        if rc in _AUTH_REJECTED_CODES:
            return True
    return "code:134" in str(exc) or "code:135" in str(exc)


class MQTTClient:
    """Broker connection lifecycle and the single publisher for the bridge."""

    lp: str = "mqtt:"

    def __init__(
        self,
        settings: MqttConfig,
        registry: ActionRegistry,
        executor: CommandExecutor | None = None,
        policy: ReconnectPolicy | None = None,
        connect_attempts: int = MQTTBRIDGE_CONNECT_ATTEMPTS,
    ) -> None:
        self.settings: MqttConfig = settings
        self.registry: ActionRegistry = registry
        self.executor: CommandExecutor = executor or CommandExecutor()
        self.policy: ReconnectPolicy = policy or ReconnectPolicy(
            min_delay_seconds=MQTTBRIDGE_RECONNECT_MIN_DELAY,
            max_delay_seconds=MQTTBRIDGE_RECONNECT_MAX_DELAY,
            stable_after_seconds=MQTTBRIDGE_RECONNECT_STABLE_AFTER,
        )
        self.connect_attempts: int = max(1, connect_attempts)

        self.client: aiomqtt.Client | None = None
        self.client_id: str = f"mqttbridge-{os.getpid()}"
        self.start_task: asyncio.Task[None] | None = None
        self.connected_at: float | None = None
        self.connections: int = 0

        self._state: ConnectionState = ConnectionState.DISCONNECTED
        self._stopping: bool = False
        self._last_error: str = ""
        self._publish_lock = asyncio.Lock()

        self.discovery = DiscoveryHelper(self)
        self.command_router = CommandRouter(self)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if MQTT client is connected to the broker."""
        return self._state is ConnectionState.CONNECTED

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("%s state %s -> %s", self.lp, self._state, state)
            self._state = state

    def _new_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(
            topic=self.registry.availability_topic,
            payload=AVAILABILITY_OFFLINE,
            qos=1,
            retain=True,
        )
        username = self.settings.username or None
        return aiomqtt.Client(
            hostname=self.settings.host,
            port=self.settings.port,
            username=username,
            password=self.settings.password if username else None,
            identifier=self.client_id,
            keepalive=self.settings.keepalive,
            will=will,
        )

    async def connect(self) -> bool:
        """Open a new broker connection and mark the instance available.

        Raises:
            BrokerConnectionError: credentials were rejected before the
                first successful connection

        """
        lp = f"{self.lp}connect:"
        self._set_state(ConnectionState.CONNECTING)
        logger.debug("%s Connecting to MQTT broker %s:%s...", lp, self.settings.host, self.settings.port)
        self.client = self._new_client()
        try:
            _ = await self.client.__aenter__()
        except aiomqtt.MqttError as mqtt_err_exc:
            self._last_error = str(mqtt_err_exc)
            self.client = None
            self._set_state(ConnectionState.DISCONNECTED)
            logger.warning("%s Connection failed: %s", lp, mqtt_err_exc)
            if _is_auth_failure(mqtt_err_exc) and self.connections == 0:
                logger.error(
                    "%s Bad username or password, check your MQTT credentials (username: %s)",
                    lp,
                    self.settings.username,
                )
                raise BrokerConnectionError(self._last_error, 1) from mqtt_err_exc
            return False

        self._set_state(ConnectionState.CONNECTED)
        self.connected_at = time.monotonic()
        self.connections += 1
        logger.info(
            "%s Connected to MQTT broker: %s port: %s",
            lp,
            self.settings.host,
            self.settings.port,
            extra={"instance": self.registry.instance_name, "connection": self.connections},
        )
        _ = await self.send_birth_msg()
        return True

    async def _subscribe_actions(self) -> None:
        assert self.client is not None, "client must be initialized"
        for topic in self.registry.topics:
            await self.client.subscribe(topic, qos=1)
        logger.info("%s Subscribed to %d action topic(s)", self.lp, len(self.registry))

    async def _unsubscribe_actions(self) -> None:
        if self.client is None:
            return
        for topic in self.registry.topics:
            try:
                await self.client.unsubscribe(topic)
            except aiomqtt.MqttError as exc:
                logger.warning("%s Failed to unsubscribe from %s: %s", self.lp, topic, exc)
                return

    async def _close_client(self) -> None:
        client, self.client = self.client, None
        if client is None:
            return
        try:
            await client.__aexit__(None, None, None)
        except aiomqtt.MqttError as exc:
            logger.debug("%s Disconnect after connection loss: %s", self.lp, exc)

    def _ensure_connected(self) -> None:
        if not self.is_connected or self.client is None:
            raise aiomqtt.MqttError("Connection dropped after a failed publish")

    async def _serve(self) -> None:
        """Subscribe, announce and consume messages until the connection drops."""
        self._ensure_connected()
        await self._subscribe_actions()
        _ = await self.discovery.announce_all()
        self._ensure_connected()
        logger.info("%s Init done, listening for action calls", self.lp)
        await self.command_router.start_receiver_task()

    async def start(self) -> None:
        """Connect, serve and reconnect with backoff until stopped.

        Raises:
            BrokerConnectionError: no connection could be made within the
                configured number of initial attempts

        """
        lp = f"{self.lp}start:"
        failures = 0
        while not self._stopping:
            if await self.connect():
                try:
                    await self._serve()
                except aiomqtt.MqttError as exc:
                    if not self._stopping:
                        logger.warning("%s Connection to broker lost: %s", lp, exc)
                if self._stopping:
                    break
                self._set_state(ConnectionState.DISCONNECTED)
                await self._close_client()
                connected_for = time.monotonic() - (self.connected_at or time.monotonic())
                if self.policy.should_reset(connected_for):
                    failures = 0
            elif self.connections == 0 and failures + 1 >= self.connect_attempts:
                raise BrokerConnectionError(self._last_error, failures + 1)

            if self._stopping:
                break
            self._set_state(ConnectionState.RECONNECT_PENDING)
            delay = self.policy.get_delay(failures)
            failures += 1
            logger.info("%s Reconnecting to MQTT broker in %.1f seconds (attempt %d)...", lp, delay, failures)
            await asyncio.sleep(delay)

    async def stop(self) -> None:
        """Graceful shutdown: retract discovery, unsubscribe, go offline, disconnect."""
        lp = f"{self.lp}stop:"
        self._stopping = True
        if self.is_connected:
            logger.debug("%s Removing actions from Home Assistant...", lp)
            _ = await self.discovery.retract_all()
            await self._unsubscribe_actions()
            _ = await self.send_will_msg()
        try:
            await self._close_client()
        except Exception as e:
            logger.warning("%s MQTT disconnect failed: %s", lp, e)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)
        finally:
            self._set_state(ConnectionState.DISCONNECTED)
            if self.start_task and not self.start_task.done() and self.start_task is not asyncio.current_task():
                logger.debug("%s FINISHING: Cancelling start task", lp)
                _ = self.start_task.cancel()

    async def send_birth_msg(self) -> bool:
        return await self.publish(self.registry.availability_topic, AVAILABILITY_ONLINE, retain=True, qos=1)

    async def send_will_msg(self) -> bool:
        return await self.publish(self.registry.availability_topic, AVAILABILITY_OFFLINE, retain=True, qos=1)

    async def publish(self, topic: str, payload: bytes, *, retain: bool = False, qos: int = 0) -> bool:
        """Publish a message to the MQTT broker. Returns False instead of raising.

        A failed publish drops the connection, the receiver loop then ends
        and ``start`` reconnects and announces again.
        """
        lp = f"{self.lp}publish:"
        async with self._publish_lock:
            if not self.is_connected or self.client is None:
                return False
            try:
                _ = await self.client.publish(topic, payload, qos=qos, retain=retain)
            except aiomqtt.MqttCodeError as mqtt_code_exc:
                logger.warning("%s [MqttCodeError] %s -> %s", lp, topic, mqtt_code_exc)
            except aiomqtt.MqttError as mqtt_err:
                logger.warning("%s [MqttError] %s -> %s", lp, topic, mqtt_err)
            else:
                return True
            self._set_state(ConnectionState.DISCONNECTED)
            await self._close_client()
        return False
