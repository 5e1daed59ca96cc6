"""Routing of inbound MQTT messages to action executions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mqtt_bridge.correlation import dispatch_context
from mqtt_bridge.logging_abstraction import get_logger

if TYPE_CHECKING:
    import asyncio

    from mqtt_bridge.mqtt.client import MQTTClient
    from mqtt_bridge.structs import Outcome

logger = get_logger(__name__)


class CommandRouter:
    """Helper class for routing MQTT messages to the command executor.

    Messages are consumed one at a time in broker delivery order; each
    matching action is handed off to its own task so consumption never
    waits on a command.
    """

    def __init__(self, mqtt_client: MQTTClient) -> None:
        self.client = mqtt_client

    def route(self, topic: str, payload: bytes | None) -> asyncio.Task[Outcome] | None:
        """Dispatch the action subscribed on ``topic``.

        The payload is not interpreted, any payload (including an empty
        one) triggers the action.
        """
        lp = f"{self.client.lp}rcv:"
        action = self.client.registry.lookup(topic)
        if action is None:
            logger.warning("%s Received message on unknown topic %s, ignoring", lp, topic)
            return None

        with dispatch_context() as dispatch_id:
            logger.debug(
                "%s Received on %s (%d bytes), dispatching %s",
                lp,
                topic,
                len(payload) if payload else 0,
                action,
                extra={"dispatch_id": dispatch_id},
            )
            return self.client.executor.dispatch(action)

    async def start_receiver_task(self) -> None:
        """Consume messages until the connection drops (raises aiomqtt.MqttError)."""
        assert self.client.client is not None, "client must be initialized"
        async for message in self.client.client.messages:
            msg: Any = message
            payload = msg.payload if isinstance(msg.payload, (bytes, bytearray)) else None
            _ = self.route(msg.topic.value, payload)
