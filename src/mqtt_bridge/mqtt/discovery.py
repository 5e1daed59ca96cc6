"""Home Assistant MQTT discovery for configured actions.

Each action is announced as a ``button`` entity. Payload builders are pure
and deterministic, so re-announcing after a reconnect publishes the same
bytes and Home Assistant sees no change.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from mqtt_bridge.const import (
    AVAILABILITY_OFFLINE,
    AVAILABILITY_ONLINE,
    DISCOVERY_COMPONENT,
    DISCOVERY_PREFIX,
    MQTTBRIDGE_MANUFACTURER,
    MQTTBRIDGE_VERSION,
    ORIGIN_STRUCT,
    PAYLOAD_PRESS,
)
from mqtt_bridge.logging_abstraction import get_logger
from mqtt_bridge.registry import availability_topic
from mqtt_bridge.structs import Action, DiscoveryMessage

if TYPE_CHECKING:
    from mqtt_bridge.mqtt.client import MQTTClient

logger = get_logger(__name__)


def discovery_topic(action: Action, instance_name: str) -> str:
    return f"{DISCOVERY_PREFIX}/{DISCOVERY_COMPONENT}/{instance_name}_{action.slug}/config"


def device_info(instance_name: str) -> dict[str, Any]:
    """Device block shared by every action of one instance."""
    return {
        "identifiers": [instance_name],
        "name": f"mqtt-bridge @ {instance_name}",
        "manufacturer": MQTTBRIDGE_MANUFACTURER,
        "model": "mqtt-bridge",
        "sw_version": MQTTBRIDGE_VERSION,
    }


def discovery_payload(action: Action, instance_name: str) -> dict[str, Any]:
    config: dict[str, Any] = {
        "name": action.name,
        "unique_id": f"{instance_name}_{action.slug}",
        "command_topic": action.topic,
        "payload_press": PAYLOAD_PRESS,
        "availability_topic": availability_topic(instance_name),
        "payload_available": AVAILABILITY_ONLINE.decode(),
        "payload_not_available": AVAILABILITY_OFFLINE.decode(),
        "device": device_info(instance_name),
        "origin": ORIGIN_STRUCT,
    }
    if action.icon:
        config["icon"] = action.icon
    return config


def announce(action: Action, instance_name: str) -> DiscoveryMessage:
    """Retained discovery config that makes Home Assistant show a button for ``action``."""
    payload = json.dumps(discovery_payload(action, instance_name), sort_keys=True, separators=(",", ":"))
    return DiscoveryMessage(topic=discovery_topic(action, instance_name), payload=payload.encode())


def retract(action: Action, instance_name: str) -> DiscoveryMessage:
    """Empty retained payload, removes the entity announced for ``action``."""
    return DiscoveryMessage(topic=discovery_topic(action, instance_name), payload=b"")


class DiscoveryHelper:
    """Publishes and retracts discovery configs through the owning MQTTClient."""

    def __init__(self, mqtt_client: MQTTClient) -> None:
        self.client = mqtt_client

    async def announce_all(self) -> int:
        """Announce every registered action in registry order.

        Stops at the first failed publish; the next successful reconnect
        announces everything again.

        Returns:
            Number of actions announced

        """
        lp = f"{self.client.lp}hass:"
        registry = self.client.registry
        count = 0
        for action in registry:
            msg = announce(action, registry.instance_name)
            if not await self.client.publish(msg.topic, msg.payload, retain=msg.retain, qos=1):
                logger.warning(
                    "%s Discovery announce interrupted after %d of %d action(s), will retry on reconnect",
                    lp,
                    count,
                    len(registry),
                )
                return count
            logger.debug("%s Published discovery info for %s to %s", lp, action, msg.topic)
            count += 1
        logger.info("%s Announced %d action(s) to Home Assistant", lp, count)
        return count

    async def retract_all(self) -> int:
        """Remove every registered action from Home Assistant. Graceful shutdown only."""
        lp = f"{self.client.lp}hass:"
        registry = self.client.registry
        count = 0
        for action in registry:
            msg = retract(action, registry.instance_name)
            if await self.client.publish(msg.topic, msg.payload, retain=msg.retain, qos=1):
                count += 1
            else:
                logger.warning("%s Failed to retract discovery info for %s", lp, action)
        logger.info("%s Retracted %d action(s) from Home Assistant", lp, count)
        return count
