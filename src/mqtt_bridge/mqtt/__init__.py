"""MQTT side of the bridge.

- client.py: MQTTClient, connection lifecycle and the single publisher
- discovery.py: Home Assistant discovery payloads for actions
- command_routing.py: inbound message routing to the command executor
"""

from .client import MQTTClient
from .command_routing import CommandRouter
from .discovery import DiscoveryHelper, announce, retract

__all__ = [
    "CommandRouter",
    "DiscoveryHelper",
    "MQTTClient",
    "announce",
    "retract",
]
