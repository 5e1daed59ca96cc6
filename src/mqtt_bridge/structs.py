"""Data model: configuration schema, actions and execution outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field

from mqtt_bridge.const import MQTTBRIDGE_DEFAULT_KEEPALIVE, MQTTBRIDGE_DEFAULT_PORT
from mqtt_bridge.exceptions import ExecutionError
from mqtt_bridge.utils import get_default_instance_name


class ActionConfig(BaseModel):
    """One ``actions:`` entry as read from the configuration file."""

    name: str
    command: str
    icon: str | None = None


class MqttConfig(BaseModel):
    """Broker connection parameters (``mqtt:`` section)."""

    host: str
    port: int = MQTTBRIDGE_DEFAULT_PORT
    username: str | None = None
    password: str | None = None
    instance_name: str = Field(default_factory=get_default_instance_name)
    keepalive: int = MQTTBRIDGE_DEFAULT_KEEPALIVE


class BridgeConfig(BaseModel):
    """Whole configuration file."""

    mqtt: MqttConfig
    actions: list[ActionConfig] = Field(default_factory=list)


@dataclass(frozen=True)
class Action:
    """A validated action bound to its slug and command topic."""

    name: str
    command: str
    slug: str
    topic: str
    icon: str | None = None

    def __str__(self) -> str:
        return f"<Action {self.name}>"


@dataclass(frozen=True)
class DiscoveryMessage:
    """A retained publish on a Home Assistant discovery config topic."""

    topic: str
    payload: bytes
    retain: bool = True


@dataclass(frozen=True)
class Outcome:
    """Result of running one command.

    ``exit_code`` is None when the process never started, in which case
    ``error`` says why.
    """

    command: str
    exit_code: int | None = None
    stdout_tail: str = ""
    stderr_tail: str = ""
    duration: float = 0.0
    error: ExecutionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.exit_code == 0


class ConnectionState(StrEnum):
    """Broker connection state, owned by MQTTClient."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_PENDING = "reconnect_pending"
