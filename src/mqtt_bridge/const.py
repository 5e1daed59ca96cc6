import os
from pathlib import Path

from mqtt_bridge import __version__

__all__ = [
    "AVAILABILITY_OFFLINE",
    "AVAILABILITY_ONLINE",
    "DISCOVERY_COMPONENT",
    "DISCOVERY_PREFIX",
    "MQTTBRIDGE_CONFIG_FILE_PATH",
    "MQTTBRIDGE_CONNECT_ATTEMPTS",
    "MQTTBRIDGE_DEFAULT_KEEPALIVE",
    "MQTTBRIDGE_DEFAULT_PORT",
    "MQTTBRIDGE_MANUFACTURER",
    "MQTTBRIDGE_RECONNECT_MAX_DELAY",
    "MQTTBRIDGE_RECONNECT_MIN_DELAY",
    "MQTTBRIDGE_RECONNECT_STABLE_AFTER",
    "MQTTBRIDGE_SHUTDOWN_GRACE",
    "MQTTBRIDGE_VERSION",
    "MQTT_CLIENT_START_TASK_NAME",
    "ORIGIN_STRUCT",
    "OUTPUT_TAIL_CHARS",
    "PAYLOAD_PRESS",
    "SLUG_SENTINEL",
    "SRC_REPO_URL",
    "TOPIC_PREFIX",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", "on")

MQTTBRIDGE_VERSION: str = __version__
SRC_REPO_URL: str = "https://github.com/mqtt-bridge/mqtt-bridge"
MQTTBRIDGE_MANUFACTURER: str = "mqtt-bridge"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


_xdg_config = os.environ.get("XDG_CONFIG_HOME")
_config_dir = Path(_xdg_config) if _xdg_config else Path("~/.config")
MQTTBRIDGE_CONFIG_FILE_PATH: str = os.environ.get(
    "MQTTBRIDGE_CONFIG",
    (_config_dir / "mqttbridge.yaml").as_posix(),
)

# Topics
TOPIC_PREFIX: str = "mqttbridge"
DISCOVERY_PREFIX: str = os.environ.get("MQTTBRIDGE_DISCOVERY_PREFIX", "homeassistant")
DISCOVERY_COMPONENT: str = "button"
PAYLOAD_PRESS: str = "PRESS"
AVAILABILITY_ONLINE: bytes = b"online"
AVAILABILITY_OFFLINE: bytes = b"offline"

# slugify() result for names without a single usable character
SLUG_SENTINEL: str = "_"

MQTTBRIDGE_DEFAULT_PORT: int = 1883
MQTTBRIDGE_DEFAULT_KEEPALIVE: int = 5

# Reconnect / shutdown timing (seconds)
MQTTBRIDGE_RECONNECT_MIN_DELAY: float = _env_float("MQTTBRIDGE_RECONNECT_MIN_DELAY", 1.0)
MQTTBRIDGE_RECONNECT_MAX_DELAY: float = _env_float("MQTTBRIDGE_RECONNECT_MAX_DELAY", 60.0)
MQTTBRIDGE_RECONNECT_STABLE_AFTER: float = _env_float("MQTTBRIDGE_RECONNECT_STABLE_AFTER", 30.0)
MQTTBRIDGE_CONNECT_ATTEMPTS: int = _env_int("MQTTBRIDGE_CONNECT_ATTEMPTS", 5)
MQTTBRIDGE_SHUTDOWN_GRACE: float = _env_float("MQTTBRIDGE_SHUTDOWN_GRACE", 10.0)

OUTPUT_TAIL_CHARS: int = 2048
MQTT_CLIENT_START_TASK_NAME = "MQTTClient_START"


ORIGIN_STRUCT = {
    "name": "mqtt-bridge",
    "sw_version": MQTTBRIDGE_VERSION,
    "support_url": SRC_REPO_URL,
}
