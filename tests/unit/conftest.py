"""
Shared fixtures for unit tests.
"""

from unittest.mock import patch

import pytest
from fakes import FakeBroker

from mqtt_bridge.retry_policy import ReconnectPolicy
from mqtt_bridge.structs import ActionConfig, MqttConfig


@pytest.fixture
def fake_broker():
    """Patch aiomqtt.Client with a scripted FakeBroker."""
    broker = FakeBroker()
    with patch("mqtt_bridge.mqtt.client.aiomqtt.Client", new=broker):
        yield broker


@pytest.fixture
def fast_policy():
    return ReconnectPolicy(min_delay_seconds=0.01, max_delay_seconds=0.02, stable_after_seconds=60.0, jitter_factor=0)


@pytest.fixture
def mqtt_config():
    return MqttConfig(host="broker.local", username="mqtt", password="secret", instance_name="moin")


@pytest.fixture
def raw_actions():
    return [
        ActionConfig(name="Sleep some", command="/usr/bin/sleep 10", icon="mdi:sleep"),
        ActionConfig(name="Lock screen", command="loginctl lock-session"),
        ActionConfig(name="Say 'hi'", command="echo 'hello world'"),
    ]
