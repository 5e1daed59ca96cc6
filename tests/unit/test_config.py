"""Unit tests for configuration file loading."""

from unittest.mock import patch

import pytest

from mqtt_bridge.config import load_config
from mqtt_bridge.exceptions import ConfigError, ConfigFileError

VALID_CONFIG = """\
mqtt:
  host: 192.168.1.2
  username: mqtt
  password: secret
  instance_name: moin
actions:
  - name: Sleep some
    icon: mdi:sleep
    command: /usr/bin/sleep 10
  - name: Lock screen
    command: loginctl lock-session
"""


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str):
        path = tmp_path / "mqttbridge.yaml"
        path.write_text(text)
        return path

    return _write


class TestLoadConfig:
    def test_valid_config(self, write_config):
        config = load_config(write_config(VALID_CONFIG))

        assert config.mqtt.host == "192.168.1.2"
        assert config.mqtt.port == 1883
        assert config.mqtt.username == "mqtt"
        assert config.mqtt.password == "secret"
        assert config.mqtt.instance_name == "moin"
        assert [a.name for a in config.actions] == ["Sleep some", "Lock screen"]
        assert config.actions[0].icon == "mdi:sleep"
        assert config.actions[1].icon is None

    def test_instance_name_defaults_to_hostname(self, write_config):
        with patch("mqtt_bridge.utils.socket.gethostname", return_value="workstation.lan"):
            config = load_config(write_config("mqtt:\n  host: broker\n"))

        assert config.mqtt.instance_name == "workstation"
        assert config.mqtt.username is None
        assert config.actions == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileError, match="no such file"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, write_config):
        with pytest.raises(ConfigFileError, match="invalid YAML"):
            load_config(write_config("mqtt: [unclosed\n"))

    def test_not_a_mapping(self, write_config):
        with pytest.raises(ConfigFileError, match="expected a mapping"):
            load_config(write_config("- just\n- a list\n"))

    def test_empty_file(self, write_config):
        with pytest.raises(ConfigFileError):
            load_config(write_config(""))

    def test_missing_host(self, write_config):
        with pytest.raises(ConfigFileError, match="host"):
            load_config(write_config("mqtt:\n  username: mqtt\nactions: []\n"))

    def test_action_without_command(self, write_config):
        with pytest.raises(ConfigFileError, match="command"):
            load_config(write_config("mqtt:\n  host: broker\nactions:\n  - name: Nothing\n"))

    def test_config_file_error_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")
