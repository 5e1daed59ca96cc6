"""Configuration file loading.

Example::

    mqtt:
      host: 192.168.1.2
      username: mqtt
      password: secret
      instance_name: moin      # defaults to the hostname
    actions:
      - name: Sleep some
        icon: mdi:sleep
        command: /usr/bin/sleep 10
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from mqtt_bridge.const import MQTTBRIDGE_CONFIG_FILE_PATH
from mqtt_bridge.exceptions import ConfigFileError
from mqtt_bridge.logging_abstraction import get_logger
from mqtt_bridge.structs import BridgeConfig

logger = get_logger(__name__)


def default_config_path() -> Path:
    return Path(MQTTBRIDGE_CONFIG_FILE_PATH).expanduser()


def load_config(config_file: Path) -> BridgeConfig:
    """Parse a YAML configuration file.

    Raises:
        ConfigFileError: file is missing, unreadable, not YAML or does not
            match the expected schema

    """
    logger.debug("Parsing config file: %s", config_file)
    if not config_file.exists():
        raise ConfigFileError(str(config_file), "no such file")

    try:
        with config_file.open() as f:
            config_data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigFileError(str(config_file), exc.strerror or str(exc)) from exc
    except yaml.YAMLError as exc:
        raise ConfigFileError(str(config_file), f"invalid YAML: {exc}") from exc

    if not isinstance(config_data, dict):
        raise ConfigFileError(str(config_file), "expected a mapping with 'mqtt' and 'actions' sections")

    try:
        config = BridgeConfig.model_validate(config_data)
    except ValidationError as exc:
        raise ConfigFileError(str(config_file), str(exc)) from exc

    logger.info(
        "Parsed config: %d action(s) for instance %s",
        len(config.actions),
        config.mqtt.instance_name,
    )
    return config
