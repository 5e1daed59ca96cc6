from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from functools import partial
from pathlib import Path

import dotenv
import uvloop

from mqtt_bridge.config import default_config_path, load_config
from mqtt_bridge.const import (
    MQTT_CLIENT_START_TASK_NAME,
    MQTTBRIDGE_SHUTDOWN_GRACE,
    MQTTBRIDGE_VERSION,
    YES_ANSWER,
)
from mqtt_bridge.exceptions import BrokerConnectionError, ConfigError
from mqtt_bridge.executor import CommandExecutor
from mqtt_bridge.logging_abstraction import configure_logging, get_logger
from mqtt_bridge.mqtt.client import MQTTClient
from mqtt_bridge.registry import ActionRegistry
from mqtt_bridge.structs import BridgeConfig

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_CONNECTION_ERROR = 2


class MqttBridge:
    """Runs the MQTT client until a shutdown signal, then shuts down gracefully."""

    lp: str = "MqttBridge:"

    def __init__(
        self,
        config: BridgeConfig,
        registry: ActionRegistry,
        shutdown_grace: float = MQTTBRIDGE_SHUTDOWN_GRACE,
    ) -> None:
        self.config = config
        self.registry = registry
        self.shutdown_grace = shutdown_grace
        self.executor = CommandExecutor()
        self.mqtt_client = MQTTClient(config.mqtt, registry, self.executor)
        self._stop_event: asyncio.Event | None = None

    def request_stop(self, signum: int | None = None) -> None:
        if signum is not None:
            logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> None:
        """Serve until stopped.

        Raises:
            BrokerConnectionError: the broker could not be reached at startup

        """
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, partial(self.request_stop, signum))

        logger.info(
            "%s Starting MQTT client...",
            self.lp,
            extra={"instance": self.registry.instance_name, "actions": len(self.registry)},
        )
        self.mqtt_client.start_task = start_task = asyncio.create_task(
            self.mqtt_client.start(),
            name=MQTT_CLIENT_START_TASK_NAME,
        )
        stop_task = asyncio.create_task(self._stop_event.wait())
        try:
            _ = await asyncio.wait({start_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            _ = stop_task.cancel()
            await self.stop()
            for signum in (signal.SIGINT, signal.SIGTERM):
                _ = loop.remove_signal_handler(signum)

        if start_task.done() and not start_task.cancelled():
            start_task.result()

    async def stop(self) -> None:
        logger.info("%s Shutting down...", self.lp)
        start_task = self.mqtt_client.start_task
        await self.mqtt_client.stop()
        if start_task is not None and not start_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await start_task
        _ = await self.executor.wait_pending(self.shutdown_grace)


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mqtt-bridge",
        description="mqtt-bridge -- execute predefined shell commands on incoming MQTT messages",
    )
    _ = parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file (default: {default_config_path()})",
    )
    _ = parser.add_argument(
        "-d",
        "--debug",
        action="count",
        default=0,
        help="Enable debug logging",
    )
    _ = parser.add_argument("--env", help="Path to an environment file", default=None, type=Path)
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {MQTTBRIDGE_VERSION}")
    return parser.parse_args(argv)


def _load_env_file(env_path: Path) -> None:
    env_path = env_path.expanduser().resolve()
    if not env_path.exists():
        logger.error("Environment file not found", extra={"path": str(env_path)})
        return
    if dotenv.load_dotenv(env_path, override=True):
        logger.info("Environment variables loaded", extra={"source": str(env_path)})
    else:
        logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})


def main(argv: list[str] | None = None) -> int:
    """Main entry point for mqtt-bridge. Returns the process exit code."""
    args = parse_cli(argv)
    if args.env:
        configure_logging(logging.DEBUG if args.debug else logging.INFO)
        _load_env_file(args.env)

    # Read after the env file so it can set these
    debug = args.debug > 0 or os.environ.get("MQTTBRIDGE_DEBUG", "0").casefold() in YES_ANSWER
    configure_logging(
        logging.DEBUG if debug else logging.INFO,
        json_file=os.environ.get("MQTTBRIDGE_LOG_JSON_FILE") or None,
    )
    logger.info("Starting mqtt-bridge", extra={"version": MQTTBRIDGE_VERSION})

    config_path: Path = args.config or Path(os.environ.get("MQTTBRIDGE_CONFIG", default_config_path()))
    try:
        config = load_config(config_path.expanduser())
        registry = ActionRegistry.build(config.actions, config.mqtt.instance_name)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    logger.debug("Config: %s", config.model_dump(exclude={"mqtt": {"password"}}))
    bridge = MqttBridge(config, registry)
    try:
        uvloop.run(bridge.run())
    except BrokerConnectionError as exc:
        logger.error("Unable to connect to MQTT broker: %s", exc)
        return EXIT_CONNECTION_ERROR

    logger.info("mqtt-bridge stopped gracefully")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
