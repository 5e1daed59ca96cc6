"""Logging setup for mqtt-bridge.

Modules log through ``get_logger(__name__)`` and may pass ``extra={...}``,
which is rendered as ``| key=value`` context. Handlers live on the
``mqtt_bridge`` package logger only: human-readable lines on stderr and,
when ``MQTTBRIDGE_LOG_JSON_FILE`` is set, one JSON object per line in that
file. Every record is stamped with the dispatch id of the MQTT message
being handled.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, override

from mqtt_bridge.correlation import current_dispatch_id

__all__ = [
    "BridgeLogger",
    "DispatchIdFilter",
    "HumanReadableFormatter",
    "JSONFormatter",
    "configure_logging",
    "get_logger",
]

ROOT_LOGGER_NAME = "mqtt_bridge"
NO_DISPATCH_ID = "--------"
_HANDLER_PREFIX = "mqtt_bridge."


def _context(record: logging.LogRecord) -> dict[str, object]:
    context = getattr(record, "context", None)
    return dict(context) if isinstance(context, Mapping) else {}


class DispatchIdFilter(logging.Filter):
    """Stamp ``record.dispatch_id`` from the current dispatch context."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        record.dispatch_id = current_dispatch_id() or NO_DISPATCH_ID
        return True


class HumanReadableFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] [%(dispatch_id)s] > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "dispatch_id"):
            record.dispatch_id = current_dispatch_id() or NO_DISPATCH_ID
        line = super().format(record)
        context = _context(record)
        if context:
            line += "".join(f" | {key}={value}" for key, value in context.items())
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.module}:{record.lineno}",
            "dispatch_id": getattr(record, "dispatch_id", None) or current_dispatch_id(),
            "msg": record.getMessage(),
        }
        context = _context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class BridgeLogger(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that carries ``extra=`` as structured context.

    ``logger.info("Executed %s", action, extra={"exit_code": 0})`` leaves
    ``{"exit_code": 0}`` on ``record.context`` for the formatters.
    """

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    @override
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = kwargs.pop("extra", None)
        if extra:
            kwargs["extra"] = {"context": dict(extra)}
        return msg, kwargs


def get_logger(name: str) -> BridgeLogger:
    return BridgeLogger(logging.getLogger(name))


def _replace_handler(root: logging.Logger, name: str, handler: logging.Handler | None) -> None:
    for old in [h for h in root.handlers if h.get_name() == _HANDLER_PREFIX + name]:
        root.removeHandler(old)
        old.close()
    if handler is None:
        return
    handler.set_name(_HANDLER_PREFIX + name)
    handler.addFilter(DispatchIdFilter())
    root.addHandler(handler)


def configure_logging(level: int, json_file: str | Path | None = None) -> None:
    """Install the bridge's handlers at ``level``. Safe to call more than once.

    Args:
        level: Level for all ``mqtt_bridge.*`` loggers
        json_file: Also append JSON lines to this file

    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    human = logging.StreamHandler(sys.stderr)
    human.setFormatter(HumanReadableFormatter())
    _replace_handler(root, "human", human)

    json_handler: logging.Handler | None = None
    if json_file:
        json_path = Path(json_file).expanduser()
        try:
            json_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(json_path, mode="a")
        except OSError as exc:
            root.warning("Cannot write JSON log file %s: %s", json_path, exc)
        else:
            json_handler.setFormatter(JSONFormatter())
    _replace_handler(root, "json", json_handler)

    # aiomqtt logs through the "mqtt" logger by default
    for lib_name in ("mqtt", "aiomqtt"):
        logging.getLogger(lib_name).setLevel(logging.ERROR)
