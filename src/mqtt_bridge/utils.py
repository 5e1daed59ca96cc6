from __future__ import annotations

import re
import socket
import unicodedata

from mqtt_bridge.const import SLUG_SENTINEL

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Convert an action name to a topic-safe slug.
    E.g., 'Sleep some' -> 'sleep_some', ' Lights: OFF! ' -> 'lights_off'

    Returns SLUG_SENTINEL when nothing usable is left.
    """
    # Fold accents to their ASCII base letters, drop everything else non-ASCII
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    # Any run of whitespace, punctuation or underscores becomes a single "_"
    text = _NON_SLUG_CHARS.sub("_", text).strip("_")
    return text or SLUG_SENTINEL


def get_default_instance_name() -> str:
    """Hostname of this machine, used when no instance_name is configured."""
    hostname = socket.gethostname()
    # Drop the domain part, dots are legal in topics but not in discovery object ids
    return hostname.split(".")[0] or "localhost"
