"""
Dispatch id tracking for log correlation.

Every inbound MQTT message gets a short id kept in a contextvar. Tasks created
while the id is set inherit it, so all log lines of one command execution
share the same id.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "current_dispatch_id",
    "dispatch_context",
    "new_dispatch_id",
]

_dispatch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "dispatch_id",
    default=None,
)


def new_dispatch_id() -> str:
    """Return a fresh 8 character dispatch id."""
    return uuid.uuid4().hex[:8]


def current_dispatch_id() -> str | None:
    return _dispatch_id.get()


@contextmanager
def dispatch_context(dispatch_id: str | None = None) -> Generator[str]:
    """
    Scope a dispatch id for the duration of the block.

    Args:
        dispatch_id: Id to use, a new one is generated when omitted

    Yields:
        The dispatch id in effect inside the block
    """
    if dispatch_id is None:
        dispatch_id = new_dispatch_id()
    token = _dispatch_id.set(dispatch_id)
    try:
        yield dispatch_id
    finally:
        _dispatch_id.reset(token)
