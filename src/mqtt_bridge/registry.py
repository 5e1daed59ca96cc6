"""Action registry: turns configured entries into actions bound to topics.

Built once at startup and read-only afterwards. Building is all-or-nothing,
any invalid entry fails the whole configuration.
"""

from __future__ import annotations

import re
import shlex
from collections.abc import Iterator, Sequence
from typing import Protocol

from mqtt_bridge.const import SLUG_SENTINEL, TOPIC_PREFIX
from mqtt_bridge.exceptions import (
    CommandSyntaxError,
    DuplicateSlugError,
    EmptyCommandError,
    EmptyNameError,
    InvalidInstanceNameError,
)
from mqtt_bridge.logging_abstraction import get_logger
from mqtt_bridge.structs import Action
from mqtt_bridge.utils import slugify

logger = get_logger(__name__)

_INSTANCE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class RawAction(Protocol):
    """Anything shaped like an ``actions:`` entry (ActionConfig in practice)."""

    name: str
    command: str
    icon: str | None


def topic_base(instance_name: str) -> str:
    return f"{TOPIC_PREFIX}/{instance_name}"


def command_topic(instance_name: str, slug: str) -> str:
    """Topic the bridge listens on for calls of one action."""
    return f"{topic_base(instance_name)}/{slug}/call"


def availability_topic(instance_name: str) -> str:
    return f"{topic_base(instance_name)}/available"


def validate_instance_name(instance_name: str) -> str:
    if not _INSTANCE_NAME_RE.match(instance_name):
        raise InvalidInstanceNameError(instance_name)
    return instance_name


def _build_action(index: int, raw: RawAction, instance_name: str) -> Action:
    name = (raw.name or "").strip()
    if not name:
        raise EmptyNameError(index, raw.name or "")

    slug = slugify(name)
    if slug == SLUG_SENTINEL:
        raise EmptyNameError(index, name)

    command = (raw.command or "").strip()
    try:
        argv = shlex.split(command)
    except ValueError as exc:
        raise CommandSyntaxError(name, str(exc)) from exc
    if not argv:
        raise EmptyCommandError(name)

    return Action(
        name=name,
        command=command,
        slug=slug,
        topic=command_topic(instance_name, slug),
        icon=raw.icon or None,
    )


class ActionRegistry:
    """Ordered, immutable set of actions with O(1) lookup by command topic."""

    def __init__(self, instance_name: str, actions: Sequence[Action]) -> None:
        self.instance_name: str = instance_name
        self._actions: tuple[Action, ...] = tuple(actions)
        self._by_topic: dict[str, Action] = {action.topic: action for action in self._actions}

    @classmethod
    def build(cls, raw_actions: Sequence[RawAction], instance_name: str) -> ActionRegistry:
        """Validate ``raw_actions`` and bind each to its slug and topic.

        Order of the input is kept, so subscriptions and discovery
        announcements happen in configuration order.

        Raises:
            InvalidInstanceNameError: instance name cannot be used in topics
            EmptyNameError: an entry has a blank name
            EmptyCommandError: an entry has a blank command
            CommandSyntaxError: an entry's command has unbalanced quoting
            DuplicateSlugError: two entries normalize to the same slug

        """
        validate_instance_name(instance_name)

        actions: list[Action] = []
        seen: dict[str, Action] = {}
        for index, raw in enumerate(raw_actions):
            action = _build_action(index, raw, instance_name)
            if action.slug in seen:
                raise DuplicateSlugError(action.slug, (seen[action.slug].name, action.name))
            seen[action.slug] = action
            actions.append(action)
            logger.debug("Registered %s on %s", action, action.topic)

        if not actions:
            logger.warning("No actions configured, nothing will be subscribed or announced")

        return cls(instance_name, actions)

    @property
    def actions(self) -> tuple[Action, ...]:
        return self._actions

    @property
    def topics(self) -> list[str]:
        return [action.topic for action in self._actions]

    @property
    def availability_topic(self) -> str:
        return availability_topic(self.instance_name)

    def lookup(self, topic: str) -> Action | None:
        return self._by_topic.get(topic)

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)
