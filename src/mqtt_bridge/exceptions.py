"""Exception hierarchy for mqtt-bridge.

Three families, handled at different levels:

- ``ConfigError``: invalid configuration, fatal at startup.
- ``BrokerConnectionError``: broker unreachable or credentials rejected
  during startup, fatal after the configured number of attempts.
- ``ExecutionError``: one command could not be run. Local to a single
  dispatch, logged and reported through ``Outcome.error``, never raised
  out of the executor.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all mqtt-bridge errors."""


class ConfigError(BridgeError):
    """Configuration cannot be turned into a set of actions."""


class EmptyNameError(ConfigError):
    """Action name is blank or contains no usable characters.

    Attributes:
        index: Position of the offending entry in the configured action list
        name: The name as configured

    """

    def __init__(self, index: int, name: str = "") -> None:
        self.index: int = index
        self.name: str = name
        super().__init__(f"Action #{index + 1} has an empty name (got {name!r})")


class EmptyCommandError(ConfigError):
    """Action command is blank or tokenizes to nothing."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(f"Action {name!r} has an empty command")


class CommandSyntaxError(ConfigError):
    """Action command cannot be split into shell words (unbalanced quoting)."""

    def __init__(self, name: str, reason: str) -> None:
        self.name: str = name
        self.reason: str = reason
        super().__init__(f"Action {name!r} has an invalid command: {reason}")


class DuplicateSlugError(ConfigError):
    """Two actions normalize to the same slug and would share a topic.

    Attributes:
        slug: The colliding slug
        names: Names of the colliding actions, in configuration order

    """

    def __init__(self, slug: str, names: tuple[str, ...]) -> None:
        self.slug: str = slug
        self.names: tuple[str, ...] = names
        joined = ", ".join(repr(n) for n in names)
        super().__init__(f"Actions {joined} all map to slug {slug!r}")


class InvalidInstanceNameError(ConfigError):
    """Instance name is empty or not usable as a topic level and discovery object id."""

    def __init__(self, value: str) -> None:
        self.value: str = value
        super().__init__(f"Invalid instance name {value!r}: use only letters, digits, '_' and '-'")


class ConfigFileError(ConfigError):
    """Configuration file is missing, unreadable or does not match the schema."""

    def __init__(self, path: str, reason: str) -> None:
        self.path: str = path
        self.reason: str = reason
        super().__init__(f"Cannot load configuration from {path}: {reason}")


class BrokerConnectionError(BridgeError):
    """Broker could not be reached during startup.

    Attributes:
        reason: Last failure reason reported by the MQTT library
        attempts: Number of connection attempts made

    """

    def __init__(self, reason: str, attempts: int = 0) -> None:
        self.reason: str = reason
        self.attempts: int = attempts
        super().__init__(f"Broker connection failed after {attempts} attempt(s): {reason}")


class ExecutionError(BridgeError):
    """A configured command could not be started."""


class TokenizeError(ExecutionError):
    """Command line has unbalanced quotes or escapes."""

    def __init__(self, command: str, reason: str) -> None:
        self.command: str = command
        self.reason: str = reason
        super().__init__(f"Cannot split command {command!r}: {reason}")


class SpawnError(ExecutionError):
    """Executable was not found or could not be launched."""

    def __init__(self, argv0: str, reason: str) -> None:
        self.argv0: str = argv0
        self.reason: str = reason
        super().__init__(f"Cannot launch {argv0!r}: {reason}")
