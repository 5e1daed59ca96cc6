"""Unit tests for the action registry."""

import pytest

from mqtt_bridge.exceptions import (
    CommandSyntaxError,
    ConfigError,
    DuplicateSlugError,
    EmptyCommandError,
    EmptyNameError,
    InvalidInstanceNameError,
)
from mqtt_bridge.registry import ActionRegistry, availability_topic, command_topic
from mqtt_bridge.structs import ActionConfig


class TestRegistryBuild:
    """Tests for ActionRegistry.build()"""

    def test_build_example_scenario(self):
        registry = ActionRegistry.build([ActionConfig(name="Sleep some", command="/usr/bin/sleep 10")], "moin")

        (action,) = registry.actions
        assert action.slug == "sleep_some"
        assert action.topic == "mqttbridge/moin/sleep_some/call"
        assert action.command == "/usr/bin/sleep 10"
        assert action.icon is None

    def test_build_preserves_input_order(self, raw_actions):
        registry = ActionRegistry.build(raw_actions, "moin")

        assert [a.name for a in registry] == ["Sleep some", "Lock screen", "Say 'hi'"]
        assert registry.topics == [
            "mqttbridge/moin/sleep_some/call",
            "mqttbridge/moin/lock_screen/call",
            "mqttbridge/moin/say_hi/call",
        ]
        assert len(registry) == 3

    def test_icon_forwarded(self, raw_actions):
        registry = ActionRegistry.build(raw_actions, "moin")
        assert registry.actions[0].icon == "mdi:sleep"

    def test_names_and_commands_are_stripped(self):
        registry = ActionRegistry.build([ActionConfig(name="  Reboot ", command="  systemctl reboot  ")], "moin")
        assert registry.actions[0].name == "Reboot"
        assert registry.actions[0].command == "systemctl reboot"

    def test_empty_configuration_is_allowed(self):
        registry = ActionRegistry.build([], "moin")
        assert len(registry) == 0
        assert registry.topics == []

    def test_duplicate_slug_rejected(self):
        raw = [
            ActionConfig(name="Sleep some", command="sleep 1"),
            ActionConfig(name="Lock", command="true"),
            ActionConfig(name="sleep-some", command="sleep 2"),
        ]
        with pytest.raises(DuplicateSlugError) as exc_info:
            _ = ActionRegistry.build(raw, "moin")

        assert exc_info.value.slug == "sleep_some"
        assert exc_info.value.names == ("Sleep some", "sleep-some")
        assert isinstance(exc_info.value, ConfigError)

    @pytest.mark.parametrize("name", ["", "   ", "?!"])
    def test_empty_name_rejected(self, name):
        raw = [ActionConfig(name="ok", command="true"), ActionConfig(name=name, command="true")]
        with pytest.raises(EmptyNameError) as exc_info:
            _ = ActionRegistry.build(raw, "moin")
        assert exc_info.value.index == 1

    @pytest.mark.parametrize("command", ["", "   "])
    def test_empty_command_rejected(self, command):
        with pytest.raises(EmptyCommandError, match="Nothing"):
            _ = ActionRegistry.build([ActionConfig(name="Nothing", command=command)], "moin")

    def test_unbalanced_quotes_rejected(self):
        with pytest.raises(CommandSyntaxError) as exc_info:
            _ = ActionRegistry.build([ActionConfig(name="Broken", command='echo "oops')], "moin")
        assert exc_info.value.name == "Broken"

    @pytest.mark.parametrize("instance_name", ["", "a/b", "home+", "x#", "with space", "dotted.host"])
    def test_invalid_instance_name_rejected(self, instance_name, raw_actions):
        with pytest.raises(InvalidInstanceNameError):
            _ = ActionRegistry.build(raw_actions, instance_name)

    def test_failure_registers_nothing(self):
        """A single bad entry fails the whole build, there is no partial registry"""
        raw = [ActionConfig(name="Good", command="true"), ActionConfig(name="Bad", command="")]
        registry = None
        with pytest.raises(EmptyCommandError):
            registry = ActionRegistry.build(raw, "moin")
        assert registry is None


class TestRegistryLookup:
    """Tests for topic lookups"""

    def test_lookup_by_topic(self, raw_actions):
        registry = ActionRegistry.build(raw_actions, "moin")

        action = registry.lookup("mqttbridge/moin/lock_screen/call")

        assert action is not None
        assert action.name == "Lock screen"

    def test_lookup_unknown_topic(self, raw_actions):
        registry = ActionRegistry.build(raw_actions, "moin")
        assert registry.lookup("mqttbridge/moin/unknown/call") is None
        assert registry.lookup("mqttbridge/other/lock_screen/call") is None

    def test_topic_helpers(self):
        assert command_topic("moin", "sleep_some") == "mqttbridge/moin/sleep_some/call"
        assert availability_topic("moin") == "mqttbridge/moin/available"
        assert ActionRegistry.build([], "moin").availability_topic == "mqttbridge/moin/available"
