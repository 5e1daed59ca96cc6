"""Unit tests for inbound message routing."""

import asyncio
from unittest.mock import MagicMock

import aiomqtt
import pytest
from fakes import FakeMqttClient, make_message, py_command, wait_for

from mqtt_bridge.correlation import current_dispatch_id
from mqtt_bridge.executor import CommandExecutor
from mqtt_bridge.mqtt.command_routing import CommandRouter
from mqtt_bridge.registry import ActionRegistry
from mqtt_bridge.structs import ActionConfig


@pytest.fixture
def registry(raw_actions):
    return ActionRegistry.build(raw_actions, "moin")


def _mqtt_client(registry, executor, messages=()):
    client = MagicMock()
    client.lp = "mqtt:"
    client.registry = registry
    client.executor = executor
    client.client = FakeMqttClient(list(messages), None)
    return client


class TestRoute:
    """Tests for CommandRouter.route()"""

    def test_routes_to_matching_action(self, registry):
        executor = MagicMock()
        router = CommandRouter(_mqtt_client(registry, executor))

        _ = router.route("mqttbridge/moin/lock_screen/call", b"PRESS")

        executor.dispatch.assert_called_once_with(registry.actions[1])

    @pytest.mark.parametrize("payload", [b"", None, b"PRESS", b"anything at all", b"\x00\xff"])
    def test_any_payload_triggers(self, registry, payload):
        executor = MagicMock()
        router = CommandRouter(_mqtt_client(registry, executor))

        _ = router.route("mqttbridge/moin/sleep_some/call", payload)

        executor.dispatch.assert_called_once_with(registry.actions[0])

    def test_unknown_topic_ignored(self, registry):
        executor = MagicMock()
        router = CommandRouter(_mqtt_client(registry, executor))

        assert router.route("mqttbridge/moin/nope/call", b"PRESS") is None
        executor.dispatch.assert_not_called()

    def test_dispatch_runs_inside_dispatch_context(self, registry):
        seen: list[str | None] = []
        executor = MagicMock()
        executor.dispatch.side_effect = lambda action: seen.append(current_dispatch_id())
        router = CommandRouter(_mqtt_client(registry, executor))

        _ = router.route("mqttbridge/moin/sleep_some/call", b"")
        _ = router.route("mqttbridge/moin/sleep_some/call", b"")

        assert all(seen)
        assert seen[0] != seen[1]
        assert current_dispatch_id() is None


class TestReceiver:
    """Tests for CommandRouter.start_receiver_task()"""

    @pytest.mark.asyncio
    async def test_messages_dispatched_in_delivery_order(self, registry):
        executor = MagicMock()
        messages = [
            make_message("mqttbridge/moin/say_hi/call"),
            make_message("mqttbridge/moin/sleep_some/call", b""),
            make_message("mqttbridge/moin/lock_screen/call"),
            aiomqtt.MqttError("connection lost"),
        ]
        router = CommandRouter(_mqtt_client(registry, executor, messages))

        with pytest.raises(aiomqtt.MqttError):
            await router.start_receiver_task()

        dispatched = [c.args[0].name for c in executor.dispatch.call_args_list]
        assert dispatched == ["Say 'hi'", "Sleep some", "Lock screen"]

    @pytest.mark.asyncio
    async def test_slow_command_does_not_block_next_message(self):
        registry = ActionRegistry.build(
            [
                ActionConfig(name="Slow", command=py_command("import time; time.sleep(2)")),
                ActionConfig(name="Fast", command=py_command("pass")),
            ],
            "moin",
        )
        executor = CommandExecutor()
        mqtt_client = _mqtt_client(
            registry,
            executor,
            [make_message("mqttbridge/moin/slow/call"), make_message("mqttbridge/moin/fast/call")],
        )
        tasks = []
        real_dispatch = executor.dispatch

        def _record(action):
            task = real_dispatch(action)
            tasks.append(task)
            return task

        executor.dispatch = _record
        router = CommandRouter(mqtt_client)
        receiver = asyncio.create_task(router.start_receiver_task())

        await wait_for(lambda: len(tasks) == 2)
        slow_task, fast_task = tasks
        fast_outcome = await asyncio.wait_for(fast_task, timeout=1.5)

        assert fast_outcome.ok
        assert not slow_task.done()

        receiver.cancel()
        with pytest.raises(asyncio.CancelledError):
            await receiver
        assert await executor.wait_pending(timeout=5) == 0
