"""Command execution for dispatched actions.

Commands are split with shell-word rules and run directly (no shell), so
pipes and redirections are passed through as literal arguments. Every
dispatch runs in its own task, the receiver never waits on a command.
There is no timeout: a command that never exits keeps its task alive.
"""

from __future__ import annotations

import asyncio
import codecs
import shlex
import time
from collections import deque

from mqtt_bridge.const import OUTPUT_TAIL_CHARS
from mqtt_bridge.exceptions import SpawnError, TokenizeError
from mqtt_bridge.logging_abstraction import get_logger
from mqtt_bridge.structs import Action, Outcome

logger = get_logger(__name__)

_READ_CHUNK_BYTES = 64 * 1024


async def _read_tail(stream: asyncio.StreamReader | None) -> str:
    """Drain ``stream`` to EOF, keeping only its last OUTPUT_TAIL_CHARS characters."""
    if stream is None:
        return ""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    tail: deque[str] = deque(maxlen=OUTPUT_TAIL_CHARS)
    while chunk := await stream.read(_READ_CHUNK_BYTES):
        tail.extend(decoder.decode(chunk))
    tail.extend(decoder.decode(b"", final=True))
    return "".join(tail)


class CommandExecutor:
    """Runs action commands and keeps track of the ones still running."""

    lp: str = "exec:"

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[Outcome]] = set()

    @property
    def pending(self) -> int:
        """Number of dispatched commands that have not finished yet."""
        return len(self._pending)

    async def execute(self, command_line: str) -> Outcome:
        """Run ``command_line`` to completion and report what happened.

        Never raises for command problems: tokenize and spawn failures are
        returned in ``Outcome.error`` with ``exit_code`` None.
        """
        lp = f"{self.lp}execute:"
        start = time.monotonic()
        try:
            argv = shlex.split(command_line)
        except ValueError as exc:
            return Outcome(command=command_line, error=TokenizeError(command_line, str(exc)))
        if not argv:
            return Outcome(command=command_line, error=TokenizeError(command_line, "no tokens"))

        logger.debug("%s argv: %s", lp, argv)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return Outcome(
                command=command_line,
                duration=time.monotonic() - start,
                error=SpawnError(argv[0], exc.strerror or str(exc)),
            )

        # Pipes are drained as they fill, only the tails are kept in memory
        stdout_tail, stderr_tail, exit_code = await asyncio.gather(
            _read_tail(proc.stdout),
            _read_tail(proc.stderr),
            proc.wait(),
        )
        return Outcome(
            command=command_line,
            exit_code=exit_code,
            stdout_tail=stdout_tail,
            stderr_tail=stderr_tail,
            duration=time.monotonic() - start,
        )

    async def run_action(self, action: Action) -> Outcome:
        """Execute ``action`` and log the outcome."""
        lp = f"{self.lp}run:"
        logger.info("%s Executing %s", lp, action)
        outcome = await self.execute(action.command)

        context = {"action": action.name, "duration": f"{outcome.duration:.3f}s"}
        if outcome.error is not None:
            logger.warning("%s Failed to execute %s: %s", lp, action, outcome.error, extra=context)
        elif outcome.ok:
            logger.info("%s Execution of %s finished", lp, action, extra={**context, "exit_code": 0})
        else:
            logger.warning(
                "%s Execution of %s exited with status %s",
                lp,
                action,
                outcome.exit_code,
                extra={**context, "exit_code": outcome.exit_code},
            )
        if outcome.stdout_tail:
            logger.debug("%s stdout: %s", lp, outcome.stdout_tail)
        if outcome.stderr_tail:
            logger.debug("%s stderr: %s", lp, outcome.stderr_tail)
        return outcome

    def dispatch(self, action: Action) -> asyncio.Task[Outcome]:
        """Start ``action`` in its own task and return immediately."""
        task = asyncio.create_task(self.run_action(action), name=f"exec:{action.slug}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_pending(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for running commands, without killing them.

        Returns:
            Number of commands still running when the wait ended

        """
        lp = f"{self.lp}wait_pending:"
        if not self._pending:
            return 0
        logger.info("%s Waiting up to %ss for %d running command(s)", lp, timeout, len(self._pending))
        _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_running:
            logger.warning("%s %d command(s) still running after %ss", lp, len(still_running), timeout)
        return len(still_running)
