"""Sequential shell command execution with inherited terminal streams."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from loguru import logger

SHELL = "sh"


@dataclass(frozen=True)
class RunCallbacks:
    on_before: Callable[[str, int, int], None] | None = None
    on_success: Callable[[], None] | None = None
    on_error: Callable[[str, int], None] | None = None


async def run_commands(commands: Sequence[str], callbacks: RunCallbacks | None = None) -> bool:
    """Run each command via ``sh -c`` in order.

    Returns ``True`` when every command exits 0, ``False`` at the first that does not.
    """

    callbacks = callbacks or RunCallbacks()
    total = len(commands)
    for index, command in enumerate(commands):
        if callbacks.on_before is not None:
            callbacks.on_before(command, index, total)

        logger.info("run.command index={} total={}", index + 1, total)
        process = await asyncio.create_subprocess_exec(SHELL, "-c", command)
        exit_code = await process.wait()
        if exit_code != 0:
            logger.info("run.command.failed index={} code={}", index + 1, exit_code)
            if callbacks.on_error is not None:
                callbacks.on_error(command, exit_code)
            return False

    if callbacks.on_success is not None:
        callbacks.on_success()
    return True
