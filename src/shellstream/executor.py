"""Shell command executor.

shellstream v0.1.0

Ties the runtime pieces together for one execution:
resolve -> spawn -> drain both pipes while waiting for exit -> classify.

Example:
    executor = ShellCommandExecutor()

    async with executor.execute(["ls", "-la"]) as stream:
        async for chunk in stream:
            print(chunk.origin.value, chunk.text())

    output = await execute("git", "status").collect_output()
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from anyio.streams.memory import MemoryObjectSendStream

from .config import Config, get_config
from .errors import MissingExecutableError
from .runtime.classifier import classify_termination
from .runtime.controller import ProcessController
from .runtime.multiplexer import OutputMultiplexer
from .runtime.resolver import resolve_executable
from .stream import OutputStream
from .types import CommandDescriptor, OutputChunk

__all__ = [
    "ShellCommandExecuting",
    "ShellCommandExecutor",
    "execute",
]

logger = logging.getLogger(__name__)

PathArg = str | os.PathLike[str]


@runtime_checkable
class ShellCommandExecuting(Protocol):
    """Anything that can run a command and stream its output."""

    def execute(
        self,
        arguments: Sequence[str],
        environment: Mapping[str, str] | None = None,
        working_directory: PathArg | None = None,
    ) -> OutputStream: ...


class ShellCommandExecutor:
    """Runs external commands and streams their output.

    Each call to execute() gets its own ProcessController, pipes and stderr
    accumulator; nothing is shared between executions, so one executor can
    run any number of commands concurrently.

    Attributes:
        config: Runtime configuration (None = global config at call time)
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config

    def execute(
        self,
        arguments: Sequence[str],
        environment: Mapping[str, str] | None = None,
        working_directory: PathArg | None = None,
    ) -> OutputStream:
        """Start a command and return its output stream.

        Args:
            arguments: Argument vector; the first element is the command
            environment: Child environment (None = the caller's environment)
            working_directory: Directory to run in (None = caller's cwd)

        Returns:
            OutputStream that yields chunks and ends with success or a
            ShellError (MissingExecutableError, ExecutableNotFoundError,
            NonZeroExitError, SignaledError, CancelledExecutionError)
        """
        if environment is None:
            descriptor = CommandDescriptor(
                arguments=tuple(arguments),
                working_directory=working_directory,
            )
        else:
            descriptor = CommandDescriptor(
                arguments=tuple(arguments),
                environment=dict(environment),
                working_directory=working_directory,
            )
        return self.execute_descriptor(descriptor)

    def execute_descriptor(self, descriptor: CommandDescriptor) -> OutputStream:
        """Start a prebuilt command descriptor."""
        config = self.config or get_config()
        controller = ProcessController(config)

        async def produce(send_stream: MemoryObjectSendStream[OutputChunk]) -> None:
            await self._run(descriptor, controller, config, send_stream)

        return OutputStream(controller, produce)

    async def _run(
        self,
        descriptor: CommandDescriptor,
        controller: ProcessController,
        config: Config,
        send_stream: MemoryObjectSendStream[OutputChunk],
    ) -> None:
        command = descriptor.command
        if command is None:
            raise MissingExecutableError()

        try:
            path = await resolve_executable(command, descriptor.environment)
            process = await controller.start(
                path,
                descriptor.arguments[1:],
                descriptor.environment,
                descriptor.working_directory,
                name=command,
            )

            multiplexer = OutputMultiplexer(
                send_stream,
                read_chunk_size=config.read_chunk_size,
                is_cancelled=lambda: controller.cancel_requested,
            )
            pump_task = asyncio.create_task(
                multiplexer.run(process.stdout, process.stderr),
                name=f"shellstream-pump-{process.pid}",
            )

            try:
                outcome = await controller.wait()
                # Final drain; a descendant may hold the pipes past the exit
                try:
                    await asyncio.wait_for(
                        asyncio.shield(pump_task), timeout=config.kill_timeout
                    )
                except asyncio.TimeoutError:
                    logger.debug(
                        f"Pipes still open {config.kill_timeout}s after exit "
                        f"pid={process.pid}, releasing"
                    )
                    controller.release_pipes()
            finally:
                if not pump_task.done():
                    pump_task.cancel()
                    try:
                        await pump_task
                    except asyncio.CancelledError:
                        pass

            error = classify_termination(
                outcome,
                cancelled=controller.cancel_requested,
                stderr=multiplexer.stderr_text,
            )
            if error is not None:
                raise error

            logger.debug(f"Command completed: {command} pid={process.pid}")

        finally:
            await controller.shutdown()


def execute(
    *arguments: str,
    environment: Mapping[str, str] | None = None,
    cwd: PathArg | None = None,
    config: Config | None = None,
) -> OutputStream:
    """One-shot helper: run a command given as variadic arguments.

    Example:
        text = await execute("echo", "Hello World").collect_output()
    """
    return ShellCommandExecutor(config).execute(
        list(arguments),
        environment=environment,
        working_directory=cwd,
    )
