"""Process lifecycle controller.

shellstream runtime v0.1.0

This module provides:
- Spawning one child process with stdout/stderr pipes
- Cross-platform isolation (new session on POSIX, new process group on Windows)
- Idempotent cancellation (SIGTERM -> term_timeout -> SIGKILL)
- A single-owner state guard so a process is never signalled after it exits
- Exit detection that does not depend on the pipes being closed

Key design points:
- One controller per execution; there is no registry of live processes
- request_cancellation() never waits; the task awaiting wait() sees the exit
- Signals go to the process group when isolated, so descendants die too
- Descendants that outlive the process may keep the pipes open; wait()
  returns on the process exit itself and release_pipes() closes our ends
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Any

from ..config import Config, get_config
from ..errors import CancelledExecutionError, ExecutableNotFoundError, MissingExecutableError
from ..types import TerminationOutcome

__all__ = [
    "IS_WINDOWS",
    "ProcessController",
    "ProcessState",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# StreamReader buffer limit, same as asyncio.create_subprocess_exec
_STREAM_LIMIT = 2**16


class _ExitTrackingProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """Stream protocol that reports process exit as soon as it happens.

    Process.wait() only returns once every pipe is closed as well, which a
    descendant holding stdout/stderr can delay indefinitely.
    """

    def __init__(self, limit: int, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__(limit=limit, loop=loop)
        self.exited = asyncio.Event()
        self.subprocess_transport: asyncio.SubprocessTransport | None = None

    def connection_made(self, transport) -> None:
        super().connection_made(transport)
        self.subprocess_transport = transport

    def process_exited(self) -> None:
        super().process_exited()
        self.exited.set()


class ProcessState(str, Enum):
    """Lifecycle of the process owned by a controller."""

    PENDING = "pending"
    RUNNING = "running"
    EXITED = "exited"


class ProcessController:
    """Owns one child process from spawn to reaping.

    Example:
        controller = ProcessController()
        process = await controller.start("/bin/echo", ["hi"], env, None)
        # ... read process.stdout / process.stderr concurrently ...
        outcome = await controller.wait()
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or get_config()
        self._process: asyncio.subprocess.Process | None = None
        self._protocol: _ExitTrackingProtocol | None = None
        self._state = ProcessState.PENDING
        self._cancel_requested = False
        self._outcome: TerminationOutcome | None = None
        self._escalation: asyncio.Task[None] | None = None

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    @property
    def cancel_requested(self) -> bool:
        """True if cancellation was requested before the process exited on its own."""
        return self._cancel_requested

    @property
    def is_running(self) -> bool:
        return (
            self._state is ProcessState.RUNNING
            and self._process is not None
            and self._process.returncode is None
        )

    @property
    def outcome(self) -> TerminationOutcome | None:
        return self._outcome

    async def start(
        self,
        path: str | None,
        args: Sequence[str],
        env: Mapping[str, str] | None,
        cwd: str | os.PathLike[str] | None = None,
        *,
        name: str | None = None,
    ) -> asyncio.subprocess.Process:
        """Spawn the process with stdout/stderr wired to pipes.

        Args:
            path: Resolved executable path
            args: Arguments after the command itself
            env: Full environment for the child (None = inherit)
            cwd: Working directory (None = caller's cwd)
            name: Command token as given by the caller, used in errors

        Returns:
            The spawned process

        Raises:
            MissingExecutableError: If no path was given
            CancelledExecutionError: If cancellation was requested before spawning
            ExecutableNotFoundError: If the OS refuses to execute the path
        """
        if self._state is not ProcessState.PENDING:
            raise RuntimeError("ProcessController.start() called twice")
        if not path:
            raise MissingExecutableError()
        if self._cancel_requested:
            logger.debug(f"Not spawning {path}: execution already cancelled")
            raise CancelledExecutionError()

        kwargs = self._build_subprocess_kwargs()
        loop = asyncio.get_running_loop()

        try:
            transport, protocol = await loop.subprocess_exec(
                lambda: _ExitTrackingProtocol(limit=_STREAM_LIMIT, loop=loop),
                path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=dict(env) if env is not None else None,
                cwd=cwd,
                **kwargs,
            )
        except OSError as e:
            logger.debug(f"Spawn failed for {path} (cwd={cwd}): {e}")
            raise ExecutableNotFoundError(name or path) from e

        process = asyncio.subprocess.Process(transport, protocol, loop)
        self._protocol = protocol
        self._process = process
        self._state = ProcessState.RUNNING
        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"path={path} argc={len(args)} cwd={cwd}"
        )

        # Cancellation that arrived while the spawn was in flight
        if self._cancel_requested:
            self._deliver_cancellation()

        return process

    async def wait(self) -> TerminationOutcome:
        """Wait for the process to exit and return how it ended.

        Returns when the process itself has exited and been reaped, even if
        a descendant still holds its stdout/stderr open.
        """
        process, protocol = self._process, self._protocol
        if process is None or protocol is None:
            raise RuntimeError("ProcessController.wait() called before start()")

        await protocol.exited.wait()
        returncode = process.returncode
        if returncode is None:
            raise RuntimeError(f"Exit reported without a return code for pid={process.pid}")
        return self._mark_exited(returncode)

    def request_cancellation(self) -> None:
        """Ask the process to terminate.

        Idempotent and non-blocking. A no-op once the process has exited.
        Before start() it only marks the execution cancelled, which makes
        start() refuse to spawn.
        """
        if self._state is ProcessState.EXITED:
            return
        if self._process is not None and self._process.returncode is not None:
            return
        if self._cancel_requested:
            return

        self._cancel_requested = True
        logger.info(f"Cancellation requested (pid={self.pid}, state={self._state.value})")

        if self._state is ProcessState.RUNNING:
            self._deliver_cancellation()

    def close(self) -> None:
        """Drop the pending kill escalation and release the pipes. Idempotent."""
        if self._escalation is not None and not self._escalation.done():
            self._escalation.cancel()
        self._escalation = None
        self.release_pipes()

    def release_pipes(self) -> None:
        """Close our ends of stdout/stderr once the process has exited.

        Readers blocked on a pipe that a descendant keeps open see EOF.
        Does nothing while the process is still running.
        """
        if self._state is not ProcessState.EXITED or self._protocol is None:
            return
        transport = self._protocol.subprocess_transport
        if transport is not None and not transport.is_closing():
            logger.debug(f"Releasing pipes of pid={self.pid}")
            transport.close()

    async def shutdown(self) -> None:
        """Make sure the process is gone and reaped.

        Used on teardown paths: terminates a still-running process, waits for
        it (bounded by the configured timeouts), releases the escalation and
        closes the pipes.
        """
        try:
            if self.is_running:
                self.request_cancellation()
                limit = self._config.term_timeout + self._config.kill_timeout + 1.0
                try:
                    await asyncio.wait_for(self.wait(), timeout=limit)
                except asyncio.TimeoutError:
                    logger.warning(f"Subprocess pid={self.pid} still alive after shutdown")
            elif self._state is ProcessState.RUNNING and self._process is not None:
                # Exited on its own but not reaped yet
                await self.wait()
        finally:
            self.close()

    def _mark_exited(self, returncode: int) -> TerminationOutcome:
        if self._outcome is not None:
            return self._outcome
        outcome = TerminationOutcome.from_returncode(returncode)
        self._outcome = outcome
        self._state = ProcessState.EXITED
        if self._escalation is not None and not self._escalation.done():
            self._escalation.cancel()
        logger.debug(
            f"Subprocess exited pid={self.pid} returncode={returncode} "
            f"cancelled={self._cancel_requested}"
        )
        return outcome

    def _build_subprocess_kwargs(self) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs."""
        kwargs: dict[str, Any] = {}

        if not self._config.isolate_process_group:
            return kwargs

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # POSIX: equivalent to setsid, the child leads its own process group
            kwargs["start_new_session"] = True

        return kwargs

    def _deliver_cancellation(self) -> None:
        self._send_terminate()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, SIGKILL escalation skipped for pid={self.pid}")
            return
        if self._escalation is None:
            self._escalation = loop.create_task(
                self._escalate(), name=f"shellstream-escalate-{self.pid}"
            )

    async def _escalate(self) -> None:
        """Send SIGKILL if SIGTERM did not end the process in time."""
        process, protocol = self._process, self._protocol
        if process is None or protocol is None:
            return
        pid = process.pid

        try:
            await asyncio.wait_for(protocol.exited.wait(), timeout=self._config.term_timeout)
            return
        except asyncio.TimeoutError:
            pass

        if not self.is_running:
            return

        logger.debug(f"Force killing subprocess pid={pid}")
        self._send_kill()

        try:
            await asyncio.wait_for(protocol.exited.wait(), timeout=self._config.kill_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Subprocess did not exit after kill pid={pid}")

    def _send_terminate(self) -> None:
        """Send SIGTERM (CTRL_BREAK_EVENT on Windows) if still running."""
        process = self._process
        if process is None or not self.is_running:
            return

        try:
            if IS_WINDOWS:
                if self._config.isolate_process_group:
                    os.kill(process.pid, signal.CTRL_BREAK_EVENT)
                    logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
                else:
                    process.terminate()
            elif self._config.isolate_process_group:
                self._signal_group(process, signal.SIGTERM)
            else:
                process.send_signal(signal.SIGTERM)
                logger.debug(f"Sent SIGTERM to pid={process.pid}")
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={process.pid}")
        except OSError as e:
            logger.debug(f"Graceful termination failed, falling back to terminate: {e}")
            self._fallback(process.terminate)

    def _send_kill(self) -> None:
        """Send SIGKILL (TerminateProcess on Windows) if still running."""
        process = self._process
        if process is None or not self.is_running:
            return

        try:
            if not IS_WINDOWS and self._config.isolate_process_group:
                self._signal_group(process, signal.SIGKILL)
            else:
                process.kill()
                logger.debug(f"Called kill() on pid={process.pid}")
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={process.pid}")
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            self._fallback(process.kill)

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        # pgid == pid because of start_new_session
        pgid = os.getpgid(process.pid)
        os.killpg(pgid, sig)
        logger.debug(f"Sent {sig.name} to process group pgid={pgid}")

    @staticmethod
    def _fallback(action: Callable[[], None]) -> None:
        try:
            action()
        except ProcessLookupError:
            pass
