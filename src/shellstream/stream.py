"""Consumer-facing output stream.

shellstream v0.1.0

OutputStream is an async iterator of OutputChunk backed by a producer task
that runs independently of the consumer. Iteration only takes chunks that
were already produced; the stream ends either cleanly or by raising the
execution's ShellError.

Cleanup is guaranteed on every exit path: aclose() (or leaving an
``async with`` block) cancels an unfinished execution and waits for the
process to be reaped, and a consumer cancelled while waiting for a chunk
cancels the process before the CancelledError propagates. A stream that is
dropped without being closed cancels its execution when it is collected.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import math
import weakref
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .errors import CancelledExecutionError, ShellError
from .types import OutputChunk, OutputOrigin, TerminationOutcome

if TYPE_CHECKING:
    from .runtime.controller import ProcessController

__all__ = ["OutputStream", "Producer"]

logger = logging.getLogger(__name__)

# Fills the send side of the channel; raises ShellError on failure
Producer = Callable[[MemoryObjectSendStream[OutputChunk]], Awaitable[None]]


# Strong references to running producers; the loop only keeps weak ones
_running_producers: set[asyncio.Task[None]] = set()


class _ProducerResult:
    """Terminal state written by the producer task."""

    __slots__ = ("error",)

    def __init__(self) -> None:
        self.error: BaseException | None = None


class OutputStream:
    """Lazy, single-use sequence of output chunks from one execution.

    Example:
        async with executor.execute(["make", "all"]) as stream:
            async for chunk in stream:
                handle(chunk.origin, chunk.data)

        text = await executor.execute(["git", "status"]).collect_output()
    """

    def __init__(self, controller: "ProcessController", producer: Producer) -> None:
        self._controller = controller
        self._producer = producer
        self._send: MemoryObjectSendStream[OutputChunk]
        self._receive: MemoryObjectReceiveStream[OutputChunk]
        self._send, self._receive = anyio.create_memory_object_stream(math.inf)
        self._task: asyncio.Task[None] | None = None
        self._result = _ProducerResult()
        self._done = False
        self._closed = False

        # Start producing right away when a loop is running
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._ensure_started()

    @property
    def finished(self) -> bool:
        """True once the execution reached its terminal state."""
        return self._task is not None and self._task.done()

    @property
    def error(self) -> BaseException | None:
        """Terminal error, if the execution failed."""
        return self._result.error

    @property
    def termination(self) -> TerminationOutcome | None:
        """How the process ended (None if it never ran or is still running)."""
        return self._controller.outcome

    @property
    def pid(self) -> int | None:
        return self._controller.pid

    def __aiter__(self) -> "OutputStream":
        return self

    async def __anext__(self) -> OutputChunk:
        if self._done:
            raise StopAsyncIteration
        task = self._ensure_started()

        try:
            return await self._receive.receive()
        except anyio.EndOfStream:
            pass
        except anyio.ClosedResourceError:
            self._done = True
            raise StopAsyncIteration from None
        except asyncio.CancelledError:
            # The consumer stopped listening
            self.cancel()
            raise

        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            self.cancel()
            raise

        self._done = True
        if self._result.error is not None:
            raise self._result.error
        raise StopAsyncIteration

    async def __aenter__(self) -> "OutputStream":
        self._ensure_started()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def cancel(self) -> None:
        """Request cancellation of the execution.

        Chunks queued before this call can still be read; the stream then
        ends with CancelledExecutionError. No-op once the process has exited.
        """
        self._controller.request_cancellation()

    async def aclose(self) -> None:
        """Stop the execution if needed and wait for its teardown.

        Safe to call more than once; only the first call does anything.
        """
        if self._closed:
            return
        self._closed = True

        if self._task is None:
            # Never started: nothing was spawned
            self._controller.request_cancellation()
            self._send.close()
            self._receive.close()
            self._done = True
            return

        self._controller.request_cancellation()
        task = self._task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # Outer cancellation: let teardown finish before propagating
            if not task.done():
                try:
                    await asyncio.shield(task)
                except asyncio.CancelledError:
                    logger.debug(f"Double cancel during stream close pid={self.pid}")
            raise
        finally:
            self._receive.close()

    async def collect_output(self, include_stderr: bool = False) -> str:
        """Reduce the stream into one string.

        Bytes are decoded as UTF-8 per origin with an incremental decoder, so
        characters split across chunk boundaries survive; invalid bytes are
        dropped.

        Args:
            include_stderr: Interleave stderr chunks into the text

        Returns:
            Collected text

        Raises:
            ShellError: If the execution fails
        """
        decoders = {
            origin: codecs.getincrementaldecoder("utf-8")(errors="ignore")
            for origin in OutputOrigin
        }
        parts: list[str] = []

        try:
            async for chunk in self:
                if chunk.is_error and not include_stderr:
                    continue
                parts.append(decoders[chunk.origin].decode(chunk.data))
        finally:
            await self.aclose()

        for origin, decoder in decoders.items():
            if origin is OutputOrigin.STDERR and not include_stderr:
                continue
            parts.append(decoder.decode(b"", final=True))

        return "".join(parts)

    async def collect_bytes(self, include_stderr: bool = False) -> bytes:
        """Reduce the stream into raw bytes (stdout only unless include_stderr)."""
        buffer = bytearray()
        try:
            async for chunk in self:
                if chunk.is_error and not include_stderr:
                    continue
                buffer.extend(chunk.data)
        finally:
            await self.aclose()
        return bytes(buffer)

    def _ensure_started(self) -> asyncio.Task[None]:
        if self._task is None:
            loop = asyncio.get_running_loop()
            # The task must not reference the stream, or it could never be collected
            task = loop.create_task(
                _run_producer(self._producer, self._send, self._result),
                name="shellstream-producer",
            )
            _running_producers.add(task)
            task.add_done_callback(_running_producers.discard)
            self._task = task

            # Consumer dropped the stream without closing it
            finalizer = weakref.finalize(
                self, _cancel_abandoned, loop, self._controller, self._receive
            )
            finalizer.atexit = False
        return self._task


async def _run_producer(
    producer: Producer,
    send_stream: MemoryObjectSendStream[OutputChunk],
    result: _ProducerResult,
) -> None:
    """Run the producer and record its terminal state."""
    try:
        async with send_stream:
            await producer(send_stream)
    except asyncio.CancelledError:
        # Only happens when the event loop tears down unfinished tasks
        result.error = CancelledExecutionError()
    except ShellError as e:
        logger.debug(f"Execution failed: {e}")
        result.error = e
    except Exception as e:
        logger.error(f"Output producer crashed: type={type(e).__name__}, msg={e}")
        result.error = e


def _cancel_abandoned(
    loop: asyncio.AbstractEventLoop,
    controller: "ProcessController",
    receive_stream: MemoryObjectReceiveStream[OutputChunk],
) -> None:
    """Finalizer for a collected stream: stop the execution on its loop."""
    if loop.is_closed():
        return
    loop.call_soon_threadsafe(controller.request_cancellation)
    loop.call_soon_threadsafe(receive_stream.close)
