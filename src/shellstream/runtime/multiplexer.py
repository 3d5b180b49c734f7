"""Concurrent stdout/stderr draining.

Both pipes are read by independent tasks so that a child blocked on one full
pipe buffer can never deadlock the other. Every non-empty read becomes one
OutputChunk on the shared channel; stderr bytes are also accumulated for the
non-zero-exit error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from ..types import OutputChunk, OutputOrigin

__all__ = ["OutputMultiplexer"]

logger = logging.getLogger(__name__)


class OutputMultiplexer:
    """Fans two pipes into one ordered chunk channel.

    Attributes:
        read_chunk_size: Upper bound on bytes taken per read
    """

    def __init__(
        self,
        send_stream: MemoryObjectSendStream[OutputChunk],
        *,
        read_chunk_size: int,
        is_cancelled: Callable[[], bool] = lambda: False,
    ) -> None:
        self._send_stream = send_stream
        self.read_chunk_size = read_chunk_size
        self._is_cancelled = is_cancelled
        self._stderr = bytearray()
        self._byte_counts = {OutputOrigin.STDOUT: 0, OutputOrigin.STDERR: 0}
        self._receiver_gone = False

    @property
    def stderr_bytes(self) -> bytes:
        """All stderr bytes that were emitted as chunks."""
        return bytes(self._stderr)

    @property
    def stderr_text(self) -> str:
        return self._stderr.decode("utf-8", errors="replace")

    def byte_count(self, origin: OutputOrigin) -> int:
        """Bytes read from `origin` so far, emitted or not."""
        return self._byte_counts[origin]

    async def run(
        self,
        stdout: asyncio.StreamReader | None,
        stderr: asyncio.StreamReader | None,
    ) -> None:
        """Drain both pipes concurrently until each reaches EOF."""
        tasks = [
            asyncio.create_task(self.pump(reader, origin), name=f"shellstream-{origin.value}")
            for reader, origin in (
                (stdout, OutputOrigin.STDOUT),
                (stderr, OutputOrigin.STDERR),
            )
            if reader is not None
        ]

        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass

        logger.debug(
            f"Pipes drained stdout={self._byte_counts[OutputOrigin.STDOUT]}B "
            f"stderr={self._byte_counts[OutputOrigin.STDERR]}B"
        )

    async def pump(self, reader: asyncio.StreamReader, origin: OutputOrigin) -> None:
        """Read `reader` until EOF, emitting each read as a chunk.

        read() returns as soon as any bytes are buffered, so chunks follow
        the child's writes rather than a fixed block size. Reading to EOF
        also picks up whatever was still buffered when the process exited.
        """
        while True:
            data = await reader.read(self.read_chunk_size)
            if not data:
                break
            self._byte_counts[origin] += len(data)

            # Keep draining after cancellation so the child never blocks on a full pipe
            if self._is_cancelled() or self._receiver_gone:
                continue

            if origin is OutputOrigin.STDERR:
                self._stderr.extend(data)
            self._emit(OutputChunk(origin, data))

    def _emit(self, chunk: OutputChunk) -> None:
        try:
            self._send_stream.send_nowait(chunk)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # Consumer closed the stream; nothing more is delivered
            logger.debug(f"Output receiver closed, dropping {chunk!r}")
            self._receiver_gone = True
