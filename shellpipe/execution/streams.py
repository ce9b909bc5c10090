"""Byte-stream endpoints of an executor.

Endpoints are handed out before the command starts (so the caller can set up
its drain and feed tasks first) and are attached to the real process pipes by
``Executor.start()``. Until then any I/O on them waits. If the start fails the
executor abandons its endpoints, which turns pending and future I/O into an
EndpointClosedError instead of a hang.

Usage:
    stdout = exe.open_output()
    buf = bytearray()
    task = asyncio.create_task(drain(stdout, buf))
    await exe.start()
    await task
"""

from __future__ import annotations

import asyncio
import logging

from shellpipe.errors import EndpointClosedError

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "InputEndpoint",
    "OutputEndpoint",
    "copy_stream",
    "drain",
]

DEFAULT_CHUNK_SIZE = 32 * 1024


class OutputEndpoint:
    """Readable end of a command's stdout or stderr."""

    def __init__(self, name: str):
        self.name = name
        self._reader: asyncio.StreamReader | None = None
        self._ready = asyncio.Event()
        self._abandoned = False

    def __repr__(self) -> str:
        return f"OutputEndpoint({self.name!r}, attached={self.attached})"

    @property
    def attached(self) -> bool:
        return self._reader is not None

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    def attach(self, reader: asyncio.StreamReader) -> None:
        """Bind to the process pipe. Called by the executor on start."""
        if self._abandoned:
            raise EndpointClosedError(f"attach {self.name}: endpoint abandoned")
        self._reader = reader
        self._ready.set()

    def abandon(self) -> None:
        """Mark the endpoint unusable; waiting readers are released."""
        self._abandoned = True
        self._ready.set()

    async def read(self, n: int = DEFAULT_CHUNK_SIZE) -> bytes:
        """Read up to n bytes; returns b"" once the command closed the stream."""
        await self._ready.wait()
        if self._abandoned or self._reader is None:
            raise EndpointClosedError(f"read {self.name}: endpoint closed")
        return await self._reader.read(n)


class InputEndpoint:
    """Writable end of a command's stdin.

    Closing it is what lets the command see end-of-input.
    """

    def __init__(self, name: str = "stdin"):
        self.name = name
        self._writer: asyncio.StreamWriter | None = None
        self._ready = asyncio.Event()
        self._abandoned = False
        self._closed = False

    def __repr__(self) -> str:
        return f"InputEndpoint({self.name!r}, attached={self.attached}, closed={self._closed})"

    @property
    def attached(self) -> bool:
        return self._writer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, writer: asyncio.StreamWriter) -> None:
        if self._abandoned:
            raise EndpointClosedError(f"attach {self.name}: endpoint abandoned")
        self._writer = writer
        self._ready.set()

    def abandon(self) -> None:
        self._abandoned = True
        self._ready.set()

    async def write(self, data: bytes) -> None:
        """Write data and wait until the pipe accepted it.

        Raises:
            EndpointClosedError: If the endpoint was abandoned or closed
            BrokenPipeError, ConnectionResetError: If the command stopped reading
        """
        await self._ready.wait()
        if self._abandoned or self._closed or self._writer is None:
            raise EndpointClosedError(f"write {self.name}: endpoint closed")
        if not data:
            return
        self._writer.write(data)
        await self._writer.drain()

    async def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._writer is None:
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The reader already went away; there is nothing left to flush.
            logger.debug(f"[InputEndpoint] {self.name} closed after peer exit: {e}")


# =============================================================================
# Copy Helpers
# =============================================================================


async def drain(
    endpoint: OutputEndpoint,
    dest: bytearray | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Read an output endpoint until EOF.

    Args:
        endpoint: Endpoint to exhaust
        dest: Buffer to append to; None discards the bytes
        chunk_size: Read size

    Returns:
        Number of bytes read
    """
    total = 0
    while chunk := await endpoint.read(chunk_size):
        total += len(chunk)
        if dest is not None:
            dest.extend(chunk)
    return total


async def copy_stream(
    src: OutputEndpoint,
    dst: InputEndpoint,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy src into dst until src is exhausted or a write fails.

    dst is not closed here; the caller decides when end-of-input is sent.

    Returns:
        Number of bytes copied
    """
    total = 0
    while chunk := await src.read(chunk_size):
        await dst.write(chunk)
        total += len(chunk)
    return total
