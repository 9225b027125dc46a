"""Unbuffered in-memory byte pipe between two asyncio tasks.

The writer hands over one chunk at a time and is suspended until the
reader has taken it, giving the producer natural backpressure. Either side
can close: closing the write end (optionally with an exception) ends or
fails the reader; closing the read end makes pending and future writes
fail, so neither task can hang on a peer that went away.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator


class PipeClosedError(ConnectionError):
    """Write attempted after the read end was closed."""


class BytePipe:
    """Single-slot async pipe of ``bytes`` chunks."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._chunk: bytes | None = None
        self._write_closed = False
        self._read_closed = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._write_closed or self._read_closed

    async def write(self, data: bytes) -> None:
        """Hand *data* to the reader and wait until it has been consumed.

        Raises
        ------
        PipeClosedError
            If the read end is (or gets) closed before the chunk is taken.
        """
        if not data:
            return
        async with self._cond:
            if self._read_closed:
                raise PipeClosedError("read end of pipe is closed")
            if self._write_closed:
                raise PipeClosedError("write end of pipe is closed")
            await self._cond.wait_for(lambda: self._chunk is None or self._read_closed)
            if self._read_closed:
                raise PipeClosedError("read end of pipe is closed")
            self._chunk = bytes(data)
            self._cond.notify_all()
            await self._cond.wait_for(lambda: self._chunk is None or self._read_closed)
            if self._chunk is not None:
                self._chunk = None
                raise PipeClosedError("read end of pipe closed before the chunk was consumed")

    async def read(self) -> bytes:
        """Return the next chunk, or ``b""`` once the writer closed cleanly.

        Re-raises the exception the writer closed the pipe with.
        """
        async with self._cond:
            await self._cond.wait_for(lambda: self._chunk is not None or self._write_closed or self._read_closed)
            if self._chunk is not None:
                data, self._chunk = self._chunk, None
                self._cond.notify_all()
                return data
            if self._error is not None:
                raise self._error
            return b""

    async def close(self, error: BaseException | None = None) -> None:
        """Close the write end; the reader sees EOF or *error*."""
        async with self._cond:
            if self._write_closed:
                return
            self._write_closed = True
            self._error = error
            self._cond.notify_all()

    async def close_reader(self) -> None:
        """Close the read end; blocked and future writes fail."""
        async with self._cond:
            self._read_closed = True
            self._cond.notify_all()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk
