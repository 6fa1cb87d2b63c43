"""Byte source / destination capabilities shared by every stage."""
from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Awaitable, Optional, Protocol, Union

from .errors import ShortWriteError

DEFAULT_CHUNK_SIZE = 32 * 1024


class Destination(Protocol):
    """Anything that accepts bytes: BytesIO, binary files, pipes, stream writers."""

    def write(self, data: bytes) -> Union[Any, Awaitable[Any]]:
        ...


class Source(Protocol):
    """Async byte stream; ``read`` returns ``b""`` at end of stream."""

    async def read(self, n: int = -1) -> bytes:
        ...


async def write_all(destination: Destination, data: bytes) -> None:
    result = destination.write(data)
    if inspect.isawaitable(result):
        result = await result
    if isinstance(result, int) and result < len(data):
        raise ShortWriteError()
    drain = getattr(destination, "drain", None)
    if drain is not None:
        pending = drain()
        if inspect.isawaitable(pending):
            await pending


async def copy_stream(ctx, source: Source, destination: Destination, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy ``source`` into ``destination`` chunk by chunk until end of stream.

    Every read and write is guarded by ``ctx``: cancelling it or passing its
    deadline aborts the transfer even while blocked on I/O. A context that
    expired while the last read was returning still fails the transfer.
    Returns the number of bytes written.
    """
    written = 0
    while True:
        chunk = await ctx.guard(source.read(chunk_size))
        if not chunk:
            break
        await ctx.guard(write_all(destination, chunk))
        written += len(chunk)
    ctx.raise_if_done()
    return written


def _resolve(future: asyncio.Future, data: bytes, error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(data)


class SyncSource:
    """Adapts a blocking binary file object into a :class:`Source`.

    Reads run on a daemon thread so an abandoned read never holds up
    interpreter or event loop shutdown. ``read1`` is preferred so data from a
    live producer is forwarded as soon as it arrives.
    """

    def __init__(self, raw):
        self.raw = raw
        self._read = getattr(raw, "read1", raw.read)

    async def read(self, n: int = -1) -> bytes:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def _worker():
            data, error = b"", None
            try:
                data = self._read(n)
            except Exception as exc:
                error = exc
            try:
                loop.call_soon_threadsafe(_resolve, future, data, error)
            except RuntimeError:
                # loop already closed; nobody is waiting for this chunk
                pass

        threading.Thread(target=_worker, name="pipesink-read", daemon=True).start()
        return await future
