"""Minimal pipeline runner used to compose and execute stages."""
from __future__ import annotations

import asyncio
import inspect
import logging
import sys
from typing import Any, List, Optional, Sequence, Union

from .command import Command, Context, Executor
from .destinations import Destination, Source, SyncSource
from .errors import ClosedPipeError, describe

logger = logging.getLogger(__name__)

DEFAULT_PIPE_BUFFER_CHUNKS = 16

_EOF = object()


class Pipe:
    """Bounded in-memory byte pipe connecting two concurrent stages."""

    def __init__(self, max_chunks: int = DEFAULT_PIPE_BUFFER_CHUNKS):
        self._chunks: asyncio.Queue = asyncio.Queue(max_chunks)
        self._pending = b""
        self._writer_closed = False
        self._reader_closed = False
        self._finished = False
        self._error: Optional[BaseException] = None

    async def write(self, data: bytes) -> int:
        if self._reader_closed or self._writer_closed:
            raise ClosedPipeError()
        if data:
            await self._chunks.put(bytes(data))
            if self._reader_closed:
                raise ClosedPipeError()
        return len(data)

    async def close(self, error: Optional[BaseException] = None) -> None:
        if self._writer_closed:
            return
        self._writer_closed = True
        self._error = error
        if not self._reader_closed:
            await self._chunks.put(_EOF)

    def close_reader(self) -> None:
        self._reader_closed = True
        while not self._chunks.empty():
            self._chunks.get_nowait()

    async def read(self, n: int = -1) -> bytes:
        if self._reader_closed:
            raise ClosedPipeError()
        if not self._pending:
            if self._finished:
                return self._end()
            item = await self._chunks.get()
            if item is _EOF:
                self._finished = True
                return self._end()
            self._pending = item
        if n is None or n < 0:
            n = len(self._pending)
        data, self._pending = self._pending[:n], self._pending[n:]
        return data

    def _end(self) -> bytes:
        if self._error is not None:
            raise self._error
        return b""


class Pipeline:
    """Runs its commands concurrently, each stdout feeding the next stdin."""

    def __init__(self, commands: Sequence[Command], buffer_chunks: int = DEFAULT_PIPE_BUFFER_CHUNKS):
        if not commands:
            raise ValueError("pipe() requires at least one command")
        self.commands = list(commands)
        self.buffer_chunks = buffer_chunks

    def executor(self) -> Executor:
        return self._execute

    async def _execute(self, ctx: Context, stdin: Source, stdout: Destination, stderr: Destination) -> None:
        pipes = [Pipe(self.buffer_chunks) for _ in self.commands[:-1]]
        inputs: List[Any] = [stdin, *pipes]
        outputs: List[Any] = [*pipes, stdout]

        async def _run_stage(index: int, command: Command) -> None:
            name = type(command).__name__
            source, sink = inputs[index], outputs[index]
            error: Optional[BaseException] = None
            try:
                await command.executor()(ctx, source, sink, stderr)
            except (Exception, asyncio.CancelledError) as exc:
                error = exc
                logger.debug(f"FAIL: stage {index} ({name}) - {describe(exc)}")
                raise
            finally:
                if isinstance(sink, Pipe):
                    await sink.close(error)
                if isinstance(source, Pipe):
                    source.close_reader()

        results = await asyncio.gather(
            *(_run_stage(i, command) for i, command in enumerate(self.commands)),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            # a closed pipe is only the echo of a downstream failure
            root_causes = [exc for exc in failures if not isinstance(exc, ClosedPipeError)]
            raise (root_causes or failures)[0]


def pipe(*commands: Command, buffer_chunks: int = DEFAULT_PIPE_BUFFER_CHUNKS) -> Pipeline:
    return Pipeline(commands, buffer_chunks=buffer_chunks)


def _as_source(stdin: Union[bytes, bytearray, Any, None]) -> Source:
    if stdin is None:
        return SyncSource(sys.stdin.buffer)
    if isinstance(stdin, (bytes, bytearray)):
        return _BytesSource(bytes(stdin))
    if inspect.iscoroutinefunction(getattr(stdin, "read", None)):
        return stdin
    return SyncSource(stdin)


class _BytesSource:
    def __init__(self, data: bytes):
        self._data = data
        self._offset = 0

    async def read(self, n: int = -1) -> bytes:
        if n is None or n < 0:
            n = len(self._data) - self._offset
        chunk = self._data[self._offset:self._offset + n]
        self._offset += len(chunk)
        return chunk


async def _run_async(command: Command, stdin, stdout, stderr, ctx: Context) -> None:
    name = type(command).__name__
    logger.info(f"START: {name}")
    try:
        await command.executor()(ctx, _as_source(stdin), stdout, stderr)
    except Exception as exc:
        logger.error(f"FAIL: {name} - {describe(exc)}")
        raise
    logger.info(f"DONE: {name}")


def run(
    command: Command,
    stdin: Union[bytes, Any, None] = b"",
    stdout: Optional[Destination] = None,
    stderr: Optional[Destination] = None,
    ctx: Optional[Context] = None,
    timeout: Optional[float] = None,
) -> None:
    """Execute ``command`` to completion, raising the first stage failure.

    ``stdin=None`` reads the process's standard input; ``stdout``/``stderr``
    default to the process's binary output streams.
    """
    if ctx is None:
        ctx = Context(timeout=timeout)
    return asyncio.run(
        _run_async(
            command,
            stdin,
            stdout if stdout is not None else sys.stdout.buffer,
            stderr if stderr is not None else sys.stderr.buffer,
            ctx,
        )
    )
