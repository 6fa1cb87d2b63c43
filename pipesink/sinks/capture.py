"""Capture sink: terminates a pipeline into caller-supplied destinations."""
from __future__ import annotations

import asyncio
import logging

from ..command import Context, Executor, stage
from ..destinations import DEFAULT_CHUNK_SIZE, Destination, Source, copy_stream, write_all
from ..errors import describe

logger = logging.getLogger(__name__)

DIAGNOSTIC_TAG = "capture: "


class CaptureSink:
    """Copies its stdin to ``stdout``; reports a failed copy on ``stderr``.

    ``stdout`` and ``stderr`` may be the same object, in which case content and
    diagnostics are merged in the order they were produced. Neither destination
    is opened, flushed or closed here.

    Example::

        out, err = io.BytesIO(), io.BytesIO()
        run(pipe(http_get(url), capture(out, err)))
    """

    def __init__(self, stdout: Destination, stderr: Destination, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.stdout = stdout
        self.stderr = stderr
        self.chunk_size = chunk_size

    async def execute(self, ctx: Context, stdin: Source) -> None:
        try:
            await copy_stream(ctx, stdin, self.stdout, self.chunk_size)
        except (Exception, asyncio.CancelledError) as exc:
            await self._report(exc)
            raise

    async def _report(self, exc: BaseException) -> None:
        line = f"{DIAGNOSTIC_TAG}{describe(exc)}\n".encode("utf-8", errors="replace")
        try:
            await write_all(self.stderr, line)
        except (Exception, asyncio.CancelledError) as write_exc:
            logger.debug(f"FAIL: capture diagnostic not written - {describe(write_exc)}")

    def executor(self) -> Executor:
        return stage(self.execute)


def capture(stdout: Destination, stderr: Destination, chunk_size: int = DEFAULT_CHUNK_SIZE) -> CaptureSink:
    """Create a sink that captures pipeline output instead of using the process streams."""
    return CaptureSink(stdout, stderr, chunk_size=chunk_size)
