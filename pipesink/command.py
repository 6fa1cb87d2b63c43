"""Command interface every pipeline stage implements."""
from __future__ import annotations

import asyncio
import inspect
import time
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from .destinations import Destination, Source
from .errors import Cancelled, DeadlineExceeded, PipelineError

T = TypeVar("T")


class Context:
    """Cancellation and deadline carrier handed to every stage.

    Blocking reads and writes go through :meth:`guard`, so cancelling or
    running past the deadline interrupts a stage that is waiting on I/O.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    def cancel(self):
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def err(self) -> Optional[PipelineError]:
        if self._cancelled:
            return Cancelled()
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return DeadlineExceeded()
        return None

    @property
    def done(self) -> bool:
        return self.err() is not None

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def raise_if_done(self):
        error = self.err()
        if error is not None:
            raise error

    def _cancel_event(self) -> asyncio.Event:
        # created lazily so it belongs to the loop that waits on it
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the context is cancelled or expires first."""
        error = self.err()
        if error is not None:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise error

        operation = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancel_event().wait())
        try:
            done, _ = await asyncio.wait(
                {operation, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            if not operation.done():
                operation.cancel()

        if operation in done:
            return operation.result()
        self.raise_if_done()
        raise DeadlineExceeded()


Executor = Callable[[Context, Source, Destination, Destination], Awaitable[None]]
StageFunction = Callable[[Context, Source], Awaitable[None]]


class Command(Protocol):
    def executor(self) -> Executor:
        ...


def stage(execute: StageFunction) -> Executor:
    """Adapt an ``execute(ctx, stdin)`` coroutine to the full executor signature.

    Stages that write to their own destinations never see the runner's
    stdout/stderr; the adapter drops them.
    """

    async def _executor(ctx: Context, stdin: Source, _stdout: Destination, _stderr: Destination) -> None:
        await execute(ctx, stdin)

    return _executor
