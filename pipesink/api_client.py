"""HTTP source stage that streams a response body into a pipeline."""
from __future__ import annotations

import logging
from typing import Callable, Optional

import aiohttp

from .command import Context, Executor
from .config import Settings
from .destinations import Destination, Source, write_all

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Settings], aiohttp.ClientSession]


def _default_session_factory(settings: Settings) -> aiohttp.ClientSession:
    timeout = aiohttp.ClientTimeout(
        total=None,
        connect=settings.http_connect_timeout,
        sock_read=settings.http_read_timeout,
    )
    return aiohttp.ClientSession(timeout=timeout)


class HttpSource:
    """Ignores its stdin and writes the body of ``GET url`` to its stdout."""

    def __init__(
        self,
        url: str,
        settings: Optional[Settings] = None,
        session_factory: SessionFactory = _default_session_factory,
    ):
        self.url = url
        self.settings = settings or Settings()
        self.session_factory = session_factory

    async def execute(self, ctx: Context, stdout: Destination) -> int:
        written = 0
        async with self.session_factory(self.settings) as session:
            async with session.get(self.url) as response:
                response.raise_for_status()
                async for chunk in response.content.iter_chunked(self.settings.chunk_size):
                    await ctx.guard(write_all(stdout, chunk))
                    written += len(chunk)
        logger.debug(f"DONE: GET {self.url} ({written} bytes)")
        return written

    def executor(self) -> Executor:
        async def _executor(ctx: Context, _stdin: Source, stdout: Destination, _stderr: Destination) -> None:
            await self.execute(ctx, stdout)

        return _executor


def http_get(
    url: str,
    settings: Optional[Settings] = None,
    session_factory: SessionFactory = _default_session_factory,
) -> HttpSource:
    return HttpSource(url, settings=settings, session_factory=session_factory)
