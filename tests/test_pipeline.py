import asyncio
import io

import pytest

from pipesink.command import Context, stage
from pipesink.destinations import write_all
from pipesink.errors import ClosedPipeError, DeadlineExceeded
from pipesink.pipeline import Pipe, pipe, run
from pipesink.sinks import capture


class Upper:
    """Test stage: upper-cases everything it reads."""

    def executor(self):
        async def _executor(ctx, stdin, stdout, stderr):
            while True:
                chunk = await stdin.read(5)
                if not chunk:
                    return
                await write_all(stdout, chunk.upper())

        return _executor


class Emit:
    """Test stage: ignores stdin, emits ``data`` then optionally fails."""

    def __init__(self, data, error=None, repeat=1):
        self.data = data
        self.error = error
        self.repeat = repeat

    def executor(self):
        async def _executor(ctx, stdin, stdout, stderr):
            for _ in range(self.repeat):
                await write_all(stdout, self.data)
            if self.error is not None:
                raise self.error

        return _executor


class SlowSource:
    async def read(self, n=-1):
        await asyncio.sleep(0.01)
        return b"x"


def test_pipe_feeds_stages_into_capture():
    out, err = io.BytesIO(), io.BytesIO()

    run(pipe(Upper(), capture(out, err)), stdin=b"hello pipeline\n")

    assert out.getvalue() == b"HELLO PIPELINE\n"
    assert err.getvalue() == b""


def test_upstream_failure_reaches_capture_as_read_error():
    out, err = io.BytesIO(), io.BytesIO()
    failure = RuntimeError("upstream exploded")

    with pytest.raises(RuntimeError) as excinfo:
        run(pipe(Emit(b"partial", error=failure), capture(out, err)))

    assert excinfo.value is failure
    assert out.getvalue() == b"partial"
    assert err.getvalue() == b"capture: upstream exploded\n"


def test_capture_failure_is_reported_instead_of_closed_pipe():
    class Broken:
        def write(self, data):
            raise OSError("no space left on device")

    err = io.BytesIO()

    with pytest.raises(OSError, match="no space left"):
        run(pipe(Emit(b"x" * 1024, repeat=200), capture(Broken(), err), buffer_chunks=2))

    assert err.getvalue() == b"capture: no space left on device\n"


def test_pipe_requires_commands():
    with pytest.raises(ValueError):
        pipe()


def test_run_reads_binary_file_objects():
    out, err = io.BytesIO(), io.BytesIO()

    run(capture(out, err, chunk_size=3), stdin=io.BytesIO(b"from a file"))

    assert out.getvalue() == b"from a file"


def test_run_timeout_aborts_endless_input():
    out, err = io.BytesIO(), io.BytesIO()

    with pytest.raises(DeadlineExceeded):
        run(capture(out, err), stdin=SlowSource(), timeout=0.05)

    assert out.getvalue().startswith(b"x")
    assert err.getvalue() == b"capture: context deadline exceeded\n"


def test_stage_adapter_drops_unused_streams():
    seen = []

    async def execute(ctx, stdin):
        seen.append(await stdin.read())

    async def scenario():
        pipe_in = Pipe()
        await pipe_in.write(b"only stdin")
        await pipe_in.close()
        await stage(execute)(Context(), pipe_in, None, None)

    asyncio.run(scenario())

    assert seen == [b"only stdin"]


def test_pipe_delivers_chunks_then_error():
    async def scenario():
        channel = Pipe(max_chunks=4)
        await channel.write(b"abcdef")
        await channel.close(OSError("boom"))
        assert await channel.read(4) == b"abcd"
        assert await channel.read(4) == b"ef"
        with pytest.raises(OSError, match="boom"):
            await channel.read(4)

    asyncio.run(scenario())


def test_pipe_write_after_reader_closed_fails():
    async def scenario():
        channel = Pipe()
        channel.close_reader()
        with pytest.raises(ClosedPipeError):
            await channel.write(b"lost")

    asyncio.run(scenario())
