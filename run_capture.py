"""
Capture runner.
Reads standard input (or a file / URL) and captures it into output files
through the capture sink.
"""
import argparse
import contextlib
import os
import sys
from typing import List, Optional

from pipesink.api_client import http_get
from pipesink.config import load_settings, setup_logging
from pipesink.pipeline import pipe, run
from pipesink.sinks import capture


class StderrDestination:
    """Writes diagnostics to the process stderr in order with log lines.

    Log records go through the text ``sys.stderr``; pending text is flushed
    before the bytes are written to its binary buffer.
    """

    def write(self, data: bytes) -> int:
        sys.stderr.flush()
        written = sys.stderr.buffer.write(data)
        sys.stderr.buffer.flush()
        return written


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Capture a byte stream into files")
    parser.add_argument("--stdout-file", required=True, help="Destination for captured content")
    parser.add_argument("--stderr-file", help="Destination for diagnostics (default: process stderr)")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--input-file", help="Read from this file instead of stdin")
    source.add_argument("--url", help="Stream the body of GET <url>")
    parser.add_argument("--config-file", help="JSON settings file")
    parser.add_argument("--env-file", help=".env file with PIPESINK_* overrides")
    parser.add_argument("--timeout", type=float, help="Abort after this many seconds")
    args = parser.parse_args(argv)

    settings = load_settings(config_file=args.config_file, env_file=args.env_file)
    setup_logging(settings)

    with contextlib.ExitStack() as stack:
        out = stack.enter_context(open(args.stdout_file, "ab"))
        if args.stderr_file is None:
            err = StderrDestination()
        elif os.path.abspath(args.stderr_file) == os.path.abspath(args.stdout_file):
            err = out
        else:
            err = stack.enter_context(open(args.stderr_file, "ab"))

        sink = capture(out, err, chunk_size=settings.chunk_size)
        if args.url:
            command = pipe(http_get(args.url, settings=settings), sink, buffer_chunks=settings.pipe_buffer_chunks)
            stdin = b""
        elif args.input_file:
            command = sink
            stdin = stack.enter_context(open(args.input_file, "rb"))
        else:
            command = sink
            stdin = None

        sys.stderr.flush()
        try:
            run(command, stdin=stdin, stdout=out, stderr=err, timeout=args.timeout)
        except Exception:
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
