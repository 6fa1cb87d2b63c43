"""Errors raised by pipeline stages and the runner."""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures originating in the pipeline machinery."""


class Cancelled(PipelineError):
    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class DeadlineExceeded(PipelineError):
    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)


class ShortWriteError(PipelineError, OSError):
    def __init__(self, message: str = "short write"):
        super().__init__(message)


class ClosedPipeError(PipelineError, BrokenPipeError):
    def __init__(self, message: str = "io: read/write on closed pipe"):
        super().__init__(message)


def describe(exc: BaseException) -> str:
    """Human readable description of a failure, never empty."""
    text = str(exc)
    return text if text else type(exc).__name__
