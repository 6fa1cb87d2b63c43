"""Sink implementations for the pipeline."""

from .capture import CaptureSink, capture

__all__ = ["CaptureSink", "capture"]
