"""Pipeline stages that capture streamed output into caller-supplied destinations."""

__version__ = "1.0.0"

__all__ = [
    "command",
    "config",
    "destinations",
    "errors",
    "api_client",
    "pipeline",
    "sinks",
]
