"""Configuration helpers for the capture pipeline."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .destinations import DEFAULT_CHUNK_SIZE
from .pipeline import DEFAULT_PIPE_BUFFER_CHUNKS

ENV_PREFIX = "PIPESINK_"


@dataclass
class Settings:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    pipe_buffer_chunks: int = DEFAULT_PIPE_BUFFER_CHUNKS
    http_connect_timeout: float = 10.0
    http_read_timeout: float = 30.0
    log_level: str = "INFO"
    debug: bool = False


def _get(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """Get a value using dot notation, e.g. ``"capture.chunk_size"``."""
    value: Any = config
    try:
        for key in key_path.split("."):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def _load_config_file(config_file: str) -> Dict[str, Any]:
    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with open(config_file, "r", encoding="utf-8") as fh:
        try:
            return json.load(fh)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_file}: {e}")


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "y", "on")


def load_settings(config_file: Optional[str] = None, env_file: Optional[str] = None) -> Settings:
    """Load settings from an optional JSON file with env-var overrides."""

    if env_file:
        load_dotenv(env_file, override=False)

    config = _load_config_file(config_file) if config_file else {}
    defaults = Settings()

    def pick(env_name: str, key_path: str, default: Any) -> Any:
        env_value = os.getenv(ENV_PREFIX + env_name, "")
        if env_value:
            return env_value
        return _get(config, key_path, default)

    try:
        settings = Settings(
            chunk_size=int(pick("CHUNK_SIZE", "capture.chunk_size", defaults.chunk_size)),
            pipe_buffer_chunks=int(
                pick("PIPE_BUFFER_CHUNKS", "pipeline.pipe_buffer_chunks", defaults.pipe_buffer_chunks)
            ),
            http_connect_timeout=float(
                pick("HTTP_CONNECT_TIMEOUT", "http.connect_timeout", defaults.http_connect_timeout)
            ),
            http_read_timeout=float(pick("HTTP_READ_TIMEOUT", "http.read_timeout", defaults.http_read_timeout)),
            log_level=str(pick("LOG_LEVEL", "environment.log_level", defaults.log_level)).upper(),
            debug=_truthy(pick("DEBUG", "environment.debug", defaults.debug)),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid pipesink setting: {e}")

    if settings.chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if settings.pipe_buffer_chunks <= 0:
        raise ValueError("pipe_buffer_chunks must be positive")
    return settings


def setup_logging(settings: Settings) -> None:
    """Setup logging based on configuration."""
    level = getattr(logging, settings.log_level, logging.INFO)
    format_str = "%(asctime)s - %(levelname)s - %(message)s" if settings.debug else "%(message)s"
    logging.basicConfig(level=level, format=format_str, handlers=[logging.StreamHandler()])
