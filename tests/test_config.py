import json
import os

import pytest

from pipesink.config import ENV_PREFIX, Settings, load_settings
from pipesink.destinations import DEFAULT_CHUNK_SIZE


@pytest.fixture(autouse=True)
def clean_env():
    saved = {key: value for key, value in os.environ.items() if key.startswith(ENV_PREFIX)}
    for key in saved:
        del os.environ[key]
    yield
    for key in [key for key in os.environ if key.startswith(ENV_PREFIX)]:
        del os.environ[key]
    os.environ.update(saved)


def test_defaults_without_files():
    settings = load_settings()

    assert settings == Settings()
    assert settings.chunk_size == DEFAULT_CHUNK_SIZE


def test_json_file_values(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps(
            {
                "capture": {"chunk_size": 1024},
                "pipeline": {"pipe_buffer_chunks": 4},
                "http": {"connect_timeout": 2, "read_timeout": 5},
                "environment": {"log_level": "debug", "debug": True},
            }
        )
    )

    settings = load_settings(config_file=str(config_file))

    assert settings.chunk_size == 1024
    assert settings.pipe_buffer_chunks == 4
    assert settings.http_connect_timeout == 2.0
    assert settings.http_read_timeout == 5.0
    assert settings.log_level == "DEBUG"
    assert settings.debug is True


def test_env_overrides_json(tmp_path, monkeypatch):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"capture": {"chunk_size": 1024}}))
    monkeypatch.setenv("PIPESINK_CHUNK_SIZE", "2048")

    settings = load_settings(config_file=str(config_file))

    assert settings.chunk_size == 2048


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("PIPESINK_PIPE_BUFFER_CHUNKS=8\nPIPESINK_DEBUG=yes\n")

    settings = load_settings(env_file=str(env_file))

    assert settings.pipe_buffer_chunks == 8
    assert settings.debug is True


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(config_file=str(tmp_path / "absent.json"))


def test_invalid_json(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("{not json")

    with pytest.raises(ValueError, match="Invalid JSON"):
        load_settings(config_file=str(config_file))


@pytest.mark.parametrize("value", ["0", "-5", "lots"])
def test_bad_chunk_size(monkeypatch, value):
    monkeypatch.setenv("PIPESINK_CHUNK_SIZE", value)

    with pytest.raises(ValueError):
        load_settings()
