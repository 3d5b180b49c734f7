"""Config module tests.

Tests SHELLSTREAM_* environment variable parsing and config management.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from shellstream.config import (
    DEFAULT_READ_CHUNK_SIZE,
    MAX_READ_CHUNK_SIZE,
    Config,
    get_config,
    load_config,
    reload_config,
)

_VARS = (
    "SHELLSTREAM_TERM_TIMEOUT",
    "SHELLSTREAM_KILL_TIMEOUT",
    "SHELLSTREAM_READ_CHUNK_SIZE",
    "SHELLSTREAM_ISOLATE",
    "SHELLSTREAM_LOG_DEBUG",
)


def _clean_env(**overrides: str) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in _VARS}
    env.update(overrides)
    return env


class TestDefaults:
    def test_unset_uses_defaults(self):
        with mock.patch.dict(os.environ, _clean_env(), clear=True):
            config = load_config()
        assert config.term_timeout == 2.0
        assert config.kill_timeout == 1.0
        assert config.read_chunk_size == DEFAULT_READ_CHUNK_SIZE
        assert config.isolate_process_group is True
        assert config.log_debug is False
        assert config.log_file is None


class TestTimeouts:
    def test_valid_value(self):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_TERM_TIMEOUT="0.5")):
            assert load_config().term_timeout == 0.5

    @pytest.mark.parametrize("value, expected", [("0", 0.1), ("-3", 0.1), ("1000", 60.0)])
    def test_clamped(self, value: str, expected: float):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_KILL_TIMEOUT=value)):
            assert load_config().kill_timeout == expected

    @pytest.mark.parametrize("value", ["abc", "", "nan"])
    def test_invalid_falls_back(self, value: str):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_TERM_TIMEOUT=value)):
            assert load_config().term_timeout == 2.0


class TestReadChunkSize:
    def test_valid_value(self):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_READ_CHUNK_SIZE="4096")):
            assert load_config().read_chunk_size == 4096

    def test_clamped(self):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_READ_CHUNK_SIZE="0")):
            assert load_config().read_chunk_size == 1
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_READ_CHUNK_SIZE="999999999")):
            assert load_config().read_chunk_size == MAX_READ_CHUNK_SIZE

    def test_invalid_falls_back(self):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_READ_CHUNK_SIZE="big")):
            assert load_config().read_chunk_size == DEFAULT_READ_CHUNK_SIZE


class TestBooleans:
    @pytest.mark.parametrize("value", ["false", "0", "no", "off", "NO"])
    def test_isolate_off(self, value: str):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_ISOLATE=value)):
            assert load_config().isolate_process_group is False

    @pytest.mark.parametrize("value", ["true", "1", "yes", "ON"])
    def test_isolate_on(self, value: str):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_ISOLATE=value)):
            assert load_config().isolate_process_group is True

    def test_log_debug_generates_log_file(self):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_LOG_DEBUG="1")):
            config = load_config()
        assert config.log_debug is True
        assert config.log_file is not None
        log_path = Path(config.log_file)
        assert log_path.is_absolute()
        assert log_path.parent.name == "shellstream"
        assert log_path.name.startswith("shellstream_debug_")


class TestGlobalConfig:
    def test_get_config_is_cached(self):
        reload_config()
        assert get_config() is get_config()

    def test_reload_picks_up_changes(self):
        with mock.patch.dict(os.environ, _clean_env(SHELLSTREAM_TERM_TIMEOUT="7")):
            assert reload_config().term_timeout == 7.0
            assert get_config().term_timeout == 7.0
        reload_config()

    def test_repr(self):
        text = repr(Config())
        assert text.startswith("Config(term_timeout=2.0")
        assert "isolate_process_group=True" in text
