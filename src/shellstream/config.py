"""shellstream environment variable configuration.

Environment variables:
    SHELLSTREAM_TERM_TIMEOUT: seconds to wait after SIGTERM before SIGKILL
        - default 2.0, limited to 0.1-60

    SHELLSTREAM_KILL_TIMEOUT: seconds to wait after SIGKILL before giving up
        - default 1.0, limited to 0.1-60

    SHELLSTREAM_READ_CHUNK_SIZE: maximum bytes taken from a pipe per read
        - default 65536, limited to 1-16777216

    SHELLSTREAM_ISOLATE: run the child in its own session/process group
        - true/1/yes = isolate (default)
        - false/0/no = share the caller's process group

    SHELLSTREAM_LOG_DEBUG: debug logging
        - true/1/yes = DEBUG logs go to a temp file
        - false/0/no = WARNING logs go to stderr (default)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0
DEFAULT_READ_CHUNK_SIZE = 64 * 1024
MAX_READ_CHUNK_SIZE = 16 * 1024 * 1024


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_timeout(value: str | None, default: float) -> float:
    """Parse a timeout in seconds, falling back to `default` on bad input."""
    if not value:
        return default
    try:
        timeout = float(value)
    except ValueError:
        return default
    if timeout != timeout:  # NaN
        return default
    return max(0.1, min(timeout, 60.0))


def _parse_chunk_size(value: str | None) -> int:
    if not value:
        return DEFAULT_READ_CHUNK_SIZE
    try:
        size = int(value)
    except ValueError:
        return DEFAULT_READ_CHUNK_SIZE
    return max(1, min(size, MAX_READ_CHUNK_SIZE))


@dataclass
class Config:
    """shellstream configuration.

    Attributes:
        term_timeout: Seconds between SIGTERM and SIGKILL on cancellation
        kill_timeout: Seconds to wait for exit after SIGKILL
        read_chunk_size: Upper bound on bytes per pipe read
        isolate_process_group: Start the child in a new session/process group
        log_debug: Debug logging to a temp file
        log_file: Log file path (set when log_debug=True)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    isolate_process_group: bool = True
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"read_chunk_size={self.read_chunk_size}, "
            f"isolate_process_group={self.isolate_process_group}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the system temp dir."""
    log_dir = Path(tempfile.gettempdir()) / "shellstream"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"shellstream_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("SHELLSTREAM_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        term_timeout=_parse_timeout(
            os.environ.get("SHELLSTREAM_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT
        ),
        kill_timeout=_parse_timeout(
            os.environ.get("SHELLSTREAM_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT
        ),
        read_chunk_size=_parse_chunk_size(os.environ.get("SHELLSTREAM_READ_CHUNK_SIZE")),
        isolate_process_group=_parse_bool(os.environ.get("SHELLSTREAM_ISOLATE"), default=True),
        log_debug=log_debug,
        log_file=log_file,
    )


# Lazily loaded global config
_config: Config | None = None


def get_config() -> Config:
    """Return the global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
