"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path (development checkouts)
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CLI_PATH = FIXTURES_DIR / "fake_cli.py"
if str(FIXTURES_DIR) not in sys.path:
    sys.path.insert(0, str(FIXTURES_DIR))

from shellstream.config import Config  # noqa: E402
from shellstream.executor import ShellCommandExecutor  # noqa: E402


@pytest.fixture
def fast_config() -> Config:
    """Config with short timeouts for testing."""
    return Config(term_timeout=0.5, kill_timeout=0.5)


@pytest.fixture
def executor(fast_config: Config) -> ShellCommandExecutor:
    """Executor using the fast config."""
    return ShellCommandExecutor(fast_config)


@pytest.fixture
def fake_cli() -> list[str]:
    """Argument vector prefix that runs the fake command."""
    return [sys.executable, str(FAKE_CLI_PATH)]


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """Create temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace
