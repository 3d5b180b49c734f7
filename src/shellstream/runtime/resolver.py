"""Executable resolution.

Turns a command token into a path that can be handed to exec.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping

import anyio

from ..errors import ExecutableNotFoundError

__all__ = ["resolve_executable", "is_explicit_path"]

logger = logging.getLogger(__name__)


def is_explicit_path(command: str) -> bool:
    """True for tokens used verbatim (absolute or ./-relative)."""
    return command.startswith("/") or command.startswith("./")


async def resolve_executable(
    command: str,
    env: Mapping[str, str] | None = None,
) -> str:
    """Resolve a command token to a runnable path.

    Tokens starting with ``/`` or ``./`` are returned as-is. Anything else is
    looked up on PATH the way ``which`` would, in a worker thread.

    Args:
        command: Command name or path
        env: Execution environment; its PATH is searched when it defines one,
            otherwise the caller's PATH is used

    Returns:
        Path to the executable

    Raises:
        ExecutableNotFoundError: If the lookup finds nothing
    """
    if is_explicit_path(command):
        return command

    search_path = env.get("PATH") if env is not None else None
    found = await anyio.to_thread.run_sync(
        lambda: shutil.which(command, path=search_path)
    )
    resolved = found.strip() if found else ""

    if not resolved:
        logger.debug(f"Executable lookup failed: {command}")
        raise ExecutableNotFoundError(command)

    logger.debug(f"Resolved {command} -> {resolved}")
    return resolved
