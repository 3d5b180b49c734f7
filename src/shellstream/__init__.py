"""shellstream - asynchronous external process execution with streamed output.

Environment variables:
    SHELLSTREAM_TERM_TIMEOUT: SIGTERM -> SIGKILL grace period (default 2.0)
    SHELLSTREAM_KILL_TIMEOUT: wait after SIGKILL (default 1.0)
    SHELLSTREAM_READ_CHUNK_SIZE: bytes per pipe read (default 65536)
    SHELLSTREAM_ISOLATE: new session/process group for children (default true)
    SHELLSTREAM_LOG_DEBUG: debug log file (default false)

Usage:
    from shellstream import execute

    text = await execute("echo", "Hello World").collect_output()
"""

__version__ = "0.1.0"

from .config import Config, get_config, load_config, reload_config
from .errors import (
    CancelledExecutionError,
    ExecutableNotFoundError,
    MissingExecutableError,
    NonZeroExitError,
    ShellError,
    SignaledError,
)
from .executor import ShellCommandExecuting, ShellCommandExecutor, execute
from .log_setup import configure_logging
from .stream import OutputStream
from .types import CommandDescriptor, OutputChunk, OutputOrigin, TerminationOutcome

__all__ = [
    "__version__",
    # executor
    "ShellCommandExecuting",
    "ShellCommandExecutor",
    "execute",
    "OutputStream",
    # types
    "CommandDescriptor",
    "OutputChunk",
    "OutputOrigin",
    "TerminationOutcome",
    # errors
    "ShellError",
    "MissingExecutableError",
    "ExecutableNotFoundError",
    "NonZeroExitError",
    "SignaledError",
    "CancelledExecutionError",
    # config
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "configure_logging",
]
