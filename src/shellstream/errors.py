"""Execution error taxonomy.

shellstream runtime v0.1.0

Every failure an execution can end in maps onto one of these five classes.
They are raised from the output stream when iteration ends abnormally.
"""

from __future__ import annotations

import signal as _signal

__all__ = [
    "ShellError",
    "MissingExecutableError",
    "ExecutableNotFoundError",
    "NonZeroExitError",
    "SignaledError",
    "CancelledExecutionError",
]


class ShellError(Exception):
    """Base class for execution errors."""

    @property
    def is_termination_error(self) -> bool:
        """True when the process was terminated by a signal."""
        return False


class MissingExecutableError(ShellError):
    """No command was given (empty argument vector)."""

    def __init__(self) -> None:
        super().__init__("No executable specified")


class ExecutableNotFoundError(ShellError):
    """The command could not be resolved to a runnable file.

    Attributes:
        name: The command token as given by the caller
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Executable not found: {name}")


class NonZeroExitError(ShellError):
    """The process exited normally with a non-zero status.

    Attributes:
        code: Exit status
        stderr: Everything the process wrote to stderr
    """

    def __init__(self, code: int, stderr: str = "") -> None:
        self.code = int(code)
        self.stderr = stderr
        super().__init__(f"Process exited with code {code}\nStderr: {stderr}")


class SignaledError(ShellError):
    """The process was terminated by an uncaught signal.

    Attributes:
        signal: Signal number
    """

    def __init__(self, signal: int) -> None:
        self.signal = int(signal)
        super().__init__(f"Process terminated with signal {self.signal}")

    @property
    def is_termination_error(self) -> bool:
        return True

    @property
    def signal_name(self) -> str:
        try:
            return _signal.Signals(self.signal).name
        except ValueError:
            return f"SIG{self.signal}"


class CancelledExecutionError(ShellError):
    """The consumer cancelled the execution before it completed."""

    def __init__(self) -> None:
        super().__init__("Execution cancelled")
