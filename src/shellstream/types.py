"""Data types shared by the execution engine.

shellstream runtime v0.1.0

Defines the command descriptor handed in by callers, the tagged output
chunks handed back, and the termination outcome reported by the OS.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "CommandDescriptor",
    "OutputOrigin",
    "OutputChunk",
    "TerminationOutcome",
]


def _inherit_environment() -> Mapping[str, str]:
    return MappingProxyType(dict(os.environ))


class CommandDescriptor(BaseModel):
    """Immutable description of one command execution.

    Attributes:
        arguments: Argument vector (first element is the command name or path)
        environment: Read-only environment for the child (defaults to a
            snapshot of the caller's own)
        working_directory: Directory to run in (None = caller's cwd)
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    arguments: tuple[str, ...] = ()
    environment: Mapping[str, str] = Field(default_factory=_inherit_environment)
    working_directory: str | None = None

    @field_validator("working_directory", mode="before")
    @classmethod
    def _coerce_path(cls, value: object) -> object:
        if isinstance(value, os.PathLike):
            return os.fspath(value)
        return value

    @field_validator("environment")
    @classmethod
    def _freeze_environment(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @property
    def command(self) -> str | None:
        """The command token, or None for an empty argument vector."""
        return self.arguments[0] if self.arguments else None


class OutputOrigin(str, Enum):
    """Stream a chunk was read from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class OutputChunk:
    """One non-empty slice of bytes read from stdout or stderr.

    Attributes:
        origin: Which pipe the bytes came from
        data: Raw byte payload (never empty)
    """

    origin: OutputOrigin
    data: bytes

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("OutputChunk payload must not be empty")

    @classmethod
    def stdout(cls, data: bytes) -> "OutputChunk":
        return cls(OutputOrigin.STDOUT, data)

    @classmethod
    def stderr(cls, data: bytes) -> "OutputChunk":
        return cls(OutputOrigin.STDERR, data)

    @property
    def is_error(self) -> bool:
        """True when the chunk came from stderr."""
        return self.origin is OutputOrigin.STDERR

    def text(self, encoding: str = "utf-8") -> str | None:
        """Decode the payload, or return None if it is not valid in `encoding`."""
        try:
            return self.data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            return None

    def __repr__(self) -> str:
        return f"OutputChunk({self.origin.value}, {len(self.data)} bytes)"


@dataclass(frozen=True)
class TerminationOutcome:
    """How the OS reported the end of a process.

    Exactly one of `exit_code` and `signal` is set.
    """

    exit_code: int | None = None
    signal: int | None = None

    def __post_init__(self) -> None:
        if (self.exit_code is None) == (self.signal is None):
            raise ValueError("TerminationOutcome needs exactly one of exit_code or signal")

    @classmethod
    def normal_exit(cls, code: int) -> "TerminationOutcome":
        return cls(exit_code=code)

    @classmethod
    def signaled(cls, signal: int) -> "TerminationOutcome":
        return cls(signal=signal)

    @classmethod
    def from_returncode(cls, returncode: int) -> "TerminationOutcome":
        """Convert an asyncio return code (negative = killed by signal)."""
        if returncode < 0:
            return cls.signaled(-returncode)
        return cls.normal_exit(returncode)

    @property
    def is_signaled(self) -> bool:
        return self.signal is not None

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0
