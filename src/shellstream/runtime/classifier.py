"""Termination classification."""

from __future__ import annotations

from ..errors import CancelledExecutionError, NonZeroExitError, ShellError, SignaledError
from ..types import TerminationOutcome

__all__ = ["classify_termination"]


def classify_termination(
    outcome: TerminationOutcome,
    *,
    cancelled: bool = False,
    stderr: str = "",
) -> ShellError | None:
    """Map how a process ended onto the error taxonomy.

    A cancellation requested before the process finished on its own wins over
    whatever the OS reports, so a caller-initiated stop is never reported as
    a signal or a non-zero exit.

    Args:
        outcome: Termination reported by the OS
        cancelled: Whether cancellation was requested before natural exit
        stderr: Accumulated stderr text

    Returns:
        The error to end the stream with, or None on success
    """
    if cancelled:
        return CancelledExecutionError()
    if outcome.signal is not None:
        return SignaledError(outcome.signal)
    if outcome.exit_code:
        return NonZeroExitError(outcome.exit_code, stderr)
    return None
