"""Runtime module for subprocess management and output streaming.

This module provides per-execution process ownership, concurrent pipe
draining and termination classification.
"""

from __future__ import annotations

from .classifier import classify_termination
from .controller import IS_WINDOWS, ProcessController, ProcessState
from .multiplexer import OutputMultiplexer
from .resolver import is_explicit_path, resolve_executable

__all__ = [
    "IS_WINDOWS",
    "OutputMultiplexer",
    "ProcessController",
    "ProcessState",
    "classify_termination",
    "is_explicit_path",
    "resolve_executable",
]
