#!/usr/bin/env python3
"""Fake command for execution tests.

This script writes configurable data to stdout/stderr and then exits,
signals itself, or sleeps until it is terminated.

Usage:
    python fake_cli.py [--stdout TEXT]... [--stderr TEXT]... [--stderr-bytes N]
                       [--stdout-bytes N] [--raw-hex HEX] [--print-env NAME]
                       [--print-pgid] [--ready] [--sleep SECONDS]
                       [--ignore-term] [--signal NAME] [--exit-code CODE]

Output order: --stderr-bytes, --stdout-bytes, --raw-hex, then --stdout/--stderr
lines in the order given, then --print-env / --print-pgid, then --ready.
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
from typing import NoReturn

PATTERN = bytes(range(256))


def patterned(size: int) -> bytes:
    """Deterministic non-uniform payload so reordering is detectable."""
    repeats, rest = divmod(size, len(PATTERN))
    return PATTERN * repeats + PATTERN[:rest]


class _Line(argparse.Action):
    """Collect --stdout/--stderr lines in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        lines = getattr(namespace, "lines", None) or []
        lines.append((self.dest, values))
        namespace.lines = lines


def write(stream, data: bytes) -> None:
    stream.buffer.write(data)
    stream.buffer.flush()


def main() -> NoReturn:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Fake command for testing")
    parser.add_argument("--stdout", action=_Line, dest="stdout", help="Line for stdout")
    parser.add_argument("--stderr", action=_Line, dest="stderr", help="Line for stderr")
    parser.add_argument("--stdout-bytes", type=int, default=0, help="Patterned bytes to stdout")
    parser.add_argument("--stderr-bytes", type=int, default=0, help="Patterned bytes to stderr")
    parser.add_argument("--raw-hex", default="", help="Raw bytes (hex) to stdout")
    parser.add_argument("--print-env", default=None, help="Print an environment variable")
    parser.add_argument("--print-pgid", action="store_true", help="Print pid and pgid")
    parser.add_argument("--ready", action="store_true", help="Print 'ready' to stdout")
    parser.add_argument("--sleep", type=float, default=0.0, help="Sleep before exiting")
    parser.add_argument("--ignore-term", action="store_true", help="Ignore SIGTERM")
    parser.add_argument("--signal", default=None, help="Kill self with this signal")
    parser.add_argument("--exit-code", type=int, default=0, help="Exit code")
    parser.set_defaults(lines=[])

    args = parser.parse_args()

    if args.ignore_term:
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    if args.stderr_bytes:
        write(sys.stderr, patterned(args.stderr_bytes))
    if args.stdout_bytes:
        write(sys.stdout, patterned(args.stdout_bytes))
    if args.raw_hex:
        write(sys.stdout, bytes.fromhex(args.raw_hex))

    for dest, text in args.lines:
        write(sys.stdout if dest == "stdout" else sys.stderr, (text + "\n").encode("utf-8"))

    if args.print_env is not None:
        write(sys.stdout, (os.environ.get(args.print_env, "<unset>") + "\n").encode("utf-8"))
    if args.print_pgid:
        write(sys.stdout, f"{os.getpid()} {os.getpgid(0)}\n".encode("ascii"))
    if args.ready:
        write(sys.stdout, b"ready\n")

    if args.sleep:
        deadline = time.monotonic() + args.sleep
        while time.monotonic() < deadline:
            time.sleep(0.05)

    if args.signal:
        os.kill(os.getpid(), getattr(signal, args.signal))
        time.sleep(5)

    sys.exit(args.exit_code)


if __name__ == "__main__":
    main()
