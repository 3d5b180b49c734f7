"""Data type tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from shellstream.types import CommandDescriptor, OutputChunk, OutputOrigin, TerminationOutcome


class TestCommandDescriptor:
    def test_defaults_to_caller_environment(self):
        descriptor = CommandDescriptor(arguments=("echo", "hi"))
        assert descriptor.environment == dict(os.environ)
        assert descriptor.working_directory is None
        assert descriptor.command == "echo"

    def test_list_arguments_become_tuple(self):
        descriptor = CommandDescriptor(arguments=["ls", "-la"])
        assert descriptor.arguments == ("ls", "-la")

    def test_empty_arguments_have_no_command(self):
        assert CommandDescriptor().command is None

    def test_path_working_directory(self, tmp_path: Path):
        descriptor = CommandDescriptor(arguments=("pwd",), working_directory=tmp_path)
        assert descriptor.working_directory == str(tmp_path)

    def test_immutable(self):
        descriptor = CommandDescriptor(arguments=("echo",))
        with pytest.raises(ValidationError):
            descriptor.arguments = ("ls",)

    def test_environment_read_only(self):
        descriptor = CommandDescriptor(arguments=("env",), environment={"A": "1"})
        with pytest.raises(TypeError):
            descriptor.environment["A"] = "mutated"  # type: ignore[index]
        assert descriptor.environment == {"A": "1"}

    def test_default_environment_read_only(self):
        descriptor = CommandDescriptor(arguments=("env",))
        with pytest.raises(TypeError):
            descriptor.environment["SHELLSTREAM_X"] = "1"  # type: ignore[index]

    def test_environment_copied_from_input(self):
        source = {"A": "1"}
        descriptor = CommandDescriptor(arguments=("env",), environment=source)
        source["A"] = "changed"
        assert descriptor.environment["A"] == "1"

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            CommandDescriptor(arguments=("echo",), stdin=b"x")


class TestOutputChunk:
    def test_empty_payload_rejected(self):
        with pytest.raises(ValueError):
            OutputChunk(OutputOrigin.STDOUT, b"")

    def test_is_error(self):
        assert OutputChunk.stderr(b"x").is_error is True
        assert OutputChunk.stdout(b"x").is_error is False

    def test_text(self):
        assert OutputChunk.stdout("héllo".encode()).text() == "héllo"
        assert OutputChunk.stdout(b"\xff\xfe").text() is None
        assert OutputChunk.stdout("hé".encode("latin-1")).text("latin-1") == "hé"

    def test_repr_hides_payload(self):
        assert repr(OutputChunk.stderr(b"secret")) == "OutputChunk(stderr, 6 bytes)"


class TestTerminationOutcome:
    def test_from_positive_returncode(self):
        outcome = TerminationOutcome.from_returncode(3)
        assert outcome.exit_code == 3
        assert outcome.signal is None
        assert not outcome.is_success
        assert not outcome.is_signaled

    def test_from_zero(self):
        assert TerminationOutcome.from_returncode(0).is_success

    def test_from_negative_returncode(self):
        outcome = TerminationOutcome.from_returncode(-9)
        assert outcome.signal == 9
        assert outcome.exit_code is None
        assert outcome.is_signaled

    def test_requires_exactly_one_field(self):
        with pytest.raises(ValueError):
            TerminationOutcome()
        with pytest.raises(ValueError):
            TerminationOutcome(exit_code=1, signal=2)
