"""Tests for CLI exit codes."""

from lmq.cli.exit_codes import ExitCode


def test_values_are_stable():
    assert ExitCode.SUCCESS == 0
    assert ExitCode.GENERAL_ERROR == 1
    assert ExitCode.INVALID_ARGUMENTS == 2
    assert ExitCode.DATABASE_ERROR == 4
    assert ExitCode.INTERRUPTED == 130


def test_values_are_unique():
    values = [code.value for code in ExitCode]
    assert len(values) == len(set(values))
