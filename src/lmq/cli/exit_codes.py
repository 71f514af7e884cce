"""Process exit codes for lmq commands."""

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    GENERAL_ERROR = 1
    INVALID_ARGUMENTS = 2
    CONFIG_ERROR = 3
    DATABASE_ERROR = 4
    DATABASE_LOCKED = 5
    TARGET_NOT_FOUND = 6
    OPERATION_FAILED = 7
    INTERRUPTED = 130
