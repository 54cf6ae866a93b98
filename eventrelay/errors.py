"""Error flags shared by the event client and server."""

from __future__ import annotations

import enum

_RED = "\x1b[31m"
_RESET = "\x1b[0m"


class ErrorFlag(enum.IntFlag):
    """Bit flags naming the kinds of failure the relay can report."""

    NO_ERROR = 0
    PTR_ERROR = 2
    SIZE_ERROR = 4
    SOCKET_ERROR = 8
    IP_ERROR = 16
    CONNECT_ERROR = 32
    SEND_ERROR = 64
    PARSE_ERROR = 128
    READ_ERROR = 256
    PORT_ERROR = 512
    CLOSE_ERROR = 1024


class EventRelayError(Exception):
    """Raised when a relay operation fails; carries the matching flag."""

    def __init__(self, flag: ErrorFlag, message: str) -> None:
        super().__init__(message)
        self.flag = ErrorFlag(flag)
        self.message = message

    def __str__(self) -> str:
        return f"{self.flag.name}: {self.message}"


def format_errors(flags: int) -> str:
    """Render each set flag as a red line, in ascending bit order."""
    value = int(flags)
    named = (flag for flag in ErrorFlag if flag is not ErrorFlag.NO_ERROR)
    return "".join(
        f"{_RED}{flag.name}{_RESET}\n" for flag in named if value & flag
    )