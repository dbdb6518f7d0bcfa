from __future__ import annotations


class YzxError(Exception):
    """Base class for all errors raised by yzx."""


class PipeUsageError(YzxError):
    """pipe() or stdin wiring used outside of its contract.

    This is a programming error, not a process outcome: it is raised
    synchronously and never carries process output.
    """

    RESOLVED_MESSAGE = (
        "The pipe() method shouldn't be called after the process is already resolved!"
    )

    def __init__(self, message: str = RESOLVED_MESSAGE) -> None:
        super().__init__(message)


class SettingsError(YzxError):
    """Invalid or unreadable configuration document."""
