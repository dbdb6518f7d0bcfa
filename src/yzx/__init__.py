"""Awaitable, pipeable and killable shell command handles for asyncio."""

from .errors import PipeUsageError, SettingsError, YzxError
from .handle import (
    NothrowHandle,
    ProcessHandle,
    ProcessState,
    SinkPipe,
    nothrow,
)
from .launcher import LaunchOptions, launch
from .output import ProcessError, ProcessOutput, exit_code_info
from .quote import Command, build, quote, template
from .settings import Settings, load_settings
from .shell import Shell
from .streams import HandleStdin

__version__ = "0.1.0"

# Default context.
sh = Shell()

__all__ = [
    "sh",
    "Shell",
    "launch",
    "LaunchOptions",
    "nothrow",
    "quote",
    "build",
    "template",
    "Command",
    "ProcessHandle",
    "ProcessState",
    "NothrowHandle",
    "SinkPipe",
    "HandleStdin",
    "ProcessOutput",
    "ProcessError",
    "exit_code_info",
    "YzxError",
    "PipeUsageError",
    "SettingsError",
    "Settings",
    "load_settings",
]
