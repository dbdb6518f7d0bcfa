from __future__ import annotations

import signal as _signal
from dataclasses import dataclass
from typing import Final, Optional

from yzx.errors import YzxError


# Descriptions of well-known shell exit statuses, used in error messages.
EXIT_CODES: Final[dict[int, str]] = {
    1: "General error",
    2: "Misuse of shell builtins",
    126: "Invoked command cannot execute",
    127: "Command not found",
    128: "Invalid exit argument",
    255: "Exit status out of range",
}


def exit_code_info(code: Optional[int]) -> Optional[str]:
    """Return a short human description of a well-known exit code."""
    if code is None:
        return None
    if code in EXIT_CODES:
        return EXIT_CODES[code]
    # 128 + n means the shell reported a child killed by signal n.
    if 128 < code < 160:
        try:
            name = _signal.Signals(code - 128).name
        except ValueError:
            return None
        return f"Terminated by {name}"
    return None


@dataclass(frozen=True)
class ProcessOutput:
    """Snapshot of a finished process.

    `exit_code` is None when the process was terminated by a signal, in which
    case `signal` holds the signal name. Coercing the output with str(),
    int() or float() uses stdout without its trailing line terminator.
    """

    exit_code: Optional[int]
    signal: Optional[str]
    stdout: str
    stderr: str
    combined: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.signal is None

    def text(self) -> str:
        out = self.stdout
        if out.endswith("\r\n"):
            return out[:-2]
        if out.endswith("\n"):
            return out[:-1]
        return out

    def __str__(self) -> str:
        return self.text()

    def __int__(self) -> int:
        return int(self.text().strip())

    def __float__(self) -> float:
        return float(self.text().strip())


class ProcessError(YzxError):
    """Raised when awaiting a handle whose process failed or was killed."""

    def __init__(self, output: ProcessOutput, command: Optional[str] = None) -> None:
        self.output = output
        self.command = command
        super().__init__(self._format_message())

    @property
    def exit_code(self) -> Optional[int]:
        return self.output.exit_code

    @property
    def signal(self) -> Optional[str]:
        return self.output.signal

    @property
    def stdout(self) -> str:
        return self.output.stdout

    @property
    def stderr(self) -> str:
        return self.output.stderr

    @property
    def combined(self) -> str:
        return self.output.combined

    def _format_message(self) -> str:
        out = self.output
        if out.signal is not None:
            head = f"process terminated by {out.signal}"
        else:
            head = f"exit code: {out.exit_code}"
            info = exit_code_info(out.exit_code)
            if info:
                head += f" ({info})"
        parts = [head]
        if self.command:
            parts.append(f"command: {self.command}")
        stderr = out.stderr.rstrip("\n")
        if stderr:
            parts.append(stderr)
        return "\n".join(parts)
