from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Protocol, runtime_checkable, Callable


@dataclass
class EnvPolicy:
    inherit_parent: bool = True
    allowlist: Optional[list[str]] = None
    denylist: Optional[list[str]] = None
    defaults: Dict[str, str] = field(default_factory=dict)


@dataclass
class SpawnOptions:
    # Full argv; argv[0] is resolved against PATH.
    argv: list[str]
    cwd: Optional[Path] = None
    env: Optional[Dict[str, str]] = None
    # When False the child's stdin is /dev/null.
    stdin_pipe: bool = False
    # When True, the subprocess is placed into its own process group
    # so that signals can reach the whole tree.
    use_process_group: bool = True


@runtime_checkable
class OSProcess(Protocol):
    """A spawned OS process with piped stdout/stderr."""

    @property
    def pid(self) -> Optional[int]: ...
    @property
    def returncode(self) -> Optional[int]: ...
    def alive(self) -> bool: ...

    async def read_stdout(self) -> bytes: ...
    async def read_stderr(self) -> bytes: ...
    async def write(self, data: bytes) -> None: ...
    async def close_stdin(self) -> None: ...
    def send_signal(self, sig: int) -> None: ...
    async def terminate(self, grace_s: float = 5.0) -> None: ...
    async def kill(self) -> None: ...
    async def wait(self) -> int: ...


class ProcessBackend(Protocol):
    async def spawn(self, opts: SpawnOptions) -> OSProcess: ...


# Backend registry
_BACKENDS: dict[str, Callable[[], ProcessBackend]] = {}


def register_backend(name: str, factory: Callable[[], ProcessBackend]) -> None:
    _BACKENDS[name] = factory


def get_backend(name: str) -> ProcessBackend:
    if name not in _BACKENDS:
        raise ValueError(f"Unknown process backend: {name!r}")
    return _BACKENDS[name]()
