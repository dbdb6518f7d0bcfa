from .base import (
    EnvPolicy,
    OSProcess,
    ProcessBackend,
    SpawnOptions,
    get_backend,
    register_backend,
)
from .local import LocalProcess, LocalSubprocessBackend, build_env

register_backend("local", lambda: LocalSubprocessBackend())

__all__ = [
    "EnvPolicy",
    "OSProcess",
    "ProcessBackend",
    "SpawnOptions",
    "LocalProcess",
    "LocalSubprocessBackend",
    "build_env",
    "get_backend",
    "register_backend",
]
