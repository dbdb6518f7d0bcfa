from typing import Dict, List, Literal, Optional
from enum import Enum
import re

from pydantic import BaseModel, Field


# Variable replacement pattern.
# Supports:
#   - ${NAME}
#   - ${env:NAME}
# Ignores '$${NAME}' so it can be used to escape a literal '${NAME}'.
VAR_PATTERN = re.compile(
    r"(?<!\$)\$\{([A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?)\}"
)

# Environment variable consulted by load_settings() when no path is given.
CONFIG_ENV_VAR = "YZX_CONFIG"


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class LoggingSettings(BaseModel):
    # Default level for the "yzx" logger if not overridden.
    default_level: LogLevel = LogLevel.info
    # Mapping of logger name -> level override (e.g., {"asyncio": "debug"})
    enabled_loggers: Dict[str, LogLevel] = Field(default_factory=dict)


class ShellSettings(BaseModel):
    # Program and args used to interpret command strings. The command is
    # passed as `<program> <args...> -c "<prefix><command>"`.
    program: str = "bash"
    args: List[str] = Field(default_factory=lambda: ["--noprofile", "--norc"])
    # Prepended to every command. Keeps pipefail on so a failing stage of an
    # internal pipeline fails the whole command.
    prefix: str = "set -euo pipefail;"
    # Log every launched command as "$ <command>".
    verbose: bool = False
    # Place each child in its own process group so kill() reaches the
    # processes the shell spawned.
    use_process_group: bool = True


class ProcessEnvSettings(BaseModel):
    inherit_parent: bool = True
    allowlist: Optional[List[str]] = None
    denylist: Optional[List[str]] = None
    defaults: Dict[str, str] = Field(default_factory=dict)


class ProcessSettings(BaseModel):
    # Backend key in the process backend registry.
    backend: Literal["local"] = "local"
    env: ProcessEnvSettings = Field(default_factory=ProcessEnvSettings)
    # Seconds shutdown() waits after SIGTERM before escalating to SIGKILL.
    shutdown_grace_s: float = 5.0


class Settings(BaseModel):
    shell: ShellSettings = Field(default_factory=ShellSettings)
    process: ProcessSettings = Field(default_factory=ProcessSettings)
    logging: Optional[LoggingSettings] = Field(default=None)
