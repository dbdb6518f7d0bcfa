from .models import (
    CONFIG_ENV_VAR,
    LoggingSettings,
    LogLevel,
    ProcessEnvSettings,
    ProcessSettings,
    Settings,
    ShellSettings,
)
from .loader import load_settings

__all__ = [
    "CONFIG_ENV_VAR",
    "LoggingSettings",
    "LogLevel",
    "ProcessEnvSettings",
    "ProcessSettings",
    "Settings",
    "ShellSettings",
    "load_settings",
]
