from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from yzx.handle import ProcessHandle
from yzx.logger import logger
from yzx.proc import EnvPolicy, ProcessBackend, SpawnOptions, build_env, get_backend
from yzx.settings import Settings, ShellSettings
from yzx.streams import is_input_source


class LaunchOptions(BaseModel):
    """Per-launch options; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    # Working directory; None inherits the parent's.
    cwd: Optional[Path] = None
    # Overrides on top of the inherited environment snapshot.
    env: Optional[Dict[str, str]] = None
    # Capture output without mirroring it to sys.stdout / sys.stderr.
    quiet: bool = False
    # str, bytes, file-like, iterable or async iterable fed to stdin.
    input: Optional[Any] = None

    @field_validator("input")
    @classmethod
    def _check_input(cls, v: Any) -> Any:
        if v is None or is_input_source(v):
            return v
        raise ValueError(f"unsupported input source: {type(v).__name__}")


OptionsArg = Union[LaunchOptions, Mapping[str, Any], None]


def coerce_options(options: OptionsArg, overrides: Optional[Mapping[str, Any]] = None) -> LaunchOptions:
    if options is None:
        opts = LaunchOptions()
    elif isinstance(options, LaunchOptions):
        opts = options
    else:
        opts = LaunchOptions.model_validate(dict(options))
    if overrides:
        opts = LaunchOptions.model_validate({**opts.model_dump(exclude_unset=True), **overrides})
    return opts


def shell_argv(command: str, shell: ShellSettings) -> list[str]:
    return [shell.program, *shell.args, "-c", shell.prefix + command]


def launch(
    command: str,
    options: OptionsArg = None,
    *,
    settings: Optional[Settings] = None,
    backend: Optional[ProcessBackend] = None,
    **overrides: Any,
) -> ProcessHandle:
    """
    Start `command` through the configured shell and return its handle.

    Must be called while an event loop is running; the process is spawned
    on the loop's next iteration.
    """
    opts = coerce_options(options, overrides)
    settings = settings or Settings()
    if backend is None:
        backend = get_backend(settings.process.backend)

    if settings.shell.verbose:
        logger.info(f"$ {command}")

    env_settings = settings.process.env
    policy = EnvPolicy(
        inherit_parent=env_settings.inherit_parent,
        allowlist=env_settings.allowlist,
        denylist=env_settings.denylist,
        defaults=dict(env_settings.defaults),
    )
    spawn_opts = SpawnOptions(
        argv=shell_argv(command, settings.shell),
        cwd=opts.cwd,
        env=build_env(policy, opts.env),
        use_process_group=settings.shell.use_process_group,
    )
    return ProcessHandle(
        command,
        spawn_opts,
        backend=backend,
        quiet=opts.quiet,
        input=opts.input,
    )
