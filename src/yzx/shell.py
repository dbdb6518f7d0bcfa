from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from yzx.handle import ProcessHandle, nothrow
from yzx.launcher import LaunchOptions, OptionsArg, coerce_options, launch
from yzx.logger import configure_logging, logger
from yzx.proc import ProcessBackend, get_backend
from yzx.quote import Quoter, build, quote, template
from yzx.settings import Settings


class Shell:
    """
    Execution context handed to scripts instead of ambient globals.

    Exposes `launch`, `quote` and `nothrow` as named members. Calling the
    context with a str.format style template quotes every interpolated value
    and launches the result:

        out = await sh("echo {} | wc -c", name)

    Literal braces in the script are written as {{ and }}.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        cwd: Optional[Union[str, os.PathLike]] = None,
        env: Optional[Mapping[str, str]] = None,
        quiet: bool = False,
        quote: Quoter = quote,
        backend: Optional[ProcessBackend] = None,
        _handles: Optional[set[ProcessHandle]] = None,
    ) -> None:
        self.settings = settings or Settings()
        configure_logging(self.settings.logging)
        self.quote = quote
        self._backend = backend or get_backend(self.settings.process.backend)
        self._defaults = LaunchOptions(
            cwd=Path(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            quiet=quiet,
        )
        # Live handles, shared with contexts derived through with_options().
        self._handles: set[ProcessHandle] = _handles if _handles is not None else set()

    @property
    def cwd(self) -> Optional[Path]:
        return self._defaults.cwd

    @property
    def env(self) -> Dict[str, str]:
        return dict(self._defaults.env or {})

    @property
    def quiet(self) -> bool:
        return self._defaults.quiet

    def handles(self) -> list[ProcessHandle]:
        return list(self._handles)

    nothrow = staticmethod(nothrow)

    def build(self, fragments: Sequence[str], values: Sequence[Any]) -> str:
        return build(fragments, values, quote=self.quote)

    def launch(self, command: str, options: OptionsArg = None, **overrides: Any) -> ProcessHandle:
        opts = self._merge(coerce_options(options, overrides))
        handle = launch(command, opts, settings=self.settings, backend=self._backend)
        self._handles.add(handle)
        handle.add_done_callback(self._handles.discard)
        return handle

    run = launch

    def __call__(self, fmt: str, *args: Any, **kwargs: Any) -> ProcessHandle:
        command = template(fmt, *args, **kwargs).render(self.quote)
        return self.launch(command)

    def with_options(self, **options: Any) -> "Shell":
        """Derive a context with different default launch options."""
        merged = self._merge(coerce_options(options))
        return Shell(
            self.settings,
            cwd=merged.cwd,
            env=merged.env,
            quiet=merged.quiet,
            quote=self.quote,
            backend=self._backend,
            _handles=self._handles,
        )

    def cd(self, path: Union[str, os.PathLike]) -> Path:
        """
        Change this context's working directory. Relative paths resolve
        against the current one; the interpreter's cwd is left alone.
        """
        base = self._defaults.cwd or Path.cwd()
        target = (base / Path(path).expanduser()).resolve()
        if not target.exists():
            raise FileNotFoundError(f"No such directory: {target}")
        if not target.is_dir():
            raise NotADirectoryError(f"Not a directory: {target}")
        self._defaults = self._defaults.model_copy(update={"cwd": target})
        logger.debug("shell.cd", cwd=str(target))
        return target

    async def shutdown(self, grace_s: Optional[float] = None) -> None:
        """Terminate every live handle; SIGKILL the ones outliving grace_s."""
        grace = self.settings.process.shutdown_grace_s if grace_s is None else grace_s
        handles = list(self._handles)
        if not handles:
            return

        logger.debug("shell.shutdown", handles=len(handles), grace_s=grace)
        await asyncio.gather(*(h.terminate(grace) for h in handles))
        self._handles.clear()

    def _merge(self, opts: LaunchOptions) -> LaunchOptions:
        d = self._defaults
        env = None
        if d.env is not None or opts.env is not None:
            env = {**(d.env or {}), **(opts.env or {})}
        cwd = opts.cwd if opts.cwd is not None else d.cwd
        if cwd is not None and d.cwd is not None and not cwd.is_absolute():
            cwd = d.cwd / cwd
        return LaunchOptions(
            cwd=cwd,
            env=env,
            quiet=opts.quiet if "quiet" in opts.model_fields_set else d.quiet,
            input=opts.input,
        )


__all__ = ["Shell"]
