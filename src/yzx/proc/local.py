from __future__ import annotations
import asyncio
import contextlib
import os
import signal
from typing import Optional, Dict
from .base import (
    EnvPolicy,
    OSProcess,
    ProcessBackend,
    SpawnOptions,
)

# Bytes requested per read from the child's stdout/stderr.
READ_CHUNK_SIZE = 64 * 1024


def build_env(policy: EnvPolicy, overlay: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Snapshot the parent environment through the policy, then apply overlay."""
    base: Dict[str, str] = {}
    if policy.inherit_parent:
        base = dict(os.environ)
        if policy.allowlist is not None:
            allow = set(policy.allowlist)
            base = {k: v for k, v in base.items() if k in allow}
        if policy.denylist is not None:
            for k in policy.denylist:
                base.pop(k, None)
    base.update(policy.defaults or {})
    if overlay:
        base.update(overlay)
    return base


class LocalProcess(OSProcess):
    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        *,
        use_process_group: bool = True,
    ) -> None:
        self._proc = proc
        self._use_pg = bool(use_process_group and os.name == "posix")

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode

    def alive(self) -> bool:
        return self._proc.returncode is None

    async def read_stdout(self) -> bytes:
        if self._proc.stdout is None:
            return b""
        return await self._proc.stdout.read(READ_CHUNK_SIZE)

    async def read_stderr(self) -> bytes:
        if self._proc.stderr is None:
            return b""
        return await self._proc.stderr.read(READ_CHUNK_SIZE)

    async def write(self, data: bytes) -> None:
        if self._proc.stdin is None:
            return
        self._proc.stdin.write(data)
        await self._proc.stdin.drain()

    async def close_stdin(self) -> None:
        if self._proc.stdin is not None:
            self._proc.stdin.close()
            # The child may already be gone; the pipe is closed either way.
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await self._proc.stdin.wait_closed()

    def send_signal(self, sig: int) -> None:
        if self._proc.returncode is not None:
            return
        try:
            if self._use_pg and self._proc.pid is not None:
                os.killpg(self._proc.pid, sig)
            else:
                self._proc.send_signal(sig)
        except ProcessLookupError:
            # Process was already gone before we could signal it.
            pass

    async def terminate(self, grace_s: float = 5.0) -> None:
        if self._proc.returncode is not None:
            return
        self.send_signal(signal.SIGTERM)
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=grace_s)
        except asyncio.TimeoutError:
            # The process did not terminate gracefully, so escalate to kill().
            await self.kill()

    async def kill(self) -> None:
        if self._proc.returncode is None:
            self.send_signal(signal.SIGKILL)
        # wait() is necessary to reap the process and clean up transport resources.
        await self._proc.wait()

    async def wait(self) -> int:
        return await self._proc.wait()


class LocalSubprocessBackend(ProcessBackend):
    async def spawn(self, opts: SpawnOptions) -> OSProcess:
        preexec_fn = None
        if opts.use_process_group and os.name == "posix":
            # Start the subprocess in a new process group so we can signal the
            # entire tree via killpg.
            def _preexec() -> None:  # pragma: no cover - trivial wrapper
                os.setsid()

            preexec_fn = _preexec

        proc = await asyncio.create_subprocess_exec(
            *opts.argv,
            stdin=asyncio.subprocess.PIPE if opts.stdin_pipe else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(opts.cwd) if opts.cwd is not None else None,
            env=opts.env,
            preexec_fn=preexec_fn,  # type: ignore[arg-type]
        )
        return LocalProcess(proc, use_process_group=opts.use_process_group)
