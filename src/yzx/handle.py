from __future__ import annotations

import asyncio
import codecs
import contextlib
import os
import signal
import sys
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    Awaitable,
    Callable,
    Generator,
    Optional,
    Union,
)

from yzx.errors import PipeUsageError
from yzx.logger import logger
from yzx.output import ProcessError, ProcessOutput
from yzx.proc.base import OSProcess, ProcessBackend, SpawnOptions
from yzx.streams import HandleStdin, iter_source, write_to_sink


class ProcessState(str, Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    killed = "killed"

    @property
    def terminal(self) -> bool:
        return self in (ProcessState.succeeded, ProcessState.failed, ProcessState.killed)


def _launch_error_code(exc: Exception) -> int:
    if isinstance(exc, FileNotFoundError):
        return 127
    if isinstance(exc, PermissionError):
        return 126
    return 1


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


class ProcessHandle:
    """
    One spawned shell process.

    The spawn runs as a task on the current event loop, so right after
    creation the handle is `pending` and pipe()/stdin can still wire its
    input. Awaiting the handle yields a ProcessOutput, or raises ProcessError
    when the process failed or was killed.
    """

    def __init__(
        self,
        command: str,
        spawn_opts: SpawnOptions,
        *,
        backend: ProcessBackend,
        quiet: bool = False,
        input: Any = None,
    ) -> None:
        self.command = command
        self._spawn_opts = spawn_opts
        self._backend = backend
        self._quiet = quiet
        self._state = ProcessState.pending
        self._launched = False
        self._proc: Optional[OSProcess] = None

        self._input: Optional[AsyncIterable[bytes]] = None
        if input is not None:
            self._input = iter_source(input)
        self._stdin: Optional[HandleStdin] = None
        self._pipe_channel: Optional[HandleStdin] = None

        self._stdout_chunks: list[bytes] = []
        self._stderr_chunks: list[bytes] = []
        self._combined_chunks: list[bytes] = []
        self._stdout_eof = False

        self._returncode: Optional[int] = None
        self._output: Optional[ProcessOutput] = None

        loop = asyncio.get_running_loop()
        self._started = asyncio.Event()
        self._done: asyncio.Future[ProcessOutput] = loop.create_future()
        self._task = loop.create_task(self._run())

    def __repr__(self) -> str:
        return f"<ProcessHandle pid={self.pid} state={self._state.value} command={self.command!r}>"

    # A resolved handle stands for its trimmed stdout.

    def __str__(self) -> str:
        if self._output is None:
            return repr(self)
        return str(self._output)

    def __int__(self) -> int:
        return int(self._resolved_output())

    def __float__(self) -> float:
        return float(self._resolved_output())

    def _resolved_output(self) -> ProcessOutput:
        if self._output is None:
            raise ValueError(f"process has not finished yet: {self.command!r}")
        return self._output

    # State

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    @property
    def output(self) -> Optional[ProcessOutput]:
        return self._output

    def done(self) -> bool:
        return self._done.done()

    def add_done_callback(self, fn: Callable[["ProcessHandle"], None]) -> None:
        self._done.add_done_callback(lambda _fut: fn(self))

    # Awaiting

    def __await__(self) -> Generator[Any, None, ProcessOutput]:
        return self._resolve().__await__()

    async def _resolve(self) -> ProcessOutput:
        output = await self.wait()
        if self._state is not ProcessState.succeeded:
            raise ProcessError(output, command=self.command)
        return output

    async def wait(self) -> ProcessOutput:
        """Wait for the process to finish; never raises for process outcomes."""
        # Shielded so a cancelled waiter does not cancel the shared result.
        return await asyncio.shield(self._done)

    @property
    def exit_code(self) -> Awaitable[int]:
        """
        Awaitable exit status that never raises for process outcomes.

        Signal-terminated processes report the negative signal number.
        """
        return self._wait_exit_code()

    async def _wait_exit_code(self) -> int:
        await self.wait()
        assert self._returncode is not None
        return self._returncode

    # Control

    async def kill(self, sig: int = signal.SIGTERM) -> None:
        """
        Send `sig` to the process (and its process group where supported).

        Returns once the signal is delivered; the handle turns `killed` when
        the OS reports the exit. A no-op on finished handles.
        """
        if self._state.terminal:
            return
        await self._started.wait()
        if self._proc is None or self._state.terminal:
            return
        logger.debug("process.kill", pid=self.pid, signal=signal.Signals(sig).name)
        self._proc.send_signal(sig)

    async def terminate(self, grace_s: float = 5.0) -> ProcessOutput:
        """SIGTERM the process group, SIGKILL it after `grace_s`, then wait."""
        if not self._state.terminal:
            await self._started.wait()
            if self._proc is not None and not self._state.terminal:
                logger.debug("process.terminate", pid=self.pid, grace_s=grace_s)
                await self._proc.terminate(grace_s)
        return await self.wait()

    @property
    def stdin(self) -> HandleStdin:
        """Writable stdin; must be acquired before the process starts."""
        if self._stdin is None:
            self._stdin = self._acquire_input()
        return self._stdin

    def pipe(self, target: Any) -> Any:
        """
        Connect this process' stdout to `target`.

        `target` is another handle (or its nothrow view) that has not started
        yet, in which case it is returned, or a writable sink, in which case a
        SinkPipe is returned.
        """
        if self._done.done():
            raise PipeUsageError()
        if self._pipe_channel is not None:
            raise PipeUsageError("stdout of this process is already piped")

        dest = target.handle if isinstance(target, NothrowHandle) else target
        if isinstance(dest, ProcessHandle):
            if dest is self:
                raise PipeUsageError("a process cannot be piped into itself")
            channel = dest._acquire_input()
            self._attach_pipe(channel)
            logger.debug("process.pipe", source=self.command, target=dest.command)
            return target

        if not (hasattr(target, "write") or isinstance(target, os.PathLike)):
            raise TypeError(
                f"pipe() target must be a ProcessHandle or a writable, got {type(target).__name__}"
            )
        channel = HandleStdin()
        self._attach_pipe(channel)
        logger.debug("process.pipe", source=self.command, target=repr(target))
        return SinkPipe(self, target, channel)

    def _acquire_input(self) -> HandleStdin:
        if self._launched:
            raise PipeUsageError("input cannot be attached after the process has started")
        if self._input is not None:
            raise PipeUsageError("input of this process is already attached")
        channel = HandleStdin()
        self._input = channel
        return channel

    def _attach_pipe(self, channel: HandleStdin) -> None:
        # Replay what was read before the pipe existed.
        for chunk in self._stdout_chunks:
            channel.write(chunk)
        if self._stdout_eof:
            channel.close()
        self._pipe_channel = channel

    # Lifecycle

    async def _run(self) -> None:
        try:
            await self._execute()
        except asyncio.CancelledError:
            if self._proc is not None and self._proc.alive():
                self._proc.send_signal(signal.SIGKILL)
            self._started.set()
            self._close_pipe()
            if not self._done.done():
                self._done.cancel()
            raise
        except Exception as exc:
            # Unexpected errors resolve the handle as failed.
            logger.exception("process.internal_error", command=self.command, exc=exc)
            if self._proc is not None and self._proc.alive():
                self._proc.send_signal(signal.SIGKILL)
            self._started.set()
            self._close_pipe()
            if not self._done.done():
                self._stderr_chunks.append(f"{exc}\n".encode("utf-8"))
                self._combined_chunks.append(self._stderr_chunks[-1])
                self._finish(1)

    async def _execute(self) -> None:
        self._launched = True
        self._spawn_opts.stdin_pipe = self._input is not None
        try:
            proc = await self._backend.spawn(self._spawn_opts)
        except (OSError, ValueError) as exc:
            # ValueError: NUL bytes in argv, env or cwd.
            logger.warning("process.launch_error", command=self.command, err=str(exc))
            self._started.set()
            self._stderr_chunks.append(f"{exc}\n".encode("utf-8"))
            self._combined_chunks.append(self._stderr_chunks[-1])
            self._close_pipe()
            self._finish(_launch_error_code(exc))
            return

        self._proc = proc
        self._state = ProcessState.running
        self._started.set()
        logger.debug("process.started", pid=proc.pid, command=self.command)

        feeder: Optional[asyncio.Task[None]] = None
        if self._input is not None:
            feeder = asyncio.create_task(self._feed_stdin(proc, self._input))
        try:
            await asyncio.gather(
                self._pump(proc.read_stdout, is_stdout=True),
                self._pump(proc.read_stderr, is_stdout=False),
            )
            returncode = await proc.wait()
        finally:
            # The child is gone; an upstream that is still producing is legitimate.
            if feeder is not None and not feeder.done():
                feeder.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await feeder
            if isinstance(self._input, HandleStdin):
                # Upstream writes after this point are dropped.
                self._input.abort()
        self._finish(returncode)

    async def _pump(
        self, read: Callable[[], Awaitable[bytes]], *, is_stdout: bool
    ) -> None:
        chunks = self._stdout_chunks if is_stdout else self._stderr_chunks
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await read()
            if not chunk:
                break
            chunks.append(chunk)
            self._combined_chunks.append(chunk)
            if is_stdout and self._pipe_channel is not None:
                if not self._pipe_channel.closed:
                    self._pipe_channel.write(chunk)
            elif not self._quiet:
                mirror = sys.stdout if is_stdout else sys.stderr
                mirror.write(decoder.decode(chunk))
                mirror.flush()
        if is_stdout:
            self._stdout_eof = True
            self._close_pipe()

    async def _feed_stdin(self, proc: OSProcess, source: AsyncIterable[bytes]) -> None:
        try:
            async for chunk in source:
                await proc.write(chunk)
        except (BrokenPipeError, ConnectionResetError):
            # The child stopped reading stdin; the rest of the input is dropped.
            pass
        except Exception as exc:
            logger.exception("process.input_error", command=self.command, exc=exc)
        finally:
            await proc.close_stdin()

    def _close_pipe(self) -> None:
        if self._pipe_channel is not None:
            self._pipe_channel.close()

    def _finish(self, returncode: int) -> None:
        exit_code: Optional[int] = returncode
        sig_name: Optional[str] = None
        if returncode < 0:
            exit_code = None
            try:
                sig_name = signal.Signals(-returncode).name
            except ValueError:
                sig_name = f"SIG{-returncode}"
            self._state = ProcessState.killed
        elif returncode == 0:
            self._state = ProcessState.succeeded
        else:
            self._state = ProcessState.failed

        self._returncode = returncode
        self._output = ProcessOutput(
            exit_code=exit_code,
            signal=sig_name,
            stdout=_decode(self._stdout_chunks),
            stderr=_decode(self._stderr_chunks),
            combined=_decode(self._combined_chunks),
        )
        logger.debug(
            "process.exit",
            pid=self.pid,
            state=self._state.value,
            exit_code=exit_code,
            signal=sig_name,
        )
        self._done.set_result(self._output)


class SinkPipe:
    """
    Completion of piping a handle's stdout into a writable sink.

    Awaiting it waits until every byte reached the sink, then yields the
    source's ProcessOutput (raising ProcessError if the source failed).
    """

    def __init__(self, source: ProcessHandle, sink: Any, channel: HandleStdin) -> None:
        self.source = source
        self.sink = sink
        self._task = asyncio.get_running_loop().create_task(write_to_sink(channel, sink))

    def __await__(self) -> Generator[Any, None, ProcessOutput]:
        return self._wait().__await__()

    async def _wait(self) -> ProcessOutput:
        await asyncio.shield(self._task)
        return await self.source


class NothrowHandle:
    """View of a ProcessHandle whose await never raises for process outcomes."""

    def __init__(self, handle: ProcessHandle) -> None:
        self.handle = handle

    def __repr__(self) -> str:
        return f"<NothrowHandle {self.handle!r}>"

    def __str__(self) -> str:
        if self.handle.output is None:
            return repr(self)
        return str(self.handle)

    def __int__(self) -> int:
        return int(self.handle)

    def __float__(self) -> float:
        return float(self.handle)

    def __await__(self) -> Generator[Any, None, ProcessOutput]:
        return self.handle.wait().__await__()

    @property
    def command(self) -> str:
        return self.handle.command

    @property
    def state(self) -> ProcessState:
        return self.handle.state

    @property
    def pid(self) -> Optional[int]:
        return self.handle.pid

    @property
    def output(self) -> Optional[ProcessOutput]:
        return self.handle.output

    @property
    def stdin(self) -> HandleStdin:
        return self.handle.stdin

    @property
    def exit_code(self) -> Awaitable[int]:
        return self.handle.exit_code

    async def kill(self, sig: int = signal.SIGTERM) -> None:
        await self.handle.kill(sig)

    async def terminate(self, grace_s: float = 5.0) -> ProcessOutput:
        return await self.handle.terminate(grace_s)

    def pipe(self, target: Any) -> Any:
        return self.handle.pipe(target)

    async def wait(self) -> ProcessOutput:
        return await self.handle.wait()


AnyHandle = Union[ProcessHandle, NothrowHandle]


def nothrow(handle: AnyHandle) -> NothrowHandle:
    """Wrap a handle so awaiting it resolves to its output on any outcome."""
    if isinstance(handle, NothrowHandle):
        return handle
    return NothrowHandle(handle)
