from __future__ import annotations

import asyncio
import codecs
import inspect
import io
import os
from typing import Any, AsyncIterator, Iterable, Optional, Union

from yzx.logger import logger
from yzx.proc.local import READ_CHUNK_SIZE


def to_bytes(data: Union[str, bytes, bytearray, memoryview]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def is_input_source(source: Any) -> bool:
    """True for anything iter_source() knows how to read."""
    if isinstance(source, (str, bytes, bytearray, memoryview)):
        return True
    if hasattr(source, "__aiter__") or hasattr(source, "read"):
        return True
    return isinstance(source, Iterable)


async def iter_source(source: Any) -> AsyncIterator[bytes]:
    """
    Yield byte chunks from an input source:
      - str / bytes: a single chunk
      - async iterables (asyncio.StreamReader, HandleStdin, generators)
      - file-like objects with read(); reads run in a worker thread
      - plain iterables of str / bytes
    """
    if isinstance(source, (str, bytes, bytearray, memoryview)):
        data = to_bytes(source)
        if data:
            yield data
        return
    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield to_bytes(chunk)
        return
    if hasattr(source, "read"):
        while True:
            chunk = await asyncio.to_thread(source.read, READ_CHUNK_SIZE)
            if not chunk:
                break
            yield to_bytes(chunk)
        return
    if isinstance(source, Iterable):
        for chunk in source:
            yield to_bytes(chunk)
        return
    raise TypeError(f"Unsupported input source: {type(source).__name__}")


class HandleStdin:
    """
    Writable input of a process handle.

    Writes are queued and forwarded to the child once it runs; close() sends
    EOF. The same channel type carries a piped upstream's stdout.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: Union[str, bytes]) -> None:
        if self._closed:
            raise ValueError("write to closed stdin")
        chunk = to_bytes(data)
        if chunk:
            self._queue.put_nowait(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def abort(self) -> None:
        """Close and drop pending chunks; later upstream output is discarded."""
        while not self._queue.empty():
            self._queue.get_nowait()
        self._closed = True
        self._queue.put_nowait(None)

    async def feed(self, source: Any) -> None:
        """Copy a whole input source into this stdin, then close it."""
        try:
            async for chunk in iter_source(source):
                self.write(chunk)
        finally:
            self.close()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                break
            yield chunk


async def write_to_sink(channel: HandleStdin, sink: Any) -> None:
    """
    Copy every chunk of a channel into a writable sink.

    Sinks are binary or text file-like objects, asyncio.StreamWriter (drained
    after each write) or an os.PathLike, which is opened for binary writing
    and closed when the channel ends.
    """
    owned = isinstance(sink, os.PathLike)
    target = open(sink, "wb") if owned else sink
    decoder = None
    if isinstance(target, io.TextIOBase):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        async for chunk in channel:
            data: Union[str, bytes] = decoder.decode(chunk) if decoder else chunk
            result = target.write(data)
            if inspect.isawaitable(result):
                await result
            drain = getattr(target, "drain", None)
            if drain is not None:
                await drain()
        if decoder is not None:
            tail = decoder.decode(b"", final=True)
            if tail:
                target.write(tail)
        flush = getattr(target, "flush", None)
        if callable(flush):
            flush()
    except Exception as exc:
        logger.exception("sink write failed", sink=repr(sink), exc=exc)
        channel.abort()
        raise
    finally:
        if owned:
            target.close()
