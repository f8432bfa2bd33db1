"""A buffered async writer whose spare buffer space can be filled in place.

The wrapped writer must offer a ``write(data)`` method that returns, or
resolves to, the number of bytes accepted. ``None`` is taken to mean all of
them. ``flush()`` and ``shutdown()`` (or ``close()``) are used when present,
and may be plain or awaitable.
"""

from __future__ import annotations

import inspect
from typing import Any

DEFAULT_BUF_SIZE = 8192


class WriteZeroError(OSError):
    """The wrapped writer accepted no bytes while data was still pending."""


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class BufWriter:
    """Buffers writes to an async writer.

    Besides ordinary buffered writing it exposes its free buffer space via
    :meth:`partial_flush_buf`, to be filled directly and committed with
    :meth:`produce`.
    """

    def __init__(self, inner: Any, capacity: int = DEFAULT_BUF_SIZE) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._inner = inner
        self._buf = bytearray(capacity)
        self._written = 0
        self._buffered = 0

    @property
    def inner(self) -> Any:
        """The wrapped writer. Writing to it directly is inadvisable."""
        return self._inner

    @property
    def capacity(self) -> int:
        """Size of the internal buffer."""
        return len(self._buf)

    @property
    def buffered(self) -> int:
        """Number of bytes held in the buffer and not yet written out."""
        return self._buffered - self._written

    async def _write_inner(self, data: bytes) -> int:
        count = await _maybe_await(self._inner.write(data))
        if count is None:
            return len(data)
        count = int(count)
        if count < 0 or count > len(data):
            raise OSError(f"writer reported an invalid byte count: {count}")
        return count

    async def _flush_buf(self) -> None:
        try:
            while self._written < self._buffered:
                count = await self._write_inner(bytes(self._buf[self._written : self._buffered]))
                if count == 0:
                    raise WriteZeroError("failed to write the buffered data")
                self._written += count
        finally:
            if self._written:
                remaining = self._buffered - self._written
                self._buf[:remaining] = self._buf[self._written : self._buffered]
                self._buffered = remaining
                self._written = 0

    async def partial_flush_buf(self) -> memoryview:
        """Write out buffered data and return the free part of the buffer.

        The returned view may be filled in place; call :meth:`produce` with the
        number of bytes put into it. It is only valid until the next call on
        this writer.
        """
        await self._flush_buf()
        return memoryview(self._buf)[self._buffered :]

    def produce(self, amount: int) -> None:
        """Commit ``amount`` bytes placed in the view from :meth:`partial_flush_buf`."""
        spare = len(self._buf) - self._buffered
        if amount < 0 or amount > spare:
            raise ValueError(f"cannot produce {amount} bytes: {spare} are free")
        self._buffered += amount

    async def write(self, data: bytes | bytearray | memoryview) -> int:
        """Accept some of ``data`` and return how many bytes were taken."""
        data = bytes(data)
        if self._buffered + len(data) > len(self._buf):
            await self._flush_buf()
        if len(data) >= len(self._buf) and self._buffered == 0:
            return await self._write_inner(data)
        count = min(len(self._buf) - self._buffered, len(data))
        self._buf[self._buffered : self._buffered + count] = data[:count]
        self._buffered += count
        return count

    async def flush(self) -> None:
        """Write out all buffered data and flush the wrapped writer."""
        await self._flush_buf()
        flush = getattr(self._inner, "flush", None)
        if flush is not None:
            await _maybe_await(flush())

    async def shutdown(self) -> None:
        """Write out all buffered data and shut the wrapped writer down."""
        await self._flush_buf()
        closer = getattr(self._inner, "shutdown", None) or getattr(self._inner, "close", None)
        if closer is not None:
            await _maybe_await(closer())

    def __repr__(self) -> str:
        return (
            f"BufWriter(writer={self._inner!r}, "
            f"buffer={self._buffered}/{len(self._buf)}, written={self._written})"
        )