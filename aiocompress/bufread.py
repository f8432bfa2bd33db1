"""Async readers that compress or decompress data pulled from a buffered source.

A source is anything with ``fill_buf()`` (awaitable, returning the buffered
bytes, empty at end of stream) and ``consume(amount)``. Objects that only
offer an awaitable ``read(size)`` are wrapped in a :class:`BufReader`.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any, Iterable

from . import codecs
from .buffer import PartialBuffer
from .codecs import Decode, Encode, Level
from .zstd import CParameter

DEFAULT_CAPACITY = 8192


class BufReader:
    """Buffers an async byte source that offers an awaitable ``read(size)``."""

    def __init__(self, source: Any, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._source = source
        self._capacity = capacity
        self._buf = b""
        self._pos = 0
        self._eof = False

    @property
    def source(self) -> Any:
        """The wrapped source."""
        return self._source

    async def fill_buf(self) -> bytes:
        """Return the buffered bytes, reading more from the source if none are left."""
        if self._pos >= len(self._buf) and not self._eof:
            data = await self._source.read(self._capacity)
            self._buf = bytes(data)
            self._pos = 0
            if not data:
                self._eof = True
        return self._buf[self._pos :]

    def consume(self, amount: int) -> None:
        """Mark ``amount`` buffered bytes as used."""
        available = len(self._buf) - self._pos
        if amount < 0 or amount > available:
            raise ValueError(f"cannot consume {amount} bytes: {available} are buffered")
        self._pos += amount

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything up to the end when ``size`` < 0."""
        if size == 0:
            return b""
        if size < 0:
            parts = []
            while chunk := await self.fill_buf():
                parts.append(chunk)
                self.consume(len(chunk))
            return b"".join(parts)
        piece = (await self.fill_buf())[:size]
        self.consume(len(piece))
        return piece


def _buffered(reader: Any) -> Any:
    if hasattr(reader, "fill_buf") and hasattr(reader, "consume"):
        return reader
    return BufReader(reader)


class _State(enum.Enum):
    CODING = enum.auto()
    FLUSHING = enum.auto()
    DONE = enum.auto()
    NEXT = enum.auto()


class _CodecReader(ABC):
    def __init__(self, reader: Any) -> None:
        self._reader = _buffered(reader)
        self._state = _State.CODING

    @property
    def reader(self) -> Any:
        """The buffered source this object reads from."""
        return self._reader

    @abstractmethod
    async def _step(self, output: PartialBuffer) -> None:
        """Advance the state machine once, writing into ``output``."""

    async def _read_chunk(self, size: int) -> bytes:
        if size == 0:
            return b""
        if size < 0:
            return await self._read_to_end()
        output = PartialBuffer(bytearray(size))
        while self._state is not _State.DONE:
            # Hand back what is ready rather than wait on the source for more.
            if self._state in (_State.CODING, _State.NEXT) and output.written():
                break
            await self._step(output)
            if not output.unwritten():
                break
        return output.written()

    async def _read_to_end(self) -> bytes:
        parts = []
        while chunk := await self._read_chunk(DEFAULT_CAPACITY):
            parts.append(chunk)
        return b"".join(parts)


class Decoder(_CodecReader):
    """Reads compressed data from a source and yields decompressed data."""

    def __init__(self, reader: Any, decoder: Decode) -> None:
        super().__init__(reader)
        self._codec = decoder
        self._multiple = False

    def multiple_members(self, enabled: bool) -> None:
        """After each member/frame, expect either the end of input or another member."""
        self._multiple = bool(enabled)

    async def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` decompressed bytes; empty once the stream has ended."""
        return await self._read_chunk(size)

    async def read_all(self) -> bytes:
        """Read until the end of the decompressed stream."""
        return await self._read_to_end()

    async def _step(self, output: PartialBuffer) -> None:
        state = self._state
        if state is _State.CODING:
            data = await self._reader.fill_buf()
            if not data:
                # The source is exhausted; never reinitialise after this.
                self._multiple = False
                self._state = _State.FLUSHING
                return
            input = PartialBuffer(data)
            done = self._codec.decode(input, output)
            self._reader.consume(len(input.written()))
            self._state = _State.FLUSHING if done else _State.CODING
        elif state is _State.FLUSHING:
            if self._codec.finish(output):
                if self._multiple:
                    self._codec.reinit()
                    self._state = _State.NEXT
                else:
                    self._state = _State.DONE
        elif state is _State.NEXT:
            data = await self._reader.fill_buf()
            self._state = _State.CODING if data else _State.DONE


class Encoder(_CodecReader):
    """Reads uncompressed data from a source and yields compressed data."""

    def __init__(self, reader: Any, encoder: Encode) -> None:
        super().__init__(reader)
        self._codec = encoder

    async def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` compressed bytes; empty once the stream has ended."""
        return await self._read_chunk(size)

    async def read_all(self) -> bytes:
        """Read until the end of the compressed stream."""
        return await self._read_to_end()

    async def _step(self, output: PartialBuffer) -> None:
        if self._state is _State.CODING:
            data = await self._reader.fill_buf()
            if not data:
                self._state = _State.FLUSHING
                return
            input = PartialBuffer(data)
            self._codec.encode(input, output)
            self._reader.consume(len(input.written()))
        elif self._state is _State.FLUSHING:
            if self._codec.finish(output):
                self._state = _State.DONE


class BrotliEncoder(Encoder):
    """A brotli encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.BrotliEncoder(level))


class BrotliDecoder(Decoder):
    """A brotli decoder, or decompressor."""

    def __init__(self, reader: Any) -> None:
        super().__init__(reader, codecs.BrotliDecoder())


class BzEncoder(Encoder):
    """A bzip2 encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.BzEncoder(level))


class BzDecoder(Decoder):
    """A bzip2 decoder, or decompressor."""

    def __init__(self, reader: Any) -> None:
        super().__init__(reader, codecs.BzDecoder())


class DeflateEncoder(Encoder):
    """A deflate encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.DeflateEncoder(level))


class DeflateDecoder(Decoder):
    """A deflate decoder, or decompressor."""

    def __init__(self, reader: Any) -> None:
        super().__init__(reader, codecs.DeflateDecoder())


class GzipEncoder(Encoder):
    """A gzip encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.GzipEncoder(level))


class GzipDecoder(Decoder):
    """A gzip decoder, or decompressor."""

    def __init__(self, reader: Any) -> None:
        super().__init__(reader, codecs.GzipDecoder())


class ZlibEncoder(Encoder):
    """A zlib encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.ZlibEncoder(level))

    @property
    def total_in(self) -> int:
        """Input bytes processed so far."""
        return self._codec.total_in

    @property
    def total_out(self) -> int:
        """Output bytes produced so far."""
        return self._codec.total_out


class ZlibDecoder(Decoder):
    """A zlib decoder, or decompressor."""

    def __init__(self, reader: Any) -> None:
        super().__init__(reader, codecs.ZlibDecoder())


class ZstdEncoder(Encoder):
    """A zstd encoder, or compressor, optionally with parameters or a dictionary."""

    def __init__(
        self,
        reader: Any,
        level: Level = Level.DEFAULT,
        params: Iterable[CParameter] = (),
        dictionary: bytes | None = None,
    ) -> None:
        super().__init__(reader, codecs.ZstdEncoder(level, params, dictionary))


class ZstdDecoder(Decoder):
    """A zstd decoder, or decompressor, optionally with a dictionary."""

    def __init__(self, reader: Any, dictionary: bytes | None = None) -> None:
        super().__init__(reader, codecs.ZstdDecoder(dictionary))


class XzEncoder(Encoder):
    """An xz encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.XzEncoder(level))


class XzDecoder(Decoder):
    """An xz decoder, or decompressor, with an optional memory limit."""

    def __init__(self, reader: Any, memlimit: int | None = None) -> None:
        super().__init__(reader, codecs.XzDecoder(memlimit))


class LzmaEncoder(Encoder):
    """An lzma encoder, or compressor."""

    def __init__(self, reader: Any, level: Level = Level.DEFAULT) -> None:
        super().__init__(reader, codecs.LzmaEncoder(level))


class LzmaDecoder(Decoder):
    """An lzma decoder, or decompressor, with an optional memory limit."""

    def __init__(self, reader: Any, memlimit: int | None = None) -> None:
        super().__init__(reader, codecs.LzmaDecoder(memlimit))