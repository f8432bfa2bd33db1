"""Incremental encoders and decoders for each supported compression format."""

from __future__ import annotations

import bz2
import lzma
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Iterable

import brotli
import zstandard

from .buffer import PartialBuffer
from .zstd import CParameter

_ZSTD_MIN_LEVEL = -(1 << 17)
_ZSTD_DEFAULT_LEVEL = 3

_CODEC_ERRORS = (zlib.error, OSError, EOFError, lzma.LZMAError, zstandard.ZstdError, brotli.error)


@dataclass(frozen=True)
class Level:
    """Level of compression data should be compressed with."""

    kind: str
    quality: int | None = None

    FASTEST: ClassVar[Level]
    BEST: ClassVar[Level]
    DEFAULT: ClassVar[Level]

    @classmethod
    def precise(cls, quality: int) -> Level:
        """A precise quality, clamped to the range of the chosen algorithm."""
        return cls("precise", int(quality))

    def _pick(self, fastest: int, best: int, default: int, precise: int) -> int:
        return {"fastest": fastest, "best": best, "default": default}.get(self.kind, precise)

    def _brotli(self) -> int:
        q = self.quality if self.quality is not None else 11
        return self._pick(0, 11, 11, min(max(q, 0), 11))

    def _bzip2(self) -> int:
        q = self.quality if self.quality is not None and self.quality >= 0 else 0
        return self._pick(1, 9, 6, min(max(q, 1), 9))

    def _flate2(self) -> int:
        q = self.quality if self.quality is not None and self.quality >= 0 else 0
        return self._pick(1, 9, 6, min(max(q, 1), 9))

    def _zstd(self) -> int:
        q = self.quality or 0
        best = zstandard.MAX_COMPRESSION_LEVEL
        return self._pick(_ZSTD_MIN_LEVEL, best, _ZSTD_DEFAULT_LEVEL, min(max(q, _ZSTD_MIN_LEVEL), best))

    def _xz(self) -> int:
        q = self.quality if self.quality is not None and self.quality >= 0 else 0
        return self._pick(0, 9, 5, min(q, 9))


Level.FASTEST = Level("fastest")
Level.BEST = Level("best")
Level.DEFAULT = Level("default")


def _drain(pending: bytearray, output: PartialBuffer) -> bool:
    """Move as much of ``pending`` as fits into ``output``; True when none is left."""
    written = output.write(bytes(pending))
    del pending[:written]
    return not pending


class Encode(ABC):
    """An incremental compressor writing into caller-supplied output buffers."""

    def __init__(self) -> None:
        self._pending = bytearray()
        self._flushing = False
        self._finished = False

    @abstractmethod
    def _compress(self, data: bytes) -> bytes:
        """Feed ``data`` to the compressor and return what it emits."""

    def _flush_data(self) -> bytes:
        return b""

    @abstractmethod
    def _finish_data(self) -> bytes:
        """Return the compressor's remaining output and trailer."""

    def encode(self, input: PartialBuffer, output: PartialBuffer) -> None:
        """Compress all of ``input``, emitting as much as fits into ``output``."""
        if self._finished:
            raise ValueError("encode after finish")
        data = input.unwritten()
        if data:
            self._pending += self._compress(data)
            input.advance(len(data))
        _drain(self._pending, output)

    def flush(self, output: PartialBuffer) -> bool:
        """Push buffered data out; return True once everything is emitted."""
        if not self._flushing and not self._finished:
            self._pending += self._flush_data()
            self._flushing = True
        if not _drain(self._pending, output):
            return False
        self._flushing = False
        return True

    def finish(self, output: PartialBuffer) -> bool:
        """End the stream; return True once the whole trailer is emitted."""
        if not self._finished:
            self._pending += self._finish_data()
            self._finished = True
        return _drain(self._pending, output)


class Decode(ABC):
    """An incremental decompressor writing into caller-supplied output buffers."""

    def __init__(self) -> None:
        self._pending = bytearray()
        self._done = False
        self._reset()

    @abstractmethod
    def _reset(self) -> None:
        """Create a fresh decompression object."""

    @abstractmethod
    def _decompress(self, data: bytes) -> tuple[bytes, int, bool]:
        """Return (output, bytes consumed, end of stream reached)."""

    def decode(self, input: PartialBuffer, output: PartialBuffer) -> bool:
        """Decompress from ``input``; return True at the end of a stream."""
        drained = _drain(self._pending, output)
        if self._done:
            return True
        if not drained:
            return False
        data = input.unwritten()
        if not data:
            return False
        try:
            out, consumed, eof = self._decompress(data)
        except _CODEC_ERRORS as exc:
            raise ValueError(f"invalid compressed data: {exc}") from exc
        input.advance(consumed)
        self._pending += out
        self._done = eof
        _drain(self._pending, output)
        return eof

    def flush(self, output: PartialBuffer) -> bool:
        """Emit decoded data; return True once nothing is held back."""
        return _drain(self._pending, output)

    def _incomplete_ok(self) -> bool:
        return False

    def finish(self, output: PartialBuffer) -> bool:
        """Emit remaining data; raise if the stream ended early."""
        if not _drain(self._pending, output):
            return False
        if not self._done and not self._incomplete_ok():
            raise ValueError("unexpected end of compressed stream")
        return True

    def reinit(self) -> None:
        """Prepare to decode another member of a multi-member stream."""
        self._pending.clear()
        self._done = False
        self._reset()


def _feed(obj, data: bytes) -> tuple[bytes, int, bool]:
    out = obj.decompress(data)
    if obj.eof:
        return out, len(data) - len(obj.unused_data), True
    return out, len(data), False


class BrotliEncoder(Encode):
    """Brotli compressor."""

    def __init__(self, level: Level = Level.DEFAULT) -> None:
        super().__init__()
        self._obj = brotli.Compressor(quality=level._brotli())

    def _compress(self, data: bytes) -> bytes:
        return self._obj.process(data)

    def _flush_data(self) -> bytes:
        return self._obj.flush()

    def _finish_data(self) -> bytes:
        return self._obj.finish()


class BrotliDecoder(Decode):
    """Brotli decompressor."""

    def _reset(self) -> None:
        self._obj = brotli.Decompressor()

    def _decompress(self, data: bytes) -> tuple[bytes, int, bool]:
        out = self._obj.process(data)
        return out, len(data), self._obj.is_finished()


class BzEncoder(Encode):
    """Bzip2 compressor."""

    def __init__(self, level: Level = Level.DEFAULT) -> None:
        super().__init__()
        self._obj = bz2.BZ2Compressor(level._bzip2())

    def _compress(self, data: bytes) -> bytes:
        return self._obj.compress(data)

    def _finish_data(self) -> bytes:
        return self._obj.flush()


class BzDecoder(Decode):
    """Bzip2 decompressor."""

    def _reset(self) -> None:
        self._obj = bz2.BZ2Decompressor()

    def _decompress(self, data: bytes) -> tuple[bytes, int, bool]:
        return _feed(self._obj, data)


class _ZlibFamilyEncoder(Encode):
    _wbits: ClassVar[int]

    def __init__(self, level: Level = Level.DEFAULT) -> None:
        super().__init__()
        self._obj = zlib.compressobj(level._flate2(), zlib.DEFLATED, self._wbits)

    def _compress(self, data: bytes) -> bytes:
        return self._obj.compress(data)

    def _flush_data(self) -> bytes:
        return self._obj.flush(zlib.Z_SYNC_FLUSH)

    def _finish_data(self) -> bytes:
        return self._obj.flush(zlib.Z_FINISH)


class _ZlibFamilyDecoder(Decode):
    _wbits: ClassVar[int]

    def _reset(self) -> None:
        self._obj = zlib.decompressobj(self._wbits)

    def _decompress(self, data: bytes) -> tuple[bytes, int, bool]:
        return _feed(self._obj, data)


class DeflateEncoder(_ZlibFamilyEncoder):
    """Raw deflate compressor."""

    _wbits = -15


class DeflateDecoder(_ZlibFamilyDecoder):
    """Raw deflate decompressor."""

    _wbits = -15


class GzipEncoder(_ZlibFamilyEncoder):
    """Gzip compressor."""

    _wbits = 31


class GzipDecoder(_ZlibFamilyDecoder):
    """Gzip decompressor."""

    _wbits = 31


class ZlibEncoder(_ZlibFamilyEncoder):
    """Zlib compressor that counts bytes in and out."""

    _wbits = 15

    def __init__(self, level: Level = Level.DEFAULT) -> None:
        super().__init__(level)
        self._total_in = 0
        self._total_out = 0

    @property
    def total_in(self) -> int:
        """Input bytes processed so far."""
        return self._total_in

    @property
    def total_out(self) -> int:
        """Output bytes produced so far."""
        return self._total_out

    def _count(self, out: bytes) -> bytes:
        self._total_out += len(out)
        return out

    def _compress(self, data: bytes) -> bytes:
        self._total_in += len(data)
        return self._count(super()._compress(data))

    def _flush_data(self) -> bytes:
        return self._count(super()._flush_data())

    def _finish_data(self) -> bytes:
        return self._count(super()._finish_data())


class ZlibDecoder(_ZlibFamilyDecoder):
    """Zlib decompressor."""

    _wbits = 15


def _zstd_dict(dictionary: bytes | None) -> zstandard.ZstdCompressionDict | None:
    if dictionary is None:
        return None
    try:
        return zstandard.ZstdCompressionDict(bytes(dictionary))
    except zstandard.ZstdError as exc:
        raise ValueError(f"invalid zstd dictionary: {exc}") from exc


class ZstdEncoder(Encode):
    """Zstd compressor, optionally with parameters or a dictionary."""

    def __init__(
        self,
        level: Level = Level.DEFAULT,
        params: Iterable[CParameter] = (),
        dictionary: bytes | None = None,
    ) -> None:
        super().__init__()
        kwargs = {p.name: p.value for p in params}
        dict_data = _zstd_dict(dictionary)
        try:
            if kwargs:
                cparams = zstandard.ZstdCompressionParameters.from_level(level._zstd(), **kwargs)
                compressor = zstandard.ZstdCompressor(compression_params=cparams, dict_data=dict_data)
            else:
                compressor = zstandard.ZstdCompressor(level=level._zstd(), dict_data=dict_data)
        except zstandard.ZstdError as exc:
            raise ValueError(f"invalid zstd settings: {exc}") from exc
        self._obj = compressor.compressobj()

    def _compress(self, data: bytes) -> bytes:
        return self._obj.compress(data)

    def _flush_data(self) -> bytes:
        return self._obj.flush(zstandard.COMPRESSOBJ_FLUSH_BLOCK)

    def _finish_data(self) -> bytes:
        return self._obj.flush(zstandard.COMPRESSOBJ_FLUSH_FINISH)


class ZstdDecoder(Decode):
    """Zstd decompressor, optionally with a dictionary."""

    def __init__(self, dictionary: bytes | None = None) -> None:
        self._dict = _zstd_dict(dictionary)
        super().__init__()

    def _reset(self) -> None:
        self._obj = zstandard.ZstdDecompressor(dict_data=self._dict).decompressobj()

    def _decompress(self, data: bytes) -> tuple[bytes, int, bool]:
        return _feed(self._obj, data)


class _LzmaFamilyEncoder(Encode):
    _format: ClassVar[int]

    def __init__(self, level: Level = Level.DEFAULT) -> None:
        super().__init__()
        self._obj = lzma.LZMACompressor(format=self._format, preset=level._xz())

    def _compress(self, data: bytes) -> bytes:
        return self._obj.compress(data)

    def _finish_data(self) -> bytes:
        return self._obj.flush()


class _LzmaFamilyDecoder(Decode):
    _format: ClassVar[int]

    def __init__(self, memlimit: int | None = None) -> None:
        self._memlimit = memlimit
        super().__init__()

    def _reset(self) -> None:
        self._obj = lzma.LZMADecompressor(format=self._format, memlimit=self._memlimit)

    def _decompress(self, data: bytes) -> tuple[bytes, int, bool]:
        return _feed(self._obj, data)


class XzEncoder(_LzmaFamilyEncoder):
    """Xz compressor."""

    _format = lzma.FORMAT_XZ


class XzDecoder(_LzmaFamilyDecoder):
    """Xz decompressor; accepts stream padding between members."""

    _format = lzma.FORMAT_XZ

    def __init__(self, memlimit: int | None = None) -> None:
        self._after_member = False
        super().__init__(memlimit)

    def _reset(self) -> None:
        super()._reset()
        self._started = False
        self._padding = 0

    def reinit(self) -> None:
        super().reinit()
        self._after_member = True

    def _check_padding(self) -> None:
        if self._padding % 4:
            raise ValueError("invalid xz stream padding")

    def decode(self, input: PartialBuffer, output: PartialBuffer) -> bool:
        if self._after_member and not self._started:
            data = input.unwritten()
            zeros = len(data) - len(data.lstrip(b"\0"))
            input.advance(zeros)
            self._padding += zeros
            if zeros == len(data):
                return False
            self._check_padding()
            self._started = True
        return super().decode(input, output)

    def _incomplete_ok(self) -> bool:
        if self._after_member and not self._started:
            self._check_padding()
            return True
        return False


class LzmaEncoder(_LzmaFamilyEncoder):
    """Legacy .lzma compressor."""

    _format = lzma.FORMAT_ALONE


class LzmaDecoder(_LzmaFamilyDecoder):
    """Legacy .lzma decompressor."""

    _format = lzma.FORMAT_ALONE