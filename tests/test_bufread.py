import asyncio
import bz2
import gzip
import lzma
import random
import struct
import zlib
from collections import deque

import brotli
import pytest
import zstandard
from hypothesis import given, settings
from hypothesis import strategies as st

from aiocompress import bufread
from aiocompress.codecs import Level
from aiocompress.zstd import CParameter


class ChunkSource:
    """Delivers chunks one at a time, yielding to the loop before each read."""

    def __init__(self, chunks):
        self._chunks = deque(bytes(c) for c in chunks if c)
        self._eof = False

    async def read(self, size):
        assert not self._eof, "read after end of stream"
        await asyncio.sleep(0)
        if not self._chunks:
            self._eof = True
            return b""
        chunk = self._chunks[0]
        piece, rest = chunk[:size], chunk[size:]
        if rest:
            self._chunks[0] = rest
        else:
            self._chunks.popleft()
        return piece


def _deflate(data):
    obj = zlib.compressobj(1, zlib.DEFLATED, -15)
    return obj.compress(data) + obj.flush()


def _zstd_decompress(data):
    return zstandard.ZstdDecompressor().decompressobj().decompress(data)


ALGOS = {
    "brotli": (bufread.BrotliEncoder, bufread.BrotliDecoder,
               lambda d: brotli.compress(d, quality=1), brotli.decompress),
    "bzip2": (bufread.BzEncoder, bufread.BzDecoder,
              lambda d: bz2.compress(d, 1), bz2.decompress),
    "deflate": (bufread.DeflateEncoder, bufread.DeflateDecoder,
                _deflate, lambda d: zlib.decompress(d, -15)),
    "gzip": (bufread.GzipEncoder, bufread.GzipDecoder,
             lambda d: gzip.compress(d, 1), gzip.decompress),
    "zlib": (bufread.ZlibEncoder, bufread.ZlibDecoder,
             lambda d: zlib.compress(d, 1), zlib.decompress),
    "zstd": (bufread.ZstdEncoder, bufread.ZstdDecoder,
             lambda d: zstandard.ZstdCompressor(level=3).compress(d), _zstd_decompress),
    "xz": (bufread.XzEncoder, bufread.XzDecoder,
           lambda d: lzma.compress(d, preset=0), lzma.decompress),
    "lzma": (bufread.LzmaEncoder, bufread.LzmaDecoder,
             lambda d: lzma.compress(d, format=lzma.FORMAT_ALONE, preset=0),
             lambda d: lzma.decompress(d, format=lzma.FORMAT_ALONE)),
}
NAMES = list(ALGOS)
EXACT_NAMES = [n for n in NAMES if n != "brotli"]

ONE_TO_SIX = bytes([1, 2, 3, 4, 5, 6])
ONE_TO_SIX_CHUNKS = [bytes([1, 2, 3]), bytes([4, 5, 6])]


def _random(n, seed):
    return random.Random(seed).randbytes(n)


def _chunks(data, size):
    return [data[i : i + size] for i in range(0, len(data), size)]


async def _compress(name, reader, level=Level.FASTEST):
    encoder_cls = ALGOS[name][0]
    return await encoder_cls(reader, level=level).read_all()


async def _decompress(name, reader):
    decoder_cls = ALGOS[name][1]
    return await decoder_cls(reader).read_all()


# --- BufReader ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_bufreader_fill_and_consume():
    reader = bufread.BufReader(ChunkSource([b"hello", b"world"]))
    assert await reader.fill_buf() == b"hello"
    reader.consume(2)
    assert await reader.fill_buf() == b"llo"
    reader.consume(3)
    assert await reader.fill_buf() == b"world"
    reader.consume(5)
    assert await reader.fill_buf() == b""
    assert await reader.fill_buf() == b""


@pytest.mark.asyncio
async def test_bufreader_read_sizes():
    reader = bufread.BufReader(ChunkSource([b"abcdef", b"gh"]))
    assert await reader.read(0) == b""
    assert await reader.read(4) == b"abcd"
    assert await reader.read(-1) == b"efgh"
    assert await reader.read(3) == b""


@pytest.mark.asyncio
async def test_bufreader_consume_too_much():
    reader = bufread.BufReader(ChunkSource([b"abc"]))
    await reader.fill_buf()
    with pytest.raises(ValueError):
        reader.consume(4)


def test_bufreader_rejects_zero_capacity():
    with pytest.raises(ValueError):
        bufread.BufReader(ChunkSource([]), capacity=0)


# --- compress -----------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_compress_empty(name):
    compressed = await _compress(name, bufread.BufReader(ChunkSource([])))
    assert ALGOS[name][3](compressed) == b""


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_compress_to_full_output(name):
    encoder = ALGOS[name][0](bufread.BufReader(ChunkSource(ONE_TO_SIX_CHUNKS)))
    assert await encoder.read(0) == b""


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_compress_empty_chunk(name):
    compressed = await _compress(name, bufread.BufReader(ChunkSource([b""])))
    assert ALGOS[name][3](compressed) == b""


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_compress_short(name):
    compressed = await _compress(name, bufread.BufReader(ChunkSource(ONE_TO_SIX_CHUNKS)))
    assert ALGOS[name][3](compressed) == ONE_TO_SIX


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_compress_long(name):
    chunks = [_random(32_768, 1), _random(32_768, 2)]
    compressed = await _compress(name, bufread.BufReader(ChunkSource(chunks)))
    assert ALGOS[name][3](compressed) == b"".join(chunks)


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
@pytest.mark.parametrize(
    "level",
    [Level.BEST, Level.DEFAULT, Level.precise(0), Level.precise(2**31 - 1)],
    ids=["best", "default", "zero", "max"],
)
async def test_compress_with_level(name, level):
    reader = bufread.BufReader(ChunkSource(ONE_TO_SIX_CHUNKS))
    compressed = await _compress(name, reader, level=level)
    assert ALGOS[name][3](compressed) == ONE_TO_SIX


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_compress_small_reads(name):
    reader = bufread.BufReader(ChunkSource(ONE_TO_SIX_CHUNKS))
    encoder = ALGOS[name][0](reader, level=Level.FASTEST)
    parts = []
    while piece := await encoder.read(2):
        assert len(piece) <= 2
        parts.append(piece)
    assert ALGOS[name][3](b"".join(parts)) == ONE_TO_SIX


@pytest.mark.asyncio
async def test_zlib_encoder_counts_bytes():
    data = _random(5000, 3)
    encoder = bufread.ZlibEncoder(ChunkSource([data]))
    compressed = await encoder.read_all()
    assert encoder.total_in == len(data)
    assert encoder.total_out == len(compressed)


@pytest.mark.asyncio
async def test_zstd_encoder_with_params():
    encoder = bufread.ZstdEncoder(
        ChunkSource(ONE_TO_SIX_CHUNKS), params=[CParameter.checksum_flag(True)]
    )
    compressed = await encoder.read_all()
    assert _zstd_decompress(compressed) == ONE_TO_SIX


# --- decompress ---------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_empty(name):
    reader = bufread.BufReader(ChunkSource([ALGOS[name][2](b"")]))
    assert await _decompress(name, reader) == b""


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_to_full_output(name):
    decoder = ALGOS[name][1](bufread.BufReader(ChunkSource(ONE_TO_SIX_CHUNKS)))
    assert await decoder.read(0) == b""


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_zeros(name):
    reader = bufread.BufReader(ChunkSource([ALGOS[name][2](bytes(10))]))
    assert await _decompress(name, reader) == bytes(10)


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_short(name):
    reader = bufread.BufReader(ChunkSource([ALGOS[name][2](ONE_TO_SIX)]))
    assert await _decompress(name, reader) == ONE_TO_SIX


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_short_chunks(name):
    chunks = _chunks(ALGOS[name][2](ONE_TO_SIX), 2)
    assert await _decompress(name, bufread.BufReader(ChunkSource(chunks))) == ONE_TO_SIX


@pytest.mark.asyncio
@pytest.mark.parametrize("name", EXACT_NAMES)
async def test_decompress_trailer(name):
    compressed = ALGOS[name][2](ONE_TO_SIX) + bytes([7, 8, 9, 10])
    reader = bufread.BufReader(ChunkSource([compressed]))
    output = await ALGOS[name][1](reader).read_all()
    trailer = await reader.read(-1)
    assert output == ONE_TO_SIX
    assert trailer == bytes([7, 8, 9, 10])


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_long(name):
    data = _random(65_536, 4)
    reader = bufread.BufReader(ChunkSource([ALGOS[name][2](data)]))
    assert await _decompress(name, reader) == data


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_long_chunks(name):
    data = _random(65_536, 5)
    chunks = _chunks(ALGOS[name][2](data), 1024)
    assert await _decompress(name, bufread.BufReader(ChunkSource(chunks))) == data


@pytest.mark.asyncio
@pytest.mark.parametrize("name", EXACT_NAMES)
async def test_decompress_multiple_members(name):
    compress = ALGOS[name][2]
    compressed = compress(ONE_TO_SIX) + compress(bytes([6, 5, 4, 3, 2, 1]))
    decoder = ALGOS[name][1](bufread.BufReader(ChunkSource([compressed])))
    decoder.multiple_members(True)
    assert await decoder.read_all() == bytes([1, 2, 3, 4, 5, 6, 6, 5, 4, 3, 2, 1])


@pytest.mark.asyncio
async def test_decompress_single_member_stops_after_first():
    compressed = gzip.compress(ONE_TO_SIX, 1) + gzip.compress(b"more", 1)
    decoder = bufread.GzipDecoder(ChunkSource([compressed]))
    assert await decoder.read_all() == ONE_TO_SIX


@pytest.mark.asyncio
@pytest.mark.parametrize("name", NAMES)
async def test_decompress_small_reads(name):
    reader = bufread.BufReader(ChunkSource([ALGOS[name][2](ONE_TO_SIX)]))
    decoder = ALGOS[name][1](reader)
    parts = []
    while piece := await decoder.read(2):
        assert len(piece) <= 2
        parts.append(piece)
    assert b"".join(parts) == ONE_TO_SIX


@pytest.mark.asyncio
async def test_decompress_truncated_fails():
    compressed = gzip.compress(ONE_TO_SIX, 1)[:-5]
    with pytest.raises(ValueError):
        await bufread.GzipDecoder(ChunkSource([compressed])).read_all()


@pytest.mark.asyncio
async def test_decompress_garbage_fails():
    with pytest.raises(ValueError):
        await bufread.ZlibDecoder(ChunkSource([b"not compressed at all"])).read_all()


@pytest.mark.asyncio
async def test_xz_memlimit_too_small():
    compressed = lzma.compress(ONE_TO_SIX, preset=0)
    with pytest.raises(ValueError):
        await bufread.XzDecoder(ChunkSource([compressed]), memlimit=1).read_all()


# --- gzip headers ---------------------------------------------------------------


def _compress_with_header(data):
    flags = 0x04 | 0x08 | 0x10
    header = bytes([0x1F, 0x8B, 8, flags, 0, 0, 0, 0, 4, 255])
    extra = struct.pack("<H", 4) + bytes([1, 2, 3, 4])
    names = b"hello_world.txt\0" + b"test file, please delete\0"
    trailer = struct.pack("<II", zlib.crc32(data), len(data))
    return header + extra + names + _deflate(data) + trailer


@pytest.mark.asyncio
async def test_gzip_decompress_with_extra_header():
    compressed = _compress_with_header(ONE_TO_SIX)
    assert await bufread.GzipDecoder(ChunkSource([compressed])).read_all() == ONE_TO_SIX


@pytest.mark.asyncio
async def test_gzip_chunks_decompress_with_extra_header():
    chunks = _chunks(_compress_with_header(ONE_TO_SIX), 2)
    assert await bufread.GzipDecoder(ChunkSource(chunks)).read_all() == ONE_TO_SIX


# --- xz padding -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_xz_multiple_members_with_padding():
    compressed = (
        lzma.compress(ONE_TO_SIX, preset=0)
        + bytes(4)
        + lzma.compress(bytes([6, 5, 4, 3, 2, 1]), preset=0)
        + bytes(4)
    )
    decoder = bufread.XzDecoder(ChunkSource([compressed]))
    decoder.multiple_members(True)
    assert await decoder.read_all() == bytes([1, 2, 3, 4, 5, 6, 6, 5, 4, 3, 2, 1])


@pytest.mark.asyncio
async def test_xz_multiple_members_with_invalid_padding():
    compressed = (
        lzma.compress(ONE_TO_SIX, preset=0)
        + bytes(3)
        + lzma.compress(bytes([6, 5, 4, 3, 2, 1]), preset=0)
        + bytes(4)
    )
    decoder = bufread.XzDecoder(ChunkSource([compressed]))
    decoder.multiple_members(True)
    with pytest.raises(ValueError):
        await decoder.read_all()


# --- property tests -------------------------------------------------------------

_chunk_lists = st.lists(st.binary(max_size=64), max_size=6)
_levels = st.one_of(
    st.sampled_from([Level.FASTEST, Level.BEST, Level.DEFAULT]),
    st.integers(min_value=-(2**31), max_value=2**31 - 1).map(Level.precise),
)


@pytest.mark.parametrize("name", NAMES)
@settings(max_examples=20, deadline=None)
@given(chunks=_chunk_lists)
def test_property_compress(name, chunks):
    reader = bufread.BufReader(ChunkSource(chunks))
    compressed = asyncio.run(_compress(name, reader))
    assert ALGOS[name][3](compressed) == b"".join(chunks)


@pytest.mark.parametrize("name", NAMES)
@settings(max_examples=20, deadline=None)
@given(data=st.binary(max_size=256), chunk_size=st.integers(min_value=1, max_value=19))
def test_property_decompress(name, data, chunk_size):
    chunks = _chunks(ALGOS[name][2](data), chunk_size)
    reader = bufread.BufReader(ChunkSource(chunks))
    assert asyncio.run(_decompress(name, reader)) == data


@pytest.mark.parametrize("name", NAMES)
@settings(max_examples=8, deadline=None)
@given(chunks=_chunk_lists, level=_levels)
def test_property_compress_with_level(name, chunks, level):
    reader = bufread.BufReader(ChunkSource(chunks))
    compressed = asyncio.run(_compress(name, reader, level=level))
    assert ALGOS[name][3](compressed) == b"".join(chunks)