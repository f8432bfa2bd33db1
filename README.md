# aiocompress

Streaming compression and decompression for asyncio readers.

`aiocompress.bufread` wraps an async byte source and lets you read the
compressed or decompressed bytes out of it. Every supported format has an
encoder and a decoder there:

| Format  | Encoder          | Decoder          |
|---------|------------------|------------------|
| brotli  | `BrotliEncoder`  | `BrotliDecoder`  |
| bzip2   | `BzEncoder`      | `BzDecoder`      |
| deflate | `DeflateEncoder` | `DeflateDecoder` |
| gzip    | `GzipEncoder`    | `GzipDecoder`    |
| zlib    | `ZlibEncoder`    | `ZlibDecoder`    |
| zstd    | `ZstdEncoder`    | `ZstdDecoder`    |
| xz      | `XzEncoder`      | `XzDecoder`      |
| lzma    | `LzmaEncoder`    | `LzmaDecoder`    |

## Install

```
pip install aiocompress
```

## Sources

A source is any object with an awaitable `fill_buf()` (returning the buffered
bytes, empty at the end) and `consume(amount)`. Any other object is wrapped in
`bufread.BufReader`, which needs only an awaitable `read(size)`, such as an
`asyncio.StreamReader`. `BufReader` takes an optional `capacity` (default 8192).

## Reading

```python
from aiocompress import bufread
from aiocompress.codecs import Level

encoder = bufread.GzipEncoder(stream_reader, level=Level.BEST)
compressed = await encoder.read_all()

decoder = bufread.GzipDecoder(other_stream_reader)
decoder.multiple_members(True)   # accept several concatenated members
data = await decoder.read_all()
```

`read(size)` returns up to `size` bytes, everything up to the end when `size`
is negative, and `b""` once the stream has ended. Corrupt or truncated
compressed input raises `ValueError`.

With `multiple_members(True)` a decoder, after each member or frame, expects
either the end of input or another member. The xz decoder also accepts the
zero padding the xz format allows between streams, in multiples of four bytes.

`bufread.ZlibEncoder` reports `total_in` and `total_out`. `XzDecoder` and
`LzmaDecoder` take an optional `memlimit`.

## Compression levels

Encoders take a `Level` from `aiocompress.codecs`: `Level.FASTEST`,
`Level.BEST`, `Level.DEFAULT`, or `Level.precise(n)` for a value specific to
the algorithm. Values outside what the algorithm accepts are clamped to its
range.

## zstd parameters and dictionaries

`aiocompress.zstd.CParameter` builds zstd compression parameters, for example
`CParameter.window_log(20)` or `CParameter.checksum_flag(True)`; pass them as
`params` to `bufread.ZstdEncoder`. Both `ZstdEncoder` and `ZstdDecoder` accept a
pre-trained `dictionary`; the same dictionary must be used to decompress. An
invalid dictionary or parameter set raises `ValueError`.

## Lower-level pieces

- `aiocompress.codecs` holds the incremental `Encode` and `Decode` codecs, one
  class per format, which write into `aiocompress.buffer.PartialBuffer` output
  buffers. `bufread` is built on them.
- `aiocompress.bufwriter.BufWriter` buffers writes to an async (or plain)
  writer. Besides `write`, `flush` and `shutdown` it exposes its free buffer
  space through `partial_flush_buf()` for filling in place, committed with
  `produce(amount)`. A writer that accepts no bytes raises `WriteZeroError`.

## What it does not do

There are no writer-side adaptors: you cannot wrap a writer so that bytes
written into it arrive compressed or decompressed at the other end. To
compress into a sink, read from a `bufread` encoder and write what it returns
to the sink, for instance through a `BufWriter`.

## Tests

```
pip install -e .[test]
pytest
```