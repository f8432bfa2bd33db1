"""A byte buffer with a cursor separating the processed part from the rest."""

from __future__ import annotations


class PartialBuffer:
    """Wraps a byte buffer and tracks how much of it has been used.

    For an input buffer the used part is what has been consumed. For an
    output buffer (which must be mutable) it is what has been filled.
    """

    def __init__(self, buffer: bytes | bytearray | memoryview = b"") -> None:
        self._buffer = buffer
        self._index = 0

    @property
    def buffer(self) -> bytes | bytearray | memoryview:
        """The wrapped buffer."""
        return self._buffer

    def written(self) -> bytes:
        """Bytes before the cursor."""
        return bytes(self._buffer[: self._index])

    def unwritten(self) -> bytes:
        """Bytes after the cursor."""
        return bytes(self._buffer[self._index :])

    def advance(self, amount: int) -> None:
        """Move the cursor forward by ``amount`` bytes."""
        if amount < 0 or self._index + amount > len(self._buffer):
            raise ValueError(
                f"cannot advance by {amount}: only "
                f"{len(self._buffer) - self._index} bytes remain"
            )
        self._index += amount

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Copy as much of ``data`` as fits after the cursor; return the count."""
        count = min(len(data), len(self._buffer) - self._index)
        self._buffer[self._index : self._index + count] = data[:count]
        self._index += count
        return count

    def copy_unwritten_from(self, other: PartialBuffer) -> int:
        """Move as many unwritten bytes of ``other`` into this buffer as fit."""
        count = self.write(other.unwritten())
        other.advance(count)
        return count

    def take(self) -> PartialBuffer:
        """Return this buffer's state and reset it to an empty buffer."""
        taken = PartialBuffer(self._buffer)
        taken._index = self._index
        self._buffer = type(self._buffer)()
        self._index = 0
        return taken

    def __repr__(self) -> str:
        return f"PartialBuffer(index={self._index}, size={len(self._buffer)})"