"""Storage for, and access to, a single request read from the kernel."""

from __future__ import annotations

import mmap
from typing import Optional

from .structs import InHeader

__all__ = ["InMessage", "MAX_WRITE_SIZE", "PAGE_SIZE", "BUFFER_SIZE"]

# The largest write request an InMessage can hold. Both Linux (256 pages as of
# 4.20) and macOS cap writes at 1 MiB.
MAX_WRITE_SIZE = 1 << 20

# Every request without data is shorter than a page.
PAGE_SIZE = mmap.PAGESIZE

# Room for a request header plus the data of a maximal write.
BUFFER_SIZE = PAGE_SIZE + MAX_WRITE_SIZE

_HEADER_SIZE = InHeader.byte_size()


class InMessage:
    """A request from the kernel, starting with an InHeader.

    The message is filled by a single read, after which the bytes that follow
    the header can be consumed piece by piece.
    """

    def __init__(self, buffer_size: int = BUFFER_SIZE) -> None:
        self._storage = bytearray(buffer_size)
        self._size = 0
        self._offset = _HEADER_SIZE

    def read_from(self, reader) -> None:
        """Fill the message with the data returned by one read from ``reader``.

        Raises EOFError if the reader has no more data, and ValueError if what
        was read is not a well-formed request.
        """
        if hasattr(reader, "readinto"):
            n = reader.readinto(self._storage) or 0
        else:
            data = reader.read(len(self._storage)) or b""
            n = len(data)
            self._storage[:n] = data

        if n == 0:
            raise EOFError("no more requests")
        if n < _HEADER_SIZE:
            raise ValueError(f"Unexpectedly read only {n} bytes.")

        self._size = n
        self._offset = _HEADER_SIZE

        declared = self.header().len
        if declared != n:
            raise ValueError(f"Header says {declared} bytes, but we read {n}")

    def header(self) -> InHeader:
        """The header of the most recently read request."""
        return InHeader.unpack(bytes(self._storage[:_HEADER_SIZE]))

    def __len__(self) -> int:
        """Number of bytes left to consume."""
        return max(self._size - self._offset, 0)

    def consume(self, n: int) -> Optional[memoryview]:
        """Take the next ``n`` bytes as a view, or None if not enough remain."""
        remaining = len(self)
        if remaining == 0 or n > remaining:
            return None
        start = self._offset
        self._offset += n
        return memoryview(self._storage)[start : start + n]

    def consume_bytes(self, n: int) -> Optional[bytes]:
        """Take the next ``n`` bytes as a copy, or None if not enough remain."""
        if n > len(self):
            return None
        start = self._offset
        self._offset += n
        return bytes(self._storage[start : start + n])

    def get_free(self, n: int) -> Optional[memoryview]:
        """A view of ``n`` unused bytes after the message, or None if too few."""
        if n <= 0 or n > len(self._storage) - self._size:
            return None
        return memoryview(self._storage)[self._size : self._size + n]