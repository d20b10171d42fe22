"""Construction of a reply to the kernel from several segments."""

from __future__ import annotations

from dataclasses import fields
from typing import List, Optional, Union

from .structs import OutHeader

__all__ = ["OutMessage", "OUT_MESSAGE_HEADER_SIZE", "MAX_READ_SIZE"]

# Size of the OutHeader that leads every reply.
OUT_MESSAGE_HEADER_SIZE = OutHeader.byte_size()

# The largest read we expect from the kernel (1 MiB on both Linux and macOS).
MAX_READ_SIZE = 1 << 20

_Segment = Union[bytes, bytearray, memoryview]


class OutMessage:
    """A reply made of an OutHeader followed by any number of byte segments.

    The segments, header first, can be written with a single vectored write.
    """

    def __init__(self) -> None:
        self._header = OutHeader()
        self._segments: Optional[List[_Segment]] = None

    def reset(self) -> None:
        """Zero the header and drop every payload segment."""
        for f in fields(OutHeader):
            setattr(self._header, f.name, f.default)
        self._segments = None

    def header(self) -> OutHeader:
        """The header at the start of the message, which may be edited in place."""
        return self._header

    def header_bytes(self) -> bytes:
        """The current header, encoded."""
        return self._header.pack()

    @property
    def sglist(self) -> List[_Segment]:
        """The message as a list of segments, the encoded header first.

        Empty while the message holds nothing but the header.
        """
        if self._segments is None:
            return []
        return [self.header_bytes(), *self._segments]

    def grow(self, n: int) -> bytearray:
        """Add a zeroed segment of ``n`` bytes and return it for filling in."""
        segment = bytearray(n)
        self.append(segment)
        return segment

    def shrink_to(self, n: int) -> None:
        """Cut the message down to ``n`` bytes, header included."""
        if n < OUT_MESSAGE_HEADER_SIZE or n > len(self):
            raise ValueError(
                f"shrink_to({n}) out of range (current length: {len(self)})"
            )
        if n == OUT_MESSAGE_HEADER_SIZE:
            self._segments = None
            return

        segments = self._segments or []
        n -= OUT_MESSAGE_HEADER_SIZE
        kept = 0
        while kept < len(segments) and n >= len(segments[kept]):
            n -= len(segments[kept])
            kept += 1
        if n > 0:
            segments[kept] = memoryview(segments[kept])[:n]
            kept += 1
        self._segments = segments[:kept]

    def append(self, *args: _Segment) -> None:
        """Add each argument as a further segment."""
        if self._segments is None:
            self._segments = []
        self._segments.extend(args)

    def append_string(self, text: str) -> None:
        """Add the UTF-8 encoding of ``text`` as a further segment."""
        self.append(text.encode("utf-8"))

    def __len__(self) -> int:
        """The total size of the message, header included."""
        if self._segments is None:
            return OUT_MESSAGE_HEADER_SIZE
        return OUT_MESSAGE_HEADER_SIZE + sum(len(s) for s in self._segments)

    def __bytes__(self) -> bytes:
        return b"".join(bytes(s) for s in self.sglist) or self.header_bytes()