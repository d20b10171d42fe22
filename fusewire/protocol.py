"""FUSE protocol version numbers and the features each version enables."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Protocol", "MIN_PROTOCOL", "MAX_PROTOCOL"]


@dataclass(frozen=True, order=True)
class Protocol:
    """A FUSE protocol version, ordered by (major, minor)."""

    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"

    def lt(self, other: Protocol) -> bool:
        """Return whether this version is older than ``other``."""
        return self.major < other.major or (
            self.major == other.major and self.minor < other.minor
        )

    def ge(self, other: Protocol) -> bool:
        """Return whether this version is at least ``other``."""
        return self.major > other.major or (
            self.major == other.major and self.minor >= other.minor
        )

    def _at_least(self, minor: int) -> bool:
        return self.ge(Protocol(7, minor))

    def has_attr_block_size(self) -> bool:
        """Whether the kernel respects the attribute block size."""
        return self._at_least(9)

    def has_read_write_flags(self) -> bool:
        """Whether read/write requests carry valid flag fields."""
        return self._at_least(9)

    def has_getattr_flags(self) -> bool:
        """Whether getattr requests carry a valid flags field."""
        return self._at_least(9)

    def has_open_non_seekable(self) -> bool:
        """Whether the non-seekable open response flag is supported."""
        return self._at_least(10)

    def has_umask(self) -> bool:
        """Whether create/mkdir/mknod requests carry a valid umask."""
        return self._at_least(12)

    def has_invalidate(self) -> bool:
        """Whether inode and entry invalidation notifications are supported."""
        return self._at_least(12)


MIN_PROTOCOL = Protocol(7, 19)
MAX_PROTOCOL = Protocol(7, 31)