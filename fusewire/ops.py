"""Internal operations that the connection handles itself."""

from __future__ import annotations

from dataclasses import dataclass, field

from .flags import InitFlags
from .protocol import Protocol

__all__ = ["UnknownOp", "InterruptOp", "InitOp"]


@dataclass
class UnknownOp:
    """An op with an unrecognised opcode; it must be answered with an error."""

    op_code: int = 0
    inode: int = 0


@dataclass
class InterruptOp:
    """A request to cancel the op with the given kernel request ID."""

    fuse_id: int = 0


@dataclass
class InitOp:
    """The initial handshake, required for mounting to complete."""

    kernel: Protocol = field(default_factory=lambda: Protocol(0, 0))
    flags: InitFlags = field(default_factory=lambda: InitFlags(0))
    library: Protocol = field(default_factory=lambda: Protocol(0, 0))
    max_readahead: int = 0
    max_background: int = 0
    max_write: int = 0
    max_pages: int = 0