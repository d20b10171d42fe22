"""Binary layouts of the structures exchanged with the FUSE kernel module."""

from __future__ import annotations

import struct
import sys
from dataclasses import Field, dataclass, field, fields
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional, Tuple, Type, TypeVar

from .protocol import Protocol

__all__ = [
    "KernelStruct",
    "Kstatfs",
    "FileLock",
    "Attr",
    "EntryOut",
    "ForgetIn",
    "GetattrIn",
    "AttrOut",
    "GetxtimesOut",
    "MknodIn",
    "MkdirIn",
    "RenameIn",
    "ExchangeIn",
    "LinkIn",
    "SetattrIn",
    "OpenIn",
    "OpenOut",
    "CreateIn",
    "ReleaseIn",
    "FlushIn",
    "ReadIn",
    "WriteIn",
    "WriteOut",
    "StatfsOut",
    "FsyncIn",
    "SetxattrIn",
    "GetxattrIn",
    "GetxattrOut",
    "ListxattrIn",
    "FallocateIn",
    "LkIn",
    "LkOut",
    "AccessIn",
    "InitIn",
    "InitOut",
    "InterruptIn",
    "BmapIn",
    "BmapOut",
    "InHeader",
    "OutHeader",
    "Dirent",
    "NotifyInvalInodeOut",
    "NotifyInvalEntryOut",
    "entry_out_size",
    "attr_out_size",
    "mknod_in_size",
    "mkdir_in_size",
    "create_in_size",
    "read_in_size",
    "write_in_size",
    "lk_in_size",
    "COMPAT_STATFS_SIZE",
    "DIRENT_SIZE",
]

_DARWIN = sys.platform == "darwin"

_T = TypeVar("_T", bound="KernelStruct")

COMPAT_STATFS_SIZE = 48
DIRENT_SIZE = 8 + 8 + 4 + 4


def _num(fmt: str, darwin_only: bool = False) -> Any:
    return field(default=0, metadata={"fmt": fmt, "darwin_only": darwin_only})


def _u64(darwin_only: bool = False) -> Any:
    return _num("Q", darwin_only)


def _i64() -> Any:
    return _num("q")


def _u32(darwin_only: bool = False) -> Any:
    return _num("I", darwin_only)


def _i32() -> Any:
    return _num("i")


def _u16() -> Any:
    return _num("H")


def _array(fmt: str, count: int) -> Any:
    return field(
        default_factory=lambda: (0,) * count,
        metadata={"fmt": fmt, "count": count},
    )


def _nested(cls: Type["KernelStruct"]) -> Any:
    return field(default_factory=cls, metadata={"struct": cls})


def _code(meta: Any) -> str:
    return "=" + f"{meta.get('count', '')}{meta['fmt']}"


@lru_cache(maxsize=None)
def _layout(cls: type) -> Tuple[Field, ...]:
    return tuple(
        f for f in fields(cls) if _DARWIN or not f.metadata.get("darwin_only")
    )


def _field_size(f: Field) -> int:
    nested = f.metadata.get("struct")
    if nested is not None:
        return nested.byte_size()
    return struct.calcsize(_code(f.metadata))


def _field_alignment(f: Field) -> int:
    nested = f.metadata.get("struct")
    if nested is not None:
        return _alignment(nested)
    return struct.calcsize("=" + f.metadata["fmt"])


@lru_cache(maxsize=None)
def _alignment(cls: type) -> int:
    return max((_field_alignment(f) for f in _layout(cls)), default=1)


@lru_cache(maxsize=None)
def _size(cls: type) -> int:
    raw = sum(_field_size(f) for f in _layout(cls))
    align = _alignment(cls)
    return (raw + align - 1) // align * align


def _unix_time(seconds: int, nanos: int) -> datetime:
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    return epoch + timedelta(seconds=seconds, microseconds=nanos // 1000)


class KernelStruct:
    """A fixed-layout structure in native byte order, padded like the kernel's."""

    @classmethod
    def byte_size(cls) -> int:
        """Size of the encoded structure, including trailing padding."""
        return _size(cls)

    @classmethod
    def offset_of(cls, name: str) -> int:
        """Byte offset of the named field within the encoded structure."""
        offset = 0
        for f in _layout(cls):
            if f.name == name:
                return offset
            offset += _field_size(f)
        raise KeyError(name)

    def pack(self) -> bytes:
        """Encode the structure into bytes."""
        out = bytearray()
        for f in _layout(type(self)):
            value = getattr(self, f.name)
            meta = f.metadata
            if "struct" in meta:
                out += value.pack()
                continue
            try:
                if "count" in meta:
                    if len(value) != meta["count"]:
                        raise ValueError(
                            f"expected {meta['count']} items, got {len(value)}"
                        )
                    out += struct.pack(_code(meta), *value)
                else:
                    out += struct.pack(_code(meta), value)
            except struct.error as exc:
                raise ValueError(f"field {f.name}: {exc}") from exc
        out += bytes(self.byte_size() - len(out))
        return bytes(out)

    @classmethod
    def unpack(cls: Type[_T], data: bytes) -> _T:
        """Decode a structure from the start of ``data``."""
        size = cls.byte_size()
        if len(data) < size:
            raise ValueError(
                f"{cls.__name__} needs {size} bytes, got {len(data)}"
            )
        return cls._unpack_at(memoryview(data), 0)

    @classmethod
    def _unpack_at(cls: Type[_T], data: memoryview, offset: int) -> _T:
        values = {}
        for f in _layout(cls):
            meta = f.metadata
            if "struct" in meta:
                values[f.name] = meta["struct"]._unpack_at(data, offset)
            elif "count" in meta:
                values[f.name] = struct.unpack_from(_code(meta), data, offset)
            else:
                (values[f.name],) = struct.unpack_from(_code(meta), data, offset)
            offset += _field_size(f)
        return cls(**values)


@dataclass
class Kstatfs(KernelStruct):
    blocks: int = _u64()
    bfree: int = _u64()
    bavail: int = _u64()
    files: int = _u64()
    ffree: int = _u64()
    bsize: int = _u32()
    namelen: int = _u32()
    frsize: int = _u32()
    padding: int = _u32()
    spare: Tuple[int, ...] = _array("I", 6)


@dataclass
class FileLock(KernelStruct):
    start: int = _u64()
    end: int = _u64()
    type: int = _u32()
    pid: int = _u32()


@dataclass
class Attr(KernelStruct):
    """Inode attributes; creation time and BSD flags exist only on macOS."""

    ino: int = _u64()
    size: int = _u64()
    blocks: int = _u64()
    atime: int = _u64()
    mtime: int = _u64()
    ctime: int = _u64()
    crtime: int = _u64(darwin_only=True)
    atime_nsec: int = _u32()
    mtime_nsec: int = _u32()
    ctime_nsec: int = _u32()
    crtime_nsec: int = _u32(darwin_only=True)
    mode: int = _u32()
    nlink: int = _u32()
    uid: int = _u32()
    gid: int = _u32()
    rdev: int = _u32()
    flags: int = _u32(darwin_only=True)
    blksize: int = _u32()
    padding: int = _u32()

    def set_crtime(self, seconds: int, nanos: int) -> None:
        """Set the creation time; ignored where the kernel has no such field."""
        if _DARWIN:
            self.crtime, self.crtime_nsec = seconds, nanos

    def set_flags(self, flags: int) -> None:
        """Set the chflags(2) flags; ignored where the kernel has no such field."""
        if _DARWIN:
            self.flags = flags


@dataclass
class EntryOut(KernelStruct):
    nodeid: int = _u64()
    generation: int = _u64()
    entry_valid: int = _u64()
    attr_valid: int = _u64()
    entry_valid_nsec: int = _u32()
    attr_valid_nsec: int = _u32()
    attr: Attr = _nested(Attr)


@dataclass
class ForgetIn(KernelStruct):
    nlookup: int = _u64()


@dataclass
class GetattrIn(KernelStruct):
    getattr_flags: int = _u32()
    dummy: int = _u32()
    fh: int = _u64()


@dataclass
class AttrOut(KernelStruct):
    attr_valid: int = _u64()
    attr_valid_nsec: int = _u32()
    dummy: int = _u32()
    attr: Attr = _nested(Attr)


@dataclass
class GetxtimesOut(KernelStruct):
    bkuptime: int = _u64()
    crtime: int = _u64()
    bkuptime_nsec: int = _u32()
    crtime_nsec: int = _u32()


@dataclass
class MknodIn(KernelStruct):
    mode: int = _u32()
    rdev: int = _u32()
    umask: int = _u32()
    padding: int = _u32()


@dataclass
class MkdirIn(KernelStruct):
    mode: int = _u32()
    umask: int = _u32()


@dataclass
class RenameIn(KernelStruct):
    newdir: int = _u64()


@dataclass
class ExchangeIn(KernelStruct):
    olddir: int = _u64()
    newdir: int = _u64()
    options: int = _u64()


@dataclass
class LinkIn(KernelStruct):
    oldnodeid: int = _u64()


@dataclass
class SetattrIn(KernelStruct):
    """A setattr request; the trailing time and flag fields exist only on macOS."""

    valid: int = _u32()
    padding: int = _u32()
    fh: int = _u64()
    size: int = _u64()
    lock_owner: int = _u64()
    atime: int = _u64()
    mtime: int = _u64()
    unused2: int = _u64()
    atime_nsec: int = _u32()
    mtime_nsec: int = _u32()
    unused3: int = _u32()
    mode: int = _u32()
    unused4: int = _u32()
    uid: int = _u32()
    gid: int = _u32()
    unused5: int = _u32()
    bkuptime: int = _u64(darwin_only=True)
    chgtime: int = _u64(darwin_only=True)
    crtime: int = _u64(darwin_only=True)
    bkuptime_nsec: int = _u32(darwin_only=True)
    chgtime_nsec: int = _u32(darwin_only=True)
    crtime_nsec: int = _u32(darwin_only=True)
    flags: int = _u32(darwin_only=True)

    def backup_time(self) -> Optional[datetime]:
        """The requested backup time, or None where the kernel has none."""
        if not _DARWIN:
            return None
        return _unix_time(self.bkuptime, self.bkuptime_nsec)

    def change_time(self) -> Optional[datetime]:
        """The requested change time, or None where the kernel has none."""
        if not _DARWIN:
            return None
        return _unix_time(self.chgtime, self.chgtime_nsec)

    def bsd_flags(self) -> int:
        """The requested chflags(2) flags, 0 where the kernel has none."""
        return self.flags if _DARWIN else 0


@dataclass
class OpenIn(KernelStruct):
    flags: int = _u32()
    unused: int = _u32()


@dataclass
class OpenOut(KernelStruct):
    fh: int = _u64()
    open_flags: int = _u32()
    padding: int = _u32()


@dataclass
class CreateIn(KernelStruct):
    flags: int = _u32()
    mode: int = _u32()
    umask: int = _u32()
    padding: int = _u32()


@dataclass
class ReleaseIn(KernelStruct):
    fh: int = _u64()
    flags: int = _u32()
    release_flags: int = _u32()
    lock_owner: int = _u32()


@dataclass
class FlushIn(KernelStruct):
    fh: int = _u64()
    flush_flags: int = _u32()
    padding: int = _u32()
    lock_owner: int = _u64()


@dataclass
class ReadIn(KernelStruct):
    fh: int = _u64()
    offset: int = _u64()
    size: int = _u32()
    read_flags: int = _u32()
    lock_owner: int = _u64()
    flags: int = _u32()
    padding: int = _u32()


@dataclass
class WriteIn(KernelStruct):
    fh: int = _u64()
    offset: int = _u64()
    size: int = _u32()
    write_flags: int = _u32()
    lock_owner: int = _u64()
    flags: int = _u32()
    padding: int = _u32()


@dataclass
class WriteOut(KernelStruct):
    size: int = _u32()
    padding: int = _u32()


@dataclass
class StatfsOut(KernelStruct):
    st: Kstatfs = _nested(Kstatfs)


@dataclass
class FsyncIn(KernelStruct):
    fh: int = _u64()
    fsync_flags: int = _u32()
    padding: int = _u32()


@dataclass
class SetxattrIn(KernelStruct):
    size: int = _u32()
    flags: int = _u32()
    position: int = _u32(darwin_only=True)
    padding: int = _u32(darwin_only=True)


@dataclass
class GetxattrIn(KernelStruct):
    size: int = _u32()
    padding: int = _u32()
    position: int = _u32(darwin_only=True)
    padding2: int = _u32(darwin_only=True)


@dataclass
class GetxattrOut(KernelStruct):
    size: int = _u32()
    padding: int = _u32()


@dataclass
class ListxattrIn(KernelStruct):
    size: int = _u32()
    padding: int = _u32()


@dataclass
class FallocateIn(KernelStruct):
    fh: int = _u64()
    offset: int = _u64()
    length: int = _u64()
    mode: int = _u32()
    padding: int = _u32()


@dataclass
class LkIn(KernelStruct):
    fh: int = _u64()
    owner: int = _u64()
    lk: FileLock = _nested(FileLock)
    lk_flags: int = _u32()
    padding: int = _u32()


@dataclass
class LkOut(KernelStruct):
    lk: FileLock = _nested(FileLock)


@dataclass
class AccessIn(KernelStruct):
    mask: int = _u32()
    padding: int = _u32()


@dataclass
class InitIn(KernelStruct):
    major: int = _u32()
    minor: int = _u32()
    max_readahead: int = _u32()
    flags: int = _u32()


@dataclass
class InitOut(KernelStruct):
    major: int = _u32()
    minor: int = _u32()
    max_readahead: int = _u32()
    flags: int = _u32()
    max_background: int = _u16()
    congestion_threshold: int = _u16()
    max_write: int = _u32()
    time_gran: int = _u32()
    max_pages: int = _u16()
    map_alignment: int = _u16()
    unused: Tuple[int, ...] = _array("I", 8)


@dataclass
class InterruptIn(KernelStruct):
    unique: int = _u64()


@dataclass
class BmapIn(KernelStruct):
    block: int = _u64()
    block_size: int = _u32()
    padding: int = _u32()


@dataclass
class BmapOut(KernelStruct):
    block: int = _u64()


@dataclass
class InHeader(KernelStruct):
    len: int = _u32()
    opcode: int = _u32()
    unique: int = _u64()
    nodeid: int = _u64()
    uid: int = _u32()
    gid: int = _u32()
    pid: int = _u32()
    padding: int = _u32()


@dataclass
class OutHeader(KernelStruct):
    len: int = _u32()
    error: int = _i32()
    unique: int = _u64()


@dataclass
class Dirent(KernelStruct):
    """A directory entry header; the name bytes follow it on the wire."""

    ino: int = _u64()
    off: int = _u64()
    namelen: int = _u32()
    type: int = _u32()


@dataclass
class NotifyInvalInodeOut(KernelStruct):
    ino: int = _u64()
    off: int = _i64()
    len: int = _i64()


@dataclass
class NotifyInvalEntryOut(KernelStruct):
    parent: int = _u64()
    namelen: int = _u32()
    padding: int = _u32()


_V7_9 = Protocol(7, 9)
_V7_12 = Protocol(7, 12)


def entry_out_size(protocol: Protocol) -> int:
    """Size of an entry reply as understood by the given protocol version."""
    if protocol.lt(_V7_9):
        return EntryOut.offset_of("attr") + Attr.offset_of("blksize")
    return EntryOut.byte_size()


def attr_out_size(protocol: Protocol) -> int:
    """Size of an attribute reply as understood by the given protocol version."""
    if protocol.lt(_V7_9):
        return AttrOut.offset_of("attr") + Attr.offset_of("blksize")
    return AttrOut.byte_size()


def mknod_in_size(protocol: Protocol) -> int:
    """Size of a mknod request as sent by the given protocol version."""
    if protocol.lt(_V7_12):
        return MknodIn.offset_of("umask")
    return MknodIn.byte_size()


def mkdir_in_size(protocol: Protocol) -> int:
    """Size of a mkdir request as sent by the given protocol version."""
    if protocol.lt(_V7_12):
        return MkdirIn.offset_of("umask") + 4
    return MkdirIn.byte_size()


def create_in_size(protocol: Protocol) -> int:
    """Size of a create request as sent by the given protocol version."""
    if protocol.lt(_V7_12):
        return CreateIn.offset_of("umask")
    return CreateIn.byte_size()


def read_in_size(protocol: Protocol) -> int:
    """Size of a read request as sent by the given protocol version."""
    if protocol.lt(_V7_9):
        return ReadIn.offset_of("read_flags") + 4
    return ReadIn.byte_size()


def write_in_size(protocol: Protocol) -> int:
    """Size of a write request as sent by the given protocol version."""
    if protocol.lt(_V7_9):
        return WriteIn.offset_of("lock_owner")
    return WriteIn.byte_size()


def lk_in_size(protocol: Protocol) -> int:
    """Size of a lock request as sent by the given protocol version."""
    if protocol.lt(_V7_9):
        return LkIn.offset_of("lk_flags")
    return LkIn.byte_size()