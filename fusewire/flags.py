"""Bit flags, opcodes and notification codes of the FUSE kernel interface."""

from __future__ import annotations

import enum
import os
import sys
from typing import Iterable, Optional, Tuple

__all__ = [
    "ROOT_ID",
    "GetattrFlags",
    "SetattrValid",
    "OpenFlags",
    "OpenResponseFlags",
    "InitFlags",
    "ReleaseFlags",
    "ReadFlags",
    "WriteFlags",
    "Opcode",
    "NotifyCode",
    "flag_string",
    "open_flags",
]

ROOT_ID = 1

OPEN_ACCESS_MODE_MASK = getattr(os, "O_ACCMODE", 3)

_O_LARGEFILE = 0x8000


def flag_string(value: int, names: Iterable[Tuple[int, str]]) -> str:
    """Render ``value`` as '+'-joined names, with unnamed bits in hex."""
    value = int(value)
    if value == 0:
        return "0"
    parts = []
    for bit, name in names:
        if value & bit:
            parts.append(name)
            value &= ~bit
    if value:
        parts.append(f"{value:#x}")
    return "+".join(parts)


class _NamedFlags(enum.IntFlag):
    """Flags that print with their kernel-interface names."""

    def __str__(self) -> str:
        return flag_string(int(self), _FLAG_NAMES[type(self)])


class GetattrFlags(_NamedFlags):
    FH = 1 << 0


class SetattrValid(_NamedFlags):
    MODE = 1 << 0
    UID = 1 << 1
    GID = 1 << 2
    SIZE = 1 << 3
    ATIME = 1 << 4
    MTIME = 1 << 5
    HANDLE = 1 << 6
    ATIME_NOW = 1 << 7
    MTIME_NOW = 1 << 8
    LOCK_OWNER = 1 << 9
    CRTIME = 1 << 28
    CHGTIME = 1 << 29
    BKUPTIME = 1 << 30
    FLAGS = 1 << 31


class OpenFlags(enum.IntFlag):
    """The O_* flags passed to open and create calls."""

    READ_ONLY = os.O_RDONLY
    WRITE_ONLY = os.O_WRONLY
    READ_WRITE = os.O_RDWR
    APPEND = os.O_APPEND
    CREATE = os.O_CREAT
    EXCLUSIVE = os.O_EXCL
    SYNC = getattr(os, "O_SYNC", 0x101000)
    TRUNCATE = os.O_TRUNC

    def __str__(self) -> str:
        mode = _ACCESS_MODE_NAMES.get(int(self) & OPEN_ACCESS_MODE_MASK, "")
        rest = int(self) & ~OPEN_ACCESS_MODE_MASK
        if rest:
            return mode + "+" + flag_string(rest, _OPEN_FLAG_NAMES)
        return mode

    def _access_mode(self) -> int:
        return int(self) & OPEN_ACCESS_MODE_MASK

    def is_read_only(self) -> bool:
        return self._access_mode() == os.O_RDONLY

    def is_write_only(self) -> bool:
        return self._access_mode() == os.O_WRONLY

    def is_read_write(self) -> bool:
        return self._access_mode() == os.O_RDWR


class OpenResponseFlags(_NamedFlags):
    DIRECT_IO = 1 << 0
    KEEP_CACHE = 1 << 1
    NON_SEEKABLE = 1 << 2
    PURGE_ATTR = 1 << 30
    PURGE_UBC = 1 << 31


class InitFlags(_NamedFlags):
    ASYNC_READ = 1 << 0
    POSIX_LOCKS = 1 << 1
    FILE_OPS = 1 << 2
    ATOMIC_TRUNC = 1 << 3
    EXPORT_SUPPORT = 1 << 4
    BIG_WRITES = 1 << 5
    DONT_MASK = 1 << 6
    SPLICE_WRITE = 1 << 7
    SPLICE_MOVE = 1 << 8
    SPLICE_READ = 1 << 9
    FLOCK_LOCKS = 1 << 10
    HAS_IOCTL_DIR = 1 << 11
    AUTO_INVAL_DATA = 1 << 12
    DO_READDIRPLUS = 1 << 13
    READDIRPLUS_AUTO = 1 << 14
    ASYNC_DIO = 1 << 15
    WRITEBACK_CACHE = 1 << 16
    NO_OPEN_SUPPORT = 1 << 17
    MAX_PAGES = 1 << 22
    CACHE_SYMLINKS = 1 << 23
    NO_OPENDIR_SUPPORT = 1 << 24
    CASE_SENSITIVE = 1 << 29
    VOL_RENAME = 1 << 30
    XTIMES = 1 << 31


class ReleaseFlags(_NamedFlags):
    FLUSH = 1 << 0


class ReadFlags(_NamedFlags):
    LOCK_OWNER = 1 << 1


class WriteFlags(_NamedFlags):
    CACHE = 1 << 0
    LOCK_OWNER = 1 << 1


class Opcode(enum.IntEnum):
    LOOKUP = 1
    FORGET = 2
    GETATTR = 3
    SETATTR = 4
    READLINK = 5
    SYMLINK = 6
    MKNOD = 8
    MKDIR = 9
    UNLINK = 10
    RMDIR = 11
    RENAME = 12
    LINK = 13
    OPEN = 14
    READ = 15
    WRITE = 16
    STATFS = 17
    RELEASE = 18
    FSYNC = 20
    SETXATTR = 21
    GETXATTR = 22
    LISTXATTR = 23
    REMOVEXATTR = 24
    FLUSH = 25
    INIT = 26
    OPENDIR = 27
    READDIR = 28
    RELEASEDIR = 29
    FSYNCDIR = 30
    GETLK = 31
    SETLK = 32
    SETLKW = 33
    ACCESS = 34
    CREATE = 35
    INTERRUPT = 36
    BMAP = 37
    DESTROY = 38
    IOCTL = 39
    POLL = 40
    FALLOCATE = 43
    SETVOLNAME = 61
    GETXTIMES = 62
    EXCHANGE = 63


class NotifyCode(enum.IntEnum):
    POLL = 1
    INVAL_INODE = 2
    INVAL_ENTRY = 3


_ACCESS_MODE_NAMES = {
    os.O_RDONLY: "OpenReadOnly",
    os.O_WRONLY: "OpenWriteOnly",
    os.O_RDWR: "OpenReadWrite",
}

_OPEN_FLAG_NAMES = (
    (int(OpenFlags.CREATE), "OpenCreate"),
    (int(OpenFlags.EXCLUSIVE), "OpenExclusive"),
    (int(OpenFlags.TRUNCATE), "OpenTruncate"),
    (int(OpenFlags.APPEND), "OpenAppend"),
    (int(OpenFlags.SYNC), "OpenSync"),
)

_FLAG_NAMES = {
    GetattrFlags: ((int(GetattrFlags.FH), "GetattrFh"),),
    SetattrValid: (
        (int(SetattrValid.MODE), "SetattrMode"),
        (int(SetattrValid.UID), "SetattrUid"),
        (int(SetattrValid.GID), "SetattrGid"),
        (int(SetattrValid.SIZE), "SetattrSize"),
        (int(SetattrValid.ATIME), "SetattrAtime"),
        (int(SetattrValid.MTIME), "SetattrMtime"),
        (int(SetattrValid.HANDLE), "SetattrHandle"),
        (int(SetattrValid.ATIME_NOW), "SetattrAtimeNow"),
        (int(SetattrValid.MTIME_NOW), "SetattrMtimeNow"),
        (int(SetattrValid.LOCK_OWNER), "SetattrLockOwner"),
        (int(SetattrValid.CRTIME), "SetattrCrtime"),
        (int(SetattrValid.CHGTIME), "SetattrChgtime"),
        (int(SetattrValid.BKUPTIME), "SetattrBkuptime"),
        (int(SetattrValid.FLAGS), "SetattrFlags"),
    ),
    OpenResponseFlags: (
        (int(OpenResponseFlags.DIRECT_IO), "OpenDirectIO"),
        (int(OpenResponseFlags.KEEP_CACHE), "OpenKeepCache"),
        (int(OpenResponseFlags.NON_SEEKABLE), "OpenNonSeekable"),
        (int(OpenResponseFlags.PURGE_ATTR), "OpenPurgeAttr"),
        (int(OpenResponseFlags.PURGE_UBC), "OpenPurgeUBC"),
    ),
    InitFlags: (
        (int(InitFlags.ASYNC_READ), "InitAsyncRead"),
        (int(InitFlags.POSIX_LOCKS), "InitPosixLocks"),
        (int(InitFlags.FILE_OPS), "InitFileOps"),
        (int(InitFlags.ATOMIC_TRUNC), "InitAtomicTrunc"),
        (int(InitFlags.EXPORT_SUPPORT), "InitExportSupport"),
        (int(InitFlags.BIG_WRITES), "InitBigWrites"),
        (int(InitFlags.MAX_PAGES), "InitMaxPages"),
        (int(InitFlags.DONT_MASK), "InitDontMask"),
        (int(InitFlags.SPLICE_WRITE), "InitSpliceWrite"),
        (int(InitFlags.SPLICE_MOVE), "InitSpliceMove"),
        (int(InitFlags.SPLICE_READ), "InitSpliceRead"),
        (int(InitFlags.FLOCK_LOCKS), "InitFlockLocks"),
        (int(InitFlags.HAS_IOCTL_DIR), "InitHasIoctlDir"),
        (int(InitFlags.AUTO_INVAL_DATA), "InitAutoInvalData"),
        (int(InitFlags.DO_READDIRPLUS), "InitDoReaddirplus"),
        (int(InitFlags.READDIRPLUS_AUTO), "InitReaddirplusAuto"),
        (int(InitFlags.ASYNC_DIO), "InitAsyncDIO"),
        (int(InitFlags.WRITEBACK_CACHE), "InitWritebackCache"),
        (int(InitFlags.NO_OPEN_SUPPORT), "InitNoOpenSupport"),
        (int(InitFlags.CACHE_SYMLINKS), "InitCacheSymlinks"),
        (int(InitFlags.NO_OPENDIR_SUPPORT), "InitNoOpendirSupport"),
        (int(InitFlags.CASE_SENSITIVE), "InitCaseSensitive"),
        (int(InitFlags.VOL_RENAME), "InitVolRename"),
        (int(InitFlags.XTIMES), "InitXtimes"),
    ),
    ReleaseFlags: ((int(ReleaseFlags.FLUSH), "ReleaseFlush"),),
    ReadFlags: ((int(ReadFlags.LOCK_OWNER), "ReadLockOwner"),),
    WriteFlags: (
        (int(WriteFlags.CACHE), "WriteCache"),
        (int(WriteFlags.LOCK_OWNER), "WriteLockOwner"),
    ),
}


def open_flags(flags: int, platform: Optional[str] = None) -> OpenFlags:
    """Convert raw open flags from the kernel, dropping O_LARGEFILE on Linux."""
    if platform is None:
        platform = sys.platform
    if platform.startswith("linux"):
        flags &= ~_O_LARGEFILE
    return OpenFlags(flags)