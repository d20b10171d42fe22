"""Mounting on Linux through the fusermount helper."""

from __future__ import annotations

import shutil
from concurrent.futures import Future
from typing import BinaryIO, Dict, Mapping, NamedTuple, Tuple

from .fusermount import fusermount
from .mount_config import MountConfig, map_to_options_string

__all__ = [
    "MS_RDONLY",
    "MS_NOSUID",
    "MS_NODEV",
    "MS_NOEXEC",
    "MS_SYNCHRONOUS",
    "MS_DIRSYNC",
    "MS_NOATIME",
    "DirectMountArguments",
    "find_fusermount",
    "mount_flags",
    "direct_mount_arguments",
    "begin_mount",
]

MS_RDONLY = 1
MS_NOSUID = 2
MS_NODEV = 4
MS_NOEXEC = 8
MS_SYNCHRONOUS = 16
MS_DIRSYNC = 128
MS_NOATIME = 1024

# Option name -> (bit, whether the option sets it), as fusermount does.
_MOUNT_FLAG_OPTIONS: Dict[str, Tuple[int, bool]] = {
    "rw": (MS_RDONLY, False),
    "ro": (MS_RDONLY, True),
    "suid": (MS_NOSUID, False),
    "nosuid": (MS_NOSUID, True),
    "dev": (MS_NODEV, False),
    "nodev": (MS_NODEV, True),
    "exec": (MS_NOEXEC, False),
    "noexec": (MS_NOEXEC, True),
    "async": (MS_SYNCHRONOUS, False),
    "sync": (MS_SYNCHRONOUS, True),
    "atime": (MS_NOATIME, False),
    "noatime": (MS_NOATIME, True),
    "dirsync": (MS_DIRSYNC, True),
}


class DirectMountArguments(NamedTuple):
    """The arguments of a mount(2) call for a FUSE file system."""

    source: str
    fstype: str
    flags: int
    data: str


def find_fusermount() -> str:
    """Path of fusermount3, or of fusermount if that is all there is."""
    for name in ("fusermount3", "fusermount"):
        path = shutil.which(name)
        if path:
            return path
    raise FileNotFoundError("neither fusermount3 nor fusermount found in PATH")


def mount_flags(options: Mapping[str, str]) -> Tuple[int, Dict[str, str]]:
    """Split mount(2) flags out of ``options``.

    Returns the flags, starting from nodev and nosuid, and the options that
    are not flags.
    """
    flags = MS_NODEV | MS_NOSUID
    remaining: Dict[str, str] = {}
    for key, value in options.items():
        entry = _MOUNT_FLAG_OPTIONS.get(key)
        if entry is None:
            remaining[key] = value
            continue
        bit, enable = entry
        flags = flags | bit if enable else flags & ~bit
    return flags, remaining


def direct_mount_arguments(
    config: MountConfig, fd: int, uid: int, gid: int
) -> DirectMountArguments:
    """The mount(2) arguments for mounting device ``fd`` as ``uid``/``gid``."""
    data = f"fd={fd},rootmode=40000,user_id={uid},group_id={gid}"
    flags, opts = mount_flags(config.to_map("linux"))
    opts.pop("fsname", None)
    fstype = "fuse"
    subtype = opts.pop("subtype", None)
    if subtype is not None:
        fstype += "." + subtype
    data += "," + map_to_options_string(opts)
    return DirectMountArguments(config.fs_name, fstype, flags, data)


def begin_mount(
    directory: str, config: MountConfig
) -> Tuple[BinaryIO, "Future[None]"]:
    """Mount at ``directory`` and return the device and a completion future.

    On Linux mounting is never delayed, so the future is already done.
    """
    ready: "Future[None]" = Future()
    ready.set_result(None)
    path = find_fusermount()
    argv = ["-o", config.to_options_string("linux"), "--", directory]
    return fusermount(path, argv, {}, True), ready