"""Optional settings for a mount, and their rendering as mount options."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

__all__ = [
    "MountConfig",
    "escape_options_key",
    "map_to_options_string",
    "DEFAULT_LINUX_FSNAME",
]

# systemd v219 unmounts file systems that carry no explicit name, so on Linux
# one is always supplied.
DEFAULT_LINUX_FSNAME = "some_fuse_file_system"


def _is_linux(platform: str) -> bool:
    return platform.startswith("linux")


def _is_darwin(platform: str) -> bool:
    return platform == "darwin"


@dataclass
class MountConfig:
    """Optional configuration accepted by mount.

    Several settings apply to one platform only, as noted on each.
    """

    # Parent context for every op served; None means no particular context.
    op_context: Any = None

    # Name of the file system as shown by e.g. `mount`.
    fs_name: str = ""

    # Mount read-only: writes and metadata changes fail.
    read_only: bool = False

    # Loggers for errors and for debug output; None disables each.
    error_logger: Optional[logging.Logger] = None
    debug_logger: Optional[logging.Logger] = None

    # Linux only: disable kernel writeback caching.
    disable_writeback_caching: bool = False

    # macOS only: do not mount with novncache, restoring entry caching.
    enable_vnode_caching: bool = False

    # Linux only: cache symlink targets in the page cache.
    enable_symlink_caching: bool = False

    # Linux only: treat ENOSYS from open as "no open calls needed".
    enable_no_open_support: bool = False

    # Linux only: treat ENOSYS from opendir as "no opendir calls needed".
    enable_no_opendir_support: bool = False

    # Do not ask the kernel to check permissions itself.
    disable_default_permissions: bool = False

    # Return read data as a list of segments instead of filling a buffer.
    use_vectored_read: bool = False

    # macOS only: volume name shown in the Finder.
    volume_name: str = ""

    # Extra key=value options passed unaltered to the mount helper.
    options: Dict[str, str] = field(default_factory=dict)

    # File system subtype, shown as fuse.<subtype> in /proc/mounts.
    subtype: str = ""

    # Let the kernel issue reads asynchronously.
    enable_async_reads: bool = False

    def to_map(self, platform: Optional[str] = None) -> Dict[str, str]:
        """All key=value mount options for the mount helper on ``platform``.

        ``platform`` is a ``sys.platform`` value and defaults to the current one.
        An empty value means the option is a bare key.
        """
        if platform is None:
            platform = sys.platform
        darwin = _is_darwin(platform)
        opts: Dict[str, str] = {}

        if not self.disable_default_permissions:
            opts["default_permissions"] = ""

        fsname = self.fs_name
        if _is_linux(platform) and not fsname:
            fsname = DEFAULT_LINUX_FSNAME
        if fsname:
            opts["fsname"] = fsname

        if self.subtype:
            opts["subtype"] = self.subtype

        if self.read_only:
            opts["ro"] = ""

        if darwin:
            if not self.enable_vnode_caching:
                opts["novncache"] = ""
            if self.volume_name:
                opts["volname"] = self.volume_name
            # Suppress "Apple Double" files, which only add noise and cost.
            opts["noappledouble"] = ""

        opts.update(self.options)
        return opts

    def to_options_string(self, platform: Optional[str] = None) -> str:
        """The mount options as one comma-separated string for the helper."""
        return map_to_options_string(self.to_map(platform))


def escape_options_key(key: str) -> str:
    """Escape backslashes and commas in an option key."""
    return key.replace("\\", "\\\\").replace(",", "\\,")


def map_to_options_string(opts: Mapping[str, str]) -> str:
    """Join options as ``key`` or ``key=value``, separated by commas."""
    components = []
    for key, value in opts.items():
        key = escape_options_key(key)
        components.append(f"{key}={value}" if value else key)
    return ",".join(components)