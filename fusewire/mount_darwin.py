"""Mounting on macOS through an installed macFUSE or osxfuse."""

from __future__ import annotations

import errno
import itertools
import os
import subprocess
import sys
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Tuple

from .fusermount import fusermount
from .in_message import MAX_WRITE_SIZE
from .mount_config import MountConfig

__all__ = [
    "OsxfuseInstallation",
    "OSXFUSE_INSTALLATIONS",
    "NoAvailableDevicesError",
    "OsxfuseNotLoadedError",
    "OsxfuseNotFoundError",
    "load_osxfuse",
    "open_osxfuse_device",
    "convert_mount_args",
    "begin_mount",
]


class NoAvailableDevicesError(RuntimeError):
    """Every FUSE device is in use."""

    def __init__(self) -> None:
        super().__init__("no available fuse devices")


class OsxfuseNotLoadedError(RuntimeError):
    """No FUSE device exists, so the kernel extension is not loaded."""

    def __init__(self) -> None:
        super().__init__("osxfuse is not loaded")


class OsxfuseNotFoundError(RuntimeError):
    """No known macFUSE or osxfuse installation was found."""

    def __init__(self) -> None:
        super().__init__("cannot locate OSXFUSE")


@dataclass(frozen=True)
class OsxfuseInstallation:
    """The paths and variables used by one installed osxfuse version."""

    # Device path prefix; a number is appended until a free device is found.
    device_prefix: str
    # Helper that loads the kernel extension.
    load: str
    # Helper that performs the mount.
    mount: str
    # Variable carrying the path of the calling executable.
    daemon_var: str
    # Variable carrying the "called by library" flag.
    lib_var: str
    # Receive the device over a Unix socket instead of opening it ourselves.
    use_comm_fd: bool = False


OSXFUSE_INSTALLATIONS: Tuple[OsxfuseInstallation, ...] = (
    OsxfuseInstallation(
        device_prefix="/dev/macfuse",
        load="/Library/Filesystems/macfuse.fs/Contents/Resources/load_macfuse",
        mount="/Library/Filesystems/macfuse.fs/Contents/Resources/mount_macfuse",
        daemon_var="_FUSE_DAEMON_PATH",
        lib_var="_FUSE_CALL_BY_LIB",
        use_comm_fd=True,
    ),
    OsxfuseInstallation(
        device_prefix="/dev/osxfuse",
        load="/Library/Filesystems/osxfuse.fs/Contents/Resources/load_osxfuse",
        mount="/Library/Filesystems/osxfuse.fs/Contents/Resources/mount_osxfuse",
        daemon_var="MOUNT_OSXFUSE_DAEMON_PATH",
        lib_var="MOUNT_OSXFUSE_CALL_BY_LIB",
    ),
    OsxfuseInstallation(
        device_prefix="/dev/osxfuse",
        load="/Library/Filesystems/osxfusefs.fs/Support/load_osxfusefs",
        mount="/Library/Filesystems/osxfusefs.fs/Support/mount_osxfusefs",
        daemon_var="MOUNT_FUSEFS_DAEMON_PATH",
        lib_var="MOUNT_FUSEFS_CALL_BY_LIB",
    ),
)


def load_osxfuse(binary: str) -> None:
    """Run the load helper; raises CalledProcessError if it fails."""
    subprocess.run([binary], cwd="/", check=True)


def open_osxfuse_device(prefix: str) -> BinaryIO:
    """Open the first FUSE device named ``prefix`` plus a number that is free."""
    for i in itertools.count():
        path = f"{prefix}{i}"
        try:
            fd = os.open(path, os.O_RDWR)
        except FileNotFoundError:
            if i == 0:
                raise OsxfuseNotLoadedError() from None
            raise NoAvailableDevicesError() from None
        except OSError as exc:
            if exc.errno == errno.EBUSY:
                continue
            raise
        return os.fdopen(fd, "r+b", buffering=0)
    raise NoAvailableDevicesError()


def convert_mount_args(
    daemon_var: str, lib_var: str, config: MountConfig
) -> Tuple[List[str], Dict[str, str]]:
    """The helper's arguments and environment for mounting with ``config``."""
    for key, value in config.to_map("darwin").items():
        if "," in key or "," in value:
            raise ValueError(
                f"mount options cannot contain commas on darwin: {key!r}={value!r}"
            )

    env = {lib_var: ""}
    if daemon_var:
        env[daemon_var] = sys.argv[0]
    argv = [
        "-o",
        config.to_options_string("darwin"),
        # The kernel extension splits writes by this size and ignores the
        # maximum write size negotiated at init.
        "-o",
        f"iosize={MAX_WRITE_SIZE}",
    ]
    return argv, env


def _watch_helper(
    binary: str, process: subprocess.Popen, ready: "Future[None]"
) -> None:
    output, _ = process.communicate()
    if process.returncode == 0:
        ready.set_result(None)
        return
    message = f"{binary} exited with status {process.returncode}"
    output = (output or b"").rstrip(b"\n")
    if output:
        message += ": " + output.decode("utf-8", "replace")
    ready.set_exception(RuntimeError(message))


def _call_mount(
    loc: OsxfuseInstallation, directory: str, config: MountConfig, dev: BinaryIO
) -> "Future[None]":
    argv, env = convert_mount_args(loc.daemon_var, loc.lib_var, config)
    fd = dev.fileno()
    argv += [str(fd), directory]
    process = subprocess.Popen(
        [loc.mount, *argv],
        env=env,
        pass_fds=(fd,),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    ready: "Future[None]" = Future()
    threading.Thread(
        target=_watch_helper, args=(loc.mount, process, ready), daemon=True
    ).start()
    return ready


def _call_mount_comm_fd(
    loc: OsxfuseInstallation, directory: str, config: MountConfig
) -> BinaryIO:
    argv, env = convert_mount_args(loc.daemon_var, loc.lib_var, config)
    env["_FUSE_COMMVERS"] = "2"
    argv.append(directory)
    return fusermount(loc.mount, argv, env, False)


def begin_mount(
    directory: str, config: MountConfig
) -> Tuple[BinaryIO, "Future[None]"]:
    """Start mounting at ``directory``; return the device and a completion future.

    The future completes, possibly with an error, once the mount helper has
    finished. The file system may need to serve the device for that to happen.
    """
    for loc in OSXFUSE_INSTALLATIONS:
        try:
            os.stat(loc.mount)
        except FileNotFoundError:
            continue

        if loc.use_comm_fd:
            ready: "Future[None]" = Future()
            ready.set_result(None)
            return _call_mount_comm_fd(loc, directory, config), ready

        try:
            dev = open_osxfuse_device(loc.device_prefix)
        except OsxfuseNotLoadedError:
            load_osxfuse(loc.load)
            dev = open_osxfuse_device(loc.device_prefix)

        try:
            ready = _call_mount(loc, directory, config, dev)
        except BaseException:
            dev.close()
            raise
        return dev, ready

    raise OsxfuseNotFoundError()