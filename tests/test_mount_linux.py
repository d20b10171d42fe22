import shlex
import sys
import textwrap

import pytest

from fusewire.mount_config import MountConfig
from fusewire.mount_linux import (
    MS_NODEV,
    MS_NOEXEC,
    MS_NOSUID,
    MS_RDONLY,
    begin_mount,
    direct_mount_arguments,
    find_fusermount,
    mount_flags,
)

SEND_HELPER = textwrap.dedent(
    """
    import os, socket
    sock = socket.socket(fileno=int(os.environ["_FUSE_COMMFD"]))
    with open(os.environ["HELPER_PAYLOAD"], "r+b") as payload:
        socket.send_fds(sock, [b"x"], [payload.fileno()])
    """
)


def _script(path, body):
    path.write_text(body)
    path.chmod(0o755)
    return path


def test_find_fusermount_prefers_version_3(tmp_path, monkeypatch):
    _script(tmp_path / "fusermount", "#!/bin/sh\n")
    three = _script(tmp_path / "fusermount3", "#!/bin/sh\n")
    monkeypatch.setenv("PATH", str(tmp_path))
    assert find_fusermount() == str(three)


def test_find_fusermount_falls_back(tmp_path, monkeypatch):
    old = _script(tmp_path / "fusermount", "#!/bin/sh\n")
    monkeypatch.setenv("PATH", str(tmp_path))
    assert find_fusermount() == str(old)


def test_find_fusermount_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(FileNotFoundError):
        find_fusermount()


def test_mount_flags_defaults():
    assert mount_flags({}) == (MS_NODEV | MS_NOSUID, {})


def test_mount_flags_applies_and_removes_flag_options():
    options = {"ro": "", "noexec": "", "dev": "", "allow_other": ""}
    flags, remaining = mount_flags(options)
    assert flags == MS_NOSUID | MS_RDONLY | MS_NOEXEC
    assert remaining == {"allow_other": ""}
    assert "ro" in options


def test_mount_flags_rw_clears_read_only():
    assert mount_flags({"ro": "", "rw": ""}) == (MS_NODEV | MS_NOSUID, {})


def test_direct_mount_arguments():
    config = MountConfig(
        fs_name="myfs", subtype="sub", read_only=True, options={"allow_other": ""}
    )
    args = direct_mount_arguments(config, 7, 1000, 100)
    assert args.source == "myfs"
    assert args.fstype == "fuse.sub"
    assert args.flags & MS_RDONLY
    assert args.data == (
        "fd=7,rootmode=40000,user_id=1000,group_id=100,"
        "default_permissions,allow_other"
    )


def test_direct_mount_arguments_without_subtype():
    args = direct_mount_arguments(MountConfig(), 3, 0, 0)
    assert args.fstype == "fuse"
    assert args.source == ""
    assert "fsname" not in args.data
    assert args.data.startswith("fd=3,rootmode=40000,user_id=0,group_id=0,")


def test_begin_mount_runs_fusermount(tmp_path, monkeypatch):
    bindir = tmp_path / "bin"
    bindir.mkdir()
    helper = tmp_path / "helper.py"
    helper.write_text(SEND_HELPER)
    record = tmp_path / "record"
    _script(
        bindir / "fusermount3",
        "#!/bin/sh\n"
        f"printf '%s\\n' \"$@\" > {shlex.quote(str(record))}\n"
        f"exec {shlex.quote(sys.executable)} {shlex.quote(str(helper))}\n",
    )
    payload = tmp_path / "payload"
    payload.write_bytes(b"device")
    mountpoint = tmp_path / "mnt"
    mountpoint.mkdir()
    monkeypatch.setenv("PATH", str(bindir))
    monkeypatch.setenv("HELPER_PAYLOAD", str(payload))

    config = MountConfig()
    dev, ready = begin_mount(str(mountpoint), config)
    with dev:
        assert dev.read() == b"device"
    assert ready.result(timeout=0) is None
    assert record.read_text().splitlines() == [
        "-o",
        config.to_options_string("linux"),
        "--",
        str(mountpoint),
    ]