"""Running a mount helper that hands back a FUSE device over a Unix socket."""

from __future__ import annotations

import os
import socket
import subprocess
import threading
from typing import BinaryIO, Mapping, Optional, Sequence

__all__ = ["FusermountError", "fusermount", "COMM_FD_VAR"]

# Environment variable that tells the helper which descriptor to reply on.
COMM_FD_VAR = "_FUSE_COMMFD"

_MAX_FDS = 4
_MESSAGE_SIZE = 32


class FusermountError(Exception):
    """The mount helper failed or did not hand back exactly one descriptor."""


def _reap(process: subprocess.Popen) -> None:
    threading.Thread(target=process.wait, daemon=True).start()


def fusermount(
    binary: str,
    argv: Sequence[str],
    extra_env: Optional[Mapping[str, str]] = None,
    wait: bool = True,
) -> BinaryIO:
    """Run ``binary`` with ``argv`` and return the device file it sends back.

    The helper inherits the current environment plus ``extra_env`` and one end
    of a Unix socket pair, named by the _FUSE_COMMFD variable. If ``wait`` is
    true the helper must exit successfully before its reply is read.
    """
    parent_sock, child_sock = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    with parent_sock:
        with child_sock:
            child_fd = child_sock.fileno()
            env = dict(os.environ)
            env[COMM_FD_VAR] = str(child_fd)
            env.update(extra_env or {})
            command = [binary, *argv]
            try:
                if wait:
                    completed = subprocess.run(
                        command, env=env, pass_fds=(child_fd,)
                    )
                    if completed.returncode != 0:
                        raise FusermountError(
                            f"running {binary}: exit status {completed.returncode}"
                        )
                else:
                    _reap(subprocess.Popen(command, env=env, pass_fds=(child_fd,)))
            except OSError as exc:
                raise FusermountError(f"running {binary}: {exc}") from exc

        try:
            _msg, fds, _flags, _addr = socket.recv_fds(
                parent_sock, _MESSAGE_SIZE, _MAX_FDS
            )
        except OSError as exc:
            raise FusermountError(f"receiving descriptor: {exc}") from exc

    if len(fds) != 1:
        for fd in fds:
            os.close(fd)
        raise FusermountError(f"wanted 1 fd; got {list(fds)}")

    return os.fdopen(fds[0], "r+b", buffering=0)