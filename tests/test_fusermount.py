import sys
import textwrap

import pytest

from fusewire.fusermount import FusermountError, fusermount

HELPER = textwrap.dedent(
    """
    import os, socket, sys
    sock = socket.socket(fileno=int(os.environ["_FUSE_COMMFD"]))
    mode = sys.argv[1]
    if mode == "send":
        with open(os.environ["HELPER_PAYLOAD"], "r+b") as payload:
            socket.send_fds(sock, [b"x"], [payload.fileno()])
    elif mode == "two":
        with open(os.environ["HELPER_PAYLOAD"], "r+b") as a, open(
            os.environ["HELPER_PAYLOAD"], "r+b"
        ) as b:
            socket.send_fds(sock, [b"x"], [a.fileno(), b.fileno()])
    elif mode == "fail":
        sys.exit(3)
    """
)


@pytest.fixture
def helper(tmp_path):
    path = tmp_path / "helper.py"
    path.write_text(HELPER)
    return str(path)


@pytest.fixture
def payload(tmp_path):
    path = tmp_path / "payload"
    path.write_bytes(b"payload bytes")
    return path


@pytest.mark.parametrize("wait", [True, False])
def test_receives_descriptor(helper, payload, wait):
    with fusermount(
        sys.executable, [helper, "send"], {"HELPER_PAYLOAD": str(payload)}, wait
    ) as dev:
        assert dev.read() == b"payload bytes"


def test_helper_that_sends_nothing(helper):
    with pytest.raises(FusermountError, match="wanted 1 fd"):
        fusermount(sys.executable, [helper, "silent"], {}, True)


def test_helper_that_sends_two_descriptors(helper, payload):
    with pytest.raises(FusermountError, match="wanted 1 fd"):
        fusermount(
            sys.executable, [helper, "two"], {"HELPER_PAYLOAD": str(payload)}, True
        )


def test_failing_helper(helper):
    with pytest.raises(FusermountError, match="running"):
        fusermount(sys.executable, [helper, "fail"], {}, True)


def test_missing_binary(tmp_path):
    missing = str(tmp_path / "no-such-helper")
    with pytest.raises(FusermountError, match="no-such-helper"):
        fusermount(missing, [], {}, True)