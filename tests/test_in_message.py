import io

import pytest

from fusewire.flags import Opcode
from fusewire.in_message import BUFFER_SIZE, MAX_WRITE_SIZE, InMessage
from fusewire.structs import InHeader

HEADER_SIZE = InHeader.byte_size()


def make_request(payload: bytes, opcode=Opcode.WRITE, unique=7, nodeid=3):
    header = InHeader(
        len=HEADER_SIZE + len(payload),
        opcode=int(opcode),
        unique=unique,
        nodeid=nodeid,
    )
    return header.pack() + payload


class ChunkReader:
    """A reader without readinto, returning the whole chunk from read()."""

    def __init__(self, data: bytes):
        self.data = data

    def read(self, size):
        return self.data[:size]


def test_header_size_matches_kernel_layout():
    assert HEADER_SIZE == 40


def test_largest_write_request_fits():
    assert MAX_WRITE_SIZE == 1 << 20
    payload = b"w" * MAX_WRITE_SIZE
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(payload)))
    assert len(msg) == MAX_WRITE_SIZE
    assert msg.consume_bytes(MAX_WRITE_SIZE) == payload


def test_header_is_decoded():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"taco", unique=99, nodeid=5)))
    header = msg.header()
    assert header.opcode == Opcode.WRITE
    assert header.unique == 99
    assert header.nodeid == 5
    assert header.len == HEADER_SIZE + 4


def test_read_without_readinto():
    msg = InMessage()
    msg.read_from(ChunkReader(make_request(b"burrito")))
    assert msg.consume_bytes(7) == b"burrito"


def test_len_counts_payload_only():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"tacoburrito")))
    assert len(msg) == len(b"tacoburrito")


def test_consume_bytes_in_pieces():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"tacoburrito")))
    assert msg.consume_bytes(4) == b"taco"
    assert len(msg) == len(b"burrito")
    assert msg.consume_bytes(7) == b"burrito"
    assert len(msg) == 0


def test_consume_bytes_too_many_returns_none_and_keeps_data():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"taco")))
    assert msg.consume_bytes(5) is None
    assert msg.consume_bytes(4) == b"taco"


def test_consume_returns_view():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"abcdef")))
    view = msg.consume(3)
    assert bytes(view) == b"abc"
    assert bytes(msg.consume(3)) == b"def"


def test_consume_on_empty_returns_none():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"")))
    assert len(msg) == 0
    assert msg.consume(0) is None
    assert msg.consume_bytes(0) == b""


def test_consume_too_many_returns_none():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"ab")))
    assert msg.consume(3) is None
    assert len(msg) == 2


def test_get_free_gives_space_after_message():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"taco")))
    free = msg.get_free(16)
    assert len(free) == 16
    free[:] = b"x" * 16
    # The message itself is untouched.
    assert msg.consume_bytes(4) == b"taco"


def test_get_free_rejects_bad_sizes():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"taco")))
    assert msg.get_free(0) is None
    assert msg.get_free(-1) is None
    assert msg.get_free(BUFFER_SIZE) is None


def test_short_read_is_rejected():
    msg = InMessage()
    with pytest.raises(ValueError, match="read only 10 bytes"):
        msg.read_from(io.BytesIO(b"\0" * 10))


def test_length_mismatch_is_rejected():
    data = make_request(b"taco") + b"extra"
    msg = InMessage()
    with pytest.raises(ValueError, match="Header says"):
        msg.read_from(io.BytesIO(data))


def test_empty_read_is_eof():
    msg = InMessage()
    with pytest.raises(EOFError):
        msg.read_from(io.BytesIO(b""))


def test_reader_errors_propagate():
    class Broken:
        def readinto(self, buf):
            raise OSError("device gone")

    msg = InMessage()
    with pytest.raises(OSError, match="device gone"):
        msg.read_from(Broken())


def test_reuse_for_second_message():
    msg = InMessage()
    msg.read_from(io.BytesIO(make_request(b"first", unique=1)))
    msg.consume_bytes(5)
    msg.read_from(io.BytesIO(make_request(b"second!", unique=2)))
    assert msg.header().unique == 2
    assert msg.consume_bytes(7) == b"second!"