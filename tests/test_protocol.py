import dataclasses

import pytest

from fusewire.protocol import MAX_PROTOCOL, MIN_PROTOCOL, Protocol


def test_str_formats_major_dot_minor():
    assert str(Protocol(7, 19)) == "7.19"


def test_lt_within_same_major():
    assert Protocol(7, 8).lt(Protocol(7, 9)) is True
    assert Protocol(7, 9).lt(Protocol(7, 9)) is False
    assert Protocol(7, 10).lt(Protocol(7, 9)) is False


def test_major_dominates_minor():
    assert Protocol(6, 99).lt(Protocol(7, 0)) is True
    assert Protocol(8, 0).ge(Protocol(7, 31)) is True


def test_ge_within_same_major():
    assert Protocol(7, 9).ge(Protocol(7, 9)) is True
    assert Protocol(7, 8).ge(Protocol(7, 9)) is False


@pytest.mark.parametrize(
    "a, b",
    [
        (Protocol(7, 8), Protocol(7, 9)),
        (Protocol(7, 9), Protocol(7, 9)),
        (Protocol(7, 12), Protocol(7, 9)),
        (Protocol(6, 31), Protocol(7, 0)),
    ],
)
def test_lt_and_ge_are_complements(a, b):
    assert a.lt(b) is (not a.ge(b))
    assert a.lt(b) is (a < b)


@pytest.mark.parametrize(
    "method", ["has_attr_block_size", "has_read_write_flags", "has_getattr_flags"]
)
def test_features_from_7_9(method):
    assert getattr(Protocol(7, 8), method)() is False
    assert getattr(Protocol(7, 9), method)() is True


def test_non_seekable_from_7_10():
    assert Protocol(7, 9).has_open_non_seekable() is False
    assert Protocol(7, 10).has_open_non_seekable() is True


@pytest.mark.parametrize("method", ["has_umask", "has_invalidate"])
def test_features_from_7_12(method):
    assert getattr(Protocol(7, 11), method)() is False
    assert getattr(Protocol(7, 12), method)() is True


def test_supported_range_is_ordered():
    assert MIN_PROTOCOL.lt(MAX_PROTOCOL) is True
    assert MIN_PROTOCOL.has_invalidate() is True


def test_protocol_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        Protocol(7, 9).minor = 10  # type: ignore[misc]