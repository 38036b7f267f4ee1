from __future__ import annotations

"""PRS stream tests: round trips, known encodings and malformed input."""
import pytest

from archive_helper import noise
from psoarc.compression import prs
from psoarc.packing.errors import CompressionError, CorruptError


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"A",
        b"AB",
        b"a" * 5000,
        b"abcabcabcabcabcabc" * 40,
        b"The quick brown fox jumps over the lazy dog. " * 30,
        noise(4096),
    ],
    ids=["empty", "one", "two", "run", "period3", "text", "noise"],
)
def test_round_trip(data: bytes):  # noqa: N802
    packed = prs.compress(data)
    assert prs.decompress(packed) == data
    assert prs.decompressed_size(packed) == len(data)


def test_empty_stream_is_end_marker_only():  # noqa: N802
    assert prs.compress(b"") == b"\x02\x00\x00"


def test_single_literal_encoding():  # noqa: N802
    # control bits (LSB first): literal, then 0 1 + zero word.
    assert prs.compress(b"A") == b"\x05A\x00\x00"


def test_repetitive_input_shrinks():  # noqa: N802
    packed = prs.compress(b"\x00" * 65536)
    assert len(packed) < 65536 // 50


def test_far_matches_use_long_copies():  # noqa: N802
    block = noise(3000, seed=7)
    data = block + b"--" + block
    packed = prs.compress(data)
    assert len(packed) < len(data) * 3 // 4
    assert prs.decompress(packed) == data


def test_matches_beyond_window_are_not_used():  # noqa: N802
    block = noise(600, seed=9)
    data = block + noise(9000, seed=10) + block
    assert prs.decompress(prs.compress(data)) == data


def test_deterministic():  # noqa: N802
    data = noise(2000, seed=3) * 2
    assert prs.compress(data) == prs.compress(data)


def test_trailing_bytes_after_end_marker_ignored():  # noqa: N802
    data = b"hello hello hello"
    assert prs.decompress(prs.compress(data) + b"trailing junk") == data


def test_empty_input_is_rejected():  # noqa: N802
    with pytest.raises(CompressionError):
        prs.decompress(b"")


def test_truncated_stream_is_rejected():  # noqa: N802
    packed = prs.compress(b"abcdefgh" * 10)
    with pytest.raises(CompressionError):
        prs.decompress(packed[:-2])
    with pytest.raises(CompressionError):
        prs.decompressed_size(packed[:-2])


def test_copy_before_start_is_rejected():  # noqa: N802
    # Control 0x00: short copy, length 2, offset byte 0xFF (one back).
    with pytest.raises(CompressionError) as exc:
        prs.decompress(b"\x00\xff")
    assert exc.value.code == "E_CORRUPT"
    assert isinstance(exc.value, CorruptError)


def test_size_walk_rejects_bad_backreference():  # noqa: N802
    # literal 'x', then a 3-byte long copy from 8191 bytes back.
    stream = bytes([0b0101, ord("x"), 0x09, 0x00])
    with pytest.raises(CompressionError):
        prs.decompressed_size(stream)
