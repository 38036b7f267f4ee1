from __future__ import annotations

"""Keyed PRS container tests."""
import struct

import pytest

from archive_helper import noise
from psoarc.compression import prs, prsd
from psoarc.compression.crypt import Keystream, apply_keystream
from psoarc.packing.binary import ByteOrder
from psoarc.packing.errors import CorruptError, TruncatedError

PAYLOAD = b"Quest data " * 200 + noise(500)


@pytest.mark.parametrize("order", [ByteOrder.LITTLE, ByteOrder.BIG])
def test_round_trip_explicit_order(order: ByteOrder):  # noqa: N802
    blob, key = prsd.compress(PAYLOAD, key=0x12345678, order=order)
    assert key == 0x12345678
    assert prsd.decompress(blob, key=key, order=order) == PAYLOAD


@pytest.mark.parametrize("order", [ByteOrder.LITTLE, ByteOrder.BIG])
def test_auto_order_detects_either(order: ByteOrder):  # noqa: N802
    blob, _ = prsd.compress(PAYLOAD, key=0xCAFEBABE, order=order)
    assert prsd.decompress(blob) == PAYLOAD


def test_default_order_is_little_endian():  # noqa: N802
    blob, key = prsd.compress(b"abc", key=7)
    size, stored = struct.unpack_from("<II", blob, 0)
    assert (size, stored) == (3, 7)
    assert len(blob) % 4 == 0


def test_generated_key_is_returned_and_stored():  # noqa: N802
    blob, key = prsd.compress(PAYLOAD)
    assert 0 <= key <= 0xFFFFFFFF
    assert struct.unpack_from("<I", blob, 4)[0] == key
    assert prsd.decompress(blob) == PAYLOAD


def test_empty_payload():  # noqa: N802
    blob, key = prsd.compress(b"", key=1)
    assert prsd.decompress(blob, key=key) == b""


def test_body_is_scrambled():  # noqa: N802
    blob, _ = prsd.compress(PAYLOAD, key=99, order=ByteOrder.LITTLE)
    plain = prs.compress(PAYLOAD)
    assert blob[8 : 8 + len(plain)] != plain


def test_wrong_key_is_rejected():  # noqa: N802
    blob, _ = prsd.compress(PAYLOAD, key=1, order=ByteOrder.LITTLE)
    with pytest.raises(CorruptError):
        prsd.decompress(blob, key=2, order=ByteOrder.LITTLE)
    with pytest.raises(CorruptError):
        prsd.decompress(blob, key=2)


def test_garbage_is_corrupt():  # noqa: N802
    with pytest.raises(CorruptError):
        prsd.decompress(noise(64, seed=5))


def test_short_input_is_truncated():  # noqa: N802
    with pytest.raises(TruncatedError):
        prsd.decompress(b"\x00\x01")


def test_keystream_is_deterministic_per_key():  # noqa: N802
    a = Keystream(42)
    b = Keystream(42)
    c = Keystream(43)
    first = [a.next_word() for _ in range(200)]
    assert first == [b.next_word() for _ in range(200)]
    assert first != [c.next_word() for _ in range(200)]
    assert all(0 <= w <= 0xFFFFFFFF for w in first)


@pytest.mark.parametrize("order", [ByteOrder.LITTLE, ByteOrder.BIG])
def test_keystream_application_is_involutive(order: ByteOrder):  # noqa: N802
    data = noise(256, seed=11)
    once = apply_keystream(data, 0xDEADBEEF, order)
    assert once != data
    assert apply_keystream(once, 0xDEADBEEF, order) == data


def test_keystream_rejects_partial_words():  # noqa: N802
    with pytest.raises(ValueError):
        apply_keystream(b"abc", 1, ByteOrder.LITTLE)
