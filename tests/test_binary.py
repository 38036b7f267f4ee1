from __future__ import annotations

import io

import pytest

from psoarc.packing.binary import (
    ByteOrder,
    PaddingWriter,
    decode_u32,
    encode_u32,
    pack_name,
    unpack_name,
)
from psoarc.packing.errors import (
    CapacityExceededError,
    EntryNameError,
    OutOfRangeError,
    TruncatedError,
)
from psoarc.packing.table import (
    Entry,
    EntryTable,
    next_payload_offset,
    parse_index,
    table_region_size,
)


@pytest.mark.parametrize(
    "position,boundary,expected",
    [(0, 2048, 0), (1, 2048, 2048), (2048, 2048, 2048), (33, 32, 64), (7, 0, 7)],
)
def test_next_payload_offset(position, boundary, expected):  # noqa: N802
    assert next_payload_offset(position, boundary) == expected


def test_table_region_size():  # noqa: N802
    assert table_region_size(3, 8, 0) == 32
    assert table_region_size(2, 48, 2048) == 2048
    assert table_region_size(42, 48, 2048) == 4096


def test_u32_fields():  # noqa: N802
    assert encode_u32(1, ByteOrder.BIG) == b"\x00\x00\x00\x01"
    assert encode_u32(1, ByteOrder.LITTLE) == b"\x01\x00\x00\x00"
    assert decode_u32(b"\xff\x00\x00\x00\x01", 1, ByteOrder.BIG) == 1
    with pytest.raises(CapacityExceededError):
        encode_u32(1 << 32, ByteOrder.LITTLE, field="size")
    with pytest.raises(TruncatedError):
        decode_u32(b"\x00\x00", 0, ByteOrder.LITTLE)
    with pytest.raises(ValueError):
        encode_u32(1, ByteOrder.AUTO)


def test_names():  # noqa: N802
    assert pack_name("abc", 8, 7) == b"abc\x00\x00\x00\x00\x00"
    assert unpack_name(b"abc\x00junk") == "abc"
    assert unpack_name(b"x" * 32) == "x" * 32
    with pytest.raises(EntryNameError) as exc:
        pack_name("a" * 8, 8, 7)
    assert exc.value.code == "E_NAME_TOO_LONG"
    with pytest.raises(EntryNameError):
        pack_name("", 8, 7)
    with pytest.raises(EntryNameError):
        pack_name("a\x00b", 8, 7)


def test_non_utf8_names_survive():  # noqa: N802
    raw = b"\x83\x65st"
    name = unpack_name(raw)
    assert pack_name(name, 8, 7)[:4] == raw


def test_padding_writer():  # noqa: N802
    buf = io.BytesIO()
    w = PaddingWriter(buf)
    w.write(b"abc")
    assert w.align(8) == 5
    assert w.pad_to(8) == 0
    w.write(b"d")
    assert buf.getvalue() == b"abc" + b"\x00" * 5 + b"d"
    with pytest.raises(RuntimeError):
        w.pad_to(4)


def test_copy_from_short_source():  # noqa: N802
    w = PaddingWriter(io.BytesIO())
    assert w.copy_from(io.BytesIO(b"123456"), 4) == 4
    with pytest.raises(TruncatedError):
        w.copy_from(io.BytesIO(b"12"), 4)


def test_parse_index():  # noqa: N802
    assert parse_index("12") == 12
    assert parse_index("0x10") == 16
    assert parse_index("010") == 10
    assert parse_index("boss.nj") is None


def test_table_lookup():  # noqa: N802
    table = EntryTable(
        [Entry(0, "a", 2048, 1), Entry(1, "a", 4096, 1), Entry(2, "3", 6144, 1)]
    )
    assert table.find("a") == 0
    assert table.find("1") == 1
    assert table.find("1", by_name=False) == 1
    with pytest.raises(OutOfRangeError):
        table.find("3", by_name=False)
    with pytest.raises(OutOfRangeError):
        table[-1]
