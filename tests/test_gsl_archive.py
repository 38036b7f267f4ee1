from __future__ import annotations

"""GSL archive tests: block addressing, names and byte-order detection."""
import struct
from pathlib import Path

import pytest

from archive_helper import new_entries, noise, write_inputs
from psoarc.api import (
    BuildOptions,
    append_to_archive,
    create_archive,
    delete_from_archive,
    list_entries,
    update_archive,
)
from psoarc.packing.binary import ByteOrder
from psoarc.packing.errors import (
    CorruptError,
    EntryNameError,
    TruncatedError,
    UnsupportedOperationError,
)
from psoarc.packing.planner import NewEntry
from psoarc.packing.reader import ContainerReader


def _create(tmp_path: Path, files: dict, order=ByteOrder.AUTO) -> Path:
    paths = write_inputs(tmp_path, files)
    archive = tmp_path / "data.gsl"
    create_archive(BuildOptions(archive, "gsl", new_entries(paths), order))
    return archive


def test_create_defaults_to_big_endian(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"map.dat": b"m" * 3000, "obj.dat": b"o" * 5})
    data = archive.read_bytes()
    assert data[:7] == b"map.dat"
    assert data[7:32] == b"\x00" * 25
    # Table (3 records with the sentinel) rounds up to one block.
    assert struct.unpack_from(">II", data, 32) == (1, 3000)
    assert struct.unpack_from(">II", data, 48 + 32) == (3, 5)
    assert data[96:144] == b"\x00" * 48
    assert len(data) == 4 * 2048


def test_little_endian_is_detected(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"a.bin": noise(10)}, ByteOrder.LITTLE)
    assert struct.unpack_from("<I", archive.read_bytes(), 32)[0] == 1
    with ContainerReader(archive, "gsl") as reader:
        assert reader.byte_order is ByteOrder.LITTLE
        assert reader.read_payload(0) == noise(10)


def test_big_endian_is_detected(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"a.bin": noise(10)}, ByteOrder.BIG)
    with ContainerReader(archive, "gsl") as reader:
        assert reader.byte_order is ByteOrder.BIG


def test_neither_order_in_range_is_corrupt(tmp_path: Path):  # noqa: N802
    record = b"a".ljust(32, b"\x00") + b"\x01\x01\x01\x01" + b"\x00" * 12
    bogus = tmp_path / "bad.gsl"
    bogus.write_bytes(record.ljust(2048, b"\x00"))
    with pytest.raises(CorruptError):
        ContainerReader(bogus, "gsl")


def test_explicit_wrong_order_reports_corruption(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"a.bin": b"abc"}, ByteOrder.BIG)
    with pytest.raises(CorruptError):
        ContainerReader(archive, "gsl", ByteOrder.LITTLE)


def test_missing_sentinel_is_truncated(tmp_path: Path):  # noqa: N802
    bogus = tmp_path / "short.gsl"
    bogus.write_bytes(b"a".ljust(48, b"\x00"))
    with pytest.raises(TruncatedError):
        ContainerReader(bogus, "gsl")


def test_names_and_lookup(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"first": b"1", "second": b"22", "7": b"333"})
    with ContainerReader(archive, "gsl") as reader:
        assert [e.name for e in reader.iter_entries()] == ["first", "second", "7"]
        assert reader.find("second") == 1
        # A name match wins over the numeric fallback.
        assert reader.find("7") == 2
        assert reader.find("0") == 0
        assert reader.display_name(1) == "second"


def test_name_limit_is_31_bytes(tmp_path: Path):  # noqa: N802
    (path,) = write_inputs(tmp_path, {"x": b"data"})
    archive = tmp_path / "n.gsl"
    create_archive(BuildOptions(archive, "gsl", [NewEntry(path, "n" * 31)]))
    with pytest.raises(EntryNameError) as exc:
        create_archive(BuildOptions(archive, "gsl", [NewEntry(path, "n" * 32)]))
    assert exc.value.code == "E_NAME_TOO_LONG"
    assert list_entries(archive, "gsl")[0]["name"] == "n" * 31


def test_append_keeps_source_byte_order(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"a": b"a" * 100}, ByteOrder.LITTLE)
    (extra,) = write_inputs(tmp_path, {"b": b"b" * 200})
    append_to_archive(BuildOptions(archive, "gsl", [NewEntry(extra)]))
    with ContainerReader(archive, "gsl") as reader:
        assert reader.byte_order is ByteOrder.LITTLE
        assert [e.name for e in reader.iter_entries()] == ["a", "b"]
        assert reader.read_payload(1) == b"b" * 200


def test_reserved_bytes_survive_rebuild(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path, {"a": b"a" * 10})
    data = bytearray(archive.read_bytes())
    data[40:48] = b"RESERVED"
    archive.write_bytes(bytes(data))
    (extra,) = write_inputs(tmp_path, {"b": b"b"})
    append_to_archive(BuildOptions(archive, "gsl", [NewEntry(extra)]))
    assert archive.read_bytes()[40:48] == b"RESERVED"


def test_attachments_not_supported(tmp_path: Path):  # noqa: N802
    a, b = write_inputs(tmp_path, {"a": b"a", "b": b"b"})
    with pytest.raises(UnsupportedOperationError):
        create_archive(
            BuildOptions(tmp_path / "x.gsl", "gsl", [NewEntry(a, attachment=b)])
        )


def _full_width_name_archive(tmp_path: Path) -> Path:
    """Two entries; the first name fills all 32 bytes with no terminator."""
    table = b"n" * 32 + struct.pack(">II", 1, 5) + b"\x00" * 8
    table += b"b.bin".ljust(32, b"\x00") + struct.pack(">II", 2, 3) + b"\x00" * 8
    data = table.ljust(2048, b"\x00")
    data += b"hello".ljust(2048, b"\x00") + b"bee".ljust(2048, b"\x00")
    archive = tmp_path / "wide.gsl"
    archive.write_bytes(data)
    return archive


def test_full_width_names_survive_rebuilds(tmp_path: Path):  # noqa: N802
    archive = _full_width_name_archive(tmp_path)
    assert list_entries(archive, "gsl")[0]["name"] == "n" * 32
    (extra,) = write_inputs(tmp_path, {"c.bin": b"sea"})
    append_to_archive(BuildOptions(archive, "gsl", [NewEntry(extra)]))
    delete_from_archive(BuildOptions(archive, "gsl"), ["b.bin"])
    with ContainerReader(archive, "gsl") as reader:
        assert reader.byte_order is ByteOrder.BIG
        assert [e.name for e in reader.iter_entries()] == ["n" * 32, "c.bin"]
        assert reader.read_payload(0) == b"hello"
        assert reader.read_payload(1) == b"sea"
    assert archive.read_bytes()[:32] == b"n" * 32


def test_rename_still_enforces_31_bytes(tmp_path: Path):  # noqa: N802
    archive = _full_width_name_archive(tmp_path)
    (long_name,) = write_inputs(tmp_path, {"m" * 32: b"data"})
    with pytest.raises(EntryNameError) as exc:
        update_archive(
            BuildOptions(archive, "gsl"), "b.bin", long_name, rename=True
        )
    assert exc.value.code == "E_NAME_TOO_LONG"
    # Replacing the payload without renaming is fine.
    update_archive(BuildOptions(archive, "gsl"), "b.bin", long_name)
    assert list_entries(archive, "gsl")[1]["name"] == "b.bin"
