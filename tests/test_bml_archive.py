from __future__ import annotations

"""BML archive tests: compressed payloads, PVM attachments and extraction."""
import struct
from pathlib import Path

import pytest

from archive_helper import noise, write_inputs
from psoarc.api import (
    BuildOptions,
    ExtractOptions,
    create_archive,
    extract_archive,
    list_entries,
    update_archive,
)
from psoarc.compression import prs
from psoarc.packing.binary import ByteOrder
from psoarc.packing.errors import (
    BadMagicError,
    CorruptError,
    UnsupportedOperationError,
)
from psoarc.packing.planner import NewEntry
from psoarc.packing.reader import ContainerReader

MODEL = b"NJCM" + b"\x01\x02\x03\x04" * 300
TEXTURE = b"PVMH" + noise(700, seed=4)
SOUND = b"sound " * 100


def _align32(value: int) -> int:
    return (value + 31) // 32 * 32


def _create(tmp_path: Path) -> Path:
    model, tex, snd = write_inputs(
        tmp_path, {"boss.nj": MODEL, "boss.pvm": TEXTURE, "roar.bin": SOUND}
    )
    archive = tmp_path / "boss.bml"
    create_archive(
        BuildOptions(
            archive,
            "bml",
            [NewEntry(model, attachment=tex), NewEntry(snd)],
        )
    )
    return archive


def test_header_and_layout(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path)
    data = archive.read_bytes()
    assert struct.unpack_from("<III", data, 0) == (0, 2, 0x150)
    assert data[12:64] == b"\x00" * 52

    model_c = len(prs.compress(MODEL))
    tex_c = len(prs.compress(TEXTURE))
    snd_c = len(prs.compress(SOUND))
    rec0 = data[64:128]
    assert rec0[:7] == b"boss.nj"
    assert struct.unpack_from("<IIIII", rec0, 32) == (
        model_c,
        0,
        len(MODEL),
        tex_c,
        len(TEXTURE),
    )
    rec1 = data[128:192]
    assert struct.unpack_from("<IIIII", rec1, 32) == (snd_c, 0, len(SOUND), 0, 0)

    # Table of 3 slots rounds up to 2048; payloads then pack on 32 bytes.
    tex_at = _align32(2048 + model_c)
    snd_at = _align32(tex_at + tex_c)
    assert prs.decompress(data[2048 : 2048 + model_c]) == MODEL
    assert prs.decompress(data[tex_at : tex_at + tex_c]) == TEXTURE
    assert prs.decompress(data[snd_at : snd_at + snd_c]) == SOUND
    assert len(data) == _align32(snd_at + snd_c)


def test_reader_reports_implicit_offsets(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path)
    with ContainerReader(archive, "bml") as reader:
        first, second = reader.iter_entries()
        assert first.offset == 2048
        assert first.attachment is not None
        assert first.attachment.offset % 32 == 0
        assert second.offset % 32 == 0
        assert second.attachment is None
        assert reader.read_attachment(1) is None
        assert prs.decompress(reader.read_attachment(0)) == TEXTURE


def test_list_rows(tmp_path: Path):  # noqa: N802
    rows = list_entries(_create(tmp_path), "bml")
    assert [r["name"] for r in rows] == ["boss.nj", "roar.bin"]
    assert rows[0]["raw_size"] == len(MODEL)
    assert rows[0]["pvm_raw_size"] == len(TEXTURE)
    assert "pvm_size" not in rows[1]


def test_extract_decompresses(tmp_path: Path):  # noqa: N802
    out = tmp_path / "out"
    result = extract_archive(ExtractOptions(_create(tmp_path), "bml", out))
    assert sorted(p.name for p in result.files) == [
        "boss.nj",
        "boss.nj.pvm",
        "roar.bin",
    ]
    assert (out / "boss.nj").read_bytes() == MODEL
    assert (out / "boss.nj.pvm").read_bytes() == TEXTURE
    assert (out / "roar.bin").read_bytes() == SOUND


def test_extract_raw_keeps_compressed_bytes(tmp_path: Path):  # noqa: N802
    out = tmp_path / "raw"
    extract_archive(
        ExtractOptions(_create(tmp_path), "bml", out, targets=["boss.nj"], raw=True)
    )
    assert sorted(p.name for p in out.iterdir()) == [
        "boss.nj.prs",
        "boss.nj.pvm.prs",
    ]
    assert prs.decompress((out / "boss.nj.prs").read_bytes()) == MODEL


def test_size_mismatch_is_corrupt(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path)
    data = bytearray(archive.read_bytes())
    struct.pack_into("<I", data, 64 + 40, len(MODEL) + 1)
    archive.write_bytes(bytes(data))
    with pytest.raises(CorruptError):
        extract_archive(
            ExtractOptions(archive, "bml", tmp_path / "x", targets=["0"])
        )


def test_update_adds_attachment(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path)
    (pvm,) = write_inputs(tmp_path, {"roar.pvm": b"PVMH" + b"\x00" * 64})
    update_archive(
        BuildOptions(archive, "bml"), "roar.bin", pvm, attachment=True
    )
    rows = list_entries(archive, "bml")
    assert rows[1]["name"] == "roar.bin"
    assert rows[1]["pvm_raw_size"] == 68
    out = tmp_path / "out"
    extract_archive(ExtractOptions(archive, "bml", out, targets=["1"]))
    assert (out / "roar.bin").read_bytes() == SOUND
    assert (out / "roar.bin.pvm").read_bytes() == b"PVMH" + b"\x00" * 64


def test_update_payload_keeps_attachment(tmp_path: Path):  # noqa: N802
    archive = _create(tmp_path)
    (model,) = write_inputs(tmp_path, {"boss2.nj": b"NJCM v2" * 50})
    update_archive(BuildOptions(archive, "bml"), "0", model, rename=True)
    rows = list_entries(archive, "bml")
    assert rows[0]["name"] == "boss2.nj"
    assert rows[0]["raw_size"] == 350
    assert rows[0]["pvm_raw_size"] == len(TEXTURE)


def test_full_width_name(tmp_path: Path):  # noqa: N802
    (path,) = write_inputs(tmp_path, {"x": b"abc"})
    name = "m" * 32
    archive = tmp_path / "w.bml"
    create_archive(BuildOptions(archive, "bml", [NewEntry(path, name)]))
    data = archive.read_bytes()
    # No NUL terminator when the name fills the field.
    assert data[64:96] == name.encode()
    assert list_entries(archive, "bml")[0]["name"] == name


def test_bad_magic(tmp_path: Path):  # noqa: N802
    bogus = tmp_path / "bad.bml"
    bogus.write_bytes(struct.pack("<III", 0, 0, 0x151).ljust(2048, b"\x00"))
    with pytest.raises(BadMagicError):
        ContainerReader(bogus, "bml")


def test_only_little_endian(tmp_path: Path):  # noqa: N802
    (path,) = write_inputs(tmp_path, {"x": b"abc"})
    with pytest.raises(UnsupportedOperationError):
        create_archive(
            BuildOptions(tmp_path / "b.bml", "bml", [NewEntry(path)], ByteOrder.BIG)
        )


def test_size_is_checked_before_decompressing(tmp_path: Path, monkeypatch):  # noqa: N802
    archive = _create(tmp_path)
    data = bytearray(archive.read_bytes())
    struct.pack_into("<I", data, 128 + 40, len(SOUND) - 1)
    archive.write_bytes(bytes(data))

    def no_decompress(stream):
        raise AssertionError("output built for a mismatched entry")

    monkeypatch.setattr(prs, "decompress", no_decompress)
    with pytest.raises(CorruptError) as exc:
        extract_archive(
            ExtractOptions(archive, "bml", tmp_path / "x", targets=["roar.bin"])
        )
    assert str(len(SOUND) - 1) in str(exc.value)
