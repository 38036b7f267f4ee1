"""Container format variants.

Each supported layout is one :class:`ContainerFormat` subclass; the set is
closed and looked up by name through :func:`get_format`. A format knows how
big its table region is, where payloads go, and how to parse and emit its
table. It never touches payload bytes.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple

from .binary import ByteOrder, decode_u32, encode_u32, pack_name, unpack_name
from .constants import (
    AFS_ALIGNMENT,
    AFS_MAGIC,
    AFS_MAX_ENTRIES,
    AFS_RECORD_SIZE,
    BML_HEADER_RESERVED_SIZE,
    BML_MAGIC,
    BML_NAME_MAX_LENGTH,
    BML_NAME_SIZE,
    BML_PAYLOAD_ALIGNMENT,
    BML_RECORD_SIZE,
    BML_RESERVED_SIZE,
    BML_TABLE_ALIGNMENT,
    GSL_BLOCK_SIZE,
    GSL_NAME_MAX_LENGTH,
    GSL_NAME_SIZE,
    GSL_RECORD_SIZE,
    GSL_RESERVED_SIZE,
)
from .errors import bad_magic, corrupt, truncated, unsupported
from .table import (
    Attachment,
    Entry,
    EntryTable,
    next_payload_offset,
    table_region_size,
)

__all__ = [
    "ContainerFormat",
    "AfsFormat",
    "GslFormat",
    "BmlFormat",
    "FORMATS",
    "get_format",
]


def _read_exact(
    fp: BinaryIO, offset: int, size: int, label: str, path: Optional[Path]
) -> bytes:
    fp.seek(offset)
    data = fp.read(size)
    if len(data) != size:
        raise truncated(
            f"Truncated {label}: expected {size} bytes at {offset}, got {len(data)}",
            path,
            offset=offset,
        )
    return data


def _check_range(
    offset: int, size: int, file_size: int, index: int, path: Optional[Path]
) -> None:
    if offset + size > file_size:
        raise corrupt(
            f"Entry {index} @ {offset:#x}+{size} lies outside the "
            f"{file_size}-byte container",
            path,
            index=index,
        )


class ContainerFormat:
    name: str = ""
    has_names: bool = False
    record_size: int = 0
    alignment: int = 0
    offset_scale: int = 1
    max_entries: Optional[int] = None
    name_size: int = 0
    max_name_length: int = 0
    default_byte_order: ByteOrder = ByteOrder.LITTLE
    byte_orders: Tuple[ByteOrder, ...] = (ByteOrder.LITTLE,)
    compressed: bool = False
    supports_attachments: bool = False
    attachment_alignment: int = 0

    # Layout ---------------------------------------------------------------
    def header_size(self, entry_count: int) -> int:
        raise NotImplementedError

    def first_payload_offset(self, header_size: int) -> int:
        return next_payload_offset(header_size, self.alignment)

    def slot_end(self, offset: int, size: int) -> int:
        """Offset where the next payload may start after one at ``offset``."""
        # Empty payloads still claim a block, so start offsets stay unique.
        return next_payload_offset(offset + max(size, 1), self.alignment)

    def attachment_offset(self, end: int) -> int:
        return next_payload_offset(end, self.attachment_alignment)

    # Byte order -----------------------------------------------------------
    def resolve_byte_order(self, order: ByteOrder) -> ByteOrder:
        """Validate ``order`` for this format; AUTO becomes the create default."""
        if order is ByteOrder.AUTO:
            return self.default_byte_order
        if order not in self.byte_orders:
            raise unsupported(
                f"{self.name.upper()} containers are always "
                f"{self.default_byte_order.value}-endian",
                format=self.name,
            )
        return order

    # Names ----------------------------------------------------------------
    def encode_name(self, name: Optional[str], *, stored: bool = False) -> bytes:
        """Pack a name into its slot.

        New names obey ``max_name_length``; ``stored`` names were read from an
        existing table and may fill the whole slot without a terminator.
        """
        if not self.has_names:
            return b""
        limit = self.name_size if stored else self.max_name_length
        return pack_name(name or "", self.name_size, limit)

    def display_name(self, entry: Entry, archive: Path, count: int) -> str:
        if self.has_names and entry.name is not None:
            return entry.name
        digits = len(str(count))
        return f"{archive.name}.{entry.index:0{digits}d}"

    # Table I/O --------------------------------------------------------------
    def parse(
        self,
        fp: BinaryIO,
        file_size: int,
        order: ByteOrder = ByteOrder.AUTO,
        path: Optional[Path] = None,
    ) -> EntryTable:
        raise NotImplementedError

    def pack_table(self, table: EntryTable, header_size: int) -> bytes:
        raise NotImplementedError

    def _finish_table(self, blob: bytearray, header_size: int) -> bytes:
        if len(blob) > header_size:
            raise RuntimeError(
                f"{self.name} table of {len(blob)} bytes exceeds its "
                f"{header_size}-byte region"
            )
        blob.extend(b"\x00" * (header_size - len(blob)))
        return bytes(blob)


class AfsFormat(ContainerFormat):
    """``AFS\\0`` + count + (offset, size) pairs; payloads on 2048 bytes."""

    name = "afs"
    record_size = AFS_RECORD_SIZE
    alignment = AFS_ALIGNMENT
    max_entries = AFS_MAX_ENTRIES

    def header_size(self, entry_count: int) -> int:
        # The magic + count pair occupies the extra slot; no rounding.
        return table_region_size(entry_count, self.record_size, 0)

    def parse(self, fp, file_size, order=ByteOrder.AUTO, path=None):
        self.resolve_byte_order(order)
        le = ByteOrder.LITTLE
        head = _read_exact(fp, 0, 8, "AFS header", path)
        if head[:4] != AFS_MAGIC:
            raise bad_magic(path, self.name)
        count = decode_u32(head, 4, le)
        records = _read_exact(
            fp, 8, count * self.record_size, "AFS file table", path
        )
        entries: List[Entry] = []
        for i in range(count):
            base = i * self.record_size
            offset = decode_u32(records, base, le)
            size = decode_u32(records, base + 4, le)
            _check_range(offset, size, file_size, i, path)
            entries.append(Entry(index=i, name=None, offset=offset, size=size))
        return EntryTable(entries=entries, byte_order=le)

    def pack_table(self, table, header_size):
        le = ByteOrder.LITTLE
        blob = bytearray(AFS_MAGIC)
        blob += encode_u32(len(table), le, field="entry count")
        for entry in table:
            blob += encode_u32(entry.offset, le, field="offset")
            blob += encode_u32(entry.size, le, field="size")
        return self._finish_table(blob, header_size)


class GslFormat(ContainerFormat):
    """Named 48-byte records, offsets in 2048-byte blocks, either byte order."""

    name = "gsl"
    has_names = True
    record_size = GSL_RECORD_SIZE
    alignment = GSL_BLOCK_SIZE
    offset_scale = GSL_BLOCK_SIZE
    name_size = GSL_NAME_SIZE
    max_name_length = GSL_NAME_MAX_LENGTH
    default_byte_order = ByteOrder.BIG
    byte_orders = (ByteOrder.BIG, ByteOrder.LITTLE)

    def header_size(self, entry_count: int) -> int:
        # Room for an all-zero terminating record, then block aligned.
        return table_region_size(entry_count, self.record_size, self.alignment)

    def detect_byte_order(
        self, record: bytes, file_size: int, path: Optional[Path] = None
    ) -> ByteOrder:
        """Guess from the first record: big-endian first, then little."""
        for candidate in (ByteOrder.BIG, ByteOrder.LITTLE):
            offset = decode_u32(record, GSL_NAME_SIZE, candidate)
            size = decode_u32(record, GSL_NAME_SIZE + 4, candidate)
            offset *= self.offset_scale
            if offset <= file_size and offset + size <= file_size:
                return candidate
        raise corrupt(
            "GSL table looks corrupt: first entry lies outside the file in "
            "both byte orders",
            path,
        )

    def parse(self, fp, file_size, order=ByteOrder.AUTO, path=None):
        if order is not ByteOrder.AUTO:
            self.resolve_byte_order(order)
        entries: List[Entry] = []
        fp.seek(0)
        while True:
            pos = len(entries) * self.record_size
            name_raw = fp.read(self.name_size)
            if len(name_raw) != self.name_size:
                raise truncated(
                    f"GSL table ends without a terminating record at {pos}",
                    path,
                    offset=pos,
                )
            if name_raw[0] == 0:
                break
            rest = fp.read(self.record_size - self.name_size)
            if len(rest) != self.record_size - self.name_size:
                raise truncated(
                    f"Truncated GSL record {len(entries)} at {pos}",
                    path,
                    offset=pos,
                )
            record = name_raw + rest
            if order is ByteOrder.AUTO:
                order = self.detect_byte_order(record, file_size, path)
            blocks = decode_u32(record, GSL_NAME_SIZE, order)
            size = decode_u32(record, GSL_NAME_SIZE + 4, order)
            offset = blocks * self.offset_scale
            index = len(entries)
            _check_range(offset, size, file_size, index, path)
            entries.append(
                Entry(
                    index=index,
                    name=unpack_name(name_raw),
                    offset=offset,
                    size=size,
                    reserved=record[GSL_NAME_SIZE + 8 :],
                )
            )
        if order is ByteOrder.AUTO:
            order = self.default_byte_order
        return EntryTable(entries=entries, byte_order=order)

    def pack_table(self, table, header_size):
        order = table.byte_order
        blob = bytearray()
        for entry in table:
            if entry.offset % self.offset_scale:
                raise RuntimeError(
                    f"GSL entry {entry.index} offset {entry.offset:#x} is not "
                    "block aligned"
                )
            blob += self.encode_name(entry.name, stored=True)
            blob += encode_u32(
                entry.offset // self.offset_scale, order, field="block offset"
            )
            blob += encode_u32(entry.size, order, field="size")
            blob += entry.reserved.ljust(GSL_RESERVED_SIZE, b"\x00")[
                :GSL_RESERVED_SIZE
            ]
        return self._finish_table(blob, header_size)


class BmlFormat(ContainerFormat):
    """Bundle of PRS-compressed payloads with optional PVM attachments.

    Offsets are implicit: payloads follow the 2048-aligned table back to back,
    each payload and attachment starting on a 32-byte boundary.
    """

    name = "bml"
    has_names = True
    record_size = BML_RECORD_SIZE
    alignment = BML_PAYLOAD_ALIGNMENT
    name_size = BML_NAME_SIZE
    max_name_length = BML_NAME_MAX_LENGTH
    compressed = True
    supports_attachments = True
    attachment_alignment = BML_PAYLOAD_ALIGNMENT

    def header_size(self, entry_count: int) -> int:
        return table_region_size(
            entry_count, self.record_size, BML_TABLE_ALIGNMENT
        )

    def slot_end(self, offset: int, size: int) -> int:
        return next_payload_offset(offset + size, self.alignment)

    def parse(self, fp, file_size, order=ByteOrder.AUTO, path=None):
        self.resolve_byte_order(order)
        le = ByteOrder.LITTLE
        head = _read_exact(fp, 0, self.record_size, "BML header", path)
        if decode_u32(head, 0, le) != 0 or decode_u32(head, 8, le) != BML_MAGIC:
            raise bad_magic(path, self.name)
        count = decode_u32(head, 4, le)
        records = _read_exact(
            fp, self.record_size, count * self.record_size, "BML table", path
        )
        entries: List[Entry] = []
        offset = self.first_payload_offset(self.header_size(count))
        for i in range(count):
            rec = records[i * self.record_size : (i + 1) * self.record_size]
            n = self.name_size
            csize = decode_u32(rec, n, le)
            flags = decode_u32(rec, n + 4, le)
            usize = decode_u32(rec, n + 8, le)
            pvm_csize = decode_u32(rec, n + 12, le)
            pvm_usize = decode_u32(rec, n + 16, le)
            _check_range(offset, csize, file_size, i, path)
            end = offset + csize
            attachment = None
            if pvm_csize:
                pvm_offset = self.attachment_offset(end)
                _check_range(pvm_offset, pvm_csize, file_size, i, path)
                attachment = Attachment(pvm_offset, pvm_csize, pvm_usize)
                end = pvm_offset + pvm_csize
            entries.append(
                Entry(
                    index=i,
                    name=unpack_name(rec[:n]),
                    offset=offset,
                    size=csize,
                    raw_size=usize,
                    flags=flags,
                    reserved=rec[n + 20 :],
                    attachment=attachment,
                )
            )
            offset = self.slot_end(end, 0)
        return EntryTable(
            entries=entries,
            byte_order=le,
            header_reserved=head[12:],
        )

    def pack_table(self, table, header_size):
        le = ByteOrder.LITTLE
        blob = bytearray()
        blob += encode_u32(0, le)
        blob += encode_u32(len(table), le, field="entry count")
        blob += encode_u32(BML_MAGIC, le)
        blob += table.header_reserved.ljust(BML_HEADER_RESERVED_SIZE, b"\x00")[
            :BML_HEADER_RESERVED_SIZE
        ]
        for entry in table:
            att = entry.attachment
            blob += self.encode_name(entry.name, stored=True)
            blob += encode_u32(entry.size, le, field="compressed size")
            blob += encode_u32(entry.flags, le, field="flags")
            blob += encode_u32(entry.raw_size or 0, le, field="size")
            blob += encode_u32(att.size if att else 0, le, field="pvm size")
            blob += encode_u32(att.raw_size if att else 0, le, field="pvm size")
            blob += entry.reserved.ljust(BML_RESERVED_SIZE, b"\x00")[
                :BML_RESERVED_SIZE
            ]
        return self._finish_table(blob, header_size)


FORMATS: Dict[str, ContainerFormat] = {
    fmt.name: fmt for fmt in (AfsFormat(), GslFormat(), BmlFormat())
}


def get_format(name: str | ContainerFormat) -> ContainerFormat:
    if isinstance(name, ContainerFormat):
        return name
    try:
        return FORMATS[name.lower()]
    except KeyError:
        raise unsupported(
            f"Unknown container format '{name}' "
            f"(expected one of: {', '.join(sorted(FORMATS))})",
            format=name,
        ) from None
