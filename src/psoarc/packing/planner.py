"""Rebuild planning: compute a container's complete layout before writing.

Every mutating operation (create, append, update, delete) reduces to a
:class:`RebuildPlan`: the final entry table with every offset filled in, plus
where each payload's bytes come from. The writer consumes the plan and never
does its own layout math, so the table can be written last without patch-up
passes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..compression import prs
from ..logging import get_logger
from ..reporting import TaskStatus, get_reporter
from ..utils.io import file_size, safe_read_file
from ..utils.paths import entry_basename
from .binary import ByteOrder
from .constants import U32_MAX
from .errors import capacity_exceeded, out_of_range, unsupported
from .formats import ContainerFormat, get_format
from .reader import ContainerReader
from .table import Attachment, Entry, EntryTable

__all__ = [
    "NewEntry",
    "CopySource",
    "FileSource",
    "BytesSource",
    "PlannedEntry",
    "RebuildPlan",
    "plan_create",
    "plan_append",
    "plan_update",
    "plan_delete",
    "to_plan_dict",
]


@dataclass(slots=True, frozen=True)
class NewEntry:
    path: Path
    name: Optional[str] = None
    attachment: Optional[Path] = None


@dataclass(slots=True, frozen=True)
class CopySource:
    """Bytes already stored in the source container."""

    offset: int
    size: int

    kind = "copy"


@dataclass(slots=True, frozen=True)
class FileSource:
    path: Path
    size: int

    kind = "file"


@dataclass(slots=True, frozen=True)
class BytesSource:
    """In-memory payload (compressed at plan time)."""

    data: bytes

    kind = "bytes"

    @property
    def size(self) -> int:
        return len(self.data)


PayloadSource = Union[CopySource, FileSource, BytesSource]


@dataclass(slots=True)
class PlannedEntry:
    entry: Entry
    payload: PayloadSource
    attachment: Optional[PayloadSource] = None


@dataclass(slots=True)
class RebuildPlan:
    format: ContainerFormat
    operation: str
    table: EntryTable
    items: List[PlannedEntry] = field(default_factory=list)
    header_size: int = 0
    file_size: int = 0
    padding: int = 0

    @property
    def needs_source(self) -> bool:
        return any(
            isinstance(src, CopySource)
            for item in self.items
            for src in (item.payload, item.attachment)
        )


# One table row before layout: template entry, payload, attachment payload,
# attachment uncompressed size.
_Row = Tuple[Entry, PayloadSource, Optional[PayloadSource], int]


def _check_capacity(fmt: ContainerFormat, count: int) -> None:
    limit = fmt.max_entries if fmt.max_entries is not None else U32_MAX
    if count > limit:
        raise capacity_exceeded(
            f"{fmt.name.upper()} containers hold at most {limit} entries "
            f"({count} requested)",
            limit=limit,
            count=count,
        )


def _check_u32(value: int, what: str) -> None:
    if value > U32_MAX:
        raise capacity_exceeded(
            f"{what} {value:#x} does not fit in a 32-bit field", field=what
        )


def _layout(
    fmt: ContainerFormat,
    operation: str,
    rows: Sequence[_Row],
    byte_order: ByteOrder,
    header_reserved: bytes = b"",
) -> RebuildPlan:
    _check_capacity(fmt, len(rows))
    header = fmt.header_size(len(rows))
    cursor = fmt.first_payload_offset(header) if rows else header
    padding = cursor - header
    items: List[PlannedEntry] = []
    entries: List[Entry] = []
    for index, (proto, payload, att_payload, att_raw) in enumerate(rows):
        # New and renamed names were checked against the stricter limit.
        fmt.encode_name(proto.name, stored=True)
        offset = cursor
        end = offset + payload.size
        _check_u32(offset, "offset")
        _check_u32(payload.size, "size")
        attachment = None
        if att_payload is not None:
            att_offset = fmt.attachment_offset(end)
            attachment = Attachment(att_offset, att_payload.size, att_raw)
            padding += att_offset - end
            _check_u32(att_payload.size, "attachment size")
            cursor = fmt.slot_end(att_offset, att_payload.size)
            end = att_offset + att_payload.size
        else:
            cursor = fmt.slot_end(offset, payload.size)
        padding += cursor - end
        entry = Entry(
            index=index,
            name=proto.name,
            offset=offset,
            size=payload.size,
            raw_size=proto.raw_size,
            flags=proto.flags,
            reserved=proto.reserved,
            attachment=attachment,
        )
        entries.append(entry)
        items.append(PlannedEntry(entry, payload, att_payload))
    table = EntryTable(
        entries=entries, byte_order=byte_order, header_reserved=header_reserved
    )
    plan = RebuildPlan(
        format=fmt,
        operation=operation,
        table=table,
        items=items,
        header_size=header,
        file_size=cursor,
        padding=padding,
    )
    get_logger().debug(
        "Planned %s %s: %d entries, header=%d file_size=%d padding=%d",
        fmt.name,
        operation,
        len(entries),
        header,
        plan.file_size,
        padding,
    )
    return plan


def _compressed(path: Path) -> Tuple[BytesSource, int]:
    data = safe_read_file(path)
    packed = prs.compress(data)
    get_logger().info(
        "Compressed %s: %d -> %d bytes", path.name, len(data), len(packed)
    )
    return BytesSource(packed), len(data)


def _input_source(fmt: ContainerFormat, path: Path) -> Tuple[PayloadSource, int]:
    """Payload for a local file plus its uncompressed size."""
    if fmt.compressed:
        return _compressed(path)
    size = file_size(path)
    return FileSource(path, size), size


def _new_row(fmt: ContainerFormat, new: NewEntry) -> _Row:
    path = Path(new.path)
    name = None
    if fmt.has_names:
        name = new.name if new.name is not None else entry_basename(path)
        fmt.encode_name(name)
    if new.attachment is not None and not fmt.supports_attachments:
        raise unsupported(
            f"{fmt.name.upper()} entries cannot carry attachments",
            format=fmt.name,
        )
    payload, raw = _input_source(fmt, path)
    att_payload = None
    att_raw = 0
    if new.attachment is not None:
        att_payload, att_raw = _input_source(fmt, Path(new.attachment))
    proto = Entry(
        index=-1,
        name=name,
        offset=0,
        size=payload.size,
        raw_size=raw if fmt.compressed else None,
    )
    return proto, payload, att_payload, att_raw


def _existing_row(entry: Entry) -> _Row:
    att = entry.attachment
    att_payload = CopySource(att.offset, att.size) if att is not None else None
    return (
        entry,
        CopySource(entry.offset, entry.size),
        att_payload,
        att.raw_size if att is not None else 0,
    )


def _new_rows(fmt: ContainerFormat, new_entries: Sequence[NewEntry]) -> List[_Row]:
    rep = get_reporter()
    task_id = f"plan.{fmt.name}.inputs"
    label = "Compress inputs" if fmt.compressed else "Scan inputs"
    rep.start_task(task_id, label, total=len(new_entries))
    rows: List[_Row] = []
    try:
        for new in new_entries:
            rows.append(_new_row(fmt, new))
            rep.advance(task_id, current_item=Path(new.path).name)
    except BaseException:
        rep.end_task(task_id, TaskStatus.FAILED)
        raise
    rep.end_task(task_id, entries=len(rows))
    return rows


def _warn_duplicate_names(rows: Sequence[_Row]) -> None:
    seen = set()
    for proto, *_ in rows:
        if proto.name is None:
            continue
        if proto.name in seen:
            get_logger().warning(
                "Entry name '%s' appears more than once; lookups by name "
                "return the first",
                proto.name,
            )
        seen.add(proto.name)


def plan_create(
    fmt: ContainerFormat | str,
    new_entries: Sequence[NewEntry],
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> RebuildPlan:
    fmt = get_format(fmt)
    order = fmt.resolve_byte_order(ByteOrder(byte_order))
    _check_capacity(fmt, len(new_entries))
    rows = _new_rows(fmt, new_entries)
    _warn_duplicate_names(rows)
    return _layout(fmt, "create", rows, order)


def plan_append(
    source: ContainerReader, new_entries: Sequence[NewEntry]
) -> RebuildPlan:
    fmt = source.format
    _check_capacity(fmt, source.entry_count + len(new_entries))
    rows = [_existing_row(e) for e in source.iter_entries()]
    rows += _new_rows(fmt, new_entries)
    _warn_duplicate_names(rows)
    return _layout(
        fmt, "append", rows, source.byte_order, source.table.header_reserved
    )


def plan_update(
    source: ContainerReader,
    target: str,
    replacement: Path,
    *,
    attachment: bool = False,
    rename: bool = False,
) -> RebuildPlan:
    """Replace one entry's payload (or attachment) keeping its position."""
    fmt = source.format
    if attachment and not fmt.supports_attachments:
        raise unsupported(
            f"{fmt.name.upper()} entries cannot carry attachments",
            format=fmt.name,
        )
    index = source.find(target)
    replacement = Path(replacement)
    rows: List[_Row] = []
    for entry in source.iter_entries():
        if entry.index != index:
            rows.append(_existing_row(entry))
            continue
        proto, payload, att_payload, att_raw = _existing_row(entry)
        name = entry.name
        if rename and fmt.has_names:
            name = entry_basename(replacement)
            fmt.encode_name(name)
        raw_size = entry.raw_size
        if attachment:
            att_payload, att_raw = _input_source(fmt, replacement)
        else:
            payload, raw = _input_source(fmt, replacement)
            raw_size = raw if fmt.compressed else None
        proto = Entry(
            index=entry.index,
            name=name,
            offset=entry.offset,
            size=payload.size,
            raw_size=raw_size,
            flags=entry.flags,
            reserved=entry.reserved,
        )
        rows.append((proto, payload, att_payload, att_raw))
    get_logger().info(
        "Updating entry %d (%s) from %s",
        index,
        source.display_name(index),
        replacement.name,
    )
    return _layout(
        fmt, "update", rows, source.byte_order, source.table.header_reserved
    )


def plan_delete(source: ContainerReader, targets: Sequence[str]) -> RebuildPlan:
    if not targets:
        raise out_of_range("No entries named for deletion")
    doomed = {source.find(t) for t in targets}
    rows = [
        _existing_row(e) for e in source.iter_entries() if e.index not in doomed
    ]
    get_logger().info(
        "Deleting %d of %d entries", len(doomed), source.entry_count
    )
    return _layout(
        source.format,
        "delete",
        rows,
        source.byte_order,
        source.table.header_reserved,
    )


def to_plan_dict(plan: RebuildPlan) -> Dict[str, Any]:
    """JSON-ready view of a plan (used by ``--dry-run``)."""
    entries = []
    for item in plan.items:
        e = item.entry
        row: Dict[str, Any] = {
            "index": e.index,
            "name": e.name,
            "offset": e.offset,
            "size": e.size,
            "source": item.payload.kind,
        }
        if e.raw_size is not None:
            row["raw_size"] = e.raw_size
        if e.attachment is not None:
            row["attachment"] = {
                "offset": e.attachment.offset,
                "size": e.attachment.size,
                "raw_size": e.attachment.raw_size,
                "source": item.attachment.kind if item.attachment else None,
            }
        entries.append(row)
    return {
        "format": plan.format.name,
        "operation": plan.operation,
        "byte_order": plan.table.byte_order.value,
        "header_size": plan.header_size,
        "file_size": plan.file_size,
        "padding": plan.padding,
        "entries": entries,
    }
