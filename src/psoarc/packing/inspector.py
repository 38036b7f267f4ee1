"""Container inspection and structural validation.

Public functions:
- inspect_container(path, fmt, byte_order) -> dict
- validate_container(info) -> list[str]

``inspect_container`` only parses; ``validate_container`` checks the parsed
layout against the format's rules and returns human-readable issues (an
empty list means the container is well formed).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple

from .binary import ByteOrder
from .formats import get_format
from .reader import ContainerReader

__all__ = ["inspect_container", "validate_container"]


def inspect_container(
    path: str | Path,
    fmt: str,
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> Dict[str, Any]:
    with ContainerReader(path, fmt, byte_order) as reader:
        entries: List[Dict[str, Any]] = []
        for entry in reader.iter_entries():
            row: Dict[str, Any] = {
                "index": entry.index,
                "name": reader.display_name(entry.index),
                "offset": entry.offset,
                "size": entry.size,
            }
            if entry.raw_size is not None:
                row["raw_size"] = entry.raw_size
            if entry.flags:
                row["flags"] = entry.flags
            if entry.attachment is not None:
                row["attachment"] = {
                    "offset": entry.attachment.offset,
                    "size": entry.attachment.size,
                    "raw_size": entry.attachment.raw_size,
                }
            entries.append(row)
        return {
            "path": str(path),
            "format": reader.format.name,
            "byte_order": reader.byte_order.value,
            "file_size": reader.file_size,
            "header_size": reader.header_size,
            "alignment": reader.format.alignment,
            "entry_count": reader.entry_count,
            "entries": entries,
        }


def _ranges(entry: Dict[str, Any]) -> List[Tuple[str, int, int]]:
    out = [("payload", entry["offset"], entry["size"])]
    att = entry.get("attachment")
    if att:
        out.append(("attachment", att["offset"], att["size"]))
    return out


def validate_container(info: Dict[str, Any]) -> List[str]:
    issues: List[str] = []
    fmt = get_format(info["format"])
    file_size = info["file_size"]
    header_size = info["header_size"]
    if header_size > file_size:
        issues.append(
            f"header of {header_size} bytes exceeds file size {file_size}"
        )
    spans: List[Tuple[int, int, str]] = []
    for entry in info["entries"]:
        label = f"entry {entry['index']} ({entry['name']})"
        for kind, offset, size in _ranges(entry):
            alignment = (
                fmt.attachment_alignment if kind == "attachment" else fmt.alignment
            )
            if alignment and offset % alignment:
                issues.append(
                    f"{label}: {kind} offset {offset:#x} not aligned to "
                    f"{alignment}"
                )
            if offset < header_size:
                issues.append(
                    f"{label}: {kind} at {offset:#x} overlaps the "
                    f"{header_size}-byte table"
                )
            if offset + size > file_size:
                issues.append(
                    f"{label}: {kind} {offset:#x}+{size} runs past end of file"
                )
            if size:
                spans.append((offset, offset + size, f"{label} {kind}"))
    spans.sort()
    for (a_start, a_end, a_label), (b_start, _b_end, b_label) in zip(
        spans, spans[1:]
    ):
        if b_start < a_end:
            issues.append(f"{a_label} overlaps {b_label} at {b_start:#x}")
    return issues
