"""In-memory model of a container index plus its layout arithmetic (no I/O)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .binary import ByteOrder
from .errors import out_of_range

__all__ = [
    "Attachment",
    "Entry",
    "EntryTable",
    "next_payload_offset",
    "parse_index",
    "table_region_size",
]


def next_payload_offset(position: int, boundary: int) -> int:
    """Round ``position`` up to a multiple of ``boundary`` (<= 0: unchanged)."""
    if boundary <= 0:
        return position
    return (position + boundary - 1) // boundary * boundary


def table_region_size(entry_count: int, record_size: int, alignment: int) -> int:
    """Size of a table holding ``entry_count`` records plus one header/sentinel slot."""
    return next_payload_offset((entry_count + 1) * record_size, alignment)


@dataclass(slots=True, frozen=True)
class Attachment:
    offset: int
    size: int
    raw_size: int = 0


@dataclass(slots=True)
class Entry:
    index: int
    name: Optional[str]
    offset: int
    size: int
    raw_size: Optional[int] = None
    flags: int = 0
    reserved: bytes = b""
    attachment: Optional[Attachment] = None

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass(slots=True)
class EntryTable:
    entries: List[Entry] = field(default_factory=list)
    byte_order: ByteOrder = ByteOrder.LITTLE
    header_reserved: bytes = b""

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> Entry:
        if index < 0 or index >= len(self.entries):
            raise out_of_range(
                f"Entry index {index} out of range (0..{len(self.entries) - 1})",
                index=index,
                count=len(self.entries),
            )
        return self.entries[index]

    def find(self, target: str, *, by_name: bool = True) -> int:
        """Resolve a name (first match) or an integer index to an entry index."""
        if by_name:
            for entry in self.entries:
                if entry.name == target:
                    return entry.index
        index = parse_index(target)
        if index is None:
            raise out_of_range(f"No entry named '{target}'", target=target)
        return self[index].index


def parse_index(text: str) -> Optional[int]:
    """Parse a decimal, ``0x`` or ``0o`` index; None when not a number."""
    for base in (0, 10):
        try:
            return int(text, base)
        except ValueError:
            continue
    return None
