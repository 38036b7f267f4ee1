"""Random-access reader over an existing container file."""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from ..logging import get_logger
from .binary import ByteOrder, PaddingWriter
from .constants import COPY_CHUNK_SIZE
from .errors import io_error, truncated
from .formats import ContainerFormat, get_format
from .table import Entry, EntryTable

__all__ = ["ContainerReader"]


class ContainerReader:
    """Parsed table plus an open handle on the payload bytes.

    Use :meth:`open` (or the constructor) inside a ``with`` block; payload
    reads seek directly to each entry's recorded offset, so the physical order
    of payloads never matters.
    """

    def __init__(
        self,
        path: Path | str,
        fmt: ContainerFormat | str,
        byte_order: ByteOrder = ByteOrder.AUTO,
    ):
        self.path = Path(path)
        self.format = get_format(fmt)
        self._fp: Optional[BinaryIO] = None
        try:
            self._fp = self.path.open("rb")
            self.file_size = self.path.stat().st_size
        except OSError as exc:
            self.close()
            raise io_error(exc, self.path, "open") from exc
        try:
            self.table: EntryTable = self.format.parse(
                self._fp, self.file_size, ByteOrder(byte_order), self.path
            )
        except BaseException:
            self.close()
            raise
        get_logger().debug(
            "Opened %s container %s: %d entries, %s-endian",
            self.format.name,
            self.path.name,
            len(self.table),
            self.table.byte_order.value,
        )

    @classmethod
    def open(
        cls,
        path: Path | str,
        fmt: ContainerFormat | str,
        byte_order: ByteOrder = ByteOrder.AUTO,
    ) -> "ContainerReader":
        return cls(path, fmt, byte_order)

    def __enter__(self) -> "ContainerReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None

    @property
    def closed(self) -> bool:
        return self._fp is None

    @property
    def byte_order(self) -> ByteOrder:
        return self.table.byte_order

    @property
    def entry_count(self) -> int:
        return len(self.table)

    @property
    def header_size(self) -> int:
        return self.format.header_size(len(self.table))

    def entry(self, index: int) -> Entry:
        return self.table[index]

    def entry_name(self, index: int) -> Optional[str]:
        return self.table[index].name

    def display_name(self, index: int) -> str:
        """Name used on extraction (synthesised for name-less formats)."""
        return self.format.display_name(
            self.table[index], self.path, len(self.table)
        )

    def entry_size(self, index: int) -> int:
        return self.table[index].size

    def find(self, target: str) -> int:
        return self.table.find(target, by_name=self.format.has_names)

    def iter_entries(self) -> Iterator[Entry]:
        """Yield entries lazily in table order."""
        for entry in self.table.entries:
            yield entry

    # Payload access ----------------------------------------------------------
    def _handle(self) -> BinaryIO:
        if self._fp is None:
            raise ValueError(f"Reader for {self.path} is closed")
        return self._fp

    def _read_range(self, offset: int, size: int) -> bytes:
        fp = self._handle()
        try:
            fp.seek(offset)
            data = fp.read(size)
        except OSError as exc:
            raise io_error(exc, self.path, "read") from exc
        if len(data) != size:
            raise truncated(
                f"Short read: expected {size} bytes at {offset:#x}, "
                f"got {len(data)}",
                self.path,
                offset=offset,
            )
        return data

    def read_payload(self, index: int) -> bytes:
        entry = self.table[index]
        return self._read_range(entry.offset, entry.size)

    def readinto_payload(self, index: int, buffer: bytearray | memoryview) -> int:
        """Fill the front of ``buffer`` with entry ``index``; returns its size."""
        entry = self.table[index]
        view = memoryview(buffer)
        if len(view) < entry.size:
            raise ValueError(
                f"Buffer of {len(view)} bytes cannot hold entry {index} "
                f"({entry.size} bytes)"
            )
        view[: entry.size] = self._read_range(entry.offset, entry.size)
        return entry.size

    def read_attachment(self, index: int) -> Optional[bytes]:
        att = self.table[index].attachment
        if att is None:
            return None
        return self._read_range(att.offset, att.size)

    def copy_range(self, offset: int, size: int, writer: PaddingWriter) -> int:
        """Stream ``size`` bytes starting at ``offset`` into ``writer``."""
        fp = self._handle()
        if offset + size > self.file_size:
            raise truncated(
                f"Range {offset:#x}+{size} runs past end of {self.path.name}",
                self.path,
                offset=offset,
            )
        fp.seek(offset)
        remaining = size
        while remaining:
            chunk = fp.read(min(remaining, COPY_CHUNK_SIZE))
            if not chunk:
                raise truncated(
                    f"Short read: expected {size} bytes at {offset:#x}, "
                    f"got {size - remaining}",
                    self.path,
                    offset=offset,
                )
            writer.write(chunk)
            remaining -= len(chunk)
        return size
