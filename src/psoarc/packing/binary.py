"""Byte-level primitives shared by every container format.

All integer fields go through :func:`decode_u32` / :func:`encode_u32` with an
explicit :class:`ByteOrder`; no format module packs integers on its own.
"""

from __future__ import annotations

import struct
from enum import Enum
from typing import BinaryIO

from .constants import COPY_CHUNK_SIZE, U32_MAX
from .errors import (
    capacity_exceeded,
    invalid_name,
    name_too_long,
    truncated,
)

__all__ = [
    "ByteOrder",
    "decode_u32",
    "encode_u32",
    "pack_name",
    "unpack_name",
    "PaddingWriter",
]

_NAME_ENCODING = "utf-8"
_NAME_ERRORS = "surrogateescape"


class ByteOrder(str, Enum):
    AUTO = "auto"
    BIG = "big"
    LITTLE = "little"

    @property
    def prefix(self) -> str:
        if self is ByteOrder.AUTO:
            raise ValueError("AUTO byte order has no struct prefix")
        return ">" if self is ByteOrder.BIG else "<"

    def resolve(self, default: "ByteOrder") -> "ByteOrder":
        return default if self is ByteOrder.AUTO else self


def decode_u32(buf: bytes, offset: int, order: ByteOrder) -> int:
    if offset < 0 or offset + 4 > len(buf):
        raise truncated(
            f"u32 field at {offset} lies outside a {len(buf)}-byte buffer"
        )
    return struct.unpack_from(order.prefix + "I", buf, offset)[0]


def encode_u32(value: int, order: ByteOrder, *, field: str = "value") -> bytes:
    if value < 0 or value > U32_MAX:
        raise capacity_exceeded(
            f"{field} {value} does not fit in a 32-bit field", field=field
        )
    return struct.pack(order.prefix + "I", value)


def pack_name(name: str, width: int, max_length: int) -> bytes:
    """NUL-pad ``name`` into a ``width``-byte slot."""
    raw = name.encode(_NAME_ENCODING, _NAME_ERRORS)
    if not raw:
        raise invalid_name(name, "names cannot be empty")
    if b"\x00" in raw:
        raise invalid_name(name, "names cannot contain NUL bytes")
    if len(raw) > max_length:
        raise name_too_long(name, max_length)
    return raw + b"\x00" * (width - len(raw))


def unpack_name(raw: bytes) -> str:
    end = raw.find(b"\x00")
    if end >= 0:
        raw = raw[:end]
    return raw.decode(_NAME_ENCODING, _NAME_ERRORS)


class PaddingWriter:
    """Sequential writer with boundary padding over a seekable binary file."""

    def __init__(self, fp: BinaryIO):
        self._fp = fp

    @property
    def position(self) -> int:
        return self._fp.tell()

    def seek(self, offset: int) -> None:
        self._fp.seek(offset)

    def write(self, data: bytes) -> int:
        written = self._fp.write(data)
        if written != len(data):
            raise OSError(f"short write: {written} of {len(data)} bytes")
        return written

    def pad_to(self, target: int) -> int:
        """Zero-fill until the position reaches ``target``; returns pad size."""
        pos = self.position
        if pos > target:
            raise RuntimeError(
                f"Writer position {pos} surpassed planned offset {target}"
            )
        gap = target - pos
        while gap:
            chunk = min(gap, COPY_CHUNK_SIZE)
            self.write(b"\x00" * chunk)
            gap -= chunk
        return target - pos

    def align(self, boundary: int) -> int:
        from .table import next_payload_offset

        return self.pad_to(next_payload_offset(self.position, boundary))

    def copy_from(self, src: BinaryIO, size: int) -> int:
        """Copy exactly ``size`` bytes from ``src``'s current position."""
        remaining = size
        while remaining:
            chunk = src.read(min(remaining, COPY_CHUNK_SIZE))
            if not chunk:
                raise truncated(
                    f"Short read: expected {size} bytes, got {size - remaining}",
                    getattr(src, "name", None),
                )
            self.write(chunk)
            remaining -= len(chunk)
        return size
