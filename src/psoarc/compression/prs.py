"""PRS: the LZ77-style codec used for game payloads.

Stream layout
-------------
Control bits are consumed least-significant bit first from control bytes
that are interleaved with the data; a new control byte is fetched only when
the next bit is needed.

- ``1``                 literal: copy the next byte.
- ``0 0 h l`` + ``o``   short copy: length ``(h << 1 | l) + 2`` (2..5) from
                        ``o - 256`` bytes back.
- ``0 1`` + ``w16le``   long copy from ``(w >> 3) - 8192`` bytes back; length
                        ``(w & 7) + 2`` (3..9) or, when ``w & 7 == 0``, the
                        next byte + 1 (1..256). ``w == 0`` ends the stream.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Tuple

from ..packing.constants import (
    PRS_MAX_LONG_INLINE_MATCH,
    PRS_MAX_MATCH,
    PRS_MAX_SHORT_MATCH,
    PRS_SHORT_WINDOW,
    PRS_WINDOW,
)
from ..packing.errors import compression_error

__all__ = ["compress", "decompress", "decompressed_size"]

# Candidates examined per position; bounds worst-case time on repetitive input.
_MAX_CHAIN = 64


class _BitWriter:
    __slots__ = ("out", "_ctrl", "_bits")

    def __init__(self) -> None:
        self.out = bytearray()
        self._ctrl = -1
        self._bits = 8

    def bit(self, value: int) -> None:
        if self._bits == 8:
            self._ctrl = len(self.out)
            self.out.append(0)
            self._bits = 0
        if value:
            self.out[self._ctrl] |= 1 << self._bits
        self._bits += 1

    def byte(self, value: int) -> None:
        self.out.append(value)


def _emit_literal(w: _BitWriter, value: int) -> None:
    w.bit(1)
    w.byte(value)


def _emit_short(w: _BitWriter, distance: int, length: int) -> None:
    n = length - 2
    w.bit(0)
    w.bit(0)
    w.bit((n >> 1) & 1)
    w.bit(n & 1)
    w.byte(PRS_SHORT_WINDOW - distance)


def _emit_long(w: _BitWriter, distance: int, length: int) -> None:
    word = (0x2000 - distance) << 3
    inline = 3 <= length <= PRS_MAX_LONG_INLINE_MATCH
    if inline:
        word |= length - 2
    w.bit(0)
    w.bit(1)
    w.byte(word & 0xFF)
    w.byte(word >> 8)
    if not inline:
        w.byte(length - 1)


def _emit_end(w: _BitWriter) -> None:
    w.bit(0)
    w.bit(1)
    w.byte(0)
    w.byte(0)


def compress(data: bytes) -> bytes:
    """Compress ``data``; output depends only on the input bytes."""
    src = bytes(data)
    n = len(src)
    w = _BitWriter()
    head3: Dict[bytes, int] = {}
    prev: List[int] = [-1] * n
    last2: Dict[bytes, int] = {}

    def insert(pos: int) -> None:
        if pos + 3 <= n:
            key = src[pos : pos + 3]
            prev[pos] = head3.get(key, -1)
            head3[key] = pos
        if pos + 2 <= n:
            last2[src[pos : pos + 2]] = pos

    i = 0
    while i < n:
        best_len = 0
        best_dist = 0
        limit = min(PRS_MAX_MATCH, n - i)
        if limit >= 3:
            cand = head3.get(src[i : i + 3], -1)
            checks = 0
            while cand >= 0 and i - cand <= PRS_WINDOW and checks < _MAX_CHAIN:
                length = 3
                while length < limit and src[cand + length] == src[i + length]:
                    length += 1
                if length > best_len:
                    best_len = length
                    best_dist = i - cand
                    if length == limit:
                        break
                cand = prev[cand]
                checks += 1
        if best_len < 3 and limit >= 2:
            cand = last2.get(src[i : i + 2], -1)
            if cand >= 0 and i - cand <= PRS_SHORT_WINDOW:
                best_len = 2
                best_dist = i - cand

        if best_len >= 2:
            if best_len <= PRS_MAX_SHORT_MATCH and best_dist <= PRS_SHORT_WINDOW:
                _emit_short(w, best_dist, best_len)
            else:
                _emit_long(w, best_dist, best_len)
            for pos in range(i, i + best_len):
                insert(pos)
            i += best_len
        else:
            _emit_literal(w, src[i])
            insert(i)
            i += 1
    _emit_end(w)
    return bytes(w.out)


def _tokens(src: bytes) -> Iterator[Tuple[int, int]]:
    """Walk a PRS stream yielding ``(distance, length)`` copies.

    Literals come out as ``(0, byte)``. Stops at the end marker; running out
    of input first raises :class:`CompressionError`.
    """
    pos = 0
    flags = 0
    bits = 0
    size = len(src)

    def need(count: int) -> None:
        if pos + count > size:
            raise compression_error(
                f"PRS stream truncated at byte {pos}", offset=pos
            )

    while True:
        if bits == 0:
            need(1)
            flags = src[pos]
            pos += 1
            bits = 8
        flag = flags & 1
        flags >>= 1
        bits -= 1
        if flag:
            need(1)
            yield 0, src[pos]
            pos += 1
            continue

        if bits == 0:
            need(1)
            flags = src[pos]
            pos += 1
            bits = 8
        long_copy = flags & 1
        flags >>= 1
        bits -= 1
        if long_copy:
            need(2)
            word = src[pos] | (src[pos + 1] << 8)
            pos += 2
            if word == 0:
                return
            distance = 0x2000 - (word >> 3)
            length = word & 7
            if length == 0:
                need(1)
                length = src[pos] + 1
                pos += 1
            else:
                length += 2
        else:
            length = 0
            for _ in range(2):
                if bits == 0:
                    need(1)
                    flags = src[pos]
                    pos += 1
                    bits = 8
                length = (length << 1) | (flags & 1)
                flags >>= 1
                bits -= 1
            length += 2
            need(1)
            distance = PRS_SHORT_WINDOW - src[pos]
            pos += 1
        yield distance, length


def decompress(data: bytes) -> bytes:
    """Inverse of :func:`compress`; malformed input raises CompressionError."""
    out = bytearray()
    for distance, value in _tokens(bytes(data)):
        if distance == 0:
            out.append(value)
            continue
        if distance > len(out):
            raise compression_error(
                f"PRS copy reaches {distance} bytes back with only "
                f"{len(out)} produced",
                produced=len(out),
            )
        start = len(out) - distance
        if distance >= value:
            out += out[start : start + value]
        else:
            for k in range(value):
                out.append(out[start + k])
    return bytes(out)


def decompressed_size(data: bytes) -> int:
    """Size :func:`decompress` would produce, without building the output."""
    produced = 0
    for distance, value in _tokens(bytes(data)):
        if distance == 0:
            produced += 1
            continue
        if distance > produced:
            raise compression_error(
                f"PRS copy reaches {distance} bytes back with only "
                f"{produced} produced",
                produced=produced,
            )
        produced += value
    return produced
