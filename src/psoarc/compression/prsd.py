"""Keyed PRS container (PRSD/PRC files).

Layout: u32 decompressed size, u32 key, then the PRS stream zero-padded to a
multiple of four bytes and scrambled word by word with :mod:`.crypt`. The
header and every scrambled word share one byte order.
"""

from __future__ import annotations

import secrets
from typing import Optional, Tuple

from ..logging import get_logger
from ..packing.binary import ByteOrder, decode_u32, encode_u32
from ..packing.constants import PRSD_HEADER_SIZE
from ..packing.errors import ArchiveError, corrupt, truncated
from . import prs
from .crypt import apply_keystream

__all__ = ["DEFAULT_BYTE_ORDER", "compress", "decompress", "generate_key"]

DEFAULT_BYTE_ORDER = ByteOrder.LITTLE


def generate_key() -> int:
    return secrets.randbits(32)


def compress(
    data: bytes,
    key: Optional[int] = None,
    order: ByteOrder = ByteOrder.AUTO,
) -> Tuple[bytes, int]:
    """Compress and scramble ``data``; returns ``(blob, key_used)``."""
    order = order.resolve(DEFAULT_BYTE_ORDER)
    if key is None:
        key = generate_key()
    stream = prs.compress(data)
    stream += b"\x00" * (-len(stream) % 4)
    header = encode_u32(len(data), order, field="decompressed size")
    header += encode_u32(key, order, field="key")
    return header + apply_keystream(stream, key, order), key


def _decode(
    data: bytes, key: Optional[int], order: ByteOrder
) -> bytes:
    size = decode_u32(data, 0, order)
    stored = decode_u32(data, 4, order)
    if key is not None and key != stored:
        raise corrupt(
            f"Key {key:#010x} does not match stored key {stored:#010x}",
            order=order.value,
        )
    body = data[PRSD_HEADER_SIZE:]
    body = body[: len(body) - len(body) % 4]
    stream = apply_keystream(body, stored, order)
    produced = prs.decompressed_size(stream)
    if produced != size:
        raise corrupt(
            f"Decodes to {produced} bytes but header declares {size}",
            order=order.value,
        )
    return prs.decompress(stream)


def decompress(
    data: bytes,
    key: Optional[int] = None,
    order: ByteOrder = ByteOrder.AUTO,
) -> bytes:
    """Invert :func:`compress`; AUTO tries big-endian, then little-endian."""
    data = bytes(data)
    if len(data) < PRSD_HEADER_SIZE:
        raise truncated(
            f"Keyed stream of {len(data)} bytes is shorter than its header"
        )
    if order is not ByteOrder.AUTO:
        return _decode(data, key, order)
    logger = get_logger()
    for candidate in (ByteOrder.BIG, ByteOrder.LITTLE):
        try:
            return _decode(data, key, candidate)
        except ArchiveError as exc:
            logger.debug(
                "Keyed stream does not decode as %s-endian: %s",
                candidate.value,
                exc,
            )
    raise corrupt("Keyed stream does not decode in either byte order")
