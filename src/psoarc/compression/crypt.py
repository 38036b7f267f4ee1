"""Keystream used by the keyed PRS container.

A lagged-subtraction generator over 32-bit words: 56 state words seeded from
the key, stirred four times, re-stirred every 55 outputs.
"""

from __future__ import annotations

from typing import List

from ..packing.binary import ByteOrder, decode_u32, encode_u32

__all__ = ["Keystream", "apply_keystream"]

_MASK = 0xFFFFFFFF
_STATE_WORDS = 57


class Keystream:
    def __init__(self, key: int):
        self.key = key & _MASK
        keys: List[int] = [0] * _STATE_WORDS
        keys[55] = keys[56] = self.key
        carry = 1
        value = self.key
        for step in range(0x15, 0x46F, 0x15):
            idx = step % 55
            value = (value - carry) & _MASK
            keys[idx] = carry
            carry = value
            value = keys[idx]
        self._keys = keys
        for _ in range(4):
            self._mix()
        self._pos = 56

    def _mix(self) -> None:
        keys = self._keys
        for i in range(1, 25):
            keys[i] = (keys[i] - keys[i + 0x1F]) & _MASK
        for i in range(25, 56):
            keys[i] = (keys[i] - keys[i - 0x18]) & _MASK

    def next_word(self) -> int:
        if self._pos == 56:
            self._mix()
            self._pos = 1
        word = self._keys[self._pos]
        self._pos += 1
        return word


def apply_keystream(data: bytes, key: int, order: ByteOrder) -> bytes:
    """XOR whole 32-bit words of ``data`` with the stream; involutive."""
    if len(data) % 4:
        raise ValueError("keyed data must be a multiple of 4 bytes")
    stream = Keystream(key)
    out = bytearray(len(data))
    for pos in range(0, len(data), 4):
        word = decode_u32(data, pos, order) ^ stream.next_word()
        out[pos : pos + 4] = encode_u32(word, order)
    return bytes(out)
