"""Payload codecs: plain PRS and the keyed PRSD container."""

from . import prs, prsd
from .prs import compress, decompress, decompressed_size

__all__ = ["prs", "prsd", "compress", "decompress", "decompressed_size"]
