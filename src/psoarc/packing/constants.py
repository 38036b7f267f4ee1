"""On-disk constants for the supported container formats."""

from __future__ import annotations

U32_MAX = 0xFFFFFFFF

# Streaming copy granularity (bytes).
COPY_CHUNK_SIZE = 64 * 1024

# AFS: indexed archive without names.
AFS_MAGIC = b"AFS\x00"
AFS_RECORD_SIZE = 8
AFS_ALIGNMENT = 2048
AFS_MAX_ENTRIES = 65535

# GSL: named archive addressed in 2048-byte blocks.
GSL_RECORD_SIZE = 48
GSL_NAME_SIZE = 32
GSL_NAME_MAX_LENGTH = 31
GSL_BLOCK_SIZE = 2048
GSL_RESERVED_SIZE = 8

# BML: named bundle of compressed payloads with optional PVM attachments.
BML_MAGIC = 0x150
BML_RECORD_SIZE = 64
BML_NAME_SIZE = 32
BML_NAME_MAX_LENGTH = 32
BML_TABLE_ALIGNMENT = 2048
BML_PAYLOAD_ALIGNMENT = 32
BML_RESERVED_SIZE = 12
BML_HEADER_RESERVED_SIZE = 52

# PRS compression stream limits.
PRS_WINDOW = 0x1FFF
PRS_SHORT_WINDOW = 0x100
PRS_MAX_MATCH = 256
PRS_MAX_SHORT_MATCH = 5
PRS_MAX_LONG_INLINE_MATCH = 9

# PRSD keyed container header: decompressed size + key.
PRSD_HEADER_SIZE = 8

__all__ = [
    "U32_MAX",
    "COPY_CHUNK_SIZE",
    "AFS_MAGIC",
    "AFS_RECORD_SIZE",
    "AFS_ALIGNMENT",
    "AFS_MAX_ENTRIES",
    "GSL_RECORD_SIZE",
    "GSL_NAME_SIZE",
    "GSL_NAME_MAX_LENGTH",
    "GSL_BLOCK_SIZE",
    "GSL_RESERVED_SIZE",
    "BML_MAGIC",
    "BML_RECORD_SIZE",
    "BML_NAME_SIZE",
    "BML_NAME_MAX_LENGTH",
    "BML_TABLE_ALIGNMENT",
    "BML_PAYLOAD_ALIGNMENT",
    "BML_RESERVED_SIZE",
    "BML_HEADER_RESERVED_SIZE",
    "PRS_WINDOW",
    "PRS_SHORT_WINDOW",
    "PRS_MAX_MATCH",
    "PRS_MAX_SHORT_MATCH",
    "PRS_MAX_LONG_INLINE_MATCH",
    "PRSD_HEADER_SIZE",
]
