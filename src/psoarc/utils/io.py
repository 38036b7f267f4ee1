"""Whole-file helpers that translate OS failures into archive errors."""

from __future__ import annotations

from pathlib import Path

from ..packing.errors import capacity_exceeded, io_error

__all__ = ["safe_read_file", "write_file", "file_size"]

# Inputs larger than this cannot be addressed by a 32-bit size field.
MAX_INPUT_SIZE = 0xFFFFFFFF


def file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError as exc:
        raise io_error(exc, path, "stat") from exc


def safe_read_file(path: Path, max_size: int = MAX_INPUT_SIZE) -> bytes:
    size = file_size(path)
    if size > max_size:
        raise capacity_exceeded(
            f"File too large: {path} is {size} bytes (limit {max_size})",
            path=str(path),
        )
    try:
        return path.read_bytes()
    except OSError as exc:
        raise io_error(exc, path, "read") from exc


def write_file(path: Path, data: bytes) -> int:
    try:
        path.write_bytes(data)
    except OSError as exc:
        raise io_error(exc, path, "write") from exc
    return len(data)
