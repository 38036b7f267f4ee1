"""Path utilities (safe resolution)."""

from __future__ import annotations

from pathlib import Path

__all__ = ["safe_file_path", "entry_basename"]


def safe_file_path(base_dir: Path, file_path: str) -> Path:
    """Resolve ``file_path`` under ``base_dir``; ValueError if it escapes."""
    base_dir = base_dir.resolve()
    resolved = (base_dir / file_path).resolve()
    resolved.relative_to(base_dir)
    if resolved == base_dir:
        raise ValueError(f"{file_path!r} does not name a file")
    return resolved


def entry_basename(path: Path | str) -> str:
    """Name a new entry after the input file, without its directories."""
    return Path(path).name
