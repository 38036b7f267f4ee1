from __future__ import annotations

"""Shared helpers for archive tests.

Usage:
    from archive_helper import write_inputs
    paths = write_inputs(tmp_path, {"a.bin": b"...", "b.bin": b"..."})
"""
import random
from pathlib import Path
from typing import Dict, List

from psoarc.packing.planner import NewEntry


def write_inputs(directory: Path, files: Dict[str, bytes]) -> List[Path]:
    """Write ``files`` into ``directory/in`` (insertion order kept)."""
    base = directory / "in"
    base.mkdir(exist_ok=True)
    paths = []
    for name, data in files.items():
        p = base / name
        p.write_bytes(data)
        paths.append(p)
    return paths


def new_entries(paths: List[Path]) -> List[NewEntry]:
    return [NewEntry(p) for p in paths]


def noise(size: int, seed: int = 1234) -> bytes:
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for _ in range(size))


def temp_leftovers(directory: Path) -> List[Path]:
    return [p for p in directory.iterdir() if p.name.endswith(".tmp")]
