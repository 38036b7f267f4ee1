"""Entry manifests (JSON or YAML).

A manifest lists the files that make up a container, in table order::

    format: bml          # optional, checked against the command's format
    byte_order: big      # optional, GSL only
    entries:
      - file: title.xvm
        name: title.xvm  # optional, defaults to the file's basename
        pvm: title.pvm   # optional attachment (BML)

Paths are relative to the manifest's directory and may not escape it.
``extract --manifest`` writes one of these next to the extracted files, so
``create --manifest`` can rebuild an equivalent container.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .packing.binary import ByteOrder
from .packing.errors import io_error, manifest_error
from .packing.planner import NewEntry
from .utils.paths import safe_file_path

__all__ = ["Manifest", "load_manifest", "manifest_dict", "write_manifest"]

_YAML_SUFFIXES = {".yaml", ".yml"}


@dataclass(slots=True)
class Manifest:
    entries: List[NewEntry] = field(default_factory=list)
    format: Optional[str] = None
    byte_order: Optional[ByteOrder] = None


def _resolve(base: Path, value: Any, where: str, path: Path) -> Path:
    if not isinstance(value, str) or not value:
        raise manifest_error(f"{where}: expected a relative file path", path)
    try:
        return safe_file_path(base, value)
    except ValueError:
        raise manifest_error(
            f"{where}: '{value}' escapes the manifest directory", path
        ) from None


def _parse(data: Any, path: Path) -> Manifest:
    if not isinstance(data, dict):
        raise manifest_error("Manifest root must be a mapping", path)
    raw_entries = data.get("entries")
    if not isinstance(raw_entries, list):
        raise manifest_error("Manifest needs an 'entries' list", path)
    base = path.parent
    manifest = Manifest()
    fmt = data.get("format")
    if fmt is not None:
        manifest.format = str(fmt).lower()
    order = data.get("byte_order")
    if order is not None:
        try:
            manifest.byte_order = ByteOrder(str(order).lower())
        except ValueError:
            raise manifest_error(
                f"Unknown byte_order '{order}' (auto, big or little)", path
            ) from None
    for i, item in enumerate(raw_entries):
        where = f"entries[{i}]"
        if isinstance(item, str):
            item = {"file": item}
        if not isinstance(item, dict):
            raise manifest_error(f"{where}: expected a mapping or a path", path)
        name = item.get("name")
        if name is not None and not isinstance(name, str):
            raise manifest_error(f"{where}: 'name' must be a string", path)
        pvm = item.get("pvm")
        manifest.entries.append(
            NewEntry(
                path=_resolve(base, item.get("file"), where, path),
                name=name,
                attachment=(
                    _resolve(base, pvm, f"{where}.pvm", path)
                    if pvm is not None
                    else None
                ),
            )
        )
    return manifest


def load_manifest(path: str | Path) -> Manifest:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise io_error(exc, p, "read") from exc
    try:
        if p.suffix.lower() in _YAML_SUFFIXES:
            data: Any = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, ValueError) as exc:
        raise manifest_error(f"Cannot parse manifest: {exc}", p) from exc
    return _parse(data, p)


def manifest_dict(info: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Manifest for the files ``extract`` wrote, from an extraction summary.

    ``prefix`` is the extraction directory relative to the manifest.
    """

    def rel(name: str) -> str:
        return f"{prefix}/{name}" if prefix else name

    entries = []
    for row in info["entries"]:
        item: Dict[str, Any] = {"file": rel(row["file"])}
        if row.get("name") is not None:
            item["name"] = row["name"]
        if row.get("pvm"):
            item["pvm"] = rel(row["pvm"])
        entries.append(item)
    out: Dict[str, Any] = {"format": info["format"]}
    if info.get("byte_order") and info["format"] == "gsl":
        out["byte_order"] = info["byte_order"]
    out["entries"] = entries
    return out


def write_manifest(
    info: Dict[str, Any], output_path: Path, files_dir: Optional[Path] = None
) -> None:
    prefix = ""
    if files_dir is not None:
        rel = Path(
            os.path.relpath(files_dir.resolve(), output_path.parent.resolve())
        )
        if rel.parts and rel.parts[0] == "..":
            raise manifest_error(
                f"Manifest must sit in or above {files_dir} to reference "
                "the extracted files",
                output_path,
            )
        prefix = "" if rel == Path(".") else rel.as_posix()
    data = manifest_dict(info, prefix)
    if output_path.suffix.lower() in _YAML_SUFFIXES:
        text = yaml.safe_dump(data, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"
    try:
        output_path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise io_error(exc, output_path, "write") from exc
