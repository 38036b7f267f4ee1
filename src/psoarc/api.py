"""High-level API for psoarc.

Each function here is one user-level operation; the CLI is a thin argparse
layer over them. Mutating operations plan the complete rebuild first and then
hand the plan to the atomic writer, so a failure at any point leaves the
archive on disk untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .compression import prs, prsd
from .logging import get_logger, step
from .manifest import write_manifest
from .packing.binary import ByteOrder
from .packing.errors import corrupt, io_error
from .packing.formats import get_format
from .packing.inspector import inspect_container, validate_container
from .packing.planner import (
    NewEntry,
    RebuildPlan,
    plan_append,
    plan_create,
    plan_delete,
    plan_update,
    to_plan_dict,
)
from .packing.reader import ContainerReader
from .packing.writer import write_container
from .reporting import TaskStatus, get_reporter, task
from .utils.io import safe_read_file, write_file
from .utils.paths import safe_file_path

__all__ = [
    "BuildOptions",
    "BuildResult",
    "ExtractOptions",
    "ExtractResult",
    "CodecResult",
    "list_entries",
    "extract_archive",
    "create_archive",
    "append_to_archive",
    "update_archive",
    "delete_from_archive",
    "inspect_archive",
    "validate_archive",
    "compress_file",
    "decompress_file",
    "compress_keyed_file",
    "decompress_keyed_file",
]


@dataclass(slots=True)
class BuildOptions:
    archive: Path
    format: str
    entries: Sequence[NewEntry] = ()
    byte_order: ByteOrder = ByteOrder.AUTO
    # Compute and return the plan without writing anything.
    dry_run: bool = False


@dataclass(slots=True)
class BuildResult:
    output_file: Path
    bytes_written: int
    entry_count: int
    plan: Optional[Dict[str, Any]] = None


@dataclass(slots=True)
class ExtractOptions:
    archive: Path
    format: str
    output_dir: Path = Path(".")
    targets: Sequence[str] = ()
    byte_order: ByteOrder = ByteOrder.AUTO
    # Keep compressed payloads as stored (.prs / .pvm.prs).
    raw: bool = False
    manifest_path: Path | None = None


@dataclass(slots=True)
class ExtractResult:
    files: List[Path] = field(default_factory=list)
    bytes_written: int = 0


@dataclass(slots=True)
class CodecResult:
    output_file: Path
    bytes_in: int
    bytes_out: int
    key: Optional[int] = None


def list_entries(
    archive: str | Path,
    fmt: str,
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> List[Dict[str, Any]]:
    """Table rows in order: index, name, size (plus BML extras)."""
    rows: List[Dict[str, Any]] = []
    with ContainerReader(archive, fmt, byte_order) as reader:
        for entry in reader.iter_entries():
            row: Dict[str, Any] = {
                "index": entry.index,
                "name": entry.name,
                "size": entry.size,
            }
            if entry.raw_size is not None:
                row["raw_size"] = entry.raw_size
            if entry.attachment is not None:
                row["pvm_size"] = entry.attachment.size
                row["pvm_raw_size"] = entry.attachment.raw_size
            rows.append(row)
    return rows


def _unpack(data: bytes, expected: int, label: str, archive: Path) -> bytes:
    # Size the stream first so a bad table entry never allocates the output.
    size = prs.decompressed_size(data)
    if size != expected:
        raise corrupt(
            f"{label}: decompresses to {size} bytes, table says {expected}",
            archive,
        )
    return prs.decompress(data)


def _target_path(out_dir: Path, name: str, index: int, archive: Path) -> Path:
    try:
        return safe_file_path(out_dir, name)
    except ValueError:
        raise corrupt(
            f"Entry {index} name '{name}' is not a safe file name", archive
        ) from None


def extract_archive(options: ExtractOptions) -> ExtractResult:
    """Write entries to ``output_dir``.

    Files already written stay in place if a later entry fails.
    """
    logger = get_logger()
    rep = get_reporter()
    archive = Path(options.archive)
    out_dir = Path(options.output_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise io_error(exc, out_dir, "create") from exc
    result = ExtractResult()
    summary: Dict[str, Any] = {"format": options.format, "entries": []}
    with ContainerReader(archive, options.format, options.byte_order) as reader:
        fmt = reader.format
        summary["byte_order"] = reader.byte_order.value
        if options.targets:
            indices = [reader.find(t) for t in options.targets]
        else:
            indices = list(range(reader.entry_count))
        task_id = "extract"
        rep.start_task(task_id, f"Extract {archive.name}", total=len(indices))
        try:
            for index in indices:
                entry = reader.entry(index)
                name = reader.display_name(index)
                data = reader.read_payload(index)
                if fmt.compressed and options.raw:
                    file_name = f"{name}.prs"
                elif fmt.compressed:
                    file_name = name
                    data = _unpack(data, entry.raw_size or 0, name, archive)
                else:
                    file_name = name
                dest = _target_path(out_dir, file_name, index, archive)
                result.bytes_written += write_file(dest, data)
                result.files.append(dest)
                row: Dict[str, Any] = {"file": file_name, "name": entry.name}
                att = reader.read_attachment(index)
                if att is not None and entry.attachment is not None:
                    if options.raw:
                        att_name = f"{name}.pvm.prs"
                    else:
                        att_name = f"{name}.pvm"
                        att = _unpack(
                            att,
                            entry.attachment.raw_size,
                            f"{name} (pvm)",
                            archive,
                        )
                    att_dest = _target_path(out_dir, att_name, index, archive)
                    result.bytes_written += write_file(att_dest, att)
                    result.files.append(att_dest)
                    row["pvm"] = att_name
                summary["entries"].append(row)
                logger.info("Extracted %s (%d bytes)", file_name, len(data))
                rep.advance(task_id, current_item=file_name)
        except BaseException:
            rep.end_task(task_id, TaskStatus.FAILED)
            raise
        rep.end_task(
            task_id, entries=len(indices), bytes=result.bytes_written
        )
    if options.manifest_path is not None:
        if options.raw and get_format(options.format).compressed:
            logger.warning(
                "Manifest lists raw .prs files; create would compress them again"
            )
        manifest_path = Path(options.manifest_path)
        write_manifest(summary, manifest_path, out_dir)
        count = len(summary["entries"])
        step(f"Manifest {manifest_path.name}: {count} entries")
    rep.status(
        f"Extract summary: archive={archive.name} files={len(result.files)} "
        f"bytes={result.bytes_written}"
    )
    return result


def _commit(
    plan: RebuildPlan,
    archive: Path,
    source: Optional[ContainerReader],
    dry_run: bool,
) -> BuildResult:
    rep = get_reporter()
    count = len(plan.items)
    if dry_run:
        rep.status(
            f"Rebuild summary: archive={archive.name} op={plan.operation} "
            f"entries={count} file_size={plan.file_size} dry_run=1"
        )
        return BuildResult(archive, 0, count, to_plan_dict(plan))
    written = write_container(plan, archive, source)
    rep.status(
        f"Rebuild summary: archive={archive.name} op={plan.operation} "
        f"entries={count} bytes={written} padding={plan.padding}"
    )
    return BuildResult(output_file=archive, bytes_written=written, entry_count=count)


def create_archive(options: BuildOptions) -> BuildResult:
    plan = plan_create(options.format, options.entries, options.byte_order)
    return _commit(plan, Path(options.archive), None, options.dry_run)


def append_to_archive(options: BuildOptions) -> BuildResult:
    archive = Path(options.archive)
    with ContainerReader(archive, options.format, options.byte_order) as source:
        plan = plan_append(source, options.entries)
        return _commit(plan, archive, source, options.dry_run)


def update_archive(
    options: BuildOptions,
    target: str,
    replacement: Path,
    *,
    attachment: bool = False,
    rename: bool = False,
) -> BuildResult:
    archive = Path(options.archive)
    with ContainerReader(archive, options.format, options.byte_order) as source:
        plan = plan_update(
            source,
            target,
            Path(replacement),
            attachment=attachment,
            rename=rename,
        )
        return _commit(plan, archive, source, options.dry_run)


def delete_from_archive(
    options: BuildOptions, targets: Sequence[str]
) -> BuildResult:
    archive = Path(options.archive)
    with ContainerReader(archive, options.format, options.byte_order) as source:
        plan = plan_delete(source, targets)
        return _commit(plan, archive, source, options.dry_run)


def inspect_archive(
    archive: str | Path,
    fmt: str,
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> Dict[str, Any]:
    return inspect_container(archive, fmt, byte_order)


def validate_archive(
    archive: str | Path,
    fmt: str,
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> List[str]:
    return validate_container(inspect_container(archive, fmt, byte_order))


def _codec_summary(verb: str, src: Path, result: CodecResult) -> None:
    ratio = (
        f"{result.bytes_out / result.bytes_in:.3f}" if result.bytes_in else "n/a"
    )
    get_reporter().status(
        f"Codec summary: op={verb} file={src.name} in={result.bytes_in} "
        f"out={result.bytes_out} ratio={ratio}"
    )


def _run_codec(verb: str, src: Path, data: bytes, fn) -> Any:
    task_id = f"codec.{verb}"
    with task(
        task_id, f"{verb.title()} {src.name}", total=len(data), unit="bytes"
    ) as rep:
        out = fn(data)
        rep.advance(task_id, len(data))
    return out


def compress_file(src: str | Path, dst: str | Path) -> CodecResult:
    src, dst = Path(src), Path(dst)
    data = safe_read_file(src)
    out = _run_codec("compress", src, data, prs.compress)
    result = CodecResult(dst, len(data), write_file(dst, out))
    _codec_summary("compress", src, result)
    return result


def decompress_file(src: str | Path, dst: str | Path | None = None) -> CodecResult:
    """Plain PRS decompression; ``dst`` defaults to ``<basename>.bin``."""
    src = Path(src)
    dst = Path(dst) if dst is not None else Path(f"{src.name}.bin")
    data = safe_read_file(src)
    out = _run_codec("decompress", src, data, prs.decompress)
    result = CodecResult(dst, len(data), write_file(dst, out))
    _codec_summary("decompress", src, result)
    return result


def compress_keyed_file(
    src: str | Path,
    dst: str | Path,
    key: Optional[int] = None,
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> CodecResult:
    """Keyed compression; a random key is chosen when ``key`` is None."""
    src, dst = Path(src), Path(dst)
    data = safe_read_file(src)
    out, used = _run_codec(
        "compress", src, data, lambda d: prsd.compress(d, key, byte_order)
    )
    result = CodecResult(dst, len(data), write_file(dst, out), key=used)
    _codec_summary("compress", src, result)
    return result


def decompress_keyed_file(
    src: str | Path,
    dst: str | Path | None = None,
    key: Optional[int] = None,
    byte_order: ByteOrder = ByteOrder.AUTO,
) -> CodecResult:
    """Keyed decompression; ``dst`` defaults to ``<basename>.bin``."""
    src = Path(src)
    dst = Path(dst) if dst is not None else Path(f"{src.name}.bin")
    data = safe_read_file(src)
    out = _run_codec(
        "decompress", src, data, lambda d: prsd.decompress(d, key, byte_order)
    )
    result = CodecResult(dst, len(data), write_file(dst, out))
    _codec_summary("decompress", src, result)
    return result
