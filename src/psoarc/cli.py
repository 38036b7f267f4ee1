"""Command line interface for psoarc."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Sequence

from .api import (
    BuildOptions,
    ExtractOptions,
    append_to_archive,
    compress_file,
    compress_keyed_file,
    create_archive,
    decompress_file,
    decompress_keyed_file,
    delete_from_archive,
    extract_archive,
    inspect_archive,
    list_entries,
    update_archive,
)
from .logging import configure_logging, section
from .manifest import load_manifest
from .packing.binary import ByteOrder
from .packing.errors import ArchiveError, unsupported
from .packing.formats import FORMATS
from .packing.inspector import validate_container
from .packing.planner import NewEntry
from .packing.table import parse_index
from .reporting import (
    JsonLinesReporter,
    PlainReporter,
    RichReporter,
    SilentReporter,
    get_reporter,
    set_reporter,
    set_verbosity,
)


def _emit_json(data: Any) -> None:
    get_reporter().flush()
    print(json.dumps(data, indent=2, sort_keys=True))


def _byte_order(args: argparse.Namespace) -> ByteOrder:
    return ByteOrder(getattr(args, "endian", "auto"))


def _new_entries(args: argparse.Namespace) -> List[NewEntry]:
    entries = [NewEntry(Path(p)) for p in args.files]
    if args.manifest is not None:
        manifest = load_manifest(args.manifest)
        if manifest.format is not None and manifest.format != args.format:
            raise unsupported(
                f"Manifest {args.manifest.name} is for {manifest.format.upper()}"
                f" containers, not {args.format.upper()}",
                format=manifest.format,
            )
        explicit = _byte_order(args) is not ByteOrder.AUTO
        if manifest.byte_order is not None and not explicit:
            args.endian = manifest.byte_order.value
        entries.extend(manifest.entries)
    return entries


def _build_options(args: argparse.Namespace, entries=()) -> BuildOptions:
    return BuildOptions(
        archive=args.archive,
        format=args.format,
        entries=entries,
        byte_order=_byte_order(args),
        dry_run=getattr(args, "dry_run", False),
    )


def _finish_build(args: argparse.Namespace, result) -> int:
    if result.plan is not None:
        _emit_json(result.plan)
    return 0


# Archive commands -------------------------------------------------------------
def _list_cmd(args: argparse.Namespace) -> int:
    rows = list_entries(args.archive, args.format, _byte_order(args))
    if args.json:
        _emit_json(rows)
        return 0
    get_reporter().flush()
    for row in rows:
        name = row["name"] if row["name"] is not None else "-"
        line = f"{row['index']:5d}  {row['size']:10d}  {name}"
        if "raw_size" in row:
            line += f"  (raw {row['raw_size']})"
        if "pvm_size" in row:
            line += f"  [pvm {row['pvm_size']}/{row['pvm_raw_size']}]"
        print(line)
    return 0


def _extract_cmd(args: argparse.Namespace) -> int:
    extract_archive(
        ExtractOptions(
            archive=args.archive,
            format=args.format,
            output_dir=args.directory,
            targets=args.targets,
            byte_order=_byte_order(args),
            raw=args.raw,
            manifest_path=args.manifest,
        )
    )
    return 0


def _create_cmd(args: argparse.Namespace) -> int:
    entries = _new_entries(args)
    if not entries:
        raise unsupported("Nothing to create: give files or --manifest")
    return _finish_build(
        args, create_archive(_build_options(args, entries))
    )


def _append_cmd(args: argparse.Namespace) -> int:
    entries = _new_entries(args)
    if not entries:
        raise unsupported("Nothing to append: give files or --manifest")
    return _finish_build(
        args, append_to_archive(_build_options(args, entries))
    )


def _update_cmd(args: argparse.Namespace) -> int:
    result = update_archive(
        _build_options(args),
        args.target,
        args.file,
        attachment=args.pvm,
        rename=args.rename,
    )
    return _finish_build(args, result)


def _delete_cmd(args: argparse.Namespace) -> int:
    return _finish_build(
        args, delete_from_archive(_build_options(args), args.targets)
    )


def _inspect_cmd(args: argparse.Namespace) -> int:
    info = inspect_archive(args.archive, args.format, _byte_order(args))
    issues = validate_container(info)
    if args.json:
        _emit_json({**info, "issues": issues})
    else:
        title = f"{info['format'].upper()} {Path(info['path']).name}"
        with section(title) as log:
            for row in info["entries"]:
                log.info(
                    "%5d  %#010x  %10d  %s",
                    row["index"],
                    row["offset"],
                    row["size"],
                    row["name"],
                )
            for issue in issues:
                log.warning("%s", issue)
            get_reporter().status(
                f"Inspect summary: entries={info['entry_count']} "
                f"byte_order={info['byte_order']} "
                f"header={info['header_size']} "
                f"file_size={info['file_size']} issues={len(issues)}"
            )
    return 1 if issues else 0


# Codec commands ----------------------------------------------------------------
def _prs_cmd(args: argparse.Namespace) -> int:
    if args.action == "compress":
        if args.output is None:
            raise unsupported("prs compress needs an output path")
        compress_file(args.input, args.output)
    else:
        decompress_file(args.input, args.output)
    return 0


def _prsd_cmd(args: argparse.Namespace) -> int:
    order = _byte_order(args)
    if args.action == "compress":
        if args.output is None:
            raise unsupported("prsd compress needs an output path")
        result = compress_keyed_file(args.input, args.output, args.key, order)
        if args.key is None:
            get_reporter().status(
                f"Generated key {result.key:#010x}; it is needed to decompress"
            )
    else:
        decompress_keyed_file(args.input, args.output, args.key, order)
    return 0


# Parser --------------------------------------------------------------------------
def _key(text: str) -> int:
    value = parse_index(text)
    if value is None or not 0 <= value <= 0xFFFFFFFF:
        raise argparse.ArgumentTypeError(f"invalid 32-bit key: {text!r}")
    return value


def _add_endian(p: argparse.ArgumentParser, choices: Sequence[ByteOrder]) -> None:
    p.add_argument(
        "--endian",
        choices=["auto"] + [c.value for c in choices],
        default="auto",
        help="Byte order (auto: detect when reading, format default on create)",
    )


def _add_inputs(p: argparse.ArgumentParser) -> None:
    p.add_argument("files", nargs="*", type=Path, help="Files to add, in order")
    p.add_argument(
        "-m",
        "--manifest",
        type=Path,
        help="JSON/YAML manifest listing files (after any positional files)",
    )


def _add_dry_run(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print the planned layout as JSON and write nothing",
    )


def _add_format_parser(sub, name: str) -> None:
    fmt = FORMATS[name]
    fp = sub.add_parser(name, help=f"{name.upper()} archives")
    fp.set_defaults(format=name)
    ops = fp.add_subparsers(dest="op", required=True)

    def op(op_name: str, help_text: str) -> argparse.ArgumentParser:
        p = ops.add_parser(op_name, help=help_text)
        p.add_argument("archive", type=Path)
        if len(fmt.byte_orders) > 1:
            _add_endian(p, fmt.byte_orders)
        return p

    p = op("list", "List entries")
    p.add_argument("--json", action="store_true", help="Emit JSON rows")
    p.set_defaults(func=_list_cmd)

    p = op("extract", "Extract entries")
    p.add_argument("targets", nargs="*", help="Entry names or indices")
    p.add_argument(
        "-C", "--directory", type=Path, default=Path("."), help="Output directory"
    )
    if fmt.compressed:
        p.add_argument(
            "--raw",
            action="store_true",
            help="Keep payloads compressed (.prs / .pvm.prs)",
        )
    p.add_argument(
        "--manifest", type=Path, help="Also write a manifest of extracted files"
    )
    p.set_defaults(func=_extract_cmd, raw=False)

    p = op("create", "Create a new archive")
    _add_inputs(p)
    _add_dry_run(p)
    p.set_defaults(func=_create_cmd)

    p = op("append", "Append files to an archive")
    _add_inputs(p)
    _add_dry_run(p)
    p.set_defaults(func=_append_cmd)

    p = op("update", "Replace one entry, keeping its position")
    p.add_argument("target", help="Entry name or index")
    p.add_argument("file", type=Path)
    if fmt.has_names:
        p.add_argument(
            "--rename",
            action="store_true",
            help="Take the entry name from the new file",
        )
    if fmt.supports_attachments:
        p.add_argument(
            "--pvm", action="store_true", help="Replace the PVM attachment"
        )
    _add_dry_run(p)
    p.set_defaults(func=_update_cmd, rename=False, pvm=False)

    p = op("delete", "Delete entries")
    p.add_argument("targets", nargs="+", help="Entry names or indices")
    _add_dry_run(p)
    p.set_defaults(func=_delete_cmd)

    p = op("inspect", "Show layout and check alignment invariants")
    p.add_argument("--json", action="store_true", help="Emit JSON report")
    p.set_defaults(func=_inspect_cmd)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="psoarc", description="PSO archive and compression tool"
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (repeatable)",
    )
    p.add_argument(
        "-r",
        "--reporter",
        choices=["plain", "rich", "json", "silent"],
        default="plain",
        help="Reporter backend: plain (default), rich, json (JSONL events), silent",
    )
    sub = p.add_subparsers(dest="cmd", required=True)
    for name in ("afs", "gsl", "bml"):
        _add_format_parser(sub, name)

    c = sub.add_parser("prs", help="Plain PRS compression")
    c.add_argument("action", choices=["compress", "decompress"])
    c.add_argument("input", type=Path)
    c.add_argument(
        "output",
        type=Path,
        nargs="?",
        help="Output path (decompress default: <input name>.bin)",
    )
    c.set_defaults(func=_prs_cmd)

    k = sub.add_parser("prsd", help="Keyed PRS compression (PRSD/PRC)")
    k.add_argument("action", choices=["compress", "decompress"])
    k.add_argument("input", type=Path)
    k.add_argument(
        "output",
        type=Path,
        nargs="?",
        help="Output path (decompress default: <input name>.bin)",
    )
    k.add_argument(
        "-k", "--key", type=_key, help="32-bit key (random when compressing)"
    )
    _add_endian(k, (ByteOrder.BIG, ByteOrder.LITTLE))
    k.set_defaults(func=_prsd_cmd)
    return p


def _select_reporter(requested: str) -> None:
    if requested == "json":
        set_reporter(JsonLinesReporter())
    elif requested == "silent":
        set_reporter(SilentReporter())
    elif requested == "rich" and sys.stderr.isatty():
        set_reporter(RichReporter())
    else:
        # rich falls back to plain when stderr is not a terminal
        set_reporter(PlainReporter())


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    _select_reporter(args.reporter)
    set_verbosity(args.verbose)
    configure_logging(args.verbose)
    rep = get_reporter()
    try:
        return args.func(args)
    except ArchiveError as exc:
        where = exc.path
        message = f"{where}: {exc.message}" if where else exc.message
        rep.error(message, code=exc.code)
        return 1
    finally:
        rep.flush()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
