"""Container writer: emit a :class:`RebuildPlan` and commit it atomically.

The writer performs no layout math of its own. Payloads are streamed at the
offsets recorded in the plan (any divergence raises), the table is written
last, and the finished temporary file is renamed over the destination only
after it has been flushed to disk. On failure the temporary file is removed
and the destination is left exactly as it was.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

from ..logging import get_logger
from ..reporting import TaskStatus, get_reporter
from .binary import PaddingWriter
from .errors import io_error
from .planner import BytesSource, CopySource, FileSource, PayloadSource, RebuildPlan
from .reader import ContainerReader

__all__ = ["write_container"]


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _write_payload(
    writer: PaddingWriter,
    payload: PayloadSource,
    source: Optional[ContainerReader],
) -> int:
    if isinstance(payload, BytesSource):
        return writer.write(payload.data)
    if isinstance(payload, CopySource):
        if source is None:
            raise ValueError("plan copies from a source container but none given")
        return source.copy_range(payload.offset, payload.size, writer)
    if isinstance(payload, FileSource):
        try:
            fp = payload.path.open("rb")
        except OSError as exc:
            raise io_error(exc, payload.path, "open") from exc
        with fp:
            return writer.copy_from(fp, payload.size)
    raise TypeError(f"unknown payload source {payload!r}")


def _emit(
    fp, plan: RebuildPlan, source: Optional[ContainerReader], label: str
) -> int:
    rep = get_reporter()
    writer = PaddingWriter(fp)
    task_id = f"write.{plan.format.name}.{plan.operation}"
    rep.start_task(task_id, label, total=len(plan.items))
    try:
        # Table region is reserved now and filled once offsets are final.
        writer.seek(plan.header_size)
        for item in plan.items:
            entry = item.entry
            writer.pad_to(entry.offset)
            written = _write_payload(writer, item.payload, source)
            if written != entry.size:
                raise RuntimeError(
                    f"Entry {entry.index} size mismatch: plan={entry.size} "
                    f"written={written}"
                )
            if item.attachment is not None and entry.attachment is not None:
                writer.pad_to(entry.attachment.offset)
                written = _write_payload(writer, item.attachment, source)
                if written != entry.attachment.size:
                    raise RuntimeError(
                        f"Entry {entry.index} attachment size mismatch: "
                        f"plan={entry.attachment.size} written={written}"
                    )
            rep.advance(
                task_id,
                current_item=entry.name or f"#{entry.index}",
            )
        writer.pad_to(plan.file_size)
        writer.seek(0)
        writer.write(plan.format.pack_table(plan.table, plan.header_size))
    except BaseException:
        rep.end_task(task_id, TaskStatus.FAILED)
        raise
    rep.end_task(
        task_id,
        entries=len(plan.items),
        bytes=plan.file_size,
        padding=plan.padding,
    )
    return plan.file_size


def write_container(
    plan: RebuildPlan,
    destination: Path | str,
    source: Optional[ContainerReader] = None,
) -> int:
    """Write ``plan`` to ``destination`` atomically; returns bytes written.

    ``source`` must be given when the plan copies existing payloads. It is
    closed before the rename so the destination may be the source's own path.
    """
    logger = get_logger()
    destination = Path(destination)
    if plan.needs_source and source is None:
        raise ValueError("plan copies from a source container but none given")
    directory = destination.parent
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{destination.name}.", suffix=".tmp", dir=directory
        )
    except OSError as exc:
        raise io_error(exc, directory, "create a temporary file in") from exc
    tmp = Path(tmp_name)
    committed = False
    label = f"{plan.operation.title()} {destination.name}"
    try:
        try:
            try:
                fp = os.fdopen(fd, "w+b")
            except BaseException:
                os.close(fd)
                raise
            with fp:
                written = _emit(fp, plan, source, label)
                fp.flush()
                os.fsync(fp.fileno())
            os.chmod(tmp, 0o666 & ~_current_umask())
            if source is not None:
                source.close()
            os.replace(tmp, destination)
        except OSError as exc:
            raise io_error(exc, destination, "write") from exc
        committed = True
    finally:
        if not committed:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning(
                    "Could not remove temporary file %s: %s", tmp, exc
                )
    logger.info(
        "Wrote %s (%d bytes, %d entries)",
        destination.name,
        written,
        len(plan.items),
    )
    return written
