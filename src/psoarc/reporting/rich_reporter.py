from __future__ import annotations

import os
import time
from typing import Any, Dict, List

from rich import filesize
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .base import (
    Reporter,
    TaskRecord,
    TaskStatus,
    format_completion,
    get_verbosity,
)

_STATUS_ICON = {
    TaskStatus.SUCCESS: "[green]✔[/]",
    TaskStatus.FAILED: "[red]✖[/]",
    TaskStatus.SKIPPED: "[yellow]→[/]",
}


class RichReporter(Reporter):
    """Console reporter with live progress bars (``--reporter rich``).

    Tasks without a total render as a rule; counted tasks get a bar. Tasks
    started with ``unit="bytes"`` show transferred sizes instead of counts.
    Set ``PSOARC_PROGRESS_TRANSIENT=1`` to clear bars once all tasks end and
    print the completion lines afterwards.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console(
            stderr=True, highlight=False, soft_wrap=False
        )
        self._transient = os.getenv(
            "PSOARC_PROGRESS_TRANSIENT", "0"
        ).lower() in ("1", "true", "yes")
        self.progress: Progress | None = None
        self._tasks: Dict[str, TaskRecord] = {}
        self._task_ids: Dict[str, TaskID] = {}
        self._deferred: List[str] = []

    def _ensure_progress(self) -> Progress:
        if self.progress is None:
            self.progress = Progress(
                SpinnerColumn(spinner_name="dots"),
                TextColumn("{task.description}", justify="left"),
                BarColumn(bar_width=None),
                TextColumn("{task.fields[count]}"),
                TimeElapsedColumn(),
                transient=self._transient,
                console=self.console,
                expand=True,
            )
            self.progress.start()
        return self.progress

    def _count_text(self, rec: TaskRecord) -> str:
        if rec.meta.get("unit") == "bytes":
            return (
                f"{filesize.decimal(rec.completed)}"
                f"/{filesize.decimal(rec.total or 0)}"
            )
        return f"{rec.completed}/{rec.total}"

    # Tasks --------------------------------------------------------------------
    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        if total is None:
            self.console.rule(name)
            return
        rec = TaskRecord(task_id, name, total, meta=meta)
        self._tasks[task_id] = rec
        progress = self._ensure_progress()
        self._task_ids[task_id] = progress.add_task(
            name, total=total, count=self._count_text(rec)
        )

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        rec = self._tasks.get(task_id)
        rid = self._task_ids.get(task_id)
        if rec is None or rid is None or self.progress is None:
            return
        rec.completed += step
        rec.meta.update(meta)
        description = rec.name
        item = meta.get("current_item")
        if item:
            description = f"{rec.name} [dim]↳ {item}[/]"
        self.progress.update(
            rid,
            completed=rec.completed,
            description=description,
            count=self._count_text(rec),
        )

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._tasks.pop(task_id, None)
        if rec is None:
            return
        rec.status = status
        rec.end_time = time.time()
        rec.meta.update(final_meta)
        rid = self._task_ids.pop(task_id, None)
        if rid is not None and self.progress is not None:
            self.progress.update(rid, description=rec.name)
            if status is TaskStatus.SUCCESS and rec.total is not None:
                self.progress.update(rid, completed=rec.total)
        line = format_completion(rec, _STATUS_ICON.get(status, ""))
        if self._transient:
            self._deferred.append(line)
        else:
            self.console.print(line)
        if not self._tasks:
            self.flush()

    # Messages -------------------------------------------------------------------
    def status(self, message: str, **fields: Any) -> None:
        self.console.print(f"[green]INFO[/]: {message}")

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() < level:
            return
        self.console.print(f"[cyan]VERB{level}[/]: {message}")

    def error(self, message: str, **fields: Any) -> None:
        self.console.print(f"[bold red]ERROR[/]: {message}")

    def warning(self, message: str, **fields: Any) -> None:
        self.console.print(f"[yellow]WARN[/]: {message}")

    def section(self, title: str) -> None:
        self.console.rule(title)

    def flush(self) -> None:
        if self.progress is not None:
            try:
                self.progress.stop()
            finally:
                self.progress = None
                self._task_ids.clear()
        if self._deferred:
            self.console.print("\n".join(self._deferred))
            self._deferred.clear()

