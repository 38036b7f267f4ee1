"""Container codec: table model, format variants, reader, planner, writer."""

from .binary import ByteOrder, PaddingWriter
from .errors import ArchiveError
from .formats import ContainerFormat, get_format
from .inspector import inspect_container, validate_container
from .planner import (
    NewEntry,
    RebuildPlan,
    plan_append,
    plan_create,
    plan_delete,
    plan_update,
    to_plan_dict,
)
from .reader import ContainerReader
from .table import Entry, EntryTable, next_payload_offset
from .writer import write_container

__all__ = [
    "ArchiveError",
    "ByteOrder",
    "ContainerFormat",
    "ContainerReader",
    "Entry",
    "EntryTable",
    "NewEntry",
    "PaddingWriter",
    "RebuildPlan",
    "get_format",
    "inspect_container",
    "next_payload_offset",
    "plan_append",
    "plan_create",
    "plan_delete",
    "plan_update",
    "to_plan_dict",
    "validate_container",
    "write_container",
]
