"""Error definitions for psoarc.

Every failure a caller can recover from is an :class:`ArchiveError` carrying a
stable ``code``; the CLI maps them to a message and a nonzero exit status.
"""

from __future__ import annotations
import errno
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

E_NOT_FOUND = "E_NOT_FOUND"
E_BAD_MAGIC = "E_BAD_MAGIC"
E_TRUNCATED = "E_TRUNCATED"
E_CORRUPT = "E_CORRUPT"
E_OUT_OF_RANGE = "E_OUT_OF_RANGE"
E_NAME_TOO_LONG = "E_NAME_TOO_LONG"
E_NAME_INVALID = "E_NAME_INVALID"
E_CAPACITY = "E_CAPACITY"
E_UNSUPPORTED = "E_UNSUPPORTED"
E_IO = "E_IO"
E_MANIFEST = "E_MANIFEST"


@dataclass(eq=False)
class ArchiveError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    @property
    def path(self) -> Optional[str]:
        if not self.context:
            return None
        value = self.context.get("path")
        return None if value is None else str(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class NotFoundError(ArchiveError):
    pass


class BadMagicError(ArchiveError):
    pass


class TruncatedError(ArchiveError):
    pass


class CorruptError(ArchiveError):
    pass


class CompressionError(CorruptError):
    pass


class OutOfRangeError(ArchiveError):
    pass


class EntryNameError(ArchiveError):
    pass


class CapacityExceededError(ArchiveError):
    pass


class UnsupportedOperationError(ArchiveError):
    pass


class ArchiveIOError(ArchiveError):
    pass


class ManifestError(ArchiveError):
    pass


def _ctx(path: Path | str | None, **extra: Any) -> Dict[str, Any]:
    ctx: Dict[str, Any] = {k: v for k, v in extra.items() if v is not None}
    if path is not None:
        ctx["path"] = str(path)
    return ctx


def not_found(path: Path | str) -> NotFoundError:
    return NotFoundError(
        code=E_NOT_FOUND,
        message=f"No such file: {path}",
        context=_ctx(path),
    )


def bad_magic(path: Path | str | None, fmt: str) -> BadMagicError:
    return BadMagicError(
        code=E_BAD_MAGIC,
        message=f"Not a {fmt.upper()} container",
        context=_ctx(path, format=fmt),
    )


def truncated(
    message: str, path: Path | str | None = None, **extra: Any
) -> TruncatedError:
    return TruncatedError(
        code=E_TRUNCATED, message=message, context=_ctx(path, **extra)
    )


def corrupt(
    message: str, path: Path | str | None = None, **extra: Any
) -> CorruptError:
    return CorruptError(
        code=E_CORRUPT, message=message, context=_ctx(path, **extra)
    )


def compression_error(message: str, **extra: Any) -> CompressionError:
    return CompressionError(
        code=E_CORRUPT, message=message, context=_ctx(None, **extra)
    )


def out_of_range(message: str, **extra: Any) -> OutOfRangeError:
    return OutOfRangeError(
        code=E_OUT_OF_RANGE, message=message, context=_ctx(None, **extra)
    )


def name_too_long(name: str, limit: int) -> EntryNameError:
    return EntryNameError(
        code=E_NAME_TOO_LONG,
        message=f"Entry name '{name}' too long (must be {limit} bytes or less)",
        context={"name": name, "limit": limit},
    )


def invalid_name(name: str, reason: str) -> EntryNameError:
    return EntryNameError(
        code=E_NAME_INVALID,
        message=f"Invalid entry name '{name}': {reason}",
        context={"name": name},
    )


def capacity_exceeded(message: str, **extra: Any) -> CapacityExceededError:
    return CapacityExceededError(
        code=E_CAPACITY, message=message, context=_ctx(None, **extra)
    )


def unsupported(message: str, **extra: Any) -> UnsupportedOperationError:
    return UnsupportedOperationError(
        code=E_UNSUPPORTED, message=message, context=_ctx(None, **extra)
    )


def manifest_error(
    message: str, path: Path | str | None = None
) -> ManifestError:
    return ManifestError(
        code=E_MANIFEST, message=message, context=_ctx(path)
    )


def io_error(
    exc: OSError, path: Path | str | None, action: str
) -> ArchiveError:
    """Wrap an ``OSError`` raised while ``action``-ing ``path``."""
    target = path if path is not None else exc.filename
    if isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOENT:
        return not_found(target if target is not None else "?")
    reason = exc.strerror or str(exc)
    return ArchiveIOError(
        code=E_IO,
        message=f"Cannot {action} {target}: {reason}",
        context=_ctx(target, errno=exc.errno, reason=reason),
    )


__all__ = [
    "ArchiveError",
    "NotFoundError",
    "BadMagicError",
    "TruncatedError",
    "CorruptError",
    "CompressionError",
    "OutOfRangeError",
    "EntryNameError",
    "CapacityExceededError",
    "UnsupportedOperationError",
    "ArchiveIOError",
    "ManifestError",
    "not_found",
    "bad_magic",
    "truncated",
    "corrupt",
    "compression_error",
    "out_of_range",
    "name_too_long",
    "invalid_name",
    "capacity_exceeded",
    "unsupported",
    "io_error",
    "manifest_error",
    "E_NOT_FOUND",
    "E_BAD_MAGIC",
    "E_TRUNCATED",
    "E_CORRUPT",
    "E_OUT_OF_RANGE",
    "E_NAME_TOO_LONG",
    "E_NAME_INVALID",
    "E_CAPACITY",
    "E_UNSUPPORTED",
    "E_IO",
    "E_MANIFEST",
]
