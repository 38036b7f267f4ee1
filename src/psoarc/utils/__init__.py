from .io import file_size, safe_read_file, write_file
from .paths import entry_basename, safe_file_path

__all__ = [
    "file_size",
    "safe_read_file",
    "write_file",
    "entry_basename",
    "safe_file_path",
]
