"""Process and filesystem helpers."""

from .files import atomic_write_bytes, reset_dir
from .process import ProcessError, format_command, run

__all__ = [
    "ProcessError",
    "atomic_write_bytes",
    "format_command",
    "reset_dir",
    "run",
]
