"""
Exceptions and error logging for the memo book.

Expected conditions (invalid input, missing groups, export I/O failures)
are reported as return values by the orchestrator. Exceptions here are for
genuine storage faults, and ``log_exception`` keeps full tracebacks out of
the user's terminal.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .paths import ERROR_LOG_FILENAME, get_data_dir


class MemoBookError(Exception):
    """Base class for memo book errors."""


class StorageError(MemoBookError):
    """A storage engine operation failed and was rolled back."""


class SchemaMismatchError(StorageError):
    """The database schema version differs and resetting is disabled."""

    def __init__(self, path: Path, stored: int, expected: int):
        super().__init__(
            f"Database {path} has schema version {stored}, expected {expected}. "
            "Set reset_on_schema_change = true in memobook.toml to discard it."
        )
        self.path = path
        self.stored = stored
        self.expected = expected


def log_exception(exc: Exception, context: str = "", data_dir: Optional[Path] = None) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        data_dir: Data directory; resolved from the environment if omitted

    Returns:
        Path to the error log file
    """
    log_path = (data_dir or get_data_dir()) / ERROR_LOG_FILENAME
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # error log is best-effort
    return log_path
