"""
Data directory discovery.

Everything the memo book persists lives under a single data directory:
``$MEMOBOOK_DATA_DIR`` when set, otherwise ``~/.memobook``.
"""

import os
from pathlib import Path
from typing import Optional

DATA_DIR_ENV = "MEMOBOOK_DATA_DIR"

DATABASE_FILENAME = "memobook.sqlite3"
MAPPING_FILENAME = "document_map.json"
OPS_LOG_FILENAME = "memobook-ops.log"
ERROR_LOG_FILENAME = "memobook-errors.log"


def get_data_dir(override: Optional[str | Path] = None) -> Path:
    """Resolve the data directory (not created here)."""
    if override is not None:
        return Path(override).expanduser()
    env = os.environ.get(DATA_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".memobook"


def ensure_data_dir(data_dir: Path) -> Path:
    """Create the data directory if needed and return it."""
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
