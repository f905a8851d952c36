"""
Memo Book

A personal annotation store: free-text notes attached to tags within the
scope of a document. Several tags (aliases) can resolve to the same note
group, and several document paths can resolve to the same document.

Quick Start:
    from memobook import MemoBook

    mb = MemoBook()  # uses ~/.memobook/
    ctx = mb.context_for("/books/a.epub")
    mb.add_note("Foo", "first", context=ctx)
    rows, doc = mb.list_groups(context=ctx)

CLI Usage:
    memobook --doc /books/a.epub add "Foo" "first"
    memobook --doc /books/a.epub list
    memobook export --all

Default Data Directory:
    ~/.memobook/ (created automatically).
    Override with MEMOBOOK_DATA_DIR or an explicit path argument.

Environment Variables:
    MEMOBOOK_DATA_DIR   - Override default data directory
    MEMOBOOK_DOCUMENT   - Document locator used by the CLI
    MEMOBOOK_VERBOSE    - Set to 1 for debug logging
"""

from .api import MemoBook
from .identity import IdentityResolver, ResolvedIdentity
from .memo_store import MemoStore
from .types import DocumentContext, ExportResult, MemoGroup

__version__ = "0.1.0"
__all__ = [
    "MemoBook",
    "MemoStore",
    "IdentityResolver",
    "ResolvedIdentity",
    "DocumentContext",
    "MemoGroup",
    "ExportResult",
]
