"""
Data types for the memo book.

These records are the only values that cross the boundary between the
storage engine and the orchestrator.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


# Identity types for documents
PATH_IDENTITY = "path"
VIRTUAL_IDENTITY = "virtual"


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.

    All timestamps in the memo book are UTC, stored without timezone suffix.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def normalize_text(value: Optional[str]) -> Optional[tuple[str, str]]:
    """Normalize a tag or alias.

    Returns ``(display, normalized)`` where ``display`` is the trimmed text in
    its original case and ``normalized`` is its case-folded form, used for all
    uniqueness comparisons and lookups. Returns None for non-strings and for
    text that is empty after trimming.
    """
    if not isinstance(value, str):
        return None
    display = value.strip()
    if not display:
        return None
    return display, display.casefold()


def default_display_name(identity: Optional[str]) -> Optional[str]:
    """Basename-style display name for an identity, or the identity itself."""
    if not identity:
        return None
    basename = os.path.basename(identity)
    return basename or identity


# Characters that are unsafe in file names on common filesystems
_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|]')
_NON_PORTABLE_RE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(name: Optional[str]) -> str:
    """Derive a filesystem-safe file name stem from a display name."""
    if not name:
        return "memobook"
    cleaned = _UNSAFE_FILENAME_RE.sub(" ", name)
    cleaned = " ".join(cleaned.split())
    cleaned = cleaned.replace(" ", "_")
    cleaned = _NON_PORTABLE_RE.sub("_", cleaned)
    return cleaned or "memobook"


@dataclass
class DocumentContext:
    """A resolved document scope, before it is persisted."""
    identity: str
    identity_type: str = PATH_IDENTITY
    display_name: Optional[str] = None
    source_identity: Optional[str] = None


@dataclass
class DocumentRecord:
    """A canonical document identity under which memos are organized."""
    id: int
    identity: str
    identity_type: str
    display_name: Optional[str] = None
    created_at: str = ""


@dataclass
class GroupRecord:
    """A note group anchored to a primary tag within one document."""
    id: int
    document_id: int
    primary_tag: str
    normalized_tag: str
    multi_note_mode: bool = False


@dataclass
class GroupSummary:
    """A group row as surfaced by listings: joined with its document, plus counts."""
    id: int
    document_id: int
    primary_tag: str
    normalized_tag: str
    multi_note_mode: bool
    document_identity: str
    document_identity_type: str
    document_display_name: Optional[str]
    alias_count: int = 0
    note_count: int = 0


@dataclass
class AliasRecord:
    """An alternate tag resolving to a group."""
    alias: str
    normalized: str


@dataclass
class NoteRecord:
    """One piece of free text attached to a group."""
    id: int
    text: str
    created_at: str
    updated_at: str


@dataclass
class MemoGroup:
    """
    A group expanded with its owning document, aliases and notes.

    Notes are ordered by creation time ascending; positions used by the
    orchestrator are 1-based indexes into ``notes``.
    """
    id: int
    document_id: int
    document_identity: str
    document_identity_type: str
    document_display_name: Optional[str]
    primary_tag: str
    normalized_tag: str
    multi_note_mode: bool
    aliases: list[str] = field(default_factory=list)
    notes: list[NoteRecord] = field(default_factory=list)

    @property
    def note_count(self) -> int:
        return len(self.notes)


@dataclass
class ExportResult:
    """Outcome of an export: success flag, destination and failure detail."""
    ok: bool
    path: str
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok
