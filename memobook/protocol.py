"""
Protocol definitions for the memo book and its collaborators.

Defines interface contracts at two levels:
- MemoStoreProtocol: the storage backend used by the orchestrator
- ActiveDocumentProvider: the host application's notion of the currently
  open document
"""

from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .types import (
    AliasRecord,
    DocumentRecord,
    ExportResult,
    GroupRecord,
    GroupSummary,
    NoteRecord,
)


@runtime_checkable
class ActiveDocumentProvider(Protocol):
    """
    Supplies the raw locator of the document currently open in the host.

    Returns None when no document is open.
    """

    def current_locator(self) -> Optional[str]: ...


@runtime_checkable
class MemoStoreProtocol(Protocol):
    """
    Storage operations the orchestrator relies on.

    Implemented by:
    - MemoStore (SQLite)
    """

    @property
    def database_path(self) -> Path: ...

    # -- Documents --

    def get_or_create_document(
        self,
        identity: str,
        identity_type: str = ...,
        display_name: Optional[str] = None,
    ) -> Optional[DocumentRecord]: ...

    def find_document(self, identity: str, identity_type: str = ...) -> Optional[DocumentRecord]: ...

    def get_document_by_id(self, document_id: int) -> Optional[DocumentRecord]: ...

    def list_documents(self) -> list[DocumentRecord]: ...

    # -- Groups --

    def ensure_group(self, document_id: int, primary_tag: str, normalized_tag: str) -> GroupRecord: ...

    def get_group(self, document_id: int, normalized_tag: str) -> Optional[GroupRecord]: ...

    def set_group_multi_note_mode(self, group_id: int, enabled: bool) -> None: ...

    def delete_group(self, group_id: int) -> bool: ...

    def delete_groups_without_notes(self, document_id: Optional[int] = None) -> int: ...

    def list_groups(
        self,
        document_id: Optional[int] = None,
        search_text: Optional[str] = None,
    ) -> list[GroupSummary]: ...

    # -- Notes --

    def add_note(self, group_id: int, text: str) -> int: ...

    def update_note(self, note_id: int, text: str) -> bool: ...

    def delete_note(self, note_id: int) -> bool: ...

    def get_notes(self, group_id: int) -> list[NoteRecord]: ...

    def count_notes(self, group_id: int) -> int: ...

    def clear_notes(self, group_id: int) -> int: ...

    # -- Aliases --

    def list_aliases(self, group_id: int) -> list[AliasRecord]: ...

    def add_alias(self, group_id: int, alias: str, normalized_alias: str) -> bool: ...

    def remove_alias(self, group_id: int, normalized_alias: str) -> bool: ...

    def alias_in_use(self, document_id: int, normalized_alias: str) -> bool: ...

    # -- Export / lifecycle --

    def export_data(self, document_id: Optional[int] = None) -> dict: ...

    def export_to(self, destination: Path, document_id: Optional[int] = None) -> ExportResult: ...

    def reset(self) -> None: ...

    def close(self) -> None: ...
