"""
Core API for the memo book.

The MemoBook class is the only component that combines identity
resolution with storage. It implements the user-visible semantics on top
of the memo store: tag normalization, automatic multi-note promotion and
demotion, alias collision checks, empty-group cleanup before listings,
and scoped export.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import MemoBookConfig, load_or_create_config
from .identity import IdentityResolver, ResolvedIdentity
from .logging_config import configure_ops_log
from .memo_store import MemoStore
from .paths import ensure_data_dir, get_data_dir
from .protocol import ActiveDocumentProvider, MemoStoreProtocol
from .types import (
    VIRTUAL_IDENTITY,
    DocumentContext,
    DocumentRecord,
    ExportResult,
    GroupRecord,
    GroupSummary,
    MemoGroup,
    NoteRecord,
    normalize_text,
    sanitize_filename,
)

logger = logging.getLogger(__name__)

# Well-known identity of the cross-document view
GLOBAL_IDENTITY = "__MEMOBOOK_GLOBAL__"

EXPORT_PREFIX = "memobook_"
EXPORT_ALL_FILENAME = "memobook_all.json"


def _prepare(value: Optional[str], what: str) -> Optional[tuple[str, str]]:
    """Normalize a tag or alias, logging rejected input."""
    prepared = normalize_text(value)
    if prepared is None:
        logger.warning("Ignoring invalid %s: %r", what, value)
    return prepared


class MemoBook:
    """
    Personal annotation store: notes grouped by tag, within documents.

    Example:
        with MemoBook() as mb:
            ctx = mb.context_for("/books/a.epub")
            mb.add_note("Foo", "first", context=ctx)
            rows, doc = mb.list_groups(context=ctx)

    Operations that target a document accept keyword-only scope options:

    - ``document_id``: an existing document's id (takes precedence)
    - ``context``: a DocumentContext, e.g. from ``context_for()``

    Without either, the active document provider's current document is
    used, and without that, the global virtual document.
    """

    def __init__(
        self,
        data_dir: Optional[str | Path] = None,
        *,
        config: Optional[MemoBookConfig] = None,
        store: Optional[MemoStoreProtocol] = None,
        resolver: Optional[IdentityResolver] = None,
        active_provider: Optional[ActiveDocumentProvider] = None,
    ) -> None:
        """
        Open (or create) a memo book.

        Args:
            data_dir: Data directory. Uses $MEMOBOOK_DATA_DIR or ~/.memobook
                if not specified.
            config: Pre-loaded config (skips config file discovery)
            store: Injected store (skips SQLite store creation)
            resolver: Injected identity resolver
            active_provider: Host collaborator supplying the open document
        """
        if config is not None:
            self._config = config
            self._data_dir = ensure_data_dir(config.path)
        else:
            self._data_dir = ensure_data_dir(get_data_dir(data_dir))
            self._config = load_or_create_config(self._data_dir)

        # --- Persistent operations log ---
        self._ops_log_handler = configure_ops_log(self._data_dir)

        try:
            self._store: MemoStoreProtocol = store if store is not None else MemoStore(
                self._config.database_path,
                reset_on_schema_change=self._config.reset_on_schema_change,
            )
        except Exception:
            self._remove_ops_log()
            raise

        self._resolver = resolver if resolver is not None else IdentityResolver(
            self._config.mapping_path
        )
        self._active_provider = active_provider
        self._last_provider = active_provider

    @property
    def config(self) -> MemoBookConfig:
        return self._config

    @property
    def resolver(self) -> IdentityResolver:
        return self._resolver

    # -------------------------------------------------------------------------
    # Document resolution
    # -------------------------------------------------------------------------

    def set_active_provider(self, provider: Optional[ActiveDocumentProvider]) -> None:
        """Swap the active document provider. The last non-null one is remembered."""
        self._active_provider = provider
        if provider is not None:
            self._last_provider = provider

    def _context_from(self, provider: Optional[ActiveDocumentProvider]) -> Optional[DocumentContext]:
        if provider is None:
            return None
        return self._resolver.resolve_context(provider.current_locator())

    def get_active_document_context(self) -> Optional[DocumentContext]:
        """
        Context of the document open in the host, if any.

        Falls back to the most recently set provider when none is active,
        so views opened after the document closed still know their scope.
        """
        return self._context_from(self._active_provider or self._last_provider)

    def context_for(self, locator: str) -> Optional[DocumentContext]:
        """Build a document context for an explicit raw locator."""
        return self._resolver.resolve_context(locator)

    def global_context(self) -> DocumentContext:
        """The virtual document that holds memos made outside any document."""
        return DocumentContext(
            identity=GLOBAL_IDENTITY,
            identity_type=VIRTUAL_IDENTITY,
            display_name=self._config.global_display_name,
        )

    def resolve_document(
        self,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
        create: bool = False,
    ) -> Optional[DocumentRecord]:
        """
        Resolve the target document.

        Precedence: explicit document id, explicit context, the active
        provider's current document, then the global virtual document.
        An id that names no stored document falls through to the next step.

        Args:
            create: Insert the document if it does not exist yet

        Returns:
            The document, or None if it is not stored (and not created).
        """
        if document_id is not None:
            doc = self._store.get_document_by_id(document_id)
            if doc is not None:
                return doc
            logger.debug("No document with id %s, falling back", document_id)

        if context is None or not context.identity:
            context = self._context_from(self._active_provider)
        if context is None or not context.identity:
            context = self.global_context()

        if create:
            return self._store.get_or_create_document(
                context.identity, context.identity_type, context.display_name
            )
        return self._store.find_document(context.identity, context.identity_type)

    def _scope_document(
        self,
        document_id: Optional[int],
        context: Optional[DocumentContext],
    ) -> tuple[Optional[DocumentRecord], bool]:
        """
        Document scope for listing and export.

        Returns ``(doc, scoped)``; ``scoped`` is False for the cross-document
        view (no explicit scope and no active document).
        """
        if document_id is None and context is None:
            context = self.get_active_document_context()
            if context is None:
                return None, False
        return self.resolve_document(document_id=document_id, context=context), True

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def _expand(self, doc: DocumentRecord, group: GroupRecord) -> MemoGroup:
        return MemoGroup(
            id=group.id,
            document_id=doc.id,
            document_identity=doc.identity,
            document_identity_type=doc.identity_type,
            document_display_name=doc.display_name,
            primary_tag=group.primary_tag,
            normalized_tag=group.normalized_tag,
            multi_note_mode=group.multi_note_mode,
            aliases=[a.alias for a in self._store.list_aliases(group.id)],
            notes=self._store.get_notes(group.id),
        )

    def _lookup(
        self,
        tag: Optional[str],
        document_id: Optional[int],
        context: Optional[DocumentContext],
    ) -> Optional[tuple[DocumentRecord, GroupRecord]]:
        """Find an existing group without creating anything."""
        prepared = _prepare(tag, "tag")
        if prepared is None:
            return None
        doc = self.resolve_document(document_id=document_id, context=context)
        if doc is None:
            return None
        group = self._store.get_group(doc.id, prepared[1])
        if group is None:
            return None
        return doc, group

    def get_group(
        self,
        tag: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> Optional[MemoGroup]:
        """The group for a tag with its aliases and notes, or None."""
        found = self._lookup(tag, document_id, context)
        if found is None:
            return None
        return self._expand(*found)

    def get_or_create_group(
        self,
        tag: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> Optional[MemoGroup]:
        """
        Ensure the group for a tag exists, creating its document if needed.

        Tags differing only in case or surrounding whitespace name the same
        group. Returns None for an empty tag.
        """
        prepared = _prepare(tag, "tag")
        if prepared is None:
            return None
        display, normalized = prepared
        doc = self.resolve_document(document_id=document_id, context=context, create=True)
        if doc is None:
            return None
        group = self._store.ensure_group(doc.id, display, normalized)
        return self._expand(doc, group)

    def set_multi_note_mode(
        self,
        tag: str,
        enabled: bool,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> bool:
        """Explicitly toggle multi-note mode. Returns False if the group is absent."""
        found = self._lookup(tag, document_id, context)
        if found is None:
            return False
        self._store.set_group_multi_note_mode(found[1].id, bool(enabled))
        return True

    def remove_group(
        self,
        tag: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> bool:
        """Delete a group with all its aliases and notes. No-op if absent."""
        found = self._lookup(tag, document_id, context)
        if found is None:
            return False
        doc, group = found
        self._store.delete_group(group.id)
        logger.info("Removed group %r from %s", group.primary_tag, doc.identity)
        return True

    def list_groups(
        self,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
        search_text: Optional[str] = None,
        all_documents: bool = False,
    ) -> tuple[list[GroupSummary], Optional[DocumentRecord]]:
        """
        List groups in the requested scope.

        The scope is the requested document, else the active document, else
        every document (the cross-document view). Empty groups in the scope
        are purged first, so a listing never shows a group without notes.

        Args:
            search_text: Case-insensitive substring of the tag or an alias
            all_documents: Force the cross-document view

        Returns:
            ``(rows, doc)``; doc is None for the cross-document view, and
            rows is empty when the requested document has no memos yet
        """
        doc: Optional[DocumentRecord] = None
        if not all_documents:
            doc, scoped = self._scope_document(document_id, context)
            if scoped and doc is None:
                return [], None

        target = doc.id if doc is not None else None
        self._store.delete_groups_without_notes(target)
        rows = self._store.list_groups(document_id=target, search_text=search_text)

        for row in rows:
            if not row.document_display_name:
                resolved = self._resolver.resolve(row.document_identity)
                row.document_display_name = resolved.display_name if resolved else None
        return rows, doc

    def list_documents(self) -> list[DocumentRecord]:
        return self._store.list_documents()

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def _sync_multi_note_mode(self, group_id: int, current: bool) -> bool:
        """Set multi-note mode from the note count. Returns the new mode."""
        multi = self._store.count_notes(group_id) > 1
        if multi != current:
            self._store.set_group_multi_note_mode(group_id, multi)
        return multi

    def add_note(
        self,
        tag: str,
        text: str,
        *,
        initial_alias: Optional[str] = None,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> Optional[MemoGroup]:
        """
        Append a note to the group for a tag, creating the group if needed.

        A second note promotes the group to multi-note mode. When this is
        the group's first note, ``initial_alias`` (e.g. a dictionary headword
        distinct from the selected text) is registered as an alias.

        Returns:
            The updated group, or None for an empty tag
        """
        group = self.get_or_create_group(tag, document_id=document_id, context=context)
        if group is None:
            return None
        is_first_note = self._store.count_notes(group.id) == 0
        self._store.add_note(group.id, text or "")
        self._sync_multi_note_mode(group.id, group.multi_note_mode)
        if is_first_note and initial_alias:
            self._add_alias_to(group.document_id, group.id, group.normalized_tag, initial_alias)
        return self.get_group(tag, document_id=group.document_id)

    def update_single_note(
        self,
        tag: str,
        text: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> Optional[MemoGroup]:
        """
        Replace the first note's text, or add it if the group has none.

        Multi-note mode is re-derived from the note count afterwards, so a
        one-note group switched on with set_multi_note_mode reads as
        single-note again.
        """
        group = self.get_or_create_group(tag, document_id=document_id, context=context)
        if group is None:
            return None
        if group.notes:
            self._store.update_note(group.notes[0].id, text or "")
        else:
            self._store.add_note(group.id, text or "")
        self._sync_multi_note_mode(group.id, group.multi_note_mode)
        return self.get_group(tag, document_id=group.document_id)

    def get_note(
        self,
        tag: str,
        index: int,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> Optional[NoteRecord]:
        """Note at a 1-based position (oldest first), or None."""
        group = self.get_group(tag, document_id=document_id, context=context)
        if group is None or not 1 <= index <= len(group.notes):
            return None
        return group.notes[index - 1]

    def update_note(
        self,
        tag: str,
        index: int,
        text: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> bool:
        """Replace the text of the note at a 1-based position."""
        note = self.get_note(tag, index, document_id=document_id, context=context)
        if note is None:
            return False
        return self._store.update_note(note.id, text or "")

    def delete_note(
        self,
        tag: str,
        index: int,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> bool:
        """
        Delete the note at a 1-based position.

        With one note or none left, the group leaves multi-note mode. A
        group left empty is purged by the next listing.
        """
        found = self._lookup(tag, document_id, context)
        if found is None:
            return False
        group = found[1]
        notes = self._store.get_notes(group.id)
        if not 1 <= index <= len(notes):
            return False
        self._store.delete_note(notes[index - 1].id)
        if len(notes) - 1 <= 1:
            self._store.set_group_multi_note_mode(group.id, False)
        return True

    # -------------------------------------------------------------------------
    # Aliases
    # -------------------------------------------------------------------------

    def _add_alias_to(
        self, document_id: int, group_id: int, normalized_tag: str, alias: str
    ) -> bool:
        prepared = _prepare(alias, "alias")
        if prepared is None:
            return False
        display, normalized = prepared
        if normalized == normalized_tag:
            logger.info("Alias %r is the group's own tag", display)
            return False
        if self._store.alias_in_use(document_id, normalized):
            logger.info("Alias %r already names a group in document %d", display, document_id)
            return False
        return self._store.add_alias(group_id, display, normalized)

    def add_alias(
        self,
        tag: str,
        alias: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> bool:
        """
        Register an alias for an existing group.

        The group is looked up, never created: an unknown tag returns False
        rather than leaving an empty group behind. Also rejected (returns
        False, nothing changes) when the alias is empty, equals the group's
        own tag, or already names any group or alias in the same document.
        """
        found = self._lookup(tag, document_id, context)
        if found is None:
            return False
        doc, group = found
        return self._add_alias_to(doc.id, group.id, group.normalized_tag, alias)

    def remove_alias(
        self,
        tag: str,
        alias: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> bool:
        """Remove an alias. Returns False only if the group or alias text is invalid."""
        found = self._lookup(tag, document_id, context)
        if found is None:
            return False
        prepared = _prepare(alias, "alias")
        if prepared is None:
            return False
        self._store.remove_alias(found[1].id, prepared[1])
        return True

    def list_aliases(
        self,
        tag: str,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
    ) -> tuple[Optional[str], list[str]]:
        """``(primary_tag, aliases)`` for a group, or ``(None, [])`` if absent."""
        group = self.get_group(tag, document_id=document_id, context=context)
        if group is None:
            return None, []
        return group.primary_tag, group.aliases

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def get_default_export_path(
        self,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
        all_documents: bool = False,
    ) -> Path:
        """
        Default export destination for a scope.

        ``memobook_<display name>.json`` for one document, or
        ``memobook_all.json`` for the cross-document view. The export
        directory is created if needed.
        """
        export_dir = self._config.export_directory
        export_dir.mkdir(parents=True, exist_ok=True)
        if all_documents:
            return export_dir / EXPORT_ALL_FILENAME

        if document_id is None and context is None:
            context = self.get_active_document_context()
            if context is None:
                return export_dir / EXPORT_ALL_FILENAME
        doc = self.resolve_document(document_id=document_id, context=context)
        if doc is not None:
            name = doc.display_name or doc.identity
        elif context is not None:
            name = context.display_name or context.identity
        else:
            return export_dir / EXPORT_ALL_FILENAME
        return export_dir / f"{EXPORT_PREFIX}{sanitize_filename(name)}.json"

    def export_to(
        self,
        path: Optional[str | Path] = None,
        *,
        document_id: Optional[int] = None,
        context: Optional[DocumentContext] = None,
        all_documents: bool = False,
    ) -> ExportResult:
        """
        Export the memos of one document (or all) as JSON.

        The scope is the requested document, else the active document, else
        every document. Nothing is created: exporting a document that has no
        memos yet is reported as a failure.
        """
        if path is None:
            path = self.get_default_export_path(
                document_id=document_id, context=context, all_documents=all_documents
            )
        path = Path(path).expanduser()

        doc: Optional[DocumentRecord] = None
        if not all_documents:
            doc, scoped = self._scope_document(document_id, context)
            if scoped and doc is None:
                logger.warning("Export to %s skipped: document not found", path)
                return ExportResult(ok=False, path=str(path), error="document not found")

        return self._store.export_to(path, document_id=doc.id if doc is not None else None)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def resolve(self, locator: str) -> Optional[ResolvedIdentity]:
        """Resolver output for a raw locator."""
        return self._resolver.resolve(locator)

    def get_database_path(self) -> Path:
        return self._store.database_path

    def get_mapping_path(self) -> Optional[Path]:
        """Location of the user-editable identity map."""
        return self._resolver.mapping_path

    def reset(self) -> None:
        """Delete every document, group, alias and note."""
        self._store.reset()
        logger.info("Reset memo book at %s", self._data_dir)

    def _remove_ops_log(self) -> None:
        if getattr(self, "_ops_log_handler", None):
            logging.getLogger("memobook").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def close(self) -> None:
        """Close the store and detach the operations log."""
        if getattr(self, "_store", None) is not None:
            self._store.close()
            self._store = None
        self._remove_ops_log()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass  # Suppress errors during garbage collection
