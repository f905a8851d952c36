"""
Memo store using SQLite.

Persists the memo book's relational model:

- documents: canonical document identities
- groups: one note group per (document, normalized tag)
- aliases: alternate normalized tags resolving to a group
- notes: free text attached to a group

Documents own groups, and groups own aliases and notes; deletes cascade
down that ownership chain via foreign keys.

Every public operation runs as one unit against the database: writes
inside a single ``BEGIN IMMEDIATE`` transaction that is rolled back on
any failure, reads as a single statement. SQLite errors surface as
``StorageError``.

The schema is versioned with ``PRAGMA user_version``. There is no
forward migration: when the stored version differs from SCHEMA_VERSION,
all tables are dropped and recreated (unless the reset is disabled, in
which case opening the store fails).
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import SchemaMismatchError, StorageError
from .types import (
    PATH_IDENTITY,
    AliasRecord,
    DocumentRecord,
    ExportResult,
    GroupRecord,
    GroupSummary,
    NoteRecord,
    default_display_name,
    utc_now,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 20241031

_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS documents (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        identity TEXT NOT NULL,
        identity_type TEXT NOT NULL DEFAULT 'path',
        display_name TEXT,
        created_at TEXT NOT NULL,
        UNIQUE(identity, identity_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS groups (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        document_id INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        primary_tag TEXT NOT NULL,
        normalized_tag TEXT NOT NULL,
        multi_note_mode INTEGER NOT NULL DEFAULT 0 CHECK(multi_note_mode IN (0, 1)),
        created_at TEXT NOT NULL,
        UNIQUE(document_id, normalized_tag)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS aliases (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
        alias TEXT NOT NULL,
        normalized_alias TEXT NOT NULL,
        UNIQUE(group_id, normalized_alias)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
        text TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_groups_document ON groups(document_id)",
    "CREATE INDEX IF NOT EXISTS idx_aliases_group ON aliases(group_id)",
    "CREATE INDEX IF NOT EXISTS idx_notes_group ON notes(group_id, created_at)",
)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _document_from_row(row: sqlite3.Row) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        identity=row["identity"],
        identity_type=row["identity_type"],
        display_name=row["display_name"],
        created_at=row["created_at"],
    )


def _group_from_row(row: sqlite3.Row) -> GroupRecord:
    return GroupRecord(
        id=row["id"],
        document_id=row["document_id"],
        primary_tag=row["primary_tag"],
        normalized_tag=row["normalized_tag"],
        multi_note_mode=bool(row["multi_note_mode"]),
    )


def _note_from_row(row: sqlite3.Row) -> NoteRecord:
    return NoteRecord(
        id=row["id"],
        text=row["text"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class MemoStore:
    """
    SQLite-backed store for documents, groups, aliases and notes.

    Intended for a single process driven by one thread of control at a
    time; an internal lock serializes access to the shared connection.
    """

    def __init__(self, store_path: Path, *, reset_on_schema_change: bool = True):
        """
        Args:
            store_path: Path to SQLite database file
            reset_on_schema_change: Discard an existing database whose
                schema version differs (otherwise raise SchemaMismatchError)
        """
        self._db_path = store_path
        self._reset_on_schema_change = reset_on_schema_change
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    @property
    def database_path(self) -> Path:
        return self._db_path

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def _init_db(self) -> None:
        """Open the database, reset it on schema change, create the tables."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None gives us manual transaction control
        self._conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        try:
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.execute("PRAGMA busy_timeout = 5000")

            stored = self._conn.execute("PRAGMA user_version").fetchone()[0]
            if stored != SCHEMA_VERSION:
                if self._user_tables():
                    if not self._reset_on_schema_change:
                        raise SchemaMismatchError(self._db_path, stored, SCHEMA_VERSION)
                    logger.warning(
                        "Schema version changed (%d -> %d): discarding existing memo data in %s",
                        stored, SCHEMA_VERSION, self._db_path,
                    )
                    self._drop_all()
                self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

            self._conn.execute("BEGIN")
            for statement in _SCHEMA_STATEMENTS:
                self._conn.execute(statement)
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self.close()
            raise StorageError(f"Unable to initialize {self._db_path}: {e}") from e
        except SchemaMismatchError:
            self.close()
            raise
        logger.debug("Memo store ready at %s (schema %d)", self._db_path, SCHEMA_VERSION)

    def _user_tables(self) -> list[str]:
        rows = self._conn.execute("""
            SELECT name FROM sqlite_master
            WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
        """).fetchall()
        return [row["name"] for row in rows]

    def _drop_all(self) -> None:
        """Drop every table and view; indexes and triggers go with them."""
        self._conn.execute("PRAGMA foreign_keys = OFF")
        for row in self._conn.execute("""
            SELECT type, name FROM sqlite_master
            WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
        """).fetchall():
            quoted = row["name"].replace('"', '""')
            kind = "VIEW" if row["type"] == "view" else "TABLE"
            self._conn.execute(f'DROP {kind} IF EXISTS "{quoted}"')
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.execute("VACUUM")

    # -------------------------------------------------------------------------
    # Connection scopes
    # -------------------------------------------------------------------------

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(f"Memo store is closed: {self._db_path}")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block as one write transaction; roll back on any failure."""
        with self._lock:
            conn = self._require_conn()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(str(e)) from e
            except BaseException:
                conn.rollback()
                raise

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        """Serialized read access; SQLite errors become StorageError."""
        with self._lock:
            conn = self._require_conn()
            try:
                yield conn
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    @staticmethod
    def _select_document(
        conn: sqlite3.Connection, identity: str, identity_type: str
    ) -> Optional[sqlite3.Row]:
        return conn.execute("""
            SELECT id, identity, identity_type, display_name, created_at
            FROM documents
            WHERE identity = ? AND identity_type = ?
        """, (identity, identity_type)).fetchone()

    def get_or_create_document(
        self,
        identity: str,
        identity_type: str = PATH_IDENTITY,
        display_name: Optional[str] = None,
    ) -> Optional[DocumentRecord]:
        """
        Fetch a document by identity, inserting it if absent.

        On an existing match, a non-empty display name that differs from the
        stored one replaces it.

        Returns:
            The stored DocumentRecord, or None for an empty identity
        """
        if not identity:
            return None
        with self._transaction() as conn:
            row = self._select_document(conn, identity, identity_type)
            if row is None:
                try:
                    conn.execute("""
                        INSERT INTO documents (identity, identity_type, display_name, created_at)
                        VALUES (?, ?, ?, ?)
                    """, (identity, identity_type,
                          display_name or default_display_name(identity), utc_now()))
                except sqlite3.IntegrityError:
                    logger.debug("Document %s inserted concurrently, re-reading", identity)
                    existing = self._select_document(conn, identity, identity_type)
                    if existing is None:
                        # Not a uniqueness race (e.g. missing identity type)
                        raise
                row = self._select_document(conn, identity, identity_type)
                return _document_from_row(row)

            record = _document_from_row(row)
            if display_name and display_name != record.display_name:
                conn.execute(
                    "UPDATE documents SET display_name = ? WHERE id = ?",
                    (display_name, record.id),
                )
                record.display_name = display_name
            return record

    def find_document(
        self, identity: str, identity_type: str = PATH_IDENTITY
    ) -> Optional[DocumentRecord]:
        """Look up a document by identity without creating it."""
        if not identity:
            return None
        with self._reader() as conn:
            row = self._select_document(conn, identity, identity_type)
        return _document_from_row(row) if row else None

    def get_document_by_id(self, document_id: int) -> Optional[DocumentRecord]:
        """Get a document by surrogate id."""
        with self._reader() as conn:
            row = conn.execute("""
                SELECT id, identity, identity_type, display_name, created_at
                FROM documents WHERE id = ?
            """, (document_id,)).fetchone()
        return _document_from_row(row) if row else None

    def list_documents(self) -> list[DocumentRecord]:
        """All documents, ordered case-insensitively by display name."""
        with self._reader() as conn:
            rows = conn.execute("""
                SELECT id, identity, identity_type, display_name, created_at
                FROM documents
                ORDER BY display_name COLLATE NOCASE, id
            """).fetchall()
        return [_document_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @staticmethod
    def _select_group(
        conn: sqlite3.Connection, document_id: int, normalized_tag: str
    ) -> Optional[sqlite3.Row]:
        return conn.execute("""
            SELECT id, document_id, primary_tag, normalized_tag, multi_note_mode
            FROM groups
            WHERE document_id = ? AND normalized_tag = ?
        """, (document_id, normalized_tag)).fetchone()

    def ensure_group(
        self, document_id: int, primary_tag: str, normalized_tag: str
    ) -> GroupRecord:
        """
        Insert-or-fetch the group for (document, normalized tag).

        An existing group is switched into multi-note mode, and its
        primary tag is refreshed to the latest display form.
        """
        with self._transaction() as conn:
            row = self._select_group(conn, document_id, normalized_tag)
            if row is None:
                try:
                    conn.execute("""
                        INSERT INTO groups (document_id, primary_tag, normalized_tag, created_at)
                        VALUES (?, ?, ?, ?)
                    """, (document_id, primary_tag, normalized_tag, utc_now()))
                except sqlite3.IntegrityError:
                    logger.debug("Group %r inserted concurrently, re-reading", normalized_tag)
                    existing = self._select_group(conn, document_id, normalized_tag)
                    if existing is None:
                        # Not a uniqueness race (e.g. unknown document_id)
                        raise
                row = self._select_group(conn, document_id, normalized_tag)
                return _group_from_row(row)

            group = _group_from_row(row)
            if not group.multi_note_mode:
                conn.execute("UPDATE groups SET multi_note_mode = 1 WHERE id = ?", (group.id,))
                group.multi_note_mode = True
            if group.primary_tag != primary_tag:
                conn.execute("UPDATE groups SET primary_tag = ? WHERE id = ?", (primary_tag, group.id))
                group.primary_tag = primary_tag
            return group

    def get_group(self, document_id: int, normalized_tag: str) -> Optional[GroupRecord]:
        """Exact lookup by (document, normalized tag); never creates."""
        with self._reader() as conn:
            row = self._select_group(conn, document_id, normalized_tag)
        return _group_from_row(row) if row else None

    def set_group_multi_note_mode(self, group_id: int, enabled: bool) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE groups SET multi_note_mode = ? WHERE id = ?",
                (1 if enabled else 0, group_id),
            )

    def delete_group(self, group_id: int) -> bool:
        """Delete a group with its aliases and notes. Returns True if it existed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM groups WHERE id = ?", (group_id,))
        return cursor.rowcount > 0

    def delete_groups_without_notes(self, document_id: Optional[int] = None) -> int:
        """
        Purge groups that have no notes.

        Args:
            document_id: Limit the purge to one document (None for all)

        Returns:
            Number of groups deleted
        """
        with self._transaction() as conn:
            if document_id is not None:
                cursor = conn.execute("""
                    DELETE FROM groups
                    WHERE document_id = ?
                      AND NOT EXISTS (SELECT 1 FROM notes WHERE notes.group_id = groups.id)
                """, (document_id,))
            else:
                cursor = conn.execute("""
                    DELETE FROM groups
                    WHERE NOT EXISTS (SELECT 1 FROM notes WHERE notes.group_id = groups.id)
                """)
        if cursor.rowcount:
            logger.debug("Purged %d empty groups", cursor.rowcount)
        return cursor.rowcount

    def list_groups(
        self,
        document_id: Optional[int] = None,
        search_text: Optional[str] = None,
    ) -> list[GroupSummary]:
        """
        List groups joined with their document, with alias and note counts.

        Args:
            document_id: Limit to one document (None for all documents)
            search_text: Case-insensitive substring matched against the
                primary tag or any alias of the group

        Returns:
            Groups ordered case-insensitively by primary tag
        """
        clauses = []
        params: list[Any] = []
        if document_id is not None:
            clauses.append("g.document_id = ?")
            params.append(document_id)
        needle = search_text.strip().casefold() if search_text else ""
        if needle:
            pattern = f"%{_escape_like(needle)}%"
            clauses.append("""(
                g.normalized_tag LIKE ? ESCAPE '\\'
                OR EXISTS (
                    SELECT 1 FROM aliases a
                    WHERE a.group_id = g.id AND a.normalized_alias LIKE ? ESCAPE '\\'
                )
            )""")
            params.extend([pattern, pattern])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._reader() as conn:
            rows = conn.execute(f"""
                SELECT g.id, g.document_id, g.primary_tag, g.normalized_tag, g.multi_note_mode,
                       d.identity, d.identity_type, d.display_name,
                       (SELECT COUNT(*) FROM aliases WHERE group_id = g.id) AS alias_count,
                       (SELECT COUNT(*) FROM notes WHERE group_id = g.id) AS note_count
                FROM groups g
                JOIN documents d ON d.id = g.document_id
                {where}
                ORDER BY g.normalized_tag ASC, g.id ASC
            """, params).fetchall()

        return [
            GroupSummary(
                id=row["id"],
                document_id=row["document_id"],
                primary_tag=row["primary_tag"],
                normalized_tag=row["normalized_tag"],
                multi_note_mode=bool(row["multi_note_mode"]),
                document_identity=row["identity"],
                document_identity_type=row["identity_type"],
                document_display_name=row["display_name"],
                alias_count=row["alias_count"],
                note_count=row["note_count"],
            )
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def add_note(self, group_id: int, text: str) -> int:
        """Append a note to a group. Returns the new note id."""
        now = utc_now()
        with self._transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO notes (group_id, text, created_at, updated_at)
                VALUES (?, ?, ?, ?)
            """, (group_id, text or "", now, now))
        return cursor.lastrowid

    def update_note(self, note_id: int, text: str) -> bool:
        """Replace a note's text and bump updated_at. Returns True if found."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE notes SET text = ?, updated_at = ? WHERE id = ?",
                (text or "", utc_now(), note_id),
            )
        return cursor.rowcount > 0

    def delete_note(self, note_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        return cursor.rowcount > 0

    def get_notes(self, group_id: int) -> list[NoteRecord]:
        """Notes of a group, oldest first."""
        with self._reader() as conn:
            rows = conn.execute("""
                SELECT id, text, created_at, updated_at
                FROM notes
                WHERE group_id = ?
                ORDER BY created_at ASC, id ASC
            """, (group_id,)).fetchall()
        return [_note_from_row(row) for row in rows]

    def count_notes(self, group_id: int) -> int:
        with self._reader() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM notes WHERE group_id = ?", (group_id,)
            ).fetchone()[0]

    def clear_notes(self, group_id: int) -> int:
        """Delete every note of a group. Returns the number deleted."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM notes WHERE group_id = ?", (group_id,))
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Aliases
    # -------------------------------------------------------------------------

    def list_aliases(self, group_id: int) -> list[AliasRecord]:
        """Aliases of a group, ordered case-insensitively."""
        with self._reader() as conn:
            rows = conn.execute("""
                SELECT alias, normalized_alias
                FROM aliases
                WHERE group_id = ?
                ORDER BY normalized_alias ASC, id ASC
            """, (group_id,)).fetchall()
        return [AliasRecord(alias=row["alias"], normalized=row["normalized_alias"]) for row in rows]

    def add_alias(self, group_id: int, alias: str, normalized_alias: str) -> bool:
        """
        Add an alias to a group.

        A duplicate normalized alias within the group is ignored.

        Returns:
            True if a row was inserted
        """
        with self._transaction() as conn:
            cursor = conn.execute("""
                INSERT OR IGNORE INTO aliases (group_id, alias, normalized_alias)
                VALUES (?, ?, ?)
            """, (group_id, alias, normalized_alias))
        return cursor.rowcount > 0

    def remove_alias(self, group_id: int, normalized_alias: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM aliases WHERE group_id = ? AND normalized_alias = ?",
                (group_id, normalized_alias),
            )
        return cursor.rowcount > 0

    def alias_in_use(self, document_id: int, normalized_alias: str) -> bool:
        """
        Check whether a normalized value already names something in a document.

        True if it equals any group's normalized tag, or any alias of any
        group, within the document.
        """
        if not normalized_alias:
            return False
        with self._reader() as conn:
            row = conn.execute("""
                SELECT 1 FROM groups
                WHERE document_id = ? AND normalized_tag = ?
                UNION ALL
                SELECT 1 FROM aliases a
                JOIN groups g ON g.id = a.group_id
                WHERE g.document_id = ? AND a.normalized_alias = ?
                LIMIT 1
            """, (document_id, normalized_alias, document_id, normalized_alias)).fetchone()
        return row is not None

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_data(self, document_id: Optional[int] = None) -> dict:
        """
        Collect documents with their groups, aliases and notes.

        Args:
            document_id: Limit to one document (None for all documents)

        Returns:
            ``{"documents": {doc_id: {...}}, "groups": {doc_id: {normalized_tag: {...}}}}``
            with ids as strings (JSON object keys)
        """
        scope = "WHERE d.id = ?" if document_id is not None else ""
        params = (document_id,) if document_id is not None else ()

        with self._reader() as conn:
            doc_rows = conn.execute(f"""
                SELECT d.id, d.identity, d.identity_type, d.display_name, d.created_at
                FROM documents d {scope}
                ORDER BY d.id
            """, params).fetchall()
            group_rows = conn.execute(f"""
                SELECT g.id, g.document_id, g.primary_tag, g.normalized_tag, g.multi_note_mode,
                       g.created_at
                FROM groups g JOIN documents d ON d.id = g.document_id {scope}
                ORDER BY g.id
            """, params).fetchall()
            alias_rows = conn.execute(f"""
                SELECT a.group_id, a.alias, a.normalized_alias
                FROM aliases a
                JOIN groups g ON g.id = a.group_id
                JOIN documents d ON d.id = g.document_id {scope}
                ORDER BY a.normalized_alias, a.id
            """, params).fetchall()
            note_rows = conn.execute(f"""
                SELECT n.id, n.group_id, n.text, n.created_at, n.updated_at
                FROM notes n
                JOIN groups g ON g.id = n.group_id
                JOIN documents d ON d.id = g.document_id {scope}
                ORDER BY n.created_at, n.id
            """, params).fetchall()

        data: dict[str, dict] = {"documents": {}, "groups": {}}
        for row in doc_rows:
            data["documents"][str(row["id"])] = {
                "id": row["id"],
                "identity": row["identity"],
                "identity_type": row["identity_type"],
                "display_name": row["display_name"],
                "created_at": row["created_at"],
            }

        groups: dict[int, dict] = {}
        for row in group_rows:
            entry = {
                "document_id": row["document_id"],
                "primary_tag": row["primary_tag"],
                "normalized_tag": row["normalized_tag"],
                "multi_note_mode": bool(row["multi_note_mode"]),
                "created_at": row["created_at"],
                "aliases": [],
                "notes": [],
            }
            groups[row["id"]] = entry
            data["groups"].setdefault(str(row["document_id"]), {})[row["normalized_tag"]] = entry

        for row in alias_rows:
            groups[row["group_id"]]["aliases"].append({
                "alias": row["alias"],
                "normalized": row["normalized_alias"],
            })
        for row in note_rows:
            groups[row["group_id"]]["notes"].append({
                "id": row["id"],
                "text": row["text"],
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
            })

        return data

    def export_to(self, destination: Path, document_id: Optional[int] = None) -> ExportResult:
        """
        Write the export structure as JSON, creating parent directories.

        Failures are reported in the result rather than raised.
        """
        destination = Path(destination)
        try:
            data = self.export_data(document_id)
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(
                json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
            )
        except (OSError, StorageError) as e:
            logger.warning("Export to %s failed: %s", destination, e)
            return ExportResult(ok=False, path=str(destination), error=str(e))
        logger.info("Exported memos to %s", destination)
        return ExportResult(ok=True, path=str(destination))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Delete all rows from all tables. The schema is left in place."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM notes")
            conn.execute("DELETE FROM aliases")
            conn.execute("DELETE FROM groups")
            conn.execute("DELETE FROM documents")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
