"""Tests for the SQLite memo store."""

import sqlite3

import pytest

from memobook.errors import StorageError
from memobook.memo_store import SCHEMA_VERSION, MemoStore
from memobook.types import VIRTUAL_IDENTITY


@pytest.fixture
def doc(store):
    return store.get_or_create_document("/books/a.epub", "path", "a.epub")


class TestDocuments:

    def test_create_then_fetch_same_row(self, store):
        first = store.get_or_create_document("/books/a.epub", "path", "a.epub")
        second = store.get_or_create_document("/books/a.epub", "path")
        assert first.id == second.id
        assert len(store.list_documents()) == 1

    def test_identity_type_is_part_of_key(self, store):
        a = store.get_or_create_document("x", "path")
        b = store.get_or_create_document("x", VIRTUAL_IDENTITY)
        assert a.id != b.id

    def test_display_name_defaults_to_basename(self, store):
        doc = store.get_or_create_document("/books/x.epub")
        assert doc.display_name == "x.epub"

    def test_display_name_refreshed_when_different(self, store):
        store.get_or_create_document("/books/a.epub", "path", "Old")
        doc = store.get_or_create_document("/books/a.epub", "path", "New")
        assert doc.display_name == "New"
        assert store.find_document("/books/a.epub").display_name == "New"

    def test_display_name_kept_when_not_given(self, store):
        store.get_or_create_document("/books/a.epub", "path", "Book A")
        assert store.get_or_create_document("/books/a.epub").display_name == "Book A"

    def test_empty_identity(self, store):
        assert store.get_or_create_document("") is None
        assert store.find_document("") is None

    def test_find_does_not_create(self, store):
        assert store.find_document("/nope.epub") is None
        assert store.list_documents() == []

    def test_get_by_id(self, store, doc):
        assert store.get_document_by_id(doc.id).identity == "/books/a.epub"
        assert store.get_document_by_id(9999) is None

    def test_concurrent_insert_returns_existing_row(self, store, monkeypatch):
        existing = store.get_or_create_document("/books/a.epub", "path", "a.epub")
        real_select = MemoStore._select_document
        calls = []

        def stale_first_read(conn, identity, identity_type):
            calls.append(identity)
            if len(calls) == 1:
                return None
            return real_select(conn, identity, identity_type)

        monkeypatch.setattr(MemoStore, "_select_document", staticmethod(stale_first_read))

        doc = store.get_or_create_document("/books/a.epub", "path")
        assert doc.id == existing.id
        assert len(calls) >= 2
        assert len(store.list_documents()) == 1

    def test_constraint_violation_raises_storage_error(self, store):
        with pytest.raises(StorageError):
            store.get_or_create_document("/x.epub", None)
        assert store.list_documents() == []

    def test_list_documents_case_insensitive(self, store):
        store.get_or_create_document("/b", "path", "beta")
        store.get_or_create_document("/a", "path", "Alpha")
        store.get_or_create_document("/c", "path", "Gamma")
        assert [d.display_name for d in store.list_documents()] == ["Alpha", "beta", "Gamma"]


class TestGroups:

    def test_ensure_creates_single_note_group(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        assert group.primary_tag == "Foo"
        assert group.multi_note_mode is False

    def test_ensure_existing_forces_multi_and_refreshes_tag(self, store, doc):
        created = store.ensure_group(doc.id, "Foo", "foo")
        fetched = store.ensure_group(doc.id, "FOO", "foo")
        assert fetched.id == created.id
        assert fetched.multi_note_mode is True
        assert fetched.primary_tag == "FOO"
        assert store.get_group(doc.id, "foo").primary_tag == "FOO"

    def test_get_group_never_creates(self, store, doc):
        assert store.get_group(doc.id, "foo") is None
        assert store.list_groups() == []

    def test_unique_per_document(self, store, doc):
        other = store.get_or_create_document("/books/b.epub")
        g1 = store.ensure_group(doc.id, "Foo", "foo")
        g2 = store.ensure_group(other.id, "Foo", "foo")
        assert g1.id != g2.id

    def test_ensure_group_for_unknown_document_fails(self, store):
        with pytest.raises(StorageError):
            store.ensure_group(9999, "Foo", "foo")

    def test_concurrent_insert_returns_existing_group(self, store, doc, monkeypatch):
        existing = store.ensure_group(doc.id, "Foo", "foo")
        real_select = MemoStore._select_group
        calls = []

        def stale_first_read(conn, document_id, normalized_tag):
            calls.append(normalized_tag)
            if len(calls) == 1:
                return None
            return real_select(conn, document_id, normalized_tag)

        monkeypatch.setattr(MemoStore, "_select_group", staticmethod(stale_first_read))

        group = store.ensure_group(doc.id, "Foo", "foo")
        assert group.id == existing.id
        assert len(store.list_groups(document_id=doc.id)) == 1

    def test_set_multi_note_mode(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        store.set_group_multi_note_mode(group.id, True)
        assert store.get_group(doc.id, "foo").multi_note_mode is True
        store.set_group_multi_note_mode(group.id, False)
        assert store.get_group(doc.id, "foo").multi_note_mode is False

    def test_delete_group_cascades(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        store.add_note(group.id, "note")
        store.add_alias(group.id, "Bar", "bar")

        assert store.delete_group(group.id) is True
        assert store.get_notes(group.id) == []
        assert store.list_aliases(group.id) == []
        assert store.delete_group(group.id) is False

    def test_delete_groups_without_notes_scoped(self, store, doc):
        other = store.get_or_create_document("/books/b.epub")
        store.ensure_group(doc.id, "Empty", "empty")
        kept = store.ensure_group(doc.id, "Full", "full")
        store.add_note(kept.id, "x")
        store.ensure_group(other.id, "Elsewhere", "elsewhere")

        assert store.delete_groups_without_notes(doc.id) == 1
        assert store.get_group(doc.id, "empty") is None
        assert store.get_group(doc.id, "full") is not None
        assert store.get_group(other.id, "elsewhere") is not None

        assert store.delete_groups_without_notes() == 1
        assert store.get_group(other.id, "elsewhere") is None


class TestListGroups:

    @pytest.fixture
    def seeded(self, store, doc):
        other = store.get_or_create_document("/books/b.epub", "path", "b.epub")
        for owner, tag in ((doc, "banana"), (doc, "Apple"), (doc, "cherry"), (other, "apple pie")):
            group = store.ensure_group(owner.id, tag, tag.casefold())
            store.add_note(group.id, f"about {tag}")
        cherry = store.get_group(doc.id, "cherry")
        store.add_alias(cherry.id, "Kirsche", "kirsche")
        store.add_note(cherry.id, "second")
        return doc, other

    def test_ordered_case_insensitively(self, store, seeded):
        doc, _ = seeded
        rows = store.list_groups(document_id=doc.id)
        assert [r.primary_tag for r in rows] == ["Apple", "banana", "cherry"]

    def test_counts_and_document_columns(self, store, seeded):
        doc, _ = seeded
        cherry = [r for r in store.list_groups(document_id=doc.id) if r.normalized_tag == "cherry"][0]
        assert cherry.note_count == 2
        assert cherry.alias_count == 1
        assert cherry.document_identity == "/books/a.epub"
        assert cherry.document_display_name == "a.epub"

    def test_all_documents(self, store, seeded):
        assert len(store.list_groups()) == 4

    def test_search_matches_tag_case_insensitive(self, store, seeded):
        rows = store.list_groups(search_text="APP")
        assert sorted(r.primary_tag for r in rows) == ["Apple", "apple pie"]

    def test_search_matches_alias(self, store, seeded):
        rows = store.list_groups(search_text="kirs")
        assert [r.primary_tag for r in rows] == ["cherry"]

    def test_search_escapes_like_wildcards(self, store, seeded):
        assert store.list_groups(search_text="%") == []
        assert store.list_groups(search_text="_") == []

    def test_blank_search_lists_everything(self, store, seeded):
        assert len(store.list_groups(search_text="   ")) == 4


class TestNotes:

    def test_notes_ordered_by_creation(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        ids = [store.add_note(group.id, t) for t in ("one", "two", "three")]
        notes = store.get_notes(group.id)
        assert [n.id for n in notes] == ids
        assert [n.text for n in notes] == ["one", "two", "three"]

    def test_update_bumps_text(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        note_id = store.add_note(group.id, "one")
        assert store.update_note(note_id, "uno") is True
        note = store.get_notes(group.id)[0]
        assert note.text == "uno"
        assert note.updated_at >= note.created_at
        assert store.update_note(9999, "x") is False

    def test_delete_and_clear(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        first = store.add_note(group.id, "one")
        store.add_note(group.id, "two")
        store.add_note(group.id, "three")

        assert store.delete_note(first) is True
        assert store.delete_note(first) is False
        assert store.count_notes(group.id) == 2
        assert store.clear_notes(group.id) == 2
        assert store.count_notes(group.id) == 0

    def test_none_text_stored_as_empty(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        store.add_note(group.id, None)
        assert store.get_notes(group.id)[0].text == ""


class TestAliases:

    def test_duplicate_alias_ignored(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        assert store.add_alias(group.id, "Bar", "bar") is True
        assert store.add_alias(group.id, "BAR", "bar") is False
        aliases = store.list_aliases(group.id)
        assert [(a.alias, a.normalized) for a in aliases] == [("Bar", "bar")]

    def test_list_ordered_case_insensitively(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        for alias in ("zeta", "Alpha", "mu"):
            store.add_alias(group.id, alias, alias.casefold())
        assert [a.alias for a in store.list_aliases(group.id)] == ["Alpha", "mu", "zeta"]

    def test_remove_alias(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        store.add_alias(group.id, "Bar", "bar")
        assert store.remove_alias(group.id, "bar") is True
        assert store.remove_alias(group.id, "bar") is False
        assert store.list_aliases(group.id) == []

    def test_alias_in_use_checks_tags_and_aliases(self, store, doc):
        other = store.get_or_create_document("/books/b.epub")
        foo = store.ensure_group(doc.id, "Foo", "foo")
        store.add_alias(foo.id, "Bar", "bar")

        assert store.alias_in_use(doc.id, "foo") is True
        assert store.alias_in_use(doc.id, "bar") is True
        assert store.alias_in_use(doc.id, "baz") is False
        # Scoped to the document
        assert store.alias_in_use(other.id, "bar") is False
        assert store.alias_in_use(doc.id, "") is False


class TestLifecycle:

    def test_reset_keeps_schema(self, store, doc):
        group = store.ensure_group(doc.id, "Foo", "foo")
        store.add_note(group.id, "x")

        store.reset()

        assert store.list_documents() == []
        assert store.list_groups() == []
        # Still usable
        assert store.get_or_create_document("/books/a.epub") is not None

    def test_schema_version_marker(self, store):
        conn = sqlite3.connect(str(store.database_path))
        try:
            assert conn.execute("PRAGMA user_version").fetchone()[0] == SCHEMA_VERSION
        finally:
            conn.close()

    def test_data_persists_across_reopen(self, tmp_path):
        path = tmp_path / "db" / "memobook.sqlite3"
        with MemoStore(path) as s:
            doc = s.get_or_create_document("/books/a.epub")
            group = s.ensure_group(doc.id, "Foo", "foo")
            s.add_note(group.id, "kept")

        with MemoStore(path) as s:
            doc = s.find_document("/books/a.epub")
            assert [n.text for n in s.get_notes(s.get_group(doc.id, "foo").id)] == ["kept"]

    def test_closed_store_raises(self, tmp_path):
        s = MemoStore(tmp_path / "closed.sqlite3")
        s.close()
        with pytest.raises(StorageError):
            s.list_documents()

    def test_failed_write_rolls_back(self, store, doc):
        """A failing statement leaves no partial effect and the store stays usable."""
        with pytest.raises(StorageError):
            with store._transaction() as conn:
                conn.execute(
                    "INSERT INTO groups (document_id, primary_tag, normalized_tag, created_at) "
                    "VALUES (?, 'Foo', 'foo', 'now')", (doc.id,),
                )
                conn.execute("INSERT INTO no_such_table VALUES (1)")
        assert store.get_group(doc.id, "foo") is None
        assert store.ensure_group(doc.id, "Foo", "foo") is not None
