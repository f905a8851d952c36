"""Tests for tag normalization and small helpers."""

import re

from memobook.types import (
    ExportResult,
    MemoGroup,
    NoteRecord,
    default_display_name,
    normalize_text,
    sanitize_filename,
    utc_now,
)


class TestNormalizeText:

    def test_trims_and_casefolds(self):
        assert normalize_text("  Foo Bar ") == ("Foo Bar", "foo bar")

    def test_case_and_whitespace_variants_share_normalized_form(self):
        forms = {normalize_text(t)[1] for t in ("Foo", "foo", " FOO", "foo\t")}
        assert forms == {"foo"}

    def test_casefold_not_just_lower(self):
        """German sharp s folds to 'ss'."""
        assert normalize_text("Straße")[1] == "strasse"

    def test_empty_and_whitespace_are_absent(self):
        assert normalize_text("") is None
        assert normalize_text("   \n\t") is None

    def test_non_string_is_absent(self):
        assert normalize_text(None) is None
        assert normalize_text(42) is None


class TestDisplayName:

    def test_basename_of_path(self):
        assert default_display_name("/books/x.epub") == "x.epub"

    def test_identity_without_basename(self):
        assert default_display_name("/books/") == "/books/"
        assert default_display_name("plain") == "plain"

    def test_empty(self):
        assert default_display_name("") is None
        assert default_display_name(None) is None


class TestSanitizeFilename:

    def test_unsafe_characters_replaced(self):
        assert sanitize_filename('a/b:c*d?"e"<f>|g') == "a_b_c_d_e_f_g"

    def test_whitespace_runs_collapse(self):
        assert sanitize_filename("My   Book  Title") == "My_Book_Title"

    def test_non_portable_characters(self):
        assert sanitize_filename("Café.epub") == "Caf_.epub"

    def test_fallback(self):
        assert sanitize_filename("") == "memobook"
        assert sanitize_filename(None) == "memobook"
        assert sanitize_filename("   ") == "memobook"


def test_utc_now_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", utc_now())


def test_export_result_truthiness():
    assert ExportResult(ok=True, path="/tmp/x.json")
    assert not ExportResult(ok=False, path="/tmp/x.json", error="denied")


def test_memo_group_note_count():
    group = MemoGroup(
        id=1, document_id=1, document_identity="/a", document_identity_type="path",
        document_display_name="a", primary_tag="Foo", normalized_tag="foo",
        multi_note_mode=False,
        notes=[NoteRecord(1, "x", "2024-01-01T00:00:00", "2024-01-01T00:00:00")],
    )
    assert group.note_count == 1
