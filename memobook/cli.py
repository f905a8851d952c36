"""
CLI interface for the memo book.

Usage:
    memobook add "Foo" "first note"
    memobook --doc /books/a.epub add "Foo" "first note" --alias foobar
    memobook --doc /books/a.epub list --search foo
    memobook export --all
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import MemoBook
from .errors import MemoBookError, log_exception
from .logging_config import configure_quiet_mode, enable_debug_mode
from .paths import DATA_DIR_ENV, get_data_dir
from .types import GroupSummary, MemoGroup


# Configure quiet mode by default (suppress verbose library output)
# Set MEMOBOOK_VERBOSE=1 to enable debug mode via environment
if os.environ.get("MEMOBOOK_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


class StaticDocumentProvider:
    """Active document provider for a locator fixed on the command line."""

    def __init__(self, locator: Optional[str]):
        self._locator = locator

    def current_locator(self) -> Optional[str]:
        return self._locator


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_data_dir_override: Optional[Path] = None
_doc_locator: Optional[str] = None
_memobook: Optional[MemoBook] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _data_dir_callback(value: Optional[Path]):
    global _data_dir_override
    _data_dir_override = value


def _doc_callback(value: Optional[str]):
    global _doc_locator
    _doc_locator = value or None


def _close_memobook():
    global _memobook
    if _memobook is not None:
        _memobook.close()
        _memobook = None


app = typer.Typer(
    name="memobook",
    help="Notes attached to tags, organized by document.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    data_dir: Annotated[Optional[Path], typer.Option(
        "--data-dir", "-d",
        envvar=DATA_DIR_ENV,
        help="Path to the data directory (default: ~/.memobook)",
        callback=_data_dir_callback,
        is_eager=True,
    )] = None,
    doc: Annotated[Optional[str], typer.Option(
        "--doc",
        envvar="MEMOBOOK_DOCUMENT",
        help="Document locator to work in (default: the global document)",
        callback=_doc_callback,
        is_eager=True,
    )] = None,
):
    """Notes attached to tags, organized by document."""
    ctx.call_on_close(_close_memobook)


def _get_memobook() -> MemoBook:
    """Open the memo book for this invocation, handling errors gracefully."""
    global _memobook
    if _memobook is not None:
        return _memobook
    try:
        mb = MemoBook(_data_dir_override)
    except (MemoBookError, OSError, ValueError) as e:
        log_exception(e, context="memobook open", data_dir=get_data_dir(_data_dir_override))
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if _doc_locator:
        mb.set_active_provider(StaticDocumentProvider(_doc_locator))
    _memobook = mb
    return mb


def _fail(message: str):
    typer.echo(message, err=True)
    raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _format_group(group: MemoGroup) -> str:
    if _get_json_output():
        return json.dumps(asdict(group), indent=2, ensure_ascii=False)
    mode = "multi" if group.multi_note_mode else "single"
    lines = [f"{group.primary_tag}  [{mode}]  {group.document_display_name or group.document_identity}"]
    if group.aliases:
        lines.append(f"  aliases: {', '.join(group.aliases)}")
    for i, note in enumerate(group.notes, start=1):
        lines.append(f"  {i}. {note.text}")
    return "\n".join(lines)


def _format_rows(rows: list[GroupSummary]) -> str:
    if _get_json_output():
        return json.dumps([asdict(r) for r in rows], indent=2, ensure_ascii=False)
    if not rows:
        return "No memos."
    lines = []
    for row in rows:
        count = f"{row.note_count} note" + ("" if row.note_count == 1 else "s")
        aliases = f", {row.alias_count} alias" + ("" if row.alias_count == 1 else "es") if row.alias_count else ""
        lines.append(f"{row.primary_tag}\t{count}{aliases}\t{row.document_display_name or ''}")
    return "\n".join(lines)


def _echo_ok(message: str, **fields):
    if _get_json_output():
        typer.echo(json.dumps({"ok": True, **fields}, ensure_ascii=False))
    else:
        typer.echo(message)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

TagArgument = Annotated[str, typer.Argument(help="Tag (word or phrase) naming the group")]
IndexArgument = Annotated[int, typer.Argument(help="1-based note position, oldest first")]


@app.command()
def add(
    tag: TagArgument,
    text: Annotated[str, typer.Argument(help="Note text")],
    alias: Annotated[Optional[str], typer.Option(
        "--alias", "-a",
        help="Alias to register when this is the group's first note",
    )] = None,
):
    """
    Add a note to a tag's group.

    \b
    Examples:
        memobook add "Foo" "first"
        memobook add "running" "verb" --alias run
    """
    group = _get_memobook().add_note(tag, text, initial_alias=alias)
    if group is None:
        _fail(f"Error: invalid tag {tag!r}")
    typer.echo(_format_group(group))


@app.command("set")
def set_cmd(
    tag: TagArgument,
    text: Annotated[str, typer.Argument(help="Note text")],
):
    """Set the text of a tag's first note, creating it if needed."""
    group = _get_memobook().update_single_note(tag, text)
    if group is None:
        _fail(f"Error: invalid tag {tag!r}")
    typer.echo(_format_group(group))


@app.command()
def edit(
    tag: TagArgument,
    index: IndexArgument,
    text: Annotated[str, typer.Argument(help="New note text")],
):
    """Replace the text of one note."""
    if not _get_memobook().update_note(tag, index, text):
        _fail(f"Not found: {tag} #{index}")
    _echo_ok(f"Updated {tag} #{index}", tag=tag, index=index)


@app.command()
def show(tag: TagArgument):
    """Show a group with its aliases and notes."""
    group = _get_memobook().get_group(tag)
    if group is None:
        _fail(f"Not found: {tag}")
    typer.echo(_format_group(group))


@app.command("rm-note")
def rm_note(tag: TagArgument, index: IndexArgument):
    """Delete one note from a group."""
    if not _get_memobook().delete_note(tag, index):
        _fail(f"Not found: {tag} #{index}")
    _echo_ok(f"Deleted {tag} #{index}", tag=tag, index=index)


@app.command("rm")
def rm(tag: TagArgument):
    """Delete a group with all its aliases and notes."""
    if not _get_memobook().remove_group(tag):
        _fail(f"Not found: {tag}")
    _echo_ok(f"Removed {tag}", tag=tag)


@app.command()
def multi(
    tag: TagArgument,
    mode: Annotated[str, typer.Argument(help="on or off")],
):
    """Turn multi-note mode on or off for a group."""
    mode = mode.strip().lower()
    if mode not in ("on", "off"):
        _fail(f"Error: mode must be 'on' or 'off', not {mode!r}")
    if not _get_memobook().set_multi_note_mode(tag, mode == "on"):
        _fail(f"Not found: {tag}")
    _echo_ok(f"Multi-note mode {mode} for {tag}", tag=tag, multi_note_mode=mode == "on")


@app.command("list")
def list_cmd(
    search: Annotated[Optional[str], typer.Option(
        "--search", "-s",
        help="Only groups whose tag or an alias contains this text",
    )] = None,
    all_documents: Annotated[bool, typer.Option(
        "--all",
        help="List groups across all documents",
    )] = False,
):
    """List groups in the current document (or all documents)."""
    rows, _doc = _get_memobook().list_groups(search_text=search, all_documents=all_documents)
    typer.echo(_format_rows(rows))


@app.command()
def docs():
    """List documents that have memos."""
    documents = _get_memobook().list_documents()
    if _get_json_output():
        typer.echo(json.dumps([asdict(d) for d in documents], indent=2, ensure_ascii=False))
        return
    if not documents:
        typer.echo("No documents.")
        return
    for d in documents:
        typer.echo(f"{d.id}\t{d.display_name or ''}\t{d.identity} ({d.identity_type})")


@app.command()
def export(
    path: Annotated[Optional[Path], typer.Argument(
        help="Output file (default: memobook_<document>.json in the export directory)"
    )] = None,
    all_documents: Annotated[bool, typer.Option(
        "--all",
        help="Export every document",
    )] = False,
):
    """Export memos to JSON."""
    result = _get_memobook().export_to(path, all_documents=all_documents)
    if not result:
        _fail(f"Export failed: {result.error} ({result.path})")
    _echo_ok(f"Exported to {result.path}", path=result.path)


@app.command()
def resolve(locator: Annotated[str, typer.Argument(help="Raw document locator")]):
    """Show the canonical identity a locator resolves to."""
    resolved = _get_memobook().resolve(locator)
    if resolved is None:
        _fail("Error: empty locator")
    if _get_json_output():
        typer.echo(json.dumps(asdict(resolved), ensure_ascii=False))
    else:
        typer.echo(f"{resolved.identity}\t{resolved.display_name or ''}")


@app.command()
def reset(
    yes: Annotated[bool, typer.Option(
        "--yes",
        help="Confirm deleting every memo",
    )] = False,
):
    """Delete every document, group, alias and note."""
    if not yes:
        _fail("Refusing to reset without --yes")
    _get_memobook().reset()
    _echo_ok("Reset complete")


# -----------------------------------------------------------------------------
# Aliases
# -----------------------------------------------------------------------------

alias_app = typer.Typer(
    name="alias",
    help="Manage alternate tags for a group.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(alias_app)


@alias_app.command("add")
def alias_add(
    tag: TagArgument,
    alias: Annotated[str, typer.Argument(help="Alternate tag")],
):
    """Add an alias to an existing group."""
    if not _get_memobook().add_alias(tag, alias):
        _fail(f"Alias not added: {alias!r} (group missing, or alias already in use)")
    _echo_ok(f"Added alias {alias} to {tag}", tag=tag, alias=alias)


@alias_app.command("rm")
def alias_rm(
    tag: TagArgument,
    alias: Annotated[str, typer.Argument(help="Alternate tag")],
):
    """Remove an alias from a group."""
    if not _get_memobook().remove_alias(tag, alias):
        _fail(f"Not found: {tag}")
    _echo_ok(f"Removed alias {alias} from {tag}", tag=tag, alias=alias)


@alias_app.command("ls")
def alias_ls(tag: TagArgument):
    """List the aliases of a group."""
    primary, aliases = _get_memobook().list_aliases(tag)
    if primary is None:
        _fail(f"Not found: {tag}")
    if _get_json_output():
        typer.echo(json.dumps({"tag": primary, "aliases": aliases}, ensure_ascii=False))
        return
    typer.echo(primary)
    for a in aliases:
        typer.echo(f"  {a}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        log_path = log_exception(e, context="memobook CLI", data_dir=_data_dir_override)
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
