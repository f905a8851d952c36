"""
Document identity resolution.

Maps a raw document locator (usually a file path) to a canonical identity
and a display name. Several locators can be declared equivalent in an
identity map, so that memos written against any of them land in the same
document.

Two map sources are merged, later entries overriding earlier ones:

1. The bundled default map (``memobook/data/document_map.json``)
2. The user map in the data directory (``document_map.json``)

Accepted shapes::

    {"/books/a.epub": "/books/canonical.epub"}
    {"/books/a.epub": {"identity": "...", "display_name": "...",
                       "aliases": ["/old/a.epub"]}}
    [["/books/canonical.epub", "/books/copy.epub"], ...]
    {"groups": [["/books/canonical.epub", "/books/copy.epub"], ...]}

In a group list, the first locator is the canonical identity and every
other locator resolves to it.
"""

import importlib.resources
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from .paths import MAPPING_FILENAME
from .types import PATH_IDENTITY, DocumentContext, default_display_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedIdentity:
    """Canonical identity plus display name (None when the map gives none)."""
    identity: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class FlatEntry:
    """One ``locator: identity`` or ``locator: {identity, ...}`` mapping."""
    locator: str
    identity: str
    display_name: Optional[str] = None
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class GroupEntry:
    """A list of equivalent locators; the first one is canonical."""
    locators: tuple[str, ...]


MappingEntry = Union[FlatEntry, GroupEntry]


def _is_locator(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _parse_group(value: Any) -> Optional[GroupEntry]:
    if not isinstance(value, list):
        return None
    locators = tuple(v for v in value if _is_locator(v))
    if not locators:
        return None
    return GroupEntry(locators)


def _parse_flat(locator: Any, value: Any) -> Optional[FlatEntry]:
    if not _is_locator(locator):
        return None
    if isinstance(value, str):
        return FlatEntry(locator, value) if value else None
    if not isinstance(value, dict):
        return None
    identity = value.get("identity") or value.get("target") or locator
    if not isinstance(identity, str):
        return None
    display_name = value.get("display_name") or value.get("name")
    if not isinstance(display_name, str):
        display_name = None
    aliases = value.get("aliases")
    alias_list = tuple(a for a in aliases if _is_locator(a)) if isinstance(aliases, list) else ()
    return FlatEntry(locator, identity, display_name, alias_list)


def parse_mapping(decoded: Any) -> list[MappingEntry]:
    """
    Normalize a decoded map document into a list of entries.

    Unrecognized values are ignored entry by entry.

    Raises:
        ValueError: If the top-level value is not an object or an array.
    """
    if isinstance(decoded, list):
        return [g for g in (_parse_group(v) for v in decoded) if g is not None]
    if not isinstance(decoded, dict):
        raise ValueError(f"identity map must be an object or array, got {type(decoded).__name__}")

    table = decoded
    if "groups" in decoded and isinstance(decoded["groups"], (list, dict)):
        table = decoded["groups"]
    if isinstance(table, list):
        return [g for g in (_parse_group(v) for v in table) if g is not None]
    return [f for f in (_parse_flat(k, v) for k, v in table.items()) if f is not None]


def build_table(entries: list[MappingEntry], table: Optional[dict] = None) -> dict[str, ResolvedIdentity]:
    """Register every locator named by ``entries`` into a lookup table."""
    table = {} if table is None else table
    for entry in entries:
        if isinstance(entry, GroupEntry):
            canonical = ResolvedIdentity(entry.locators[0])
            for locator in entry.locators:
                table[locator] = canonical
        else:
            resolved = ResolvedIdentity(entry.identity, entry.display_name)
            for alias in entry.aliases:
                table[alias] = resolved
            table[entry.locator] = resolved
    return table


def bundled_mapping_path() -> Path:
    """Path to the identity map shipped with the package."""
    return Path(str(importlib.resources.files("memobook"))) / "data" / MAPPING_FILENAME


class IdentityResolver:
    """
    Resolves raw document locators to canonical identities.

    The map sources are read once, on first use, and cached on the
    instance; resolution itself does no I/O.
    """

    def __init__(
        self,
        mapping_path: Optional[Path] = None,
        default_mapping_path: Optional[Path] = None,
    ) -> None:
        """
        Args:
            mapping_path: User override map (missing file means no overrides)
            default_mapping_path: Bundled map; defaults to the packaged file
        """
        self._mapping_path = mapping_path
        self._default_mapping_path = (
            default_mapping_path if default_mapping_path is not None else bundled_mapping_path()
        )
        self._table: Optional[dict[str, ResolvedIdentity]] = None

    @property
    def mapping_path(self) -> Optional[Path]:
        return self._mapping_path

    @property
    def default_mapping_path(self) -> Path:
        return self._default_mapping_path

    def _read_source(self, path: Optional[Path]) -> list[MappingEntry]:
        """Read one map source. Missing or malformed sources yield no entries."""
        if path is None or not path.exists():
            return []
        try:
            decoded = json.loads(path.read_text(encoding="utf-8"))
            return parse_mapping(decoded)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning("Unable to parse identity map %s: %s", path, e)
            return []

    def _load(self) -> dict[str, ResolvedIdentity]:
        if self._table is None:
            table: dict[str, ResolvedIdentity] = {}
            for path in (self._default_mapping_path, self._mapping_path):
                build_table(self._read_source(path), table)
            logger.debug("Loaded identity map: %d locators", len(table))
            self._table = table
        return self._table

    def reload(self) -> None:
        """Forget the cached map; the next resolve() reads the sources again."""
        self._table = None

    def lookup(self, locator: str) -> Optional[ResolvedIdentity]:
        """Raw map entry for a locator, or None if it is not mapped."""
        return self._load().get(locator)

    def resolve(self, locator: Optional[str]) -> Optional[ResolvedIdentity]:
        """
        Resolve a raw locator.

        The display name falls back to the basename of the canonical identity.
        Returns None only for an empty locator.
        """
        if not locator:
            return None
        mapped = self._load().get(locator)
        identity = mapped.identity if mapped else locator
        display_name = mapped.display_name if mapped and mapped.display_name else None
        return ResolvedIdentity(identity, display_name or default_display_name(identity))

    def resolve_context(self, locator: Optional[str]) -> Optional[DocumentContext]:
        """Resolve a raw locator into a path-typed document context."""
        resolved = self.resolve(locator)
        if resolved is None:
            return None
        return DocumentContext(
            identity=resolved.identity,
            identity_type=PATH_IDENTITY,
            display_name=resolved.display_name,
            source_identity=locator,
        )
