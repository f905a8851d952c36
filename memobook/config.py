"""
Configuration management for memo book data directories.

The configuration is stored as a TOML file in the data directory.
It controls the schema reset policy, the label of the cross-document
view, and where exports are written by default.
"""

import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

from .paths import DATABASE_FILENAME, MAPPING_FILENAME


CONFIG_FILENAME = "memobook.toml"
CONFIG_VERSION = 1
DEFAULT_GLOBAL_DISPLAY_NAME = "All memos"


@dataclass
class MemoBookConfig:
    """Complete memo book configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Destructively reset the database when its schema version differs.
    # When False, opening a mismatched database raises SchemaMismatchError.
    reset_on_schema_change: bool = True

    global_display_name: str = DEFAULT_GLOBAL_DISPLAY_NAME
    export_dir: Optional[Path] = None

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def database_path(self) -> Path:
        return self.path / DATABASE_FILENAME

    @property
    def mapping_path(self) -> Path:
        """User-editable identity map (overrides the bundled defaults)."""
        return self.path / MAPPING_FILENAME

    @property
    def export_directory(self) -> Path:
        return self.export_dir if self.export_dir is not None else self.path

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def load_config(data_dir: Path) -> MemoBookConfig:
    """
    Load configuration from a data directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = data_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    export_section = data.get("export", {})
    export_dir = export_section.get("directory")

    return MemoBookConfig(
        path=data_dir,
        version=version,
        created=store.get("created", ""),
        reset_on_schema_change=bool(store.get("reset_on_schema_change", True)),
        global_display_name=data.get("documents", {}).get(
            "global_display_name", DEFAULT_GLOBAL_DISPLAY_NAME
        ),
        export_dir=Path(export_dir).expanduser() if export_dir else None,
    )


def save_config(config: MemoBookConfig) -> None:
    """
    Save configuration to the data directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "reset_on_schema_change": config.reset_on_schema_change,
        },
        "documents": {
            "global_display_name": config.global_display_name,
        },
    }
    if config.export_dir is not None:
        data["export"] = {"directory": str(config.export_dir)}

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(data_dir: Path) -> MemoBookConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = data_dir / CONFIG_FILENAME

    if config_path.exists():
        return load_config(data_dir)
    else:
        config = MemoBookConfig(path=data_dir)
        save_config(config)
        return config
