"""Configuration file handling for tixfile."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from tixfile.constants import (
    CONFIG_FILENAME,
    DEFAULT_CACHE_DIRECTORY,
    DEFAULT_SEVERITIES,
    DEFAULT_SEVERITY_COLORS,
    DEFAULT_STATUSES,
    DEFAULT_TICKETS_DIRECTORY,
)

logger = logging.getLogger(__name__)


def default_config() -> dict[str, Any]:
    """Return the configuration written by ``tix init``."""
    return {
        "tickets_directory": DEFAULT_TICKETS_DIRECTORY,
        "cache_directory": DEFAULT_CACHE_DIRECTORY,
        "after_add_ticket": "",
        "tags": [],
        "modules": [],
        "severity": list(DEFAULT_SEVERITIES),
        "status": list(DEFAULT_STATUSES),
        "colors": dict(DEFAULT_SEVERITY_COLORS),
    }


@dataclass
class TixConfig:
    """Resolved configuration for one ticket repository."""

    root: Path
    tickets_directory: Path
    cache_directory: Path
    after_add_ticket: str = ""
    statuses: list[str] = field(default_factory=lambda: list(DEFAULT_STATUSES))
    severities: list[str] = field(default_factory=lambda: list(DEFAULT_SEVERITIES))
    tags: list[str] = field(default_factory=list[str])
    modules: list[str] = field(default_factory=list[str])
    colors: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SEVERITY_COLORS))

    @property
    def default_status(self) -> str:
        return self.statuses[0] if self.statuses else ""

    @property
    def default_severity(self) -> str:
        return self.severities[0] if self.severities else ""


def get_config_path(root: str | Path) -> Path:
    """Get the path to the config file of a project root."""
    return Path(root) / CONFIG_FILENAME


def find_config(start_dir: str | Path | None = None) -> Path | None:
    """Find the config file by searching upward from start_dir.

    Args:
        start_dir: Directory to start searching from (default: current directory)

    Returns:
        Path to the config file, or None if no parent directory has one
    """
    current = Path.cwd() if start_dir is None else Path(start_dir).resolve()

    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def read_config_file(config_path: str | Path) -> dict[str, Any]:
    """Read a config file.

    Returns:
        Configuration dictionary, or empty dict if the file is missing or
        cannot be parsed
    """
    config_path = Path(config_path)
    if not config_path.exists():
        return {}

    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}


def save_config(root: str | Path, config: dict[str, Any]) -> Path:
    """Save configuration to ``<root>/.tixfile.toml``.

    Returns:
        Path of the written config file
    """
    config_path = get_config_path(root)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with config_path.open("wb") as f:
        tomli_w.dump(config, f)
    return config_path


def _string_list(value: Any, default: list[str]) -> list[str]:
    if isinstance(value, list) and value:
        return [str(v) for v in value]  # pyright: ignore[reportUnknownVariableType]
    return list(default)


def load_config(config_path: str | Path) -> TixConfig:
    """Load a config file, filling in defaults for missing keys.

    Relative directories are resolved against the directory holding the
    config file.

    Args:
        config_path: Path to ``.tixfile.toml``

    Returns:
        The resolved configuration
    """
    config_path = Path(config_path).resolve()
    root = config_path.parent
    merged = {**default_config(), **read_config_file(config_path)}

    colors = dict(DEFAULT_SEVERITY_COLORS)
    if isinstance(merged.get("colors"), dict):
        colors.update({str(k): str(v) for k, v in merged["colors"].items()})

    return TixConfig(
        root=root,
        tickets_directory=root / str(merged["tickets_directory"]),
        cache_directory=root / str(merged["cache_directory"]),
        after_add_ticket=str(merged.get("after_add_ticket") or ""),
        statuses=_string_list(merged.get("status"), DEFAULT_STATUSES),
        severities=_string_list(merged.get("severity"), DEFAULT_SEVERITIES),
        tags=_string_list(merged.get("tags"), []),
        modules=_string_list(merged.get("modules"), []),
        colors=colors,
    )
