"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying
pyproject.toml and configuration files. This is important for keeping
version bumps diff-friendly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text())


def save_toml(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_tool_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any]:
    """Extract [tool.<name>] as plain Python values, or {} when absent."""
    table = doc.get("tool", {}).get(name)
    if table is None:
        return {}
    return table.unwrap()


def get_project_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract the version from [project].version or [tool.poetry].version."""
    version = doc.get("project", {}).get("version")
    if version is None:
        version = doc.get("tool", {}).get("poetry", {}).get("version")
    return str(version) if version is not None else None


def set_project_version(doc: tomlkit.TOMLDocument, version: str) -> bool:
    """Set the version wherever get_project_version() found it.

    Returns:
        True if a version key was updated.
    """
    project = doc.get("project")
    if project is not None and "version" in project:
        project["version"] = version
        return True
    poetry = doc.get("tool", {}).get("poetry")
    if poetry is not None and "version" in poetry:
        poetry["version"] = version
        return True
    return False
