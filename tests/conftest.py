"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from releasegate.config import Options
from releasegate.context import RunContext
from releasegate.models import LastRelease, VersionInfo, VersioningSystem


@pytest.fixture
def npm_project(tmp_path: Path) -> Path:
    """Create a project with a package.json at version 1.0.0."""
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "demo", "version": "1.0.0"}, indent=2) + "\n"
    )
    return tmp_path


@pytest.fixture
def mock_repo() -> MagicMock:
    """A git backend double with one reachable release tag."""
    repo = MagicMock()
    repo.kind = "git"
    repo.list_tags.return_value = ["v1.0.0"]
    repo.is_ancestor.return_value = True
    repo.get_tag_head.return_value = "abc123"
    repo.get_head.return_value = "def456"
    repo.log.return_value = []
    return repo


@pytest.fixture
def make_ctx(tmp_path: Path, mock_repo: MagicMock):
    """Build a RunContext whose last release is 1.0.0."""

    def _make(**option_values) -> RunContext:
        ctx = RunContext(options=Options(**option_values), cwd=tmp_path, repo=mock_repo)
        ctx.last_release = LastRelease(
            version="1.0.0",
            tag="v1.0.0",
            head="abc123",
            version_info=VersionInfo(version="1.0.0", system=VersioningSystem.SEMVER),
        )
        return ctx

    return _make
