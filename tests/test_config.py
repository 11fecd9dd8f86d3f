"""Tests for releasegate.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from releasegate.config import (
    Options,
    VersionFileDef,
    load_options,
    read_config_file,
    validate_options,
)
from releasegate.errors import ConfigurationError
from releasegate.models import TaskKind, VersioningSystem


class TestLoadOptions:
    """Tests for load_options()."""

    def test_defaults(self, tmp_path: Path) -> None:
        options = load_options(tmp_path)

        assert options.branch == "main"
        assert options.tag_format == "v{version}"
        assert options.version_system == VersioningSystem.AUTO
        assert options.vc_revert
        assert not options.is_task

    def test_pyproject_tool_table(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "demo"\n\n'
            "[tool.releasegate]\n"
            'tag-format = "release-{version}"\n'
            'build-command = "make dist"\n'
            "[tool.releasegate.commit-msg-map.docs]\n"
            "include = false\n"
        )

        options = load_options(tmp_path)

        assert options.tag_format == "release-{version}"
        assert options.build_command == ["make dist"]
        assert options.commit_msg_map["docs"].include is False

    def test_standalone_file_wins(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[tool.releasegate]\nbranch = "dev"\n')
        (tmp_path / ".releasegate.toml").write_text('branch = "release"\n')

        assert load_options(tmp_path).branch == "release"

    def test_overrides_win_and_none_is_ignored(self, tmp_path: Path) -> None:
        (tmp_path / ".releasegate.toml").write_text('branch = "release"\ndry-run = true\n')

        options = load_options(tmp_path, {"branch": "hotfix", "dry_run": None})

        assert options.branch == "hotfix"
        assert options.dry_run

    def test_explicit_config_file(self, tmp_path: Path) -> None:
        (tmp_path / "ci.toml").write_text('repo-type = "svn"\nrepo = "https://svn.example.com/demo"\n')

        options = load_options(tmp_path, {"config_file": "ci.toml"})

        assert options.repo_type == "svn"
        assert options.config_file == "ci.toml"

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            read_config_file(tmp_path, "nope.toml")

    def test_unknown_key(self, tmp_path: Path) -> None:
        (tmp_path / ".releasegate.toml").write_text('no-such-option = 1\n')

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_options(tmp_path)


class TestValidateOptions:
    """Tests for validate_options()."""

    def test_valid(self, tmp_path: Path) -> None:
        validate_options(Options(), tmp_path)

    def test_bad_repo_type(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Invalid repository type"):
            validate_options(Options(repo_type="hg"), tmp_path)

    def test_svn_requires_repo(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="required for svn"):
            validate_options(Options(repo_type="svn"), tmp_path)

    def test_version_file_requires_write_pattern(self, tmp_path: Path) -> None:
        options = Options(version_files=[VersionFileDef(path="v.txt", regex="$(VERSION)")])
        with pytest.raises(ConfigurationError, match="regex-write"):
            validate_options(options, tmp_path)

    def test_version_file_requires_placeholder(self, tmp_path: Path) -> None:
        options = Options(version_files=[VersionFileDef(path="v.txt", regex="v=1", regex_write="v=$(VERSION)")])
        with pytest.raises(ConfigurationError, match=r"must contain \$\(VERSION\)"):
            validate_options(options, tmp_path)

    def test_mantisbt_must_be_php(self, tmp_path: Path) -> None:
        (tmp_path / "plugin.txt").write_text("")
        with pytest.raises(ConfigurationError, match=".php"):
            validate_options(Options(mantisbt_plugin="plugin.txt"), tmp_path)

    def test_mantisbt_must_exist(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="does not exist"):
            validate_options(Options(mantisbt_plugin="Demo.php"), tmp_path)

    def test_force_current_and_next(self, tmp_path: Path) -> None:
        options = Options(version_force_current=True, version_force_next="2.0.0")
        with pytest.raises(ConfigurationError, match="Cannot use"):
            validate_options(options, tmp_path)

    def test_task_tag_version_needs_commit_or_tag(self, tmp_path: Path) -> None:
        validate_options(Options(task=TaskKind.TAG, task_tag_version="1.2.0"), tmp_path)
        with pytest.raises(ConfigurationError, match="--task-tag-version"):
            validate_options(Options(task=TaskKind.BUILD, task_tag_version="1.2.0"), tmp_path)

    def test_value_task_requires_value(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="requires a value"):
            validate_options(Options(task=TaskKind.VERSION_PRE_RELEASE_ID), tmp_path)

    def test_flag_task_rejects_value(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="does not take a value"):
            validate_options(Options(task=TaskKind.VERSION_NEXT, task_arg="1.0.0"), tmp_path)
