"""Tests for releasegate.sources."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from releasegate.config import Options, VersionFileDef
from releasegate.errors import VersionFileError
from releasegate.models import VersioningSystem
from releasegate.sources import (
    AppConfigSource,
    ChangelogSource,
    DotNetSource,
    MantisBtSource,
    NpmSource,
    PomSource,
    PyprojectSource,
    VersionFilesSource,
    find_files,
    read_sources,
    write_sources,
)

POM = """\
<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <parent>
    <groupId>org.example</groupId>
    <artifactId>parent</artifactId>
    <version>9.9.9</version>
  </parent>
  <artifactId>demo</artifactId>
  <version>1.4.2</version>
</project>
"""


def _version_file(path: str = "src/version.py") -> VersionFileDef:
    return VersionFileDef(
        path=path,
        regex='__version__ = "$(VERSION)"',
        regex_write='__version__ = "$(VERSION)"',
    )


class TestFindFiles:
    def test_case_insensitive_and_skips_dependencies(self, tmp_path: Path) -> None:
        (tmp_path / "src" / "Properties").mkdir(parents=True)
        (tmp_path / "src" / "Properties" / "AssemblyInfo.cs").write_text("")
        (tmp_path / "node_modules" / "dep").mkdir(parents=True)
        (tmp_path / "node_modules" / "dep" / "assemblyinfo.cs").write_text("")

        found = find_files(tmp_path, "assemblyinfo.cs")

        assert found == [tmp_path / "src" / "Properties" / "AssemblyInfo.cs"]


class TestNpmSource:
    def test_reads_version(self, npm_project: Path) -> None:
        [reading] = NpmSource().readings(npm_project, Options())

        assert reading.source == "npm"
        assert reading.info.version == "1.0.0"
        assert reading.info.system == VersioningSystem.SEMVER

    def test_no_package_json(self, tmp_path: Path) -> None:
        assert list(NpmSource().readings(tmp_path, Options())) == []

    def test_writes_package_and_lock(self, npm_project: Path) -> None:
        lock = npm_project / "package-lock.json"
        lock.write_text(json.dumps({"version": "1.0.0", "packages": {"": {"version": "1.0.0"}}}))

        touched = NpmSource().write(npm_project, Options(), "1.1.0")

        assert touched == ["package.json", "package-lock.json"]
        assert json.loads((npm_project / "package.json").read_text())["version"] == "1.1.0"
        lock_data = json.loads(lock.read_text())
        assert lock_data["version"] == "1.1.0"
        assert lock_data["packages"][""]["version"] == "1.1.0"

    def test_record_only_leaves_files(self, npm_project: Path) -> None:
        touched = NpmSource().write(npm_project, Options(), "1.1.0", record_only=True)

        assert touched == ["package.json"]
        assert json.loads((npm_project / "package.json").read_text())["version"] == "1.0.0"

    def test_configured_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "web").mkdir()
        (tmp_path / "web" / "package.json").write_text('{"version": "2.0.0"}')

        [reading] = NpmSource().readings(tmp_path, Options(project_file_npm="web/package.json"))

        assert reading.info.version == "2.0.0"


class TestPyprojectSource:
    def test_read_and_write(self, tmp_path: Path) -> None:
        path = tmp_path / "pyproject.toml"
        path.write_text('[project]\nname = "demo"  # keep me\nversion = "0.3.0"\n')

        [reading] = PyprojectSource().readings(tmp_path, Options())
        touched = PyprojectSource().write(tmp_path, Options(), "0.4.0")

        assert reading.info.version == "0.3.0"
        assert touched == ["pyproject.toml"]
        assert 'version = "0.4.0"' in path.read_text()
        assert "# keep me" in path.read_text()

    def test_pyproject_without_version(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n')

        assert list(PyprojectSource().readings(tmp_path, Options())) == []
        assert PyprojectSource().write(tmp_path, Options(), "1.0.0") == []


class TestAppConfigSource:
    def test_writes_project_version(self, tmp_path: Path) -> None:
        config = tmp_path / ".releasegate.toml"
        config.write_text('project-version = "1.0.0"\nbranch = "main"\n')
        options = Options(project_version="1.0.0")

        [reading] = AppConfigSource().readings(tmp_path, options)
        touched = AppConfigSource().write(tmp_path, options, "1.0.1")

        assert reading.info.version == "1.0.0"
        assert touched == [".releasegate.toml"]
        assert config.read_text() == 'project-version = "1.0.1"\nbranch = "main"\n'


class TestDotNetSource:
    def _write(self, root: Path, version: str) -> Path:
        path = root / "Properties" / "AssemblyInfo.cs"
        path.parent.mkdir(parents=True)
        path.write_text(f'[assembly: AssemblyVersion("{version}")]\n')
        return path

    def test_read(self, tmp_path: Path) -> None:
        self._write(tmp_path, "1.2.3")
        [reading] = DotNetSource().readings(tmp_path, Options())
        assert reading.info.version == "1.2.3"

    def test_incremental_written_dotted(self, tmp_path: Path) -> None:
        path = self._write(tmp_path, "1.2.3")

        DotNetSource().write(tmp_path, Options(), "124")

        assert path.read_text() == '[assembly: AssemblyVersion("1.2.4")]\n'

    def test_multiple_files_give_no_reading(self, tmp_path: Path) -> None:
        self._write(tmp_path / "a", "1.0.0")
        self._write(tmp_path / "b", "1.0.0")

        assert list(DotNetSource().readings(tmp_path, Options())) == []


class TestPomSource:
    def test_read_skips_parent(self, tmp_path: Path) -> None:
        (tmp_path / "pom.xml").write_text(POM)
        [reading] = PomSource().readings(tmp_path, Options())
        assert reading.info.version == "1.4.2"

    def test_write_skips_parent(self, tmp_path: Path) -> None:
        (tmp_path / "pom.xml").write_text(POM)

        PomSource().write(tmp_path, Options(), "1.5.0")

        content = (tmp_path / "pom.xml").read_text()
        assert "<version>9.9.9</version>" in content
        assert "<version>1.5.0</version>" in content
        assert "1.4.2" not in content


class TestMantisBtSource:
    def test_read_and_write(self, tmp_path: Path) -> None:
        plugin = tmp_path / "Demo.php"
        plugin.write_text("$this->version = '1.0.0';\n")
        options = Options(mantisbt_plugin="Demo.php")

        [reading] = MantisBtSource().readings(tmp_path, options)
        MantisBtSource().write(tmp_path, options, "1.1.0")

        assert reading.info.version == "1.0.0"
        assert plugin.read_text() == "$this->version = '1.1.0';\n"


class TestVersionFilesSource:
    def test_read_and_write(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        path = tmp_path / "src" / "version.py"
        path.write_text('__version__ = "1.2.3"\n')
        options = Options(version_files=[_version_file()])

        [reading] = VersionFilesSource().readings(tmp_path, options)
        touched = VersionFilesSource().write(tmp_path, options, "1.3.0")

        assert reading.source == "custom - version.py"
        assert reading.info.version == "1.2.3"
        assert touched == ["src/version.py"]
        assert path.read_text() == '__version__ = "1.3.0"\n'

    def test_no_match_is_an_error(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "version.py").write_text("VERSION = 1\n")
        options = Options(version_files=[_version_file()])

        with pytest.raises(VersionFileError, match="No version found"):
            list(VersionFilesSource().readings(tmp_path, options))

    def test_missing_file_is_ignored(self, tmp_path: Path) -> None:
        options = Options(version_files=[_version_file()])
        assert list(VersionFilesSource().readings(tmp_path, options)) == []
        assert VersionFilesSource().write(tmp_path, options, "1.0.0") == []


class TestChangelogSource:
    def test_reading_is_not_fatal(self, tmp_path: Path) -> None:
        (tmp_path / "CHANGELOG.md").write_text("# Change Log\n\n## Version [1.2.0] (May 1st, 2024)\n")

        [reading] = ChangelogSource().readings(tmp_path, Options())

        assert reading.info.version == "1.2.0"
        assert not reading.fatal_on_mismatch


class TestReadWriteSources:
    def test_priority_order(self, npm_project: Path) -> None:
        (npm_project / "pyproject.toml").write_text('[project]\nversion = "1.0.0"\n')
        (npm_project / "CHANGELOG.md").write_text("## Version [1.0.0]\n")

        readings = read_sources(npm_project, Options())

        assert [r.source for r in readings] == ["npm", "pyproject", "changelog"]

    def test_changelog_excluded(self, npm_project: Path) -> None:
        (npm_project / "CHANGELOG.md").write_text("## Version [1.0.0]\n")

        readings = read_sources(npm_project, Options(), include_changelog=False)

        assert [r.source for r in readings] == ["npm"]

    def test_write_deduplicates_paths(self, npm_project: Path) -> None:
        options = Options(
            version_files=[
                VersionFileDef(path="package.json", regex='"version": "$(VERSION)"', regex_write='"version": "$(VERSION)"')
            ]
        )

        touched = write_sources(npm_project, options, "1.0.1")

        assert touched == ["package.json"]
        assert json.loads((npm_project / "package.json").read_text())["version"] == "1.0.1"
