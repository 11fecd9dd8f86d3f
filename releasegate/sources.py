"""Version sources.

Each source knows one kind of project file: how to find it, how to read
the version it carries and how to write a new version back. A missing file
is not an error; the source simply has no opinion. Sources are listed in
the priority order the reconciler consumes them in.
"""

from __future__ import annotations

import json
import os
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel

from . import changelog
from .config import CONFIG_FILE, VERSION_PLACEHOLDER, Options
from .errors import VersionFileError
from .models import VersionInfo, VersioningSystem
from .shell import log, warn
from .toml import get_project_version, load_toml, save_toml, set_project_version
from .versions import version_system_of

EXCLUDED_DIRS = frozenset(
    {"node_modules", ".git", ".svn", ".venv", "venv", "build", "dist", "bin", "obj", "target"}
)


class SourceReading(BaseModel):
    """A version read from one source.

    Attributes:
        source: Name of the source, used in mismatch diagnostics.
        info: The version read.
        fatal_on_mismatch: Whether disagreeing with earlier sources is an
                           error (the changelog only ever warns).
    """

    source: str
    info: VersionInfo
    fatal_on_mismatch: bool = True


def find_files(cwd: Path, name: str) -> list[Path]:
    """Case-insensitive search for a file name, skipping dependency dirs."""
    found: list[Path] = []
    wanted = name.lower()
    for root, dirs, files in os.walk(cwd):
        dirs[:] = [d for d in dirs if d not in EXCLUDED_DIRS]
        found.extend(Path(root) / f for f in files if f.lower() == wanted)
    return sorted(found)


def _rel(cwd: Path, path: Path) -> str:
    return path.relative_to(cwd).as_posix()


def _reading(source: str, version: str, system: VersioningSystem | None = None) -> SourceReading:
    log(f"   Found version      : {version}")
    return SourceReading(
        source=source,
        info=VersionInfo(version=version, system=system or version_system_of(version)),
    )


class VersionSource:
    """Base class of all version sources."""

    name = ""

    def readings(self, cwd: Path, options: Options) -> Iterator[SourceReading]:
        raise NotImplementedError

    def write(
        self, cwd: Path, options: Options, version: str, record_only: bool = False
    ) -> list[str]:
        """Write `version`, returning the touched paths relative to cwd.

        With record_only the files are left alone and only their paths are
        returned.
        """
        return []


class NpmSource(VersionSource):
    """package.json, plus package-lock.json on write."""

    name = "npm"

    def find(self, cwd: Path, options: Options) -> Path | None:
        if options.project_file_npm and (cwd / options.project_file_npm).is_file():
            return cwd / options.project_file_npm
        if (cwd / "package.json").is_file():
            return cwd / "package.json"
        files = find_files(cwd, "package.json")
        if len(files) > 1:
            warn("Multiple package.json files were found, set 'project-file-npm' to pick one")
            warn(f"Using : {_rel(cwd, files[0])}")
        return files[0] if files else None

    def readings(self, cwd: Path, options: Options) -> Iterator[SourceReading]:
        path = self.find(cwd, options)
        if path is None:
            return
        log(f"Retrieving version from {_rel(cwd, path)}")
        version = json.loads(path.read_text()).get("version")
        if version:
            yield _reading(self.name, version, VersioningSystem.SEMVER)
        else:
            warn("   Not found")

    def write(self, cwd, options, version, record_only=False):
        path = self.find(cwd, options)
        if path is None:
            return []
        lock = path.with_name("package-lock.json")
        touched = [path] + ([lock] if lock.is_file() else [])
        if not record_only:
            for file in touched:
                data = json.loads(file.read_text())
                if data.get("version") == version:
                    warn(f"Version {version} already set in {_rel(cwd, file)}")
                    continue
                data["version"] = version
                # lockfile v2+ repeats the root package version
                if "" in data.get("packages", {}):
                    data["packages"][""]["version"] = version
                file.write_text(json.dumps(data, indent=2) + "\n")
                log(f"   Set version        : {version} ({_rel(cwd, file)})")
        return [_rel(cwd, p) for p in touched]


class PyprojectSource(VersionSource):
    """[project] or [tool.poetry] version of pyproject.toml."""

    name = "pyproject"

    def readings(self, cwd, options):
        path = cwd / "pyproject.toml"
        if not path.is_file():
            return
        version = get_project_version(load_toml(path))
        if version:
            log("Retrieving version from pyproject.toml")
            yield _reading(self.name, version)

    def write(self, cwd, options, version, record_only=False):
        path = cwd / "pyproject.toml"
        if not path.is_file():
            return []
        doc = load_toml(path)
        if get_project_version(doc) is None:
            return []
        if not record_only:
            set_project_version(doc, version)
            save_toml(path, doc)
            log(f"   Set version        : {version} (pyproject.toml)")
        return ["pyproject.toml"]


class AppConfigSource(VersionSource):
    """The project-version key of releasegate's own configuration."""

    name = "releasegate"

    def readings(self, cwd, options):
        if options.project_version:
            log("Retrieving version from releasegate configuration")
            yield _reading(self.name, options.project_version)

    def _config_path(self, cwd: Path, options: Options) -> Path | None:
        for candidate in (options.config_file, CONFIG_FILE, "pyproject.toml"):
            if candidate and (cwd / candidate).is_file():
                return cwd / candidate
        return None

    def write(self, cwd, options, version, record_only=False):
        if not options.project_version:
            return []
        path = self._config_path(cwd, options)
        if path is None:
            return []
        if not record_only:
            doc = load_toml(path)
            table = doc["tool"]["releasegate"] if path.name == "pyproject.toml" else doc
            key = "project-version" if "project-version" in table else "project_version"
            table[key] = version
            save_toml(path, doc)
            log(f"   Set version        : {version} ({_rel(cwd, path)})")
        return [_rel(cwd, path)]


class DotNetSource(VersionSource):
    """AssemblyVersion attribute of the project's single AssemblyInfo.cs."""

    name = "dotnet"
    pattern = re.compile(r'(AssemblyVersion\s*\(\s*")([0-9]+\.[0-9]+\.[0-9]+)')

    def find(self, cwd: Path) -> Path | None:
        files = find_files(cwd, "assemblyinfo.cs")
        if len(files) > 1:
            warn("The .NET version cannot be determined, multiple AssemblyInfo.cs files found")
            return None
        return files[0] if files else None

    def readings(self, cwd, options):
        path = self.find(cwd)
        if path is None:
            return
        log(f"Retrieving version from {_rel(cwd, path)}")
        match = self.pattern.search(path.read_text())
        if match:
            yield _reading(self.name, match.group(2), VersioningSystem.SEMVER)

    def write(self, cwd, options, version, record_only=False):
        path = self.find(cwd)
        if path is None:
            return []
        if not record_only:
            # Incremental versions are spread out one digit per part: 123 -> 1.2.3
            dotted = version if "." in version else ".".join(version)
            content = self.pattern.sub(lambda m: m.group(1) + dotted, path.read_text(), count=1)
            path.write_text(content)
            log(f"   Set version        : {dotted} ({_rel(cwd, path)})")
        return [_rel(cwd, path)]


class PomSource(VersionSource):
    """Project version of a Maven pom.xml."""

    name = "pom"
    _ns = {"m": "http://maven.apache.org/POM/4.0.0"}

    def readings(self, cwd, options):
        path = cwd / "pom.xml"
        if not path.is_file():
            return
        log("Retrieving version from pom.xml")
        root = ET.parse(path).getroot()
        node = root.find("m:version", self._ns)
        if node is None:
            node = root.find("version")
        if node is not None and node.text:
            yield _reading(self.name, node.text.strip())

    def write(self, cwd, options, version, record_only=False):
        path = cwd / "pom.xml"
        if not path.is_file():
            return []
        if not record_only:
            content = path.read_text()
            # The project version follows the optional <parent> block.
            parent_end = content.find("</parent>")
            start = parent_end + len("</parent>") if parent_end != -1 else 0
            head, tail = content[:start], content[start:]
            tail = re.sub(r"<version>[^<]*</version>", f"<version>{version}</version>", tail, count=1)
            path.write_text(head + tail)
            log(f"   Set version        : {version} (pom.xml)")
        return ["pom.xml"]


class MantisBtSource(VersionSource):
    """$this->version of a MantisBT plugin's main class file."""

    name = "mantisbt"
    pattern = re.compile(r"""(this->version\s*=\s*["'])([0-9]+\.[0-9]+\.[0-9]+)""")

    def readings(self, cwd, options):
        if not options.mantisbt_plugin:
            return
        path = cwd / options.mantisbt_plugin
        log(f"Retrieving MantisBT plugin version from {options.mantisbt_plugin}")
        match = self.pattern.search(path.read_text())
        if match:
            yield _reading(self.name, match.group(2), VersioningSystem.SEMVER)

    def write(self, cwd, options, version, record_only=False):
        if not options.mantisbt_plugin:
            return []
        path = cwd / options.mantisbt_plugin
        if not record_only:
            path.write_text(self.pattern.sub(lambda m: m.group(1) + version, path.read_text(), count=1))
            log(f"   Set version        : {version} ({options.mantisbt_plugin})")
        return [options.mantisbt_plugin]


class VersionFilesSource(VersionSource):
    """User-defined files located with a `$(VERSION)` search pattern."""

    name = "custom"

    @staticmethod
    def _regex(regex: str, regex_version: str) -> re.Pattern[str]:
        return re.compile(regex.replace(VERSION_PLACEHOLDER, f"({regex_version})"), re.MULTILINE)

    def readings(self, cwd, options):
        for vf in options.version_files:
            path = cwd / vf.path
            if not path.is_file():
                continue
            log(f"Retrieving version from {vf.path}")
            name = f"custom - {path.name}"
            if path.name in ("package.json", "app.json"):
                version = json.loads(path.read_text()).get("version")
                if not version:
                    raise VersionFileError(f"No version found in {vf.path}")
                yield _reading(name, version)
                continue
            matches = [
                m.group(1)
                for m in self._regex(vf.regex, vf.regex_version).finditer(path.read_text())
                if m.group(1)
            ]
            if not matches:
                raise VersionFileError(
                    f"No version found in {vf.path}, possible invalid regex '{vf.regex}'"
                )
            for version in matches:
                yield _reading(name, version)

    def write(self, cwd, options, version, record_only=False):
        touched: list[str] = []
        for vf in options.version_files:
            path = cwd / vf.path
            if not path.is_file():
                continue
            if not record_only:
                replacement = vf.regex_write.replace(VERSION_PLACEHOLDER, version)
                pattern = self._regex(vf.regex, vf.regex_version)
                content, count = pattern.subn(lambda m: replacement, path.read_text())
                if count == 0:
                    raise VersionFileError(f"Could not write version to {vf.path}, no match")
                path.write_text(content)
                log(f"   Set version        : {version} ({vf.path})")
            touched.append(vf.path)
        return touched


class ChangelogSource(VersionSource):
    """Version of the newest changelog section. Never fatal on mismatch."""

    name = "changelog"

    def readings(self, cwd, options):
        log("Retrieving last version number from changelog file")
        version = changelog.get_version(cwd / options.changelog_file, options.version_text)
        if version:
            reading = _reading(self.name, version)
            yield reading.model_copy(update={"fatal_on_mismatch": False})


SOURCES: list[VersionSource] = [
    NpmSource(),
    PyprojectSource(),
    AppConfigSource(),
    DotNetSource(),
    PomSource(),
    MantisBtSource(),
    VersionFilesSource(),
    ChangelogSource(),
]


def read_sources(
    cwd: Path, options: Options, include_changelog: bool = True
) -> list[SourceReading]:
    """Read every source in priority order."""
    readings: list[SourceReading] = []
    for source in SOURCES:
        if isinstance(source, ChangelogSource) and not include_changelog:
            continue
        readings.extend(source.readings(cwd, options))
    return readings


def write_sources(
    cwd: Path, options: Options, version: str, record_only: bool = False
) -> list[str]:
    """Write `version` to every source that has a file, returning touched paths."""
    touched: list[str] = []
    for source in SOURCES:
        for path in source.write(cwd, options, version, record_only):
            if path not in touched:
                touched.append(path)
    return touched
