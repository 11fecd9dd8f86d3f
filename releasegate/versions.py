"""Version arithmetic for semantic and incremental versioning.

Semantic versions are parsed with the semver library; incremental versions
are plain non-negative integers ("100", "101", ...).
"""

from __future__ import annotations

import re

import semver

from .models import ReleaseLevel, VersionInfo, VersioningSystem

FIRST_RELEASE = "1.0.0"
FIRST_RELEASE_INC = "100"

_INCREMENTAL_RE = re.compile(r"^[0-9]+$")


def clean(version: str | None) -> str | None:
    """Strip whitespace and a leading "v"/"=", returning None if not semver."""
    if version is None:
        return None
    text = version.strip().lstrip("=v").strip()
    return text if is_semver(text) else None


def is_semver(version: str | None) -> bool:
    if not version:
        return False
    return semver.Version.is_valid(version)


def is_incremental(version: str | None) -> bool:
    return bool(version) and _INCREMENTAL_RE.match(version) is not None


def version_system_of(version: str | None) -> VersioningSystem:
    """Infer the versioning system from a version string.

    Anything that is not a valid semantic version is treated as incremental.
    """
    return VersioningSystem.SEMVER if is_semver(version) else VersioningSystem.INCREMENTAL


def is_prerelease(version: str | None) -> bool:
    return is_semver(version) and semver.Version.parse(version).prerelease is not None


def prerelease_id(version: str | None) -> str | None:
    """Return the leading identifier of a pre-release, e.g. "beta" for 1.2.0-beta.3."""
    if not is_semver(version):
        return None
    pre = semver.Version.parse(version).prerelease
    if pre is None:
        return None
    first = pre.split(".")[0]
    return None if first.isdigit() else first


def compare_versions(a: str, b: str) -> int:
    """Compare two versions of the same system, returning -1, 0 or 1."""
    if is_semver(a) and is_semver(b):
        return semver.Version.parse(a).compare(b)
    ia, ib = int(a), int(b)
    return (ia > ib) - (ia < ib)


def first_release(system: VersioningSystem | None) -> str:
    if system == VersioningSystem.INCREMENTAL:
        return FIRST_RELEASE_INC
    return FIRST_RELEASE


def _bump_pre(prerelease: str | None, identifier: str | None) -> str:
    """Advance a pre-release string the way `npm version prerelease` does."""
    if not prerelease:
        return f"{identifier}.0" if identifier else "0"
    parts = prerelease.split(".")
    for i in range(len(parts) - 1, -1, -1):
        if parts[i].isdigit():
            parts[i] = str(int(parts[i]) + 1)
            break
    else:
        parts.append("0")
    if identifier and (parts[0] != identifier or not parts[1:2] or not parts[1].isdigit()):
        parts = [identifier, "0"]
    return ".".join(parts)


def increment(version: str, release_type: str, identifier: str | None = None) -> str:
    """Increment a semantic version.

    Args:
        version: Version to increment.
        release_type: One of major, minor, patch, premajor, preminor,
                      prepatch or prerelease.
        identifier: Pre-release identifier, e.g. "beta".

    Returns:
        The incremented version string.
    """
    v = semver.Version.parse(version)
    pre = v.prerelease

    def with_pre(base: semver.Version) -> str:
        return str(base.replace(prerelease=_bump_pre(None, identifier)))

    if release_type == "premajor":
        return with_pre(semver.Version(v.major + 1, 0, 0))
    if release_type == "preminor":
        return with_pre(semver.Version(v.major, v.minor + 1, 0))
    if release_type == "prepatch":
        return with_pre(semver.Version(v.major, v.minor, v.patch + 1))
    if release_type == "prerelease":
        if pre is None:
            return with_pre(semver.Version(v.major, v.minor, v.patch + 1))
        return str(v.replace(prerelease=_bump_pre(pre, identifier), build=None))
    if release_type == "major":
        # 2.0.0-beta.1 -> 2.0.0
        if pre is not None and v.minor == 0 and v.patch == 0:
            return str(semver.Version(v.major, 0, 0))
        return str(semver.Version(v.major + 1, 0, 0))
    if release_type == "minor":
        if pre is not None and v.patch == 0:
            return str(semver.Version(v.major, v.minor, 0))
        return str(semver.Version(v.major, v.minor + 1, 0))
    if release_type == "patch":
        if pre is not None:
            return str(semver.Version(v.major, v.minor, v.patch))
        return str(semver.Version(v.major, v.minor, v.patch + 1))
    raise ValueError(f"Unknown release type: {release_type}")


def _level_name(level: ReleaseLevel | None) -> str:
    if level is None or level == ReleaseLevel.NONE:
        return ReleaseLevel.PATCH.value
    return level.value


def compute_next_version(
    last_version: str | None,
    system: VersioningSystem | None,
    last_prod_version: str | None = None,
    level: ReleaseLevel | None = ReleaseLevel.PATCH,
    pre_release_id: str | None = None,
    info: list[str] | None = None,
) -> VersionInfo:
    """Compute the next version from the last one.

    Incremental versions add one. Semantic versions are bumped by level,
    or along the pre-release track when a pre-release id is given. A
    pre-release bump that falls short of the next production version only
    advances the pre-release counter, and the result always stays above
    the last production release.

    With no last version the first-release constant is returned.
    """
    info = list(info) if info is not None else None
    if system is None or system == VersioningSystem.AUTO:
        system = version_system_of(last_version) if last_version else VersioningSystem.SEMVER

    if not last_version:
        return VersionInfo(version=first_release(system), system=system, info=info)

    if system == VersioningSystem.INCREMENTAL:
        return VersionInfo(version=str(int(last_version) + 1), system=system, info=info)

    name = _level_name(level)
    if not pre_release_id:
        return VersionInfo(version=increment(last_version, name), system=system, info=info)

    release_type = f"pre{name}"
    if release_type == "prepatch" and is_prerelease(last_version):
        release_type = "prerelease"
    candidate = increment(last_version, release_type, pre_release_id)

    if last_prod_version and is_semver(last_prod_version):
        next_prod = increment(last_prod_version, name)
        if compare_versions(candidate, next_prod) < 0:
            candidate = increment(last_version, "prerelease", pre_release_id)
        if compare_versions(candidate, last_prod_version) <= 0:
            candidate = increment(last_prod_version, f"pre{name}", pre_release_id)

    return VersionInfo(version=candidate, system=system, info=info)


def validate_version(
    version: str | None, system: VersioningSystem | None, last_version: str | None = None
) -> bool:
    """Check a version is well formed and, if given, greater than last_version."""
    if not version:
        return False
    if system == VersioningSystem.INCREMENTAL or (
        system in (None, VersioningSystem.AUTO) and not is_semver(version)
    ):
        if not is_incremental(version):
            return False
        return last_version is None or not is_incremental(last_version) or int(version) > int(last_version)
    if not is_semver(version):
        return False
    if last_version is None or not is_semver(last_version):
        return True
    return compare_versions(version, last_version) > 0
