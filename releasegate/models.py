"""Data models for releasegate.

These Pydantic models represent the core data structures passed between
the stages of a release run.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VersioningSystem(str, Enum):
    """How version numbers are formed and incremented."""

    SEMVER = "semver"
    INCREMENTAL = "incremental"
    AUTO = "auto"


class ReleaseLevel(str, Enum):
    """Release level derived from commit types, lowest first."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    ReleaseLevel.NONE: 0,
    ReleaseLevel.PATCH: 1,
    ReleaseLevel.MINOR: 2,
    ReleaseLevel.MAJOR: 3,
}


class RawCommit(BaseModel):
    """A commit as reported by the VCS log, before classification.

    Attributes:
        hash: Commit sha (git) or revision number (svn).
        author: Author name.
        committer: Committer name (same as author for svn).
        message: Full, trimmed commit message.
        committer_date: Commit date as reported by the VCS.
        tags: Ref decorations pointing at the commit (git only).
    """

    hash: str
    author: str = ""
    committer: str = ""
    message: str = ""
    committer_date: str | None = None
    tags: str = ""


class CommitRecord(BaseModel):
    """One classified paragraph of a commit message.

    A commit message holding several ``type(scope): body`` paragraphs yields
    one record per paragraph; an unparseable message yields a single record
    whose subject and scope are None.

    Attributes:
        hash: Commit sha or revision of the originating commit.
        author: Author name.
        committer: Committer name.
        message: Raw text of the paragraph (the whole message if untyped).
        body: Text following the ``type(scope):`` header.
        subject: Lowercased conventional commit type, e.g. "feat".
        scope: Optional scope given in parentheses.
        breaking: Whether the paragraph declares a breaking change.
        skipped: Whether the record is excluded from release-level and
                 changelog computation.
        committer_date: Commit date as reported by the VCS.
        tags: Ref decorations of the originating commit.
    """

    model_config = ConfigDict(frozen=True)

    hash: str
    author: str = ""
    committer: str = ""
    message: str = ""
    body: str = ""
    subject: str | None = None
    scope: str | None = None
    breaking: bool = False
    skipped: bool = False
    committer_date: str | None = None
    tags: str = ""


class VersionInfo(BaseModel):
    """A version together with the system it follows.

    Attributes:
        version: Version string, or None when nothing was found.
        system: Versioning system the version belongs to, if known.
        info: Opaque auxiliary data carried through unchanged.
    """

    version: str | None = None
    system: VersioningSystem | None = None
    info: list[str] | None = None


class ReleaseTag(BaseModel):
    """A VCS tag matched against the tag format.

    Attributes:
        tag: Raw tag name, e.g. "v1.2.3".
        version: Version extracted from the tag.
        pre: Whether the version is a pre-release.
    """

    tag: str
    version: str
    pre: bool = False


class LastRelease(BaseModel):
    """The most recent release reachable from HEAD.

    Attributes:
        version: Version of the last release (backfilled from local files
                 on a first release).
        tag: Tag of the last release, None on a first release.
        head: VCS ref the tag points at.
        version_info: Current version info reconciled from local files.
        last_prod_version: Highest non pre-release version among all tags.
    """

    version: str | None = None
    tag: str | None = None
    head: str | None = None
    version_info: VersionInfo = Field(default_factory=VersionInfo)
    last_prod_version: str | None = None


class NextRelease(BaseModel):
    """The release being produced by this run, filled in stage by stage.

    Attributes:
        level: Release level computed from the commits.
        head: Current HEAD ref.
        version: Next version.
        tag: Tag rendered from the tag format for the next version.
        version_info: Next version info.
        edits: Paths of files touched (or that would be touched) by the run.
    """

    level: ReleaseLevel | None = None
    head: str | None = None
    version: str | None = None
    tag: str | None = None
    version_info: VersionInfo | None = None
    edits: list[str] = Field(default_factory=list)


class OriginalValues(BaseModel):
    """Field values of a manifest before the run rewrote them.

    Attributes:
        path: Manifest file that was rewritten.
        values: Original value of every rewritten field (None if absent).
    """

    path: str
    values: dict[str, Any] = Field(default_factory=dict)


class TaskKind(str, Enum):
    """A narrow task requested instead of a full release."""

    DEV_TEST = "dev-test"
    GENERATE_COMMANDS = "generate-commands"
    VERSION_PRE_RELEASE_ID = "version-pre-release-id"
    CHANGELOG_HDR_PRINT_VERSION = "changelog-hdr-print-version"
    TESTS = "tests"
    VERSION_CURRENT = "version-current"
    REVERT = "revert"
    COMMIT = "commit"
    TAG = "tag"
    BUILD = "build"
    VERSION_NEXT = "version-next"
    VERSION_INFO = "version-info"
    CI_ENV_SET = "ci-env-set"
    CI_ENV_INFO = "ci-env-info"
    RELEASE_LEVEL = "release-level"
    CHANGELOG_HDR_PRINT = "changelog-hdr-print"
    CHANGELOG = "changelog"
    CHANGELOG_PRINT = "changelog-print"
    VERSION_UPDATE = "version-update"

    @property
    def tier(self) -> int:
        return TASK_TIERS[self]

    @property
    def flag(self) -> str:
        return f"--task-{self.value}"


# Checkpoint that handles each task. Tier 4 tasks are handled by the
# changelog/version-edit stages right after the third checkpoint.
TASK_TIERS: dict[TaskKind, int] = {
    TaskKind.DEV_TEST: 1,
    TaskKind.GENERATE_COMMANDS: 1,
    TaskKind.VERSION_PRE_RELEASE_ID: 1,
    TaskKind.CHANGELOG_HDR_PRINT_VERSION: 1,
    TaskKind.TESTS: 1,
    TaskKind.VERSION_CURRENT: 2,
    TaskKind.REVERT: 2,
    TaskKind.COMMIT: 2,
    TaskKind.TAG: 2,
    TaskKind.BUILD: 2,
    TaskKind.VERSION_NEXT: 3,
    TaskKind.VERSION_INFO: 3,
    TaskKind.CI_ENV_SET: 3,
    TaskKind.CI_ENV_INFO: 3,
    TaskKind.RELEASE_LEVEL: 3,
    TaskKind.CHANGELOG_HDR_PRINT: 3,
    TaskKind.CHANGELOG: 4,
    TaskKind.CHANGELOG_PRINT: 4,
    TaskKind.VERSION_UPDATE: 4,
}

# Tasks whose only product is a value printed to stdout.
STDOUT_TASKS = frozenset(
    {
        TaskKind.VERSION_PRE_RELEASE_ID,
        TaskKind.CHANGELOG_HDR_PRINT_VERSION,
        TaskKind.VERSION_CURRENT,
        TaskKind.VERSION_NEXT,
        TaskKind.VERSION_INFO,
        TaskKind.CI_ENV_INFO,
        TaskKind.RELEASE_LEVEL,
        TaskKind.CHANGELOG_HDR_PRINT,
    }
)

# Tasks that take a value argument on the command line.
VALUE_TASKS = frozenset(
    {TaskKind.VERSION_PRE_RELEASE_ID, TaskKind.CHANGELOG_HDR_PRINT_VERSION}
)
