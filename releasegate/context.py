"""Run context shared by every stage of one release run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import Options
from .models import CommitRecord, LastRelease, NextRelease, OriginalValues
from .vcs import GitRepository, SvnRepository


@dataclass
class RunContext:
    """State owned by a single run.

    Attributes:
        options: Effective options.
        cwd: Project root.
        repo: VCS backend.
        last_release: Filled in once tags and local files have been read.
        next_release: Filled in stage by stage.
        commits: Classified commits since the last release.
        original_values: Manifest values rewritten during the run, to be
                         restored before committing.
        first_release: Whether no release tag was found.
        interactive: Whether the user can be prompted.
        changelog_notes: Rendered changelog section for the next version.
    """

    options: Options
    cwd: Path
    repo: GitRepository | SvnRepository | None = None
    last_release: LastRelease = field(default_factory=LastRelease)
    next_release: NextRelease = field(default_factory=NextRelease)
    commits: list[CommitRecord] = field(default_factory=list)
    original_values: OriginalValues | None = None
    first_release: bool = False
    interactive: bool = False
    changelog_notes: str = ""

    @property
    def changelog_path(self) -> Path:
        return self.cwd / self.options.changelog_file
