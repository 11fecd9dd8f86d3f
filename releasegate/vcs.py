"""Version control backends.

Both backends expose the same small surface used by the pipeline: listing
tags, resolving a tag to a ref, ancestry checks, reading the log since a
ref, and the write operations (commit, tag, push, revert) of a release.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from .errors import SubprocessFailure
from .models import RawCommit
from .shell import capture, git, log, svn

# Unit/record separators keep multi-line messages intact in `git log` output.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
GIT_LOG_FORMAT = f"%H{_FIELD_SEP}%an{_FIELD_SEP}%cn{_FIELD_SEP}%cI{_FIELD_SEP}%D{_FIELD_SEP}%B{_RECORD_SEP}"

SVN_LOG_LIMIT = 250


def parse_git_log(output: str) -> list[RawCommit]:
    """Parse `git log` output produced with GIT_LOG_FORMAT, newest first."""
    commits: list[RawCommit] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        sha, author, committer, date, refs, message = record.split(_FIELD_SEP, 5)
        commits.append(
            RawCommit(
                hash=sha.strip(),
                author=author,
                committer=committer,
                committer_date=date or None,
                tags=refs.strip(),
                message=message.strip(),
            )
        )
    return commits


def _svn_entries(element: ET.Element) -> list[RawCommit]:
    commits: list[RawCommit] = []
    for entry in element.findall("logentry"):
        author = entry.findtext("author", default="")
        commits.append(
            RawCommit(
                hash=entry.get("revision", ""),
                author=author,
                committer=author,
                committer_date=entry.findtext("date"),
                message=(entry.findtext("msg") or "").strip(),
            )
        )
        # Merge history nests the merged revisions inside the merging entry.
        commits.extend(_svn_entries(entry))
    return commits


def parse_svn_log(xml_text: str) -> list[RawCommit]:
    """Parse `svn log --xml` output, including nested merge-history entries."""
    if not xml_text.strip():
        return []
    return _svn_entries(ET.fromstring(xml_text))


class GitRepository:
    """Git backend, running commands inside the project directory."""

    kind = "git"

    def __init__(self, cwd: Path, repo: str | None = None, branch: str = "main") -> None:
        self.cwd = cwd
        self.repo = repo
        self.branch = branch

    def list_tags(self) -> list[str]:
        return [t.strip() for t in git("tag", cwd=self.cwd).splitlines() if t.strip()]

    def get_tag_head(self, tag: str) -> str | None:
        head = git("rev-list", "-1", tag, check=False, cwd=self.cwd)
        return head or None

    def is_ancestor(self, ref: str) -> bool:
        """Whether ref is in the history of HEAD."""
        result = capture("git", "merge-base", "--is-ancestor", ref, "HEAD", check=False, cwd=self.cwd)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise SubprocessFailure(
            ["git", "merge-base", "--is-ancestor", ref, "HEAD"],
            result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def get_head(self) -> str:
        return git("rev-parse", "HEAD", cwd=self.cwd)

    def log(self, since: str | None = None) -> list[RawCommit]:
        """Commits reachable from HEAD, limited to those after `since` if given."""
        args = ["log", f"--format={GIT_LOG_FORMAT}"]
        if since:
            args.append(f"{since}..HEAD")
        return parse_git_log(git(*args, cwd=self.cwd))

    def fetch_tags(self) -> None:
        remote = self.repo or "origin"
        result = capture("git", "fetch", "--unshallow", "--tags", remote, check=False, cwd=self.cwd)
        if result.returncode != 0:
            git("fetch", "--tags", remote, check=False, cwd=self.cwd)

    def verify_auth(self) -> None:
        git("push", "--dry-run", "--no-verify", self.repo or "origin", f"HEAD:{self.branch}", cwd=self.cwd)

    def commit(self, paths: list[str], message: str) -> None:
        if paths:
            git("add", "--", *paths, cwd=self.cwd)
        git("commit", "--quiet", "-m", message, cwd=self.cwd)

    def tag(self, tag: str, message: str | None = None) -> None:
        git("tag", "-a", tag, "-m", message or tag, cwd=self.cwd)

    def push(self) -> None:
        remote = self.repo or "origin"
        git("push", remote, f"HEAD:{self.branch}", cwd=self.cwd)
        git("push", remote, "--tags", cwd=self.cwd)

    def revert(self, paths: list[str]) -> None:
        """Restore tracked files and delete untracked ones among paths."""
        if not paths:
            return
        tracked = set(git("ls-files", "--", *paths, cwd=self.cwd).splitlines())
        restore = [p for p in paths if p in tracked]
        if restore:
            git("checkout", "--", *restore, cwd=self.cwd)
        for p in paths:
            if p not in tracked:
                (self.cwd / p).unlink(missing_ok=True)
                log(f"Removed untracked {p}")


class SvnRepository:
    """Subversion backend. Tags live under ``<repo>/tags``."""

    kind = "svn"

    def __init__(self, cwd: Path, repo: str | None = None, branch: str = "trunk") -> None:
        self.cwd = cwd
        self.repo = (repo or "").rstrip("/")
        self.branch = branch

    @property
    def tags_url(self) -> str:
        return f"{self.repo}/tags"

    def list_tags(self) -> list[str]:
        output = svn("ls", self.tags_url, cwd=self.cwd)
        return [t.strip().rstrip("/") for t in output.splitlines() if t.strip()]

    def get_tag_head(self, tag: str) -> str | None:
        output = svn("info", "--show-item", "last-changed-revision", f"{self.tags_url}/{tag}", check=False, cwd=self.cwd)
        return output or None

    def is_ancestor(self, ref: str) -> bool:
        # Tags are copies of trunk; every tag counts as history.
        return True

    def get_head(self) -> str:
        return svn("info", "--show-item", "revision", cwd=self.cwd)

    def log(self, since: str | None = None) -> list[RawCommit]:
        args = ["log", "--use-merge-history", "--xml", "--verbose", "--limit", str(SVN_LOG_LIMIT)]
        if since:
            args.extend(["-r", f"{since}:HEAD"])
        commits = parse_svn_log(svn(*args, cwd=self.cwd))
        # The -r range includes the starting revision itself.
        return [c for c in commits if c.hash != since]

    def fetch_tags(self) -> None:
        # Tags are listed straight from the server.
        return None

    def verify_auth(self) -> None:
        svn("info", self.repo, cwd=self.cwd)

    def commit(self, paths: list[str], message: str) -> None:
        svn("commit", *paths, "-m", message, cwd=self.cwd)

    def tag(self, tag: str, message: str | None = None) -> None:
        svn("copy", f"{self.repo}/{self.branch}", f"{self.tags_url}/{tag}", "-m", message or tag, cwd=self.cwd)

    def push(self) -> None:
        # svn commits and copies go straight to the server
        return None

    def revert(self, paths: list[str]) -> None:
        if paths:
            svn("revert", *paths, cwd=self.cwd)


def get_repository(options, cwd: Path) -> GitRepository | SvnRepository:
    """Backend for the configured repository type."""
    if options.repo_type == "svn":
        return SvnRepository(cwd, options.repo, options.branch)
    return GitRepository(cwd, options.repo, options.branch)
