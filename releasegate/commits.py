"""Commit message classification.

Turns raw VCS log entries into CommitRecords: one record per
``type(scope): body`` paragraph found in a message, each marked as skipped
or not, then sorted for changelog presentation. The release level of a run
is derived from the non-skipped records.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from .models import CommitRecord, RawCommit, ReleaseLevel

# A paragraph header: "type:", "type(scope):" or "type(scope)!:" at the
# start of a line.
HEADER_RE = re.compile(
    r"^([a-z]+)(?:\(([a-z0-9\-_. ]*)\))?(!)?[ ]*:[ ]*(.*)$", re.IGNORECASE
)

# Commit types that never contribute to a release or to the changelog.
SKIPPED_TYPES = frozenset(
    {"chore", "progress", "style", "project", "ci", "build", "test", "tests"}
)

MAJOR_MARKER = "BREAKING CHANGE"


def parse_commit_message(message: str) -> list[tuple[str | None, str | None, bool, str, str]]:
    """Split a commit message into typed paragraphs.

    Returns:
        A list of (subject, scope, breaking, body, text) tuples in message
        order. A message without any header yields a single tuple whose
        subject and scope are None and whose body is the whole message.
    """
    paragraphs: list[list] = []
    for line in message.splitlines():
        match = HEADER_RE.match(line)
        if match:
            subject, scope, bang, rest = match.groups()
            paragraphs.append([subject.lower(), scope, bool(bang), [rest], [line]])
        elif paragraphs:
            paragraphs[-1][3].append(line)
            paragraphs[-1][4].append(line)

    if not paragraphs:
        text = message.strip()
        return [(None, None, False, text, text)]

    return [
        (subject, scope, bang, "\n".join(body).strip(), "\n".join(text).strip())
        for subject, scope, bang, body, text in paragraphs
    ]


def is_skipped(subject: str | None, commit_msg_map: Mapping | None = None) -> bool:
    """Whether a record of this type is excluded from the release.

    A commit_msg_map entry for the type overrides the built-in skip list.
    """
    if subject is None:
        return False
    rule = (commit_msg_map or {}).get(subject)
    if rule is not None and getattr(rule, "include", None) is not None:
        return not rule.include
    return subject in SKIPPED_TYPES


def classify_commits(
    raw: Iterable[RawCommit], commit_msg_map: Mapping | None = None
) -> list[CommitRecord]:
    """Classify raw commits into sorted CommitRecords.

    Classification is deterministic: the same input always produces the
    same ordered output.
    """
    records: list[CommitRecord] = []
    for commit in raw:
        for subject, scope, breaking, body, text in parse_commit_message(commit.message):
            records.append(
                CommitRecord(
                    hash=commit.hash,
                    author=commit.author,
                    committer=commit.committer,
                    message=text,
                    body=body,
                    subject=subject,
                    scope=scope,
                    breaking=breaking,
                    skipped=is_skipped(subject, commit_msg_map),
                    committer_date=commit.committer_date,
                    tags=commit.tags,
                )
            )
    return sort_commits(records)


def _effective_subject(subject: str) -> str:
    if subject == "fix":
        return "bug fix"
    if subject.startswith("min"):
        return subject[3:]
    if subject.endswith("min"):
        return subject[:-3]
    return subject


def sort_key(record: CommitRecord) -> tuple:
    """Ordering key: typed records by subject, then untyped, then ci, then build."""
    if record.subject is None:
        # Untyped records with no message go last among untyped.
        return (1, record.message == "", record.message)
    if record.subject == "ci":
        return (2, "")
    if record.subject == "build":
        return (3, "")
    return (0, _effective_subject(record.subject))


def sort_commits(records: Iterable[CommitRecord]) -> list[CommitRecord]:
    """Stable sort, so records with equal keys keep their input order."""
    return sorted(records, key=sort_key)


def record_level(record: CommitRecord, commit_msg_map: Mapping | None = None) -> ReleaseLevel:
    """Release level contributed by a single record."""
    if record.skipped or record.subject is None:
        return ReleaseLevel.NONE
    subject = record.subject
    rule = (commit_msg_map or {}).get(subject)
    if rule is not None and getattr(rule, "level", None):
        return ReleaseLevel(rule.level)
    if record.breaking or MAJOR_MARKER in record.body:
        return ReleaseLevel.MAJOR
    if subject.startswith("maj") or subject.endswith("maj"):
        return ReleaseLevel.MAJOR
    if subject in ("feat", "feature"):
        return ReleaseLevel.MINOR
    return ReleaseLevel.PATCH


def get_release_level(
    records: Iterable[CommitRecord], commit_msg_map: Mapping | None = None
) -> ReleaseLevel:
    """Highest release level across all records, NONE if nothing is relevant."""
    level = ReleaseLevel.NONE
    for record in records:
        candidate = record_level(record, commit_msg_map)
        if candidate.rank > level.rank:
            level = candidate
            if level == ReleaseLevel.MAJOR:
                break
    return level
