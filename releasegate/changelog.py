"""Markdown changelog support.

Sections look like::

    ## Version [1.5.0] (June 27th, 2024)

    ### Features

    - **Cli:** add --dry-run

The newest section sits at the top, right under the file title.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from .models import CommitRecord

DEFAULT_TITLE = "# Change Log"

SUBJECT_TITLES = {
    "build": "Build System",
    "chore": "Chores",
    "ci": "Continuous Integration",
    "doc": "Documentation",
    "docs": "Documentation",
    "feat": "Features",
    "feature": "Features",
    "featmin": "Minor Features",
    "minfeat": "Minor Features",
    "fix": "Bug Fixes",
    "majfeat": "Major Features",
    "majfix": "Major Bug Fixes",
    "perf": "Performance Enhancements",
    "project": "Project Structure",
    "progress": "Ongoing Progress",
    "refactor": "Refactoring",
    "style": "Code Styling",
    "test": "Tests",
    "tests": "Tests",
    "tweak": "Refactoring",
    "visual": "Visual Enhancements",
}


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_date(when: date | None = None) -> str:
    """Format a date like "June 27th, 2024"."""
    when = when or date.today()
    return f"{when.strftime('%B')} {_ordinal(when.day)}, {when.year}"


def get_header(version_text: str, version: str, when: date | None = None) -> str:
    return f"## {version_text} [{version}] ({format_date(when)})"


def formatted_subject(subject: str) -> str:
    return SUBJECT_TITLES.get(subject, subject.title())


def _section_re(version_text: str) -> re.Pattern[str]:
    return re.compile(
        rf"^## {re.escape(version_text)} \[?([^\]\s(]+)\]?(?: \(.*\))?\s*$", re.MULTILINE
    )


def get_version(path: Path, version_text: str = "Version") -> str | None:
    """Version of the topmost section of a changelog, or None."""
    if not path.is_file():
        return None
    match = _section_re(version_text).search(path.read_text())
    return match.group(1) if match else None


def _format_message(body: str) -> str:
    lines = body.splitlines() or [""]
    text = lines[0]
    for line in lines[1:]:
        if not line.strip():
            continue
        indent = "\t\t" if line.startswith(("  ", "\t")) else "\t"
        text += f"\n{indent}{line.strip()}"
    return text


def create_section(commits: Iterable[CommitRecord]) -> str:
    """Render changelog entries for sorted commit records.

    Skipped records are left out. Records without a type are listed under
    "Other Notes" after the typed ones.
    """
    parts: list[str] = []
    notes: list[str] = []
    last_subject = None
    for record in commits:
        if record.skipped:
            continue
        if record.subject is None:
            if record.message:
                notes.append(f"- {_format_message(record.message)}")
            continue
        if not record.body:
            continue
        if record.subject != last_subject:
            parts.append(f"\n### {formatted_subject(record.subject)}\n")
            last_subject = record.subject
        entry = "- "
        if record.scope:
            entry += f"**{record.scope.strip().title()}:** "
        parts.append(entry + _format_message(record.body))
    if notes:
        parts.append("\n### Other Notes\n")
        parts.extend(notes)
    return "\n".join(parts).strip()


def write_section(
    path: Path, header: str, section: str, title: str = DEFAULT_TITLE
) -> None:
    """Insert a new section above the newest existing one."""
    block = f"{header}\n\n{section}\n" if section else f"{header}\n"
    if not path.exists():
        path.write_text(f"{title}\n\n{block}")
        return
    content = path.read_text()
    match = re.search(r"^## ", content, re.MULTILINE)
    if match:
        content = f"{content[:match.start()]}{block}\n{content[match.start():]}"
    else:
        content = f"{content.rstrip()}\n\n{block}"
    path.write_text(content)
