"""Release tag location.

Finds the most recent release tag in the history of HEAD. Tag names are
matched against the tag format (e.g. "v{version}"), filtered by the active
versioning system, sorted newest first and walked in order until one is
found that is actually an ancestor of HEAD.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from functools import cmp_to_key

from .models import LastRelease, ReleaseTag, VersionInfo, VersioningSystem
from .shell import log
from .versions import clean, compare_versions, is_incremental, is_prerelease

VERSION_FIELD = "{version}"


def tag_regex(tag_format: str) -> re.Pattern[str]:
    """Compile a tag format into a regex capturing the version."""
    prefix, _, suffix = tag_format.partition(VERSION_FIELD)
    return re.compile(f"^{re.escape(prefix)}(.+){re.escape(suffix)}$")


def render_tag(tag_format: str, version: str) -> str:
    return tag_format.replace(VERSION_FIELD, version)


def find_release_tags(
    tags: Iterable[str],
    tag_format: str,
    system: VersioningSystem | None,
    pre_release_id: str | None = None,
) -> tuple[list[ReleaseTag], str | None]:
    """Match, filter and sort release tags.

    Pre-release tags are only candidates when a pre-release id is
    configured, but every production tag counts towards the last
    production version.

    Returns:
        The candidate tags sorted newest first, and the highest
        production version seen (None if there is none).
    """
    regex = tag_regex(tag_format)
    incremental = system == VersioningSystem.INCREMENTAL
    candidates: list[ReleaseTag] = []
    last_prod: str | None = None

    for name in tags:
        match = regex.match(name)
        if not match:
            continue
        captured = match.group(1)
        if incremental:
            if not is_incremental(captured):
                continue
            if last_prod is None or int(captured) > int(last_prod):
                last_prod = captured
            candidates.append(ReleaseTag(tag=name, version=captured))
            continue

        version = clean(captured)
        if version is None:
            continue
        pre = is_prerelease(version)
        if not pre and (last_prod is None or compare_versions(version, last_prod) > 0):
            last_prod = version
        if pre and not pre_release_id:
            continue
        candidates.append(ReleaseTag(tag=name, version=version, pre=pre))

    candidates.sort(
        key=cmp_to_key(lambda a, b: compare_versions(b.version, a.version))
    )
    return candidates, last_prod


def locate_release_tag(
    candidates: Iterable[ReleaseTag], is_in_history: Callable[[str], bool]
) -> ReleaseTag | None:
    """First candidate, in order, whose tag is an ancestor of HEAD."""
    for candidate in candidates:
        if is_in_history(candidate.tag):
            return candidate
    return None


def get_last_release(repo, options, version_info: VersionInfo) -> LastRelease:
    """Resolve the last release from the repository's tags.

    When no tag is found the returned LastRelease has no tag or version:
    the caller treats this as a first release.
    """
    system = version_info.system
    if options.version_system != VersioningSystem.AUTO:
        system = options.version_system
    candidates, last_prod = find_release_tags(
        repo.list_tags(), options.tag_format, system, options.version_pre_release_id
    )
    if options.verbose:
        log("Tags:")
        for candidate in candidates:
            log(f"   {candidate.tag} ({candidate.version})")

    tag = locate_release_tag(candidates, repo.is_ancestor)
    if tag is None:
        log(f"No {repo.kind} tag found that matches v{version_info.version} extracted from local files")
        return LastRelease(version_info=version_info)

    log(f"Found {repo.kind} tag {tag.tag} associated with version {tag.version}")
    if options.version_pre_release_id:
        log(f"   Last production version is {last_prod}")
    return LastRelease(
        version=tag.version,
        tag=tag.tag,
        head=repo.get_tag_head(tag.tag),
        version_info=version_info,
        last_prod_version=last_prod,
    )
