"""Release pipeline: versions → last release → commits → next version → publish.

This module orchestrates a release run:
1. Validate options and run tier 1 tasks
2. Reconcile the current version from the local version files
3. Locate the last release tag in the history of HEAD
4. Run tier 2 tasks
5. Classify the commits since the last release and derive the release level
6. Compute the next version
7. Run tier 3 tasks
8. Write the changelog section and the new version to the version files
9. Run the build, test and deploy scripts
10. Commit, tag and push

Each task checkpoint may end the run early. A run with no relevant commits
ends with nothing published, which is not an error.
"""

from __future__ import annotations

import traceback
from enum import Enum
from pathlib import Path

import click

from .changelog import create_section, get_header
from .commits import classify_commits, get_release_level
from .config import Options, validate_options
from .context import RunContext
from .errors import FirstReleaseVersionConflict, ReleaseError
from .models import LastRelease, ReleaseLevel, TaskKind, VersionInfo, VersioningSystem
from .reconcile import Warned, reconcile, unwrap
from .shell import error, log, out, set_quiet, step, warn
from .sources import ChangelogSource, read_sources
from .steps import (
    commit_and_tag,
    override_manifest,
    restore_original_values,
    revert,
    revert_changes,
    run_scripts,
    set_versions,
    write_changelog,
)
from .tags import get_last_release, render_tag
from .tasks import (
    TaskResult,
    checkpoint_tier1,
    checkpoint_tier2,
    checkpoint_tier3,
    is_stdout_task,
)
from .vcs import get_repository
from .versions import (
    compare_versions,
    compute_next_version,
    is_incremental,
    is_semver,
    validate_version,
    version_system_of,
)

# Tasks that read the changelog's version section for the next version,
# and so must not compare it against the version files.
_NO_CHANGELOG_CHECK = frozenset({TaskKind.COMMIT, TaskKind.TAG, TaskKind.CHANGELOG, TaskKind.TESTS})


class RunOutcome(str, Enum):
    """How a release run ended."""

    PUBLISHED = "published"
    TASK_DONE = "task-done"
    NO_CHANGES = "no-changes"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return 1 if self is RunOutcome.FAILED else 0


def get_current_version(ctx: RunContext) -> VersionInfo:
    """Reconcile the current version from all local version sources.

    The changelog takes part unless a pre-release id is configured, the
    task writes or commits the changelog itself, or the changelog is
    skipped. In those cases it only decides the versioning system.

    Raises:
        VersionMismatchError: If two authoritative sources disagree
            and republish mode is off.
    """
    step("Reading current version from local files")
    options = ctx.options
    include_changelog = not (
        options.version_pre_release_id
        or options.task in _NO_CHANGELOG_CHECK
        or options.changelog_skip
    )

    system_hint = None
    if options.version_system != VersioningSystem.AUTO:
        system_hint = options.version_system
    elif not include_changelog:
        for reading in ChangelogSource().readings(ctx.cwd, options):
            system_hint = version_system_of(reading.info.version)
            log(f"Set versioning to '{system_hint.value}'")

    result = reconcile(
        read_sources(ctx.cwd, options, include_changelog=include_changelog),
        republish=options.republish,
        ignore_mismatch=options.task == TaskKind.REVERT,
        force_next=options.version_force_next,
        system_hint=system_hint,
    )
    if isinstance(result, Warned):
        warn("Local version files could not be validated, see above warnings")
    return unwrap(result)


def check_last_release(ctx: RunContext, last: LastRelease) -> None:
    """Compare the tagged version with the local one, detecting a first release.

    Raises:
        ReleaseError: If the tag and the local files disagree outside of
            task and republish modes.
    """
    options = ctx.options
    local = last.version_info.version
    if last.version == local:
        return
    if last.version is None and last.tag is None:
        warn("There was no remote version tag found, this is a first release")
        last.version = local
        ctx.first_release = True
        return
    if not options.is_task and not options.republish:
        raise ReleaseError(
            "Version mismatch found between latest tag and local files\n"
            f"   Tagged : {last.version}\n"
            f"   Local  : {local}\n"
            "Need to correct versioning difference, exiting"
        )
    warn("Version mismatch found between latest tag and local files")
    warn(f"   Continuing in {'task' if options.is_task else 'republish'} mode")


def _greater(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    if is_semver(a) and is_semver(b):
        return compare_versions(a, b) > 0
    if is_incremental(a) and is_incremental(b):
        return int(a) > int(b)
    return False


def prompt_for_version(ctx: RunContext, proposed: str) -> str:
    """Ask the user for the next version, validating the answer.

    Raises:
        ReleaseError: If the entered version is invalid.
    """
    last = ctx.last_release
    version = click.prompt("Enter version number", default=proposed)
    previous = None if ctx.first_release else last.version
    if version != proposed and not validate_version(version, last.version_info.system, previous):
        raise ReleaseError(f"Invalid 'next version' specified: {version}")
    return version


def determine_next_version(ctx: RunContext) -> None:
    """Fill in next_release.version and version_info.

    Raises:
        ReleaseError: On an invalid forced version, or when forcing the
            current version on a first release.
        FirstReleaseVersionConflict: On a first release whose local version
            is beyond the first release and nobody can be asked.
    """
    options = ctx.options
    last = ctx.last_release
    nxt = ctx.next_release

    if options.version_force_current:
        if ctx.first_release:
            raise ReleaseError("Cannot use --version-force-current for a first release")
        log(f"Force next version to current version {last.version}")
        nxt.version_info = last.version_info
        nxt.version = last.version
        return

    if options.version_force_next:
        log(f"Force next version to specified version {options.version_force_next}")
        previous = None if ctx.first_release else last.version
        if not validate_version(options.version_force_next, last.version_info.system, previous):
            raise ReleaseError(f"Invalid 'next version' specified: {options.version_force_next}")
        nxt.version_info = last.version_info.model_copy(update={"version": options.version_force_next})
        nxt.version = options.version_force_next
        return

    system = last.version_info.system
    if options.version_system != VersioningSystem.AUTO:
        system = options.version_system
    info = compute_next_version(
        None if ctx.first_release else last.version,
        system,
        last.last_prod_version,
        nxt.level,
        options.version_pre_release_id,
        last.version_info.info,
    )
    nxt.version_info = info
    nxt.version = info.version
    log(f"The next version is {nxt.version}")

    conflict = ctx.first_release and _greater(last.version_info.version, nxt.version)
    if options.prompt_version or (ctx.interactive and conflict):
        if conflict:
            log("Prompting for version, the version extracted from local files")
            log(f"   {last.version_info.version} is greater than the first release {nxt.version}")
        nxt.version = prompt_for_version(ctx, nxt.version)
        nxt.version_info = info.model_copy(update={"version": nxt.version})
    elif conflict:
        raise FirstReleaseVersionConflict(last.version_info.version, nxt.version)


def _task_done(result: TaskResult, tier: str) -> RunOutcome:
    if isinstance(result, str):
        error(result)
        return RunOutcome.FAILED
    log(f"Successfully completed {tier} task")
    return RunOutcome.TASK_DONE


def _release(ctx: RunContext) -> RunOutcome:
    options = ctx.options
    task = options.task

    validate_options(options, ctx.cwd)
    ctx.repo = get_repository(options, ctx.cwd)

    result = checkpoint_tier1(ctx)
    if result:
        return _task_done(result, "level 1")

    step(f"Verifying access to the {ctx.repo.kind} repository")
    if not options.is_task or task in (TaskKind.COMMIT, TaskKind.TAG):
        ctx.repo.verify_auth()
    ctx.repo.fetch_tags()

    version_info = get_current_version(ctx)

    step("Finding last release tag")
    last = get_last_release(ctx.repo, options, version_info)
    check_last_release(ctx, last)
    ctx.last_release = last

    result = checkpoint_tier2(ctx)
    if result:
        return _task_done(result, "level 2")

    nxt = ctx.next_release
    if not options.version_force_current:
        step("Analyzing commits")
        ctx.commits = classify_commits(ctx.repo.log(last.head), options.commit_msg_map)
        log(f"Found {len(ctx.commits)} commit message(s) since the last release")
        if options.verbose:
            for record in ctx.commits:
                first_line = record.body.splitlines()[0] if record.body else ""
                log(f"   {record.hash[:8]} {record.subject or '(untyped)'}: {first_line}")
        nxt.level = get_release_level(ctx.commits, options.commit_msg_map)
        nxt.head = ctx.repo.get_head()
        log(f"Release level is {nxt.level.value}")

        if (
            nxt.level == ReleaseLevel.NONE
            and not options.version_force_next
            and not options.force_release
            and task not in (TaskKind.CHANGELOG_PRINT, TaskKind.CHANGELOG_HDR_PRINT)
        ):
            if task == TaskKind.VERSION_NEXT:
                out(last.version)
                return RunOutcome.TASK_DONE
            if task == TaskKind.VERSION_INFO:
                out(f"{last.version}|{last.version}|none")
                return RunOutcome.TASK_DONE
            log("There are no relevant commits, no new version is released.")
            return RunOutcome.NO_CHANGES

    step("Computing next version")
    determine_next_version(ctx)
    nxt.tag = render_tag(options.tag_format, nxt.version)

    result = checkpoint_tier3(ctx)
    if result:
        return _task_done(result, "level 3")

    if not options.version_force_current and (
        not options.is_task or task in (TaskKind.CHANGELOG, TaskKind.CHANGELOG_PRINT)
    ):
        ctx.changelog_notes = create_section(ctx.commits)
        if task == TaskKind.CHANGELOG_PRINT:
            out(ctx.changelog_notes + "\n")
            return RunOutcome.TASK_DONE
        if not options.changelog_skip:
            step("Updating changelog")
            write_changelog(ctx, get_header(options.version_text, nxt.version))
        if task == TaskKind.CHANGELOG:
            revert_changes(ctx)
            return _task_done(True, "changelog")

    run_scripts(ctx, "preBuild", options.build_pre_command, throw_on_error=True)

    if not options.is_task:
        override_manifest(ctx)

    if not options.version_force_current and (not options.is_task or task == TaskKind.VERSION_UPDATE):
        set_versions(ctx)
        if task == TaskKind.VERSION_UPDATE:
            revert_changes(ctx)
            return _task_done(True, "version update")

    if not options.is_task:
        step("Building")
        run_scripts(ctx, "build", options.build_command, throw_on_error=True)
        run_scripts(ctx, "postBuild", options.build_post_command)
        run_scripts(ctx, "tests", options.tests_command, throw_on_error=True)

        if options.dry_run:
            log("Skipped running custom deploy script")
        else:
            run_scripts(ctx, "deploy", options.deploy_command)
            run_scripts(ctx, "postDeploy", options.deploy_post_command)

        if ctx.original_values is not None:
            restore_original_values(ctx, ctx.original_values)

        step("Committing and tagging")
        commit_and_tag(ctx)

    revert_changes(ctx)

    if options.dry_run:
        log(f"Release notes for version {nxt.version}:")
        if ctx.changelog_notes:
            out(ctx.changelog_notes + "\n")

    step(f"{'Dry Run: ' if options.dry_run else ''}Published release {nxt.version}")
    return RunOutcome.PUBLISHED


def _fail(ctx: RunContext) -> None:
    """Undo local edits of a failed run."""
    try:
        if ctx.original_values is not None:
            restore_original_values(ctx, ctx.original_values)
        if ctx.repo is not None and ctx.options.vc_revert:
            revert(ctx)
    except (ReleaseError, OSError) as exc:
        warn(f"Could not revert local changes: {exc}")


def run_release(options: Options, cwd: Path | None = None, *, interactive: bool = False) -> RunOutcome:
    """Run a release (or a single task) in the project at cwd.

    Release errors are logged and reported as a FAILED outcome after any
    local edits are reverted; a task's own error message ends the run
    without a revert.
    """
    ctx = RunContext(options=options, cwd=cwd or Path.cwd(), interactive=interactive)
    set_quiet(is_stdout_task(options.task))
    try:
        return _release(ctx)
    except ReleaseError as exc:
        error(str(exc))
        _fail(ctx)
        return RunOutcome.FAILED
    except Exception:
        error("Release run threw failure exception")
        error(traceback.format_exc())
        _fail(ctx)
        return RunOutcome.FAILED
    finally:
        set_quiet(False)
