"""Task gate checkpoints.

A run may request one narrow task instead of a full release. The pipeline
calls the three checkpoints below at fixed points; each returns False when
its tier has nothing to do, True when it handled the requested task, or an
error message string when the task failed. Either of the latter ends the
run at that checkpoint.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

from . import changelog
from .context import RunContext
from .errors import ConfigurationError
from .models import STDOUT_TASKS, TASK_TIERS, TaskKind
from .shell import out
from .steps import (
    add_edit,
    commit_and_tag,
    revert,
    revert_changes,
    run_scripts,
    set_versions,
    write_ci_env_file,
)
from .tags import render_tag
from .versions import clean, first_release, prerelease_id, validate_version

TaskResult = bool | str


def validate_task_flags(requested: Iterable[TaskKind]) -> TaskKind | None:
    """Return the single requested task, rejecting more than one.

    Raises:
        ConfigurationError: If two or more tasks were requested.
    """
    tasks = list(dict.fromkeys(requested))
    if len(tasks) > 1:
        flags = ", ".join(task.flag for task in tasks)
        raise ConfigurationError(f"Only one task can be run at a time, got: {flags}")
    return tasks[0] if tasks else None


def is_stdout_task(task: TaskKind | None) -> bool:
    return task in STDOUT_TASKS


def generate_commands() -> str:
    lines = [f"{task.flag:<40} tier {tier}" for task, tier in TASK_TIERS.items()]
    return "\n".join(lines) + "\n"


def checkpoint_tier1(ctx: RunContext) -> TaskResult:
    """Tasks answerable from the options alone, before any VCS access."""
    options = ctx.options
    task = options.task

    if task == TaskKind.DEV_TEST:
        out(json.dumps(options.model_dump(mode="json", exclude_defaults=True), indent=2) + "\n")
        return True

    if task == TaskKind.GENERATE_COMMANDS:
        out(generate_commands())
        return True

    if task == TaskKind.VERSION_PRE_RELEASE_ID:
        identifier = prerelease_id(clean(options.task_arg))
        out(identifier if identifier is not None else "error_invalid_prerelease_identifier")
        return True

    if task == TaskKind.CHANGELOG_HDR_PRINT_VERSION:
        out(changelog.get_header(options.version_text, options.task_arg))
        return True

    if task == TaskKind.TESTS:
        run_scripts(ctx, "tests", options.tests_command, force_run=True, throw_on_error=True)
        return True

    return False


def checkpoint_tier2(ctx: RunContext) -> TaskResult:
    """Tasks that need the last release, but no commits or next version."""
    options = ctx.options
    task = options.task
    last = ctx.last_release
    nxt = ctx.next_release

    if task == TaskKind.VERSION_CURRENT:
        out(last.version or last.version_info.version or first_release(last.version_info.system))
        return True

    if task == TaskKind.REVERT:
        # Only the files a run would have touched are reverted.
        nxt.version = last.version_info.version or last.version
        add_edit(ctx, options.changelog_file)
        set_versions(ctx, record_only=True)
        revert(ctx)
        return True

    if task in (TaskKind.COMMIT, TaskKind.TAG):
        if options.task_tag_version and not validate_version(
            options.task_tag_version, last.version_info.system
        ):
            return f"Invalid version provided with --task-tag-version : {options.task_tag_version}"
        nxt.version = options.task_tag_version or last.version_info.version
        nxt.tag = render_tag(options.tag_format, nxt.version)
        add_edit(ctx, options.changelog_file)
        set_versions(ctx, record_only=True)
        commit_and_tag(ctx, only_commit=task == TaskKind.COMMIT, only_tag=task == TaskKind.TAG)
        revert_changes(ctx)
        return True

    if task == TaskKind.BUILD:
        nxt.version = last.version or last.version_info.version
        run_scripts(ctx, "preBuild", options.build_pre_command, force_run=True, throw_on_error=True)
        run_scripts(ctx, "build", options.build_command, force_run=True, throw_on_error=True)
        run_scripts(ctx, "postBuild", options.build_post_command, force_run=True)
        return True

    return False


def checkpoint_tier3(ctx: RunContext) -> TaskResult:
    """Tasks that need the next version but nothing from the build stages."""
    options = ctx.options
    task = options.task
    last = ctx.last_release
    nxt = ctx.next_release

    if task == TaskKind.VERSION_NEXT:
        out(nxt.version)
        return True

    if task == TaskKind.VERSION_INFO:
        out(f"{last.version}|{nxt.version}|{nxt.level.value if nxt.level else 'none'}")
        return True

    if task == TaskKind.CI_ENV_SET:
        write_ci_env_file(ctx)
        return True

    if task == TaskKind.CI_ENV_INFO:
        if options.changelog_file:
            out(f"{last.version}|{nxt.version}|{options.changelog_file}")
        else:
            out(f"{last.version}|{nxt.version}")
        return True

    if task == TaskKind.RELEASE_LEVEL:
        out(nxt.level.value if nxt.level else "none")
        return True

    if task == TaskKind.CHANGELOG_HDR_PRINT:
        out(changelog.get_header(options.version_text, nxt.version))
        return True

    return False
