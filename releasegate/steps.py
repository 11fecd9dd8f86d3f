"""Pipeline steps with side effects.

Script execution, version file edits, commit and tag, revert, and the
temporary manifest overrides applied for a publish.
"""

from __future__ import annotations

import json
import shlex

from .changelog import write_section
from .context import RunContext
from .errors import SubprocessFailure
from .models import OriginalValues
from .shell import log, run, step, warn
from .sources import NpmSource, write_sources

COMMIT_MESSAGE = "chore(release): v{version} [skip ci]"

_MISSING = object()


def expand_script(ctx: RunContext, script: str) -> str:
    """Substitute $(VERSION), $(NEXTVERSION) and $(LASTVERSION) in a script."""
    next_version = ctx.next_release.version or ""
    last_version = ctx.last_release.version or ""
    return (
        script.replace("$(NEXTVERSION)", next_version)
        .replace("$(LASTVERSION)", last_version)
        .replace("$(VERSION)", next_version)
    )


def run_scripts(
    ctx: RunContext,
    kind: str,
    commands: list[str],
    force_run: bool = False,
    throw_on_error: bool = False,
) -> None:
    """Run a configured script group.

    Scripts are skipped in task mode (and with version-force-current)
    unless force_run is set. A failing script raises SubprocessFailure
    when throw_on_error is set and is only a warning otherwise.
    """
    options = ctx.options
    if not commands:
        return
    if not force_run and options.is_task:
        log(f"Running custom {kind} script(s) skipped in task mode")
        return
    if not force_run and options.version_force_current:
        log(f"Running custom {kind} script(s) skipped in current version forced mode")
        return

    log(f"Running custom '{kind}' script(s)")
    for script in commands:
        script = expand_script(ctx, script.strip())
        if not script:
            warn("Empty script not processed")
            continue
        log(f"   Run script: {script}")
        try:
            run(*shlex.split(script), cwd=ctx.cwd)
        except (SubprocessFailure, OSError) as exc:
            if throw_on_error:
                if isinstance(exc, SubprocessFailure):
                    raise
                raise SubprocessFailure(shlex.split(script), 127, stderr=str(exc)) from exc
            warn(f"Script '{script}' failed: {exc}")


def add_edit(ctx: RunContext, path: str) -> None:
    """Track a file touched by the run so it can be committed or reverted."""
    edits = ctx.next_release.edits
    if path not in edits:
        edits.append(path)


def set_versions(ctx: RunContext, record_only: bool = False) -> list[str]:
    """Write the next version to every version source.

    With record_only, only the paths that would be written are tracked.
    """
    version = ctx.next_release.version
    if not record_only:
        step(f"Setting version {version} in local files")
    touched = write_sources(ctx.cwd, ctx.options, version, record_only=record_only)
    for path in touched:
        add_edit(ctx, path)
    return touched


def write_changelog(ctx: RunContext, header: str) -> None:
    write_section(ctx.changelog_path, header, ctx.changelog_notes)
    add_edit(ctx, ctx.options.changelog_file)
    log(f"Wrote changelog section to {ctx.options.changelog_file}")


def commit_and_tag(
    ctx: RunContext,
    only_commit: bool = False,
    only_tag: bool = False,
    throw_on_error: bool = True,
) -> None:
    """Commit the tracked edits and create the release tag.

    A failing commit or tag raises SubprocessFailure when throw_on_error
    is set. Otherwise it is a warning that tells the user how to finish by
    hand. The tag is never created when the commit failed. In dry run the
    commands are only logged.
    """
    options = ctx.options
    nxt = ctx.next_release
    task = options.task

    do_commit = not only_tag and (task is not None or not options.skip_commit)
    do_tag = not only_commit and (task is not None or not options.skip_tag)

    if do_commit:
        run_scripts(ctx, "preCommit", options.commit_pre_command)
        message = COMMIT_MESSAGE.format(version=nxt.version)
        if options.dry_run:
            log(f"Dry run: skipping commit of {len(nxt.edits)} file(s): {message}")
        else:
            try:
                ctx.repo.commit(nxt.edits, message)
                log(f"Committed {len(nxt.edits)} file(s): {message}")
            except SubprocessFailure as exc:
                if throw_on_error:
                    raise
                warn(f"Failed to commit changes for v{nxt.version}")
                warn(f"Manually commit the changes using the message '{message}': {exc}")
                warn(f"Skipping tag {nxt.tag}")
                return
        run_scripts(ctx, "postCommit", options.commit_post_command)

    if do_tag:
        if options.dry_run:
            log(f"Dry run: skipping tag {nxt.tag}")
            return
        try:
            ctx.repo.tag(nxt.tag, f"Release {nxt.version}")
            ctx.repo.push()
            log(f"Tagged {nxt.tag}")
        except SubprocessFailure as exc:
            if throw_on_error:
                raise
            warn(f"Failed to tag v{nxt.version}")
            warn(f"Manually tag the repository using the tag '{nxt.tag}': {exc}")


def revert(ctx: RunContext) -> None:
    """Revert all tracked edits through the VCS."""
    edits = ctx.next_release.edits
    if not edits:
        return
    step(f"Reverting {len(edits)} edited file(s)")
    for path in edits:
        log(path)
    ctx.repo.revert(edits)


def revert_changes(ctx: RunContext) -> None:
    """Revert on dry run when configured to, otherwise restore overrides."""
    if ctx.options.dry_run and ctx.options.vc_revert:
        revert(ctx)
        ctx.original_values = None
    elif ctx.original_values is not None:
        restore_original_values(ctx, ctx.original_values)


def _get(data: dict, dotted: str):
    node = data
    for key in dotted.split("."):
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def _set(data: dict, dotted: str, value) -> None:
    *parents, last = dotted.split(".")
    node = data
    for key in parents:
        node = node.setdefault(key, {})
    if value is _MISSING:
        node.pop(last, None)
    else:
        node[last] = value


def override_manifest(ctx: RunContext) -> OriginalValues | None:
    """Apply npm_overrides to package.json, remembering the original values.

    Keys are dotted paths into the manifest, e.g. "repository.url".
    """
    overrides = ctx.options.npm_overrides
    if not overrides:
        return None
    path = NpmSource().find(ctx.cwd, ctx.options)
    if path is None:
        return None
    data = json.loads(path.read_text())
    if not data.get("name"):
        return None

    original: dict = {}
    for key, value in overrides.items():
        current = _get(data, key)
        if current == value:
            continue
        original[key] = None if current is _MISSING else current
        log(f"Setting {key} in {path.name}: {value}")
        _set(data, key, value)
    if not original:
        return None

    path.write_text(json.dumps(data, indent=2) + "\n")
    record = OriginalValues(path=path.relative_to(ctx.cwd).as_posix(), values=original)
    ctx.original_values = record
    return record


def restore_original_values(ctx: RunContext, record: OriginalValues) -> None:
    """Put back the manifest values saved by override_manifest."""
    path = ctx.cwd / record.path
    data = json.loads(path.read_text())
    for key, value in record.values.items():
        log(f"Restoring {key} in {path.name}")
        _set(data, key, _MISSING if value is None else value)
    path.write_text(json.dumps(data, indent=2) + "\n")
    if ctx.original_values is record:
        ctx.original_values = None


def write_ci_env_file(ctx: RunContext) -> str:
    """Write last version, next version and changelog path, one per line."""
    lines = [ctx.last_release.version or "", ctx.next_release.version or ""]
    if ctx.options.changelog_file:
        lines.append(ctx.options.changelog_file)
    content = "\n".join(lines) + "\n"
    (ctx.cwd / ctx.options.ci_env_file).write_text(content)
    log(f"Write CI environment to file '{ctx.options.ci_env_file}'")
    return content
