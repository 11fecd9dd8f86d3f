"""CLI entry point for releasegate."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from .config import load_options
from .errors import ConfigurationError
from .models import VALUE_TASKS, TaskKind
from .pipeline import run_release
from .tasks import validate_task_flags


def _param(task: TaskKind) -> str:
    return "task_" + task.value.replace("-", "_")


def task_options(func):
    """Add one --task-* flag per task kind."""
    for task in reversed(list(TaskKind)):
        if task in VALUE_TASKS:
            func = click.option(task.flag, _param(task), metavar="VERSION", default=None)(func)
        else:
            func = click.option(task.flag, _param(task), is_flag=True, default=False)(func)
    return func


def _interactive() -> bool:
    return sys.stdin.isatty() and not os.environ.get("CI")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="releasegate")
@click.option("--config-file", help="Config file (default: .releasegate.toml or pyproject.toml).")
@click.option("--repo-type", type=click.Choice(["git", "svn"]), default=None)
@click.option("--repo", default=None, help="Repository url.")
@click.option("--branch", default=None)
@click.option("--tag-format", default=None, help="Tag template, e.g. 'v{version}'.")
@click.option(
    "--version-system",
    type=click.Choice(["auto", "semver", "incremental"]),
    default=None,
)
@click.option("--version-pre-release-id", default=None, help="Pre-release identifier, e.g. 'beta'.")
@click.option("--version-force-next", default=None, help="Release this version.")
@click.option("--version-force-current", is_flag=True)
@click.option("--republish", is_flag=True, help="Downgrade version mismatches to warnings.")
@click.option("--force-release", is_flag=True, help="Release even without relevant commits.")
@click.option("--dry-run", is_flag=True)
@click.option("--no-vc-revert", is_flag=True, help="Do not revert edited files through the VCS.")
@click.option("--prompt-version", is_flag=True)
@click.option("--changelog-skip", is_flag=True)
@click.option("--skip-commit", is_flag=True)
@click.option("--skip-tag", is_flag=True)
@click.option("--verbose", "-v", is_flag=True)
@click.option("--task-tag-version", default=None, metavar="VERSION")
@task_options
def main(config_file, no_vc_revert, task_tag_version, **kwargs) -> None:
    """Decide, version and publish a release of the project in the current directory."""
    requested = {task: kwargs.pop(_param(task)) for task in TaskKind}
    try:
        task = validate_task_flags(t for t, value in requested.items() if value)
        # Unset flags must not mask values from the config file.
        overrides = {key: value for key, value in kwargs.items() if value not in (None, False)}
        if no_vc_revert:
            overrides["vc_revert"] = False
        overrides.update(
            config_file=config_file,
            task=task,
            task_arg=requested[task] if task in VALUE_TASKS else None,
            task_tag_version=task_tag_version,
        )
        options = load_options(Path.cwd(), overrides)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    outcome = run_release(options, Path.cwd(), interactive=_interactive())
    sys.exit(outcome.exit_code)


if __name__ == "__main__":
    main()
