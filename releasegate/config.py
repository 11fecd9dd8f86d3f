"""Run configuration.

Options are read from ``[tool.releasegate]`` in pyproject.toml or from a
standalone ``.releasegate.toml`` (which wins when both exist), then
overridden by command line flags and validated before any VCS work.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .models import VALUE_TASKS, ReleaseLevel, TaskKind, VersioningSystem
from .toml import get_tool_table, load_toml

CONFIG_FILE = ".releasegate.toml"
VERSION_PLACEHOLDER = "$(VERSION)"
DEFAULT_REGEX_VERSION = r"[0-9a-zA-Z.\-]+"


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class _Config(BaseModel):
    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid"
    )


class VersionFileDef(_Config):
    """A user-defined version file.

    Attributes:
        path: File path relative to the project root.
        regex: Search pattern; ``$(VERSION)`` marks where the version sits.
        regex_version: Pattern the version itself must match.
        regex_write: Replacement text written back, with ``$(VERSION)``.
    """

    path: str
    regex: str | None = None
    regex_version: str | None = DEFAULT_REGEX_VERSION
    regex_write: str | None = None


class CommitTypeRule(_Config):
    """Per commit type override of the skip list and release level."""

    include: bool | None = None
    level: ReleaseLevel | None = None


class Options(_Config):
    """Effective options of one release run."""

    repo_type: str = "git"
    repo: str | None = None
    branch: str = "main"
    tag_format: str = "v{version}"
    version_system: VersioningSystem = VersioningSystem.AUTO
    version_pre_release_id: str | None = None
    version_force_next: str | None = None
    version_force_current: bool = False
    republish: bool = False
    force_release: bool = False
    dry_run: bool = False
    vc_revert: bool = True
    verbose: bool = False
    prompt_version: bool = False

    changelog_file: str = "CHANGELOG.md"
    changelog_skip: bool = False
    version_text: str = "Version"

    project_version: str | None = None
    project_file_npm: str | None = None
    mantisbt_plugin: str | None = None
    version_files: list[VersionFileDef] = Field(default_factory=list)
    commit_msg_map: dict[str, CommitTypeRule] = Field(default_factory=dict)
    npm_overrides: dict[str, str] = Field(default_factory=dict)

    build_pre_command: list[str] = Field(default_factory=list)
    build_command: list[str] = Field(default_factory=list)
    build_post_command: list[str] = Field(default_factory=list)
    tests_command: list[str] = Field(default_factory=list)
    deploy_command: list[str] = Field(default_factory=list)
    deploy_post_command: list[str] = Field(default_factory=list)
    commit_pre_command: list[str] = Field(default_factory=list)
    commit_post_command: list[str] = Field(default_factory=list)

    skip_commit: bool = False
    skip_tag: bool = False
    ci_env_file: str = "ap.env"

    task: TaskKind | None = None
    task_arg: str | None = None
    task_tag_version: str | None = None
    config_file: str | None = None

    @field_validator(
        "build_pre_command",
        "build_command",
        "build_post_command",
        "tests_command",
        "deploy_command",
        "deploy_post_command",
        "commit_pre_command",
        "commit_post_command",
        mode="before",
    )
    @classmethod
    def _single_command(cls, value: Any) -> Any:
        # A lone string is a one-command script list.
        if isinstance(value, str):
            return [value]
        return value

    @property
    def is_task(self) -> bool:
        return self.task is not None


def read_config_file(cwd: Path, config_file: str | None = None) -> dict[str, Any]:
    """Read raw option values from the project's TOML configuration."""
    if config_file:
        path = cwd / config_file
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        return load_toml(path).unwrap()

    standalone = cwd / CONFIG_FILE
    if standalone.exists():
        return load_toml(standalone).unwrap()

    pyproject = cwd / "pyproject.toml"
    if pyproject.exists():
        return get_tool_table(load_toml(pyproject), "releasegate")
    return {}


def load_options(cwd: Path, overrides: dict[str, Any] | None = None) -> Options:
    """Build Options from the config file, with non-None overrides on top.

    Raises:
        ConfigurationError: If the file holds unknown keys or bad values.
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    # File keys are kebab-case; normalize so that overrides replace them.
    values = {
        key.replace("-", "_"): value
        for key, value in read_config_file(cwd, overrides.get("config_file")).items()
    }
    values.update(overrides)
    try:
        return Options.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration:\n{exc}") from exc


def validate_options(options: Options, cwd: Path) -> None:
    """Reject inconsistent option combinations before the run starts.

    Raises:
        ConfigurationError: On the first problem found.
    """
    if options.repo_type not in ("git", "svn"):
        raise ConfigurationError(f"Invalid repository type '{options.repo_type}', must be git or svn")
    if options.repo_type == "svn" and not options.repo:
        raise ConfigurationError("The 'repo' option is required for svn repositories")

    for vf in options.version_files:
        if not vf.regex or not vf.regex_write:
            raise ConfigurationError(
                f"Version file '{vf.path}' must define both 'regex' and 'regex-write'"
            )
        if VERSION_PLACEHOLDER not in vf.regex or VERSION_PLACEHOLDER not in vf.regex_write:
            raise ConfigurationError(
                f"Version file '{vf.path}': 'regex' and 'regex-write' must contain {VERSION_PLACEHOLDER}"
            )
        if not vf.regex_version:
            raise ConfigurationError(f"Version file '{vf.path}' must define 'regex-version'")

    if options.mantisbt_plugin:
        plugin = cwd / options.mantisbt_plugin
        if plugin.suffix != ".php":
            raise ConfigurationError("The MantisBT plugin file must have a .php extension")
        if not plugin.is_file():
            raise ConfigurationError(f"The MantisBT plugin file '{options.mantisbt_plugin}' does not exist")

    if options.version_force_current and options.version_force_next:
        raise ConfigurationError("Cannot use --version-force-current with --version-force-next")

    if options.task_tag_version and options.task not in (TaskKind.COMMIT, TaskKind.TAG):
        raise ConfigurationError("--task-tag-version can only be used with --task-commit or --task-tag")

    if options.task is not None and (options.task_arg is None) == (options.task in VALUE_TASKS):
        if options.task_arg is None:
            raise ConfigurationError(f"{options.task.flag} requires a value")
        raise ConfigurationError(f"{options.task.flag} does not take a value")
