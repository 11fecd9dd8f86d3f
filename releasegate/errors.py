"""Exceptions raised by the release pipeline.

Every error meant for the end user derives from ReleaseError; the
orchestrator logs those and exits non-zero instead of printing a traceback.
"""

from __future__ import annotations


class ReleaseError(Exception):
    """Base class for all release pipeline errors."""


class ConfigurationError(ReleaseError):
    """Invalid or inconsistent configuration, detected before any VCS work."""


class VersionFileError(ReleaseError):
    """A configured version file exists but its pattern matched nothing."""


class VersionMismatchError(ReleaseError):
    """Two version sources disagree about the current version.

    Attributes:
        source: Name of the source that produced the conflicting value.
        parsed: Version read from that source.
        recorded: Version recorded from earlier sources.
        recorded_source: Name of the source the recorded version came from.
    """

    def __init__(
        self, source: str, parsed: str, recorded: str, recorded_source: str | None = None
    ) -> None:
        self.source = source
        self.parsed = parsed
        self.recorded = recorded
        self.recorded_source = recorded_source
        super().__init__(str(self))

    def __str__(self) -> str:
        return (
            "There is a version mismatch in one or more of the version files:\n"
            f"   Type             : {self.source}\n"
            f"   Parsed version   : {self.parsed}\n"
            f"   Recorded type    : {self.recorded_source or 'n/a'}\n"
            f"   Recorded version : {self.recorded}"
        )


class FirstReleaseVersionConflict(ReleaseError):
    """Local files carry a version beyond the first release, but no tag exists."""

    def __init__(self, local_version: str, first_release: str) -> None:
        self.local_version = local_version
        self.first_release = first_release
        super().__init__(
            "There is a conflict with the version extracted from the local version files\n"
            f"   No remote tag was found, but local version {local_version} > {first_release}\n"
            "   Either use the --version-force-next option, or publish interactively"
        )


class SubprocessFailure(ReleaseError):
    """A VCS, build or script subprocess exited non-zero.

    Attributes:
        cmd: The command line that was run.
        returncode: Process exit status.
        stdout: Captured stdout, if it was captured.
        stderr: Captured stderr, if it was captured.
    """

    def __init__(
        self, cmd: list[str], returncode: int, stdout: str = "", stderr: str = ""
    ) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"Command '{' '.join(cmd)}' failed with exit code {returncode}"
        if stdout.strip():
            message += f"\n{stdout.strip()}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)
