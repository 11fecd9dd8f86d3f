"""Shell, VCS command and output utilities.

Provides simple wrappers around subprocess calls for running git/svn and
user-configured scripts, plus the output helpers every pipeline stage logs
through.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from .errors import SubprocessFailure

_quiet = False


def set_quiet(quiet: bool) -> None:
    """Silence step/log/warn output.

    Used by stdout-type tasks so that the printed value is the only thing
    written to stdout. Errors are never silenced.
    """
    global _quiet
    _quiet = quiet


def capture(
    *args: str, check: bool = True, cwd: Path | None = None
) -> subprocess.CompletedProcess[str]:
    """Run a command and capture its output.

    Args:
        *args: Command and arguments.
        check: If True (default), raise SubprocessFailure on non-zero exit.
        cwd: Working directory for the command.
    """
    result = subprocess.run(args, capture_output=True, text=True, cwd=cwd)
    if check and result.returncode != 0:
        raise SubprocessFailure(
            list(args), result.returncode, stdout=result.stdout, stderr=result.stderr
        )
    return result


def git(*args: str, check: bool = True, cwd: Path | None = None) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        cwd: Working directory of the repository.

    Returns:
        Stripped stdout from the git command.
    """
    return capture("git", *args, check=check, cwd=cwd).stdout.strip()


def svn(*args: str, check: bool = True, cwd: Path | None = None) -> str:
    """Run an svn command non-interactively and return stdout."""
    return capture(
        "svn", *args, "--non-interactive", "--no-auth-cache", check=check, cwd=cwd
    ).stdout.strip()


def run(
    *args: str, check: bool = True, cwd: Path | None = None
) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Unlike git(), this doesn't capture output - it streams directly to
    the terminal so users can see build progress, etc.

    Args:
        *args: Command and arguments (e.g., "npm", "run", "build").
        check: If True (default), raise SubprocessFailure on non-zero exit.
        cwd: Working directory for the command.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    result = subprocess.run(args, cwd=cwd)
    if check and result.returncode != 0:
        raise SubprocessFailure(list(args), result.returncode)
    return result


def out(text: str) -> None:
    """Write raw task output to stdout, without decoration."""
    sys.stdout.write(text)
    sys.stdout.flush()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    if not _quiet:
        print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def log(msg: str) -> None:
    """Print an informational line under the current step."""
    if not _quiet:
        print(f"  {msg}")


def warn(msg: str) -> None:
    """Print a warning to stderr."""
    if not _quiet:
        print(f"WARNING: {msg}", file=sys.stderr)


def error(msg: str) -> None:
    """Print an error to stderr. Never silenced."""
    print(f"ERROR: {msg}", file=sys.stderr)

