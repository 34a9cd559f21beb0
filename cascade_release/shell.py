"""Shell and git utilities.

Provides simple wrappers around subprocess calls for git operations, plus
output formatting helpers for the CLI.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "ls-tree", "-r", "HEAD").
        cwd: Repository to run in; the current directory when None.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def git_bytes(*args: str, cwd: Path | None = None) -> bytes:
    """Run a git command and return its raw stdout (e.g. ``git show``).

    Raises:
        subprocess.CalledProcessError: On non-zero exit.
    """
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)
    return result.stdout


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a release plan in terminal output.
    """
    click.echo(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> None:
    """Abort the command with an error message and exit code 1."""
    raise click.ClickException(msg)
