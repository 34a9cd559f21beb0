"""Access to repository files.

The orchestrator only ever reads the repository through the Repository
protocol: listing files under a directory and fetching their contents.
LocalRepository reads a checkout, either from the working tree or from a
git ref.
"""

from __future__ import annotations

import fnmatch
import os
import subprocess
from pathlib import Path
from typing import Protocol

from .models import FileContents
from .shell import git, git_bytes


class Repository(Protocol):
    def find_files(
        self, pattern: str, ref: str | None = None, directory: str = ""
    ) -> list[str]:
        """List files under ``directory`` matching ``pattern``.

        Paths are returned relative to ``directory``; directories themselves
        are never listed.
        """
        ...

    def get_file_contents(self, path: str, ref: str | None = None) -> FileContents:
        """Fetch a file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        ...


def glob_match(path: str, pattern: str) -> bool:
    """Match a relative path against a glob where ``**/`` may match nothing.

    Examples:
        glob_match("Cargo.toml", "**/Cargo.toml") → True
        glob_match("a/b/Cargo.toml", "**/Cargo.toml") → True
        glob_match("a/b/README.md", "**/*") → True
    """
    if pattern.startswith("**/") and fnmatch.fnmatchcase(path, pattern[3:]):
        return True
    return fnmatch.fnmatchcase(path, pattern)


class LocalRepository:
    """Repository backed by a local checkout.

    With ``ref=None`` files are read from the working tree, otherwise from
    the given git ref via ``git ls-tree`` and ``git show``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def find_files(
        self, pattern: str, ref: str | None = None, directory: str = ""
    ) -> list[str]:
        directory = directory.strip("/")
        if ref is None:
            relative = self._working_tree_files(directory)
        else:
            relative = self._ref_files(ref, directory)
        return [path for path in relative if glob_match(path, pattern)]

    def get_file_contents(self, path: str, ref: str | None = None) -> FileContents:
        if ref is None:
            file = self.root / path
            if not file.is_file():
                raise FileNotFoundError(path)
            return FileContents.from_bytes(file.read_bytes())

        try:
            data = git_bytes("show", f"{ref}:{path}", cwd=self.root)
        except subprocess.CalledProcessError as e:
            raise FileNotFoundError(path) from e
        return FileContents.from_bytes(data)

    def _working_tree_files(self, directory: str) -> list[str]:
        base = self.root / directory if directory else self.root
        if not base.is_dir():
            return []
        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(base):
            # Skip git metadata and Cargo build output (a target/ next to a
            # Cargo.toml).
            dirnames[:] = [
                d
                for d in dirnames
                if d != ".git" and not (d == "target" and "Cargo.toml" in filenames)
            ]
            current = Path(dirpath)
            files.extend(
                (current / name).relative_to(base).as_posix()
                for name in filenames
                if (current / name).is_file()
            )
        return sorted(files)

    def _ref_files(self, ref: str, directory: str) -> list[str]:
        listing = git(
            "ls-tree", "-r", "--name-only", ref, "--", directory or ".", cwd=self.root
        )
        prefix = f"{directory}/" if directory else ""
        return sorted(
            line[len(prefix) :]
            for line in listing.splitlines()
            if line and line.startswith(prefix)
        )
