"""Data models for cascade-release.

These Pydantic models represent the core data structures passed between the
orchestrator, the graph provider and the updaters.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .logging import Logger

ROOT_PROJECT_PATH = "."

# Package name → new version. Built once per run and shared read-only.
VersionsMap = Mapping[str, str]


class Updater(ABC):
    """Transforms the content of a single file.

    Attributes:
        encoding: None for text output, "base64" when update_content returns
                  base64-encoded bytes. Text updaters can't be chained after
                  a base64 one.
    """

    encoding: str | None = None

    @abstractmethod
    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        """Return the new file content, or None to remove the file."""


class FileContents(BaseModel):
    """Contents of a repository file.

    Attributes:
        content: Raw bytes, base64-encoded.
        parsed_content: The bytes decoded as UTF-8 (lossy for binary files).
    """

    content: str
    parsed_content: str

    @classmethod
    def from_bytes(cls, data: bytes) -> FileContents:
        return cls(
            content=base64.b64encode(data).decode("ascii"),
            parsed_content=data.decode("utf-8", errors="replace"),
        )

    @classmethod
    def from_text(cls, text: str) -> FileContents:
        return cls.from_bytes(text.encode("utf-8"))

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.content)

    def text(self) -> str | None:
        """Return the strict UTF-8 decoding, or None for binary content."""
        try:
            return self.raw_bytes().decode("utf-8")
        except UnicodeDecodeError:
            return None


class Package(BaseModel):
    """A versioned package in the workspace.

    Attributes:
        name: Package name as declared in its manifest.
        version: Current version string from the manifest.
        path: Relative path from repo root to the manifest directory.
        deps: Internal (workspace) dependency names in declaration order.
              External deps are not tracked since only internal edges
              propagate version bumps.
        manifest: Manifest contents read while discovering the package,
                  reused so the file isn't fetched twice.
    """

    name: str
    version: str
    path: str
    deps: list[str] = Field(default_factory=list)
    manifest: FileContents | None = Field(default=None, repr=False)

    @property
    def manifest_path(self) -> str:
        return join_path(self.path, "Cargo.toml")


class Update(BaseModel):
    """A pending edit to one file.

    Attributes:
        path: Repository-relative path of the file to edit.
        create_if_missing: Create the file when it doesn't exist yet.
        updater: Transform applied to the current file content.
        cached_file_contents: Already-fetched content of ``path``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    create_if_missing: bool = False
    updater: Updater
    cached_file_contents: FileContents | None = None


class Candidate(BaseModel):
    """A proposed release pull request for one path in the repository.

    Attributes:
        path: Package directory the release belongs to ("." for the root).
        version: Target version. Candidates without one are not released.
        release_type: Release strategy name; only "rust" candidates are
                      handled by the Cargo workspace provider.
        updates: Ordered file edits making up the release.
    """

    path: str
    version: str | None = None
    release_type: str = "rust"
    updates: list[Update] = Field(default_factory=list)

    def find_update(self, path: str) -> Update | None:
        """Return the update targeting ``path``, if any."""
        for update in self.updates:
            if update.path == path:
                return update
        return None


def join_path(*parts: str) -> str:
    """Join repository path segments, dropping "." and empty segments.

    Examples:
        join_path(".", "Cargo.toml") → "Cargo.toml"
        join_path("crates/foo/", "Cargo.toml") → "crates/foo/Cargo.toml"
    """
    cleaned = [p.strip("/") for p in parts if p not in ("", ROOT_PROJECT_PATH)]
    return "/".join(p for p in cleaned if p)
