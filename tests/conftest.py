"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog

from cascade_release.models import FileContents
from cascade_release.repository import glob_match

ROOT_MANIFEST = """\
[workspace]
members = ["crates/*"]
resolver = "2"
"""

CRATE_A = """\
[package]
name = "a"
version = "1.0.0"
edition = "2021"

[dependencies]
serde = "1.0"
"""

CRATE_B = """\
[package]
name = "b"
version = "0.2.0"

[dependencies]
a = { path = "../a", version = "1.0.0" } # pinned
"""

CRATE_C = """\
[package]
name = "c"
version = "0.3.0"

[dependencies]
b = { path = "../b", version = "0.2.0" }

[dev-dependencies]
a = { path = "../a", version = "1.0.0" }
"""

LOCKFILE = """\
version = 3

[[package]]
name = "a"
version = "1.0.0"

[[package]]
name = "b"
version = "0.1.0"
source = "registry+https://github.com/rust-lang/crates.io-index"

[[package]]
name = "b"
version = "0.2.0"
dependencies = [
 "a",
]

[[package]]
name = "c"
version = "0.3.0"
"""


class InMemoryRepository:
    """Repository over a dict of path → content, recording listings."""

    def __init__(self, files: dict[str, str | bytes]) -> None:
        self.files = files
        self.listings: list[tuple[str, str]] = []
        self.reads: list[str] = []

    def find_files(
        self, pattern: str, ref: str | None = None, directory: str = ""
    ) -> list[str]:
        self.listings.append((directory, pattern))
        directory = directory.strip("/")
        prefix = f"{directory}/" if directory else ""
        return sorted(
            path[len(prefix) :]
            for path in self.files
            if path.startswith(prefix) and glob_match(path[len(prefix) :], pattern)
        )

    def get_file_contents(self, path: str, ref: str | None = None) -> FileContents:
        self.reads.append(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        data = self.files[path]
        if isinstance(data, str):
            return FileContents.from_text(data)
        return FileContents.from_bytes(data)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog configuration a test (e.g. the CLI) installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def workspace_files() -> dict[str, str | bytes]:
    """A three-crate workspace: c depends on b, b depends on a."""
    return {
        "Cargo.toml": ROOT_MANIFEST,
        "Cargo.lock": LOCKFILE,
        "crates/a/Cargo.toml": CRATE_A,
        "crates/a/src/lib.rs": "pub fn a() {}\n",
        "crates/b/Cargo.toml": CRATE_B,
        "crates/c/Cargo.toml": CRATE_C,
    }


@pytest.fixture
def repository(workspace_files: dict[str, str | bytes]) -> InMemoryRepository:
    return InMemoryRepository(workspace_files)


@pytest.fixture
def workspace_dir(tmp_path: Path, workspace_files: dict[str, str | bytes]) -> Path:
    """The same workspace written to disk."""
    for path, content in workspace_files.items():
        file = tmp_path / path
        file.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            file.write_text(content)
        else:
            file.write_bytes(content)
    return tmp_path
