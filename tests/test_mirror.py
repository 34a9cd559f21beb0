"""Tests for cascade_release.mirror."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from cascade_release.cargo import CargoToml
from cascade_release.mirror import DEFAULT_MIRRORS, MirrorConfig, MirrorSync
from cascade_release.models import Candidate, FileContents, Package, Update
from cascade_release.updaters import CompositeUpdater, RawContent, RemoveFile

from .conftest import InMemoryRepository

EXAMPLE_ROOT = """\
[workspace]
members = ["hello"]
"""

EXAMPLE_HELLO = """\
[package]
name = "hello"
version = "0.1.0"

[dependencies]
a = { path = "../../../crates/a", version = "1.0.0" }
"""

EXAMPLES = MirrorConfig(
    source="examples/latest",
    target="examples/release",
    exceptions=["Cargo.toml"],
    rewrite_manifests=True,
)

PACKAGES = [Package(name="a", version="1.0.0", path="crates/a")]


@pytest.fixture
def files() -> dict[str, str | bytes]:
    return {
        "docs/latest/intro.md": "# Intro\n",
        "docs/latest/logo.png": b"\x89PNG\xff\x00",
        "docs/latest/config.json": "{}\n",
        "docs/release/intro.md": "# Old intro\n",
        "docs/release/removed.md": "gone\n",
        "docs/release/config.json": '{"pinned": true}\n',
        "examples/latest/Cargo.toml": EXAMPLE_ROOT,
        "examples/latest/hello/Cargo.toml": EXAMPLE_HELLO,
        "examples/latest/hello/src/main.rs": "fn main() {}\n",
        "examples/release/Cargo.toml": '[workspace]\nmembers = ["old"]\n',
    }


def _sync(files, mirrors, candidates, packages=PACKAGES):
    repository = InMemoryRepository(files)
    MirrorSync(repository, mirrors).sync(candidates, packages)
    return repository


def _by_path(candidate: Candidate) -> dict[str, Update]:
    return {update.path: update for update in candidate.updates}


class TestRootCandidate:
    def test_prefers_root(self, files) -> None:
        other, root = Candidate(path="crates/a"), Candidate(path=".")
        docs = MirrorConfig(source="docs/latest", target="docs/release")
        _sync(files, [docs], [other, root])
        assert other.updates == []
        assert root.updates

    def test_falls_back_to_first_rust_candidate(self, files) -> None:
        node = Candidate(path="web", release_type="node")
        rust = Candidate(path="crates/a")
        docs = MirrorConfig(source="docs/latest", target="docs/release")
        with capture_logs() as logs:
            _sync(files, [docs], [node, rust])
        assert node.updates == []
        assert rust.updates
        assert any(log["event"] == "root_candidate_missing" for log in logs)

    def test_no_rust_candidate(self, files) -> None:
        node = Candidate(path="web", release_type="node")
        docs = MirrorConfig(source="docs/latest", target="docs/release")
        repository = _sync(files, [docs], [node])
        assert node.updates == []
        assert repository.listings == []


class TestOverwriteDirectory:
    docs = MirrorConfig(
        source="docs/latest", target="docs/release", exceptions=["config.json"]
    )

    def test_mirrors_files(self, files) -> None:
        root = Candidate(path=".")
        _sync(files, [self.docs], [root])
        updates = _by_path(root)

        assert set(updates) == {
            "docs/release/intro.md",
            "docs/release/removed.md",
            "docs/release/logo.png",
        }
        assert all(u.create_if_missing for u in updates.values())
        assert updates["docs/release/intro.md"].updater.update_content("") == "# Intro\n"
        assert isinstance(updates["docs/release/removed.md"].updater, RemoveFile)

    def test_binary_copied_verbatim(self, files) -> None:
        root = Candidate(path=".")
        _sync(files, [self.docs], [root])
        logo = _by_path(root)["docs/release/logo.png"].updater
        assert logo.encoding == "base64"
        assert logo.update_content(None) == FileContents.from_bytes(
            b"\x89PNG\xff\x00"
        ).content

    def test_applies_pending_source_update(self, files) -> None:
        root = Candidate(
            path=".",
            updates=[Update(path="docs/latest/intro.md", updater=RawContent("# New\n"))],
        )
        _sync(files, [self.docs], [root])
        intro = _by_path(root)["docs/release/intro.md"].updater
        assert intro.update_content("") == "# New\n"

    def test_pending_update_may_create_source(self, files) -> None:
        root = Candidate(
            path=".",
            updates=[
                Update(
                    path="docs/latest/removed.md",
                    create_if_missing=True,
                    updater=RawContent("back\n"),
                )
            ],
        )
        _sync(files, [self.docs], [root])
        removed = _by_path(root)["docs/release/removed.md"].updater
        assert removed.update_content("") == "back\n"

    def test_listings_cached_per_sync(self, files) -> None:
        root = Candidate(path=".")
        repository = _sync(files, [self.docs, EXAMPLES], [root])
        assert len(repository.listings) == len(set(repository.listings))


class TestRewriteManifests:
    def test_strips_paths_and_sets_members(self, files) -> None:
        root = Candidate(path=".")
        _sync(files, [EXAMPLES], [root])
        updates = _by_path(root)

        hello = updates["examples/release/hello/Cargo.toml"].updater
        assert isinstance(hello, CompositeUpdater)
        assert hello.update_content("") == EXAMPLE_HELLO.replace(
            'path = "../../../crates/a", ', ""
        )

        workspace = updates["examples/release/Cargo.toml"].updater
        assert workspace.update_content(files["examples/release/Cargo.toml"]) == (
            '[workspace]\nmembers = ["hello"]\n'
        )

    def test_pending_manifest_update_applied_first(self, files) -> None:
        versions = {"a": "1.1.0", "hello": "0.2.0"}
        root = Candidate(
            path=".",
            updates=[
                Update(
                    path="examples/latest/hello/Cargo.toml",
                    updater=CargoToml("0.2.0", versions),
                )
            ],
        )
        _sync(files, [EXAMPLES], [root])
        hello = _by_path(root)["examples/release/hello/Cargo.toml"].updater
        result = hello.update_content("")
        assert 'version = "0.2.0"' in result
        assert 'a = { version = "1.1.0" }' in result


class TestDefaults:
    def test_default_mirrors(self) -> None:
        sync = MirrorSync(InMemoryRepository({}))
        assert sync.mirrors == DEFAULT_MIRRORS
        assert [m.target for m in DEFAULT_MIRRORS] == [
            "docs/docusaurus/versioned_docs/version-release",
            "examples/release",
        ]

    def test_config_aliases(self) -> None:
        config = MirrorConfig.model_validate(
            {"source": "a", "target": "b", "rewrite-manifests": True}
        )
        assert config.rewrite_manifests is True
        assert config.exceptions == []
