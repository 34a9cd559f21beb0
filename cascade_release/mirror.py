"""Mirror "latest" docs and examples into their "release" copies.

A repository may keep docs and examples tracking the development tree next
to a frozen copy matching the last release. On every release the frozen copy
is rebuilt from the latest one:

    examples/latest/foo/src/main.rs  →  examples/release/foo/src/main.rs

Files are copied with any pending update of the source file applied, so the
release copy reflects the post-release state. Example manifests can also be
rewritten to depend on the published packages instead of workspace paths.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .cargo import CargoTomlRemovePaths, CargoWorkspaceMembers
from .logging import Logger, get_logger
from .models import (
    ROOT_PROJECT_PATH,
    Candidate,
    FileContents,
    Package,
    Update,
    join_path,
)
from .repository import Repository
from .updaters import CompositeUpdater, RawContent, RemoveFile

MANIFEST_NAME = "Cargo.toml"


class MirrorConfig(BaseModel):
    """One source → target directory mirror.

    Attributes:
        source: Directory holding the latest files.
        target: Directory rebuilt from ``source``.
        exceptions: Paths relative to both directories that are left alone.
        rewrite_manifests: Strip workspace path dependencies from mirrored
                           Cargo.toml files and regenerate the target's
                           workspace members.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    source: str
    target: str
    exceptions: list[str] = Field(default_factory=list)
    rewrite_manifests: bool = Field(default=False, alias="rewrite-manifests")


DEFAULT_MIRRORS = [
    MirrorConfig(
        source="docs/docusaurus/docs",
        target="docs/docusaurus/versioned_docs/version-release",
        exceptions=["docs-config.json"],
    ),
    MirrorConfig(
        source="examples/latest",
        target="examples/release",
        exceptions=["Cargo.toml", "Justfile"],
        rewrite_manifests=True,
    ),
]


class MirrorSync:
    """Attach mirror updates to the root release candidate.

    Args:
        repository: Where source and target directories are listed and read.
        mirrors: Directories to mirror, in order.
        ref: Git ref to read at; None for the working tree.
        logger: structlog logger; defaults to this module's.
    """

    def __init__(
        self,
        repository: Repository,
        mirrors: list[MirrorConfig] | None = None,
        ref: str | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.repository = repository
        self.mirrors = DEFAULT_MIRRORS if mirrors is None else mirrors
        self.ref = ref
        self.logger = logger or get_logger(__name__)
        self._listings: dict[tuple[str, str], list[str]] = {}

    def sync(
        self, candidates: list[Candidate], packages: list[Package]
    ) -> list[Candidate]:
        """Add the mirror updates to the root candidate and return candidates.

        The root candidate is the one at ".", else the first Rust one. With
        neither, nothing is mirrored.
        """
        root = self.find_root_candidate(candidates)
        if root is None:
            return candidates

        self._listings = {}
        package_names = [package.name for package in packages]
        try:
            for mirror in self.mirrors:
                self.overwrite_directory(
                    root, mirror.source, mirror.target, mirror.exceptions
                )
                if mirror.rewrite_manifests:
                    self.remove_path_dependencies(root, mirror, package_names)
                    self.update_workspace_members(root, mirror)
        finally:
            self._listings = {}
        return candidates

    def find_root_candidate(self, candidates: list[Candidate]) -> Candidate | None:
        root = next((c for c in candidates if c.path == ROOT_PROJECT_PATH), None)
        if root is not None:
            return root
        self.logger.warning("root_candidate_missing")
        root = next((c for c in candidates if c.release_type == "rust"), None)
        if root is None:
            self.logger.warning("rust_candidate_missing")
        return root

    def list_files(self, directory: str, pattern: str = "**/*") -> list[str]:
        """List files under ``directory``, fetched once per sync."""
        key = (directory, pattern)
        if key not in self._listings:
            self._listings[key] = self.repository.find_files(
                pattern, self.ref, directory
            )
        return self._listings[key]

    def overwrite_directory(
        self,
        root: Candidate,
        source_dir: str,
        target_dir: str,
        exceptions: list[str] | None = None,
    ) -> None:
        """Make ``target_dir`` a copy of ``source_dir``.

        Target files missing from the source are removed, then source files
        not yet in the target are created.
        """
        exceptions = exceptions or []

        for file in self.list_files(target_dir):
            if file not in exceptions:
                self.overwrite_file(
                    root, join_path(source_dir, file), join_path(target_dir, file)
                )

        for file in self.list_files(source_dir):
            target_path = join_path(target_dir, file)
            if file in exceptions or root.find_update(target_path) is not None:
                continue
            self.overwrite_file(root, join_path(source_dir, file), target_path)

    def overwrite_file(
        self, root: Candidate, source_path: str, target_path: str
    ) -> None:
        """Replace ``target_path`` with the post-release content of ``source_path``.

        A source file that doesn't exist removes the target.
        """
        self.logger.info("file_overwriting", source=source_path, target=target_path)
        source_update = root.find_update(source_path)
        contents = self.get_file_content(source_update, source_path)

        if contents is None:
            updater = RemoveFile()
        else:
            text = contents.text()
            if text is None:
                if source_update is not None:
                    self.logger.warning("binary_file_update_skipped", path=source_path)
                updater = RawContent(contents.content, encoding="base64")
            else:
                if source_update is not None:
                    text = source_update.updater.update_content(text, self.logger)
                updater = RemoveFile() if text is None else RawContent(text)

        root.updates.append(
            Update(path=target_path, create_if_missing=True, updater=updater)
        )

    def get_file_content(
        self, update: Update | None, path: str
    ) -> FileContents | None:
        """Current content of ``path``, or None when it doesn't exist.

        A missing file whose pending update may create it reads as empty.
        """
        if update is not None and update.cached_file_contents is not None:
            return update.cached_file_contents
        try:
            return self.repository.get_file_contents(path, self.ref)
        except FileNotFoundError:
            if update is not None and update.create_if_missing:
                return FileContents.from_text("")
            return None

    def member_manifests(self, mirror: MirrorConfig) -> list[str]:
        """Manifests of the member packages under the mirror's source."""
        return [
            file
            for file in self.list_files(mirror.source, f"**/{MANIFEST_NAME}")
            if file.endswith("/" + MANIFEST_NAME)
        ]

    def remove_path_dependencies(
        self, root: Candidate, mirror: MirrorConfig, package_names: list[str]
    ) -> None:
        """Make the mirrored manifests depend on released packages by version."""
        for file in self.member_manifests(mirror):
            update = root.find_update(join_path(mirror.target, file))
            if update is None or isinstance(update.updater, RemoveFile):
                continue
            if update.updater.encoding == "base64":
                self.logger.warning("binary_manifest_skipped", path=update.path)
                continue
            update.updater = CompositeUpdater(
                update.updater, CargoTomlRemovePaths(package_names)
            )

    def update_workspace_members(self, root: Candidate, mirror: MirrorConfig) -> None:
        """List the mirrored packages as members of the target workspace."""
        members = [
            file[: -len("/" + MANIFEST_NAME)] for file in self.member_manifests(mirror)
        ]
        root.updates.append(
            Update(
                path=join_path(mirror.target, MANIFEST_NAME),
                create_if_missing=True,
                updater=CargoWorkspaceMembers(members),
            )
        )
