"""Cargo workspace discovery.

Reads the root Cargo.toml to find the workspace members, then each member's
manifest to learn its name, version and internal dependencies. Also knows
how a Rust package is bumped: its Cargo.toml, plus the root Cargo.toml and
Cargo.lock for versions shared across the workspace.
"""

from __future__ import annotations

import fnmatch
from typing import Any

from .cargo import (
    CargoLock,
    CargoToml,
    CargoWorkspaceToml,
    dependency_tables,
    inherits_version,
    parse_cargo_manifest,
)
from .graph import DependencyGraph, build_graph
from .logging import Logger, get_logger
from .models import (
    ROOT_PROJECT_PATH,
    Candidate,
    FileContents,
    Package,
    Update,
    VersionsMap,
    join_path,
)
from .repository import Repository
from .updaters import merge_updates
from .versions import parse_version

MANIFEST_NAME = "Cargo.toml"
LOCKFILE_NAME = "Cargo.lock"


def normalize_path(path: str) -> str:
    """Canonical form of a package directory ("." for the root)."""
    return join_path(path) or ROOT_PROJECT_PATH


def has_magic(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[")


def match_member(directory: str, pattern: str) -> bool:
    """Match a directory against a ``workspace.members`` glob.

    Like Cargo, ``*`` doesn't cross directory boundaries:
    "crates/*" matches "crates/foo" but not "crates/foo/bar".
    """
    return directory.count("/") == pattern.count("/") and fnmatch.fnmatchcase(
        directory, pattern
    )


class CargoWorkspace:
    """Graph provider for a Cargo workspace.

    Args:
        repository: Where manifests are read from.
        ref: Git ref to read at; None for the working tree.
        logger: structlog logger; defaults to this module's.

    Attributes:
        root_manifest: Root Cargo.toml read by the last build_packages call.
        inheriting: Packages whose version comes from [workspace.package].
    """

    def __init__(
        self,
        repository: Repository,
        ref: str | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.repository = repository
        self.ref = ref
        self.logger = logger or get_logger(__name__)
        self.root_manifest: FileContents | None = None
        self.inheriting: list[str] = []

    def in_scope(self, candidate: Candidate) -> bool:
        return candidate.release_type == "rust"

    def build_packages(
        self, candidates: list[Candidate]
    ) -> tuple[list[Package], dict[str, Candidate]]:
        """Discover every workspace package.

        Returns:
            (packages in member order, candidate by package name). Manifests
            already fetched by a candidate's updates are reused.
        """
        candidates_by_path = {normalize_path(c.path): c for c in candidates}

        root_contents = self._manifest_contents(ROOT_PROJECT_PATH, candidates_by_path)
        root_manifest = parse_cargo_manifest(root_contents.parsed_content)
        self.root_manifest = root_contents
        self.inheriting = []
        workspace = root_manifest.get("workspace")
        if not isinstance(workspace, dict):
            self.logger.warning("cargo_workspace_missing", path=MANIFEST_NAME)
            return [], {}

        member_paths = self.member_paths(workspace)
        if "package" in root_manifest and ROOT_PROJECT_PATH not in member_paths:
            member_paths.insert(0, ROOT_PROJECT_PATH)
        self.logger.info("cargo_members_found", count=len(member_paths))

        manifests: list[tuple[str, FileContents, dict[str, Any]]] = []
        for path in member_paths:
            if path == ROOT_PROJECT_PATH:
                contents, manifest = root_contents, root_manifest
            else:
                contents = self._manifest_contents(path, candidates_by_path)
                manifest = parse_cargo_manifest(contents.parsed_content)
            if not isinstance(manifest.get("package"), dict):
                self.logger.warning("member_not_a_package", path=path)
                continue
            manifests.append((path, contents, manifest))

        names = {manifest["package"]["name"] for _, _, manifest in manifests}
        packages: list[Package] = []
        candidates_by_package: dict[str, Candidate] = {}
        for path, contents, manifest in manifests:
            name = manifest["package"]["name"]
            version = self._package_version(manifest, workspace)
            if version is None:
                self.logger.warning("package_missing_version", package=name, path=path)
                continue
            if inherits_version(manifest["package"]):
                self.inheriting.append(name)
            packages.append(
                Package(
                    name=name,
                    version=version,
                    path=path,
                    deps=self._internal_deps(manifest, names),
                    manifest=contents,
                )
            )
            if path in candidates_by_path:
                candidates_by_package[name] = candidates_by_path[path]

        return packages, candidates_by_package

    def member_paths(self, workspace: dict[str, Any]) -> list[str]:
        """Expand ``workspace.members`` into member directories.

        Glob patterns are matched against the directories holding a
        Cargo.toml; ``workspace.exclude`` entries are dropped.
        """
        excluded = {normalize_path(p) for p in workspace.get("exclude", [])}
        manifest_dirs: list[str] | None = None
        paths: list[str] = []

        for pattern in workspace.get("members", []):
            pattern = normalize_path(pattern)
            if has_magic(pattern):
                if manifest_dirs is None:
                    manifest_dirs = [
                        f[: -len("/" + MANIFEST_NAME)]
                        for f in self.repository.find_files(
                            f"**/{MANIFEST_NAME}", self.ref
                        )
                        if f.endswith("/" + MANIFEST_NAME)
                    ]
                matches = [d for d in manifest_dirs if match_member(d, pattern)]
            else:
                matches = [pattern]

            for path in matches:
                if path not in excluded and path not in paths:
                    paths.append(path)
        return paths

    def build_graph(self, packages: list[Package]) -> DependencyGraph:
        return build_graph(packages)

    def new_candidate(self, package: Package, versions: VersionsMap) -> Candidate:
        """Create a release for a package only bumped as a dependent."""
        return Candidate(
            path=package.path,
            version=versions[package.name],
            release_type="rust",
            updates=[self._manifest_update(package, versions)],
        )

    def update_candidate(
        self, candidate: Candidate, package: Package, versions: VersionsMap
    ) -> Candidate:
        candidate.updates.append(self._manifest_update(package, versions))
        candidate.updates = merge_updates(candidate.updates)
        return candidate

    def post_process_candidates(
        self, candidates: list[Candidate], versions: VersionsMap
    ) -> list[Candidate]:
        """Attach the root-level edits to the root (else first) candidate.

        The root Cargo.toml gets its shared versions bumped when a released
        package inherits its version or is listed in
        [workspace.dependencies]. Cargo.lock, if the repo has one, gets the
        new versions of the workspace packages.
        """
        if not candidates:
            return candidates
        target = next(
            (c for c in candidates if c.path == ROOT_PROJECT_PATH), candidates[0]
        )

        workspace_update = self._workspace_update(versions)
        if workspace_update is not None:
            target.updates.append(workspace_update)

        try:
            lockfile = self.repository.get_file_contents(LOCKFILE_NAME, self.ref)
        except FileNotFoundError:
            self.logger.debug("lockfile_missing", path=LOCKFILE_NAME)
        else:
            target.updates.append(
                Update(
                    path=LOCKFILE_NAME,
                    updater=CargoLock(versions),
                    cached_file_contents=lockfile,
                )
            )

        target.updates = merge_updates(target.updates)
        return candidates

    def _workspace_update(self, versions: VersionsMap) -> Update | None:
        """Root manifest update for inherited versions and workspace deps."""
        if self.root_manifest is None:
            return None
        workspace = parse_cargo_manifest(self.root_manifest.parsed_content).get(
            "workspace"
        )
        if not isinstance(workspace, dict):
            return None

        released = sorted(
            {versions[name] for name in self.inheriting if name in versions},
            key=parse_version,
        )
        if len(released) > 1:
            self.logger.warning(
                "workspace_version_conflict", versions=released, chosen=released[-1]
            )
        version = released[-1] if released else None

        deps = workspace.get("dependencies", {})
        if version is None and not any(name in versions for name in deps):
            return None
        return Update(
            path=MANIFEST_NAME,
            updater=CargoWorkspaceToml(version, versions),
            cached_file_contents=self.root_manifest,
        )

    def _manifest_update(self, package: Package, versions: VersionsMap) -> Update:
        return Update(
            path=package.manifest_path,
            updater=CargoToml(versions[package.name], versions),
            cached_file_contents=package.manifest,
        )

    def _manifest_contents(
        self, path: str, candidates_by_path: dict[str, Candidate]
    ) -> FileContents:
        manifest_path = join_path(path, MANIFEST_NAME)
        candidate = candidates_by_path.get(path)
        if candidate is not None:
            update = candidate.find_update(manifest_path)
            if update is not None and update.cached_file_contents is not None:
                return update.cached_file_contents
        return self.repository.get_file_contents(manifest_path, self.ref)

    @staticmethod
    def _package_version(
        manifest: dict[str, Any], workspace: dict[str, Any]
    ) -> str | None:
        version = manifest["package"].get("version")
        if isinstance(version, dict) and version.get("workspace"):
            version = workspace.get("package", {}).get("version")
        return version if isinstance(version, str) else None

    @staticmethod
    def _internal_deps(manifest: dict[str, Any], names: set[str]) -> list[str]:
        """Names of workspace packages this manifest depends on.

        A dependency renamed with ``package = "..."`` counts under the real
        package name.
        """
        deps: list[str] = []
        for _prefix, _kind, table in dependency_tables(manifest):
            for key, dep in table.items():
                name = dep.get("package", key) if isinstance(dep, dict) else key
                if name in names and name not in deps:
                    deps.append(name)
        return deps
