"""Workspace release orchestration: scope → graph → versions → candidates.

This module turns a set of candidate releases into the final set of release
pull requests for a workspace:
1. Split candidates into in-scope and out-of-scope ones
2. Discover the workspace packages and their dependency graph
3. Add every package that transitively depends on a released package
4. Visit packages dependencies-first, computing each new version
5. Update the candidate of each package, or create one
6. Optionally merge everything into a single candidate
7. Record all new versions, post-process, mirror examples and docs

Nothing is written here: candidates only carry updates, which a writer
realizes afterwards. An error at any step aborts the run with no output.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

from .graph import DependencyGraph, dependents_closure, graph_order
from .logging import Logger, get_logger
from .models import Candidate, Package, Update, VersionsMap
from .updaters import VersionsManifest, merge_updates
from .versions import PatchBumpPolicy

DEFAULT_MANIFEST_PATH = ".release-manifest.json"

MergeStep = Callable[[list[Candidate]], list[Candidate]]


class GraphProvider(Protocol):
    """Knows how a workspace is laid out and how its manifests are bumped."""

    def in_scope(self, candidate: Candidate) -> bool: ...

    def build_packages(
        self, candidates: list[Candidate]
    ) -> tuple[list[Package], dict[str, Candidate]]:
        """Return all workspace packages, and the candidate of each package
        that has one."""
        ...

    def build_graph(self, packages: list[Package]) -> DependencyGraph: ...

    def new_candidate(self, package: Package, versions: VersionsMap) -> Candidate: ...

    def update_candidate(
        self, candidate: Candidate, package: Package, versions: VersionsMap
    ) -> Candidate: ...

    def post_process_candidates(
        self, candidates: list[Candidate], versions: VersionsMap
    ) -> list[Candidate]: ...


class VersionPolicy(Protocol):
    def new_version(self, package: Package, candidate: Candidate | None) -> str: ...


class MirrorStep(Protocol):
    def sync(
        self, candidates: list[Candidate], packages: list[Package]
    ) -> list[Candidate]: ...


@dataclass(frozen=True)
class VersionPlan:
    """New versions for one run.

    Attributes:
        versions: Package name → new version.
        path_versions: Package directory → new version, for the versions
                       record file.
    """

    versions: VersionsMap
    path_versions: VersionsMap


class WorkspaceReleaser:
    """Propagates releases through a workspace's dependency graph.

    Args:
        provider: Workspace layout and manifest rules.
        version_policy: Chooses each package's new version. Defaults to the
                        candidate's version, or a patch bump for packages
                        only released because a dependency was.
        merge: Optional step folding all candidates into one.
        mirror: Optional docs/examples mirror run on the final candidates.
        manifest_path: Where the versions record is written.
        logger: structlog logger; defaults to this module's.
    """

    def __init__(
        self,
        provider: GraphProvider,
        *,
        version_policy: VersionPolicy | None = None,
        merge: MergeStep | None = None,
        mirror: MirrorStep | None = None,
        manifest_path: str = DEFAULT_MANIFEST_PATH,
        logger: Logger | None = None,
    ) -> None:
        self.provider = provider
        self.version_policy = version_policy or PatchBumpPolicy()
        self.merge = merge
        self.mirror = mirror
        self.manifest_path = manifest_path
        self.logger = logger or get_logger(__name__)

    def run(self, candidates: list[Candidate]) -> list[Candidate]:
        """Return the release candidates after version propagation.

        Out-of-scope candidates are returned untouched, ahead of the
        processed ones. Candidates without a version are dropped.
        """
        self.logger.info("workspace_run_started", candidates=len(candidates))

        in_scope, out_of_scope = self.partition(candidates)
        self.logger.info("in_scope_candidates_found", count=len(in_scope))
        if not in_scope:
            return out_of_scope

        packages, candidates_by_package = self.provider.build_packages(in_scope)
        self.logger.info("dependency_graph_building", packages=len(packages))
        graph = self.provider.build_graph(packages)

        names = dependents_closure(graph, candidates_by_package)
        ordered = graph_order(graph, names)
        self.logger.info("packages_updating", count=len(ordered))

        plan = self.build_updated_versions(ordered, candidates_by_package)
        new_candidates = self.build_candidates(
            ordered, candidates_by_package, plan.versions
        )

        # Candidates that don't belong to any package (e.g. a virtual
        # workspace root) are carried along unchanged.
        matched = {id(candidate) for candidate in candidates_by_package.values()}
        for candidate in in_scope:
            if id(candidate) not in matched:
                self.logger.info("candidate_without_package", path=candidate.path)
                new_candidates.append(candidate)

        if self.merge is not None:
            self.logger.info("candidates_merging", count=len(new_candidates))
            new_candidates = self.merge(new_candidates)

        new_candidates[0].updates.append(
            Update(
                path=self.manifest_path,
                create_if_missing=True,
                updater=VersionsManifest(plan.path_versions),
            )
        )

        self.logger.info("candidates_post_processing", count=len(new_candidates))
        new_candidates = self.provider.post_process_candidates(
            new_candidates, plan.versions
        )
        if self.mirror is not None:
            self.logger.info("docs_and_examples_updating")
            new_candidates = self.mirror.sync(new_candidates, packages)

        for candidate in new_candidates:
            candidate.updates = merge_updates(candidate.updates)

        return [*out_of_scope, *new_candidates]

    def partition(
        self, candidates: list[Candidate]
    ) -> tuple[list[Candidate], list[Candidate]]:
        """Split candidates into (in scope, out of scope).

        Candidates without a version can't be released and are dropped.
        """
        in_scope: list[Candidate] = []
        out_of_scope: list[Candidate] = []
        for candidate in candidates:
            if not candidate.version:
                self.logger.warning("candidate_missing_version", path=candidate.path)
                continue
            if self.provider.in_scope(candidate):
                in_scope.append(candidate)
            else:
                out_of_scope.append(candidate)
        return in_scope, out_of_scope

    def build_updated_versions(
        self, ordered: list[Package], candidates_by_package: dict[str, Candidate]
    ) -> VersionPlan:
        """Compute the new version of every package being released.

        Both maps are filled in the same pass so they can't disagree, then
        frozen: updaters receive read-only views.
        """
        versions: dict[str, str] = {}
        path_versions: dict[str, str] = {}
        for package in ordered:
            candidate = candidates_by_package.get(package.name)
            version = self.version_policy.new_version(package, candidate)
            self.logger.debug(
                "version_computed",
                package=package.name,
                old=package.version,
                new=version,
            )
            versions[package.name] = version
            path_versions[package.path] = version
        return VersionPlan(
            versions=MappingProxyType(versions),
            path_versions=MappingProxyType(path_versions),
        )

    def build_candidates(
        self,
        ordered: list[Package],
        candidates_by_package: dict[str, Candidate],
        versions: VersionsMap,
    ) -> list[Candidate]:
        """Update or create one candidate per package, in graph order.

        Several packages can share a candidate path; each path is processed
        once.
        """
        new_candidates: list[Candidate] = []
        seen_paths: set[str] = set()
        for package in ordered:
            existing = candidates_by_package.get(package.name)
            if existing is not None:
                self.logger.info(
                    "candidate_updating", package=package.name, path=existing.path
                )
                if existing.path in seen_paths:
                    self.logger.info("candidate_already_updated", path=existing.path)
                    continue
                candidate = self.provider.update_candidate(existing, package, versions)
            else:
                self.logger.info("candidate_creating", package=package.name)
                candidate = self.provider.new_candidate(package, versions)
                if candidate.path in seen_paths:
                    self.logger.info("candidate_already_created", path=candidate.path)
                    continue
            seen_paths.add(candidate.path)
            new_candidates.append(candidate)
        return new_candidates
