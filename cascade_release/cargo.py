"""Cargo manifest updaters.

Each updater rewrites a Cargo.toml (or Cargo.lock) through replace_toml_value,
so only the values being bumped change and the rest of the file keeps its
formatting and comments.

Dependencies are looked up in every dependency section, both at the top
level and under platform-specific tables:

    [dependencies]
    [dev-dependencies]
    [build-dependencies]
    [target.'cfg(unix)'.dependencies]
    ...
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

import tomlkit

from .errors import NotAPackageManifestError
from .logging import NULL_LOGGER, Logger
from .models import Updater, VersionsMap
from .toml_edit import replace_toml_value

DEP_KINDS = ("dependencies", "dev-dependencies", "build-dependencies")


def parse_cargo_manifest(content: str) -> dict[str, Any]:
    """Parse a Cargo manifest into plain Python values."""
    return tomlkit.parse(content).unwrap()


def dependency_tables(
    manifest: dict[str, Any],
) -> Iterator[tuple[list[str], str, dict[str, Any]]]:
    """Yield (key path, dependency kind, table) for every dependency section.

    Top-level sections come first, then each ``[target.<cfg>]`` in file
    order.
    """
    for kind in DEP_KINDS:
        deps = manifest.get(kind)
        if isinstance(deps, dict):
            yield [kind], kind, deps
    for target_name, target in manifest.get("target", {}).items():
        if not isinstance(target, dict):
            continue
        for kind in DEP_KINDS:
            deps = target.get(kind)
            if isinstance(deps, dict):
                yield ["target", target_name, kind], kind, deps


def inherits_version(package: dict[str, Any]) -> bool:
    """True for ``version.workspace = true`` (dotted or inline table)."""
    version = package.get("version")
    return isinstance(version, dict) and bool(version.get("workspace"))


def update_package_version(
    content: str, version: str, logger: Logger | None = None
) -> str:
    """Set [package].version.

    A version inherited from the workspace is left alone: it's bumped in the
    root manifest's [workspace.package] instead.

    Raises:
        NotAPackageManifestError: If the manifest has no [package] table,
            e.g. a workspace root manifest.
    """
    logger = logger or NULL_LOGGER
    manifest = parse_cargo_manifest(content)
    _require_package(manifest, logger)
    if inherits_version(manifest["package"]):
        logger.info(
            "package_version_inherited",
            package=manifest["package"].get("name"),
            version=version,
        )
        return content
    return replace_toml_value(content, ["package", "version"], version)


def update_dependency_versions(
    content: str, versions: VersionsMap, logger: Logger | None = None
) -> str:
    """Bump the version of every internal path dependency in ``versions``.

    A dependency is only touched when it's declared as a table with both a
    ``path`` and a ``version``. Bare version strings and path-only tables
    are skipped, since they carry no version to bump.

    Dev-dependencies get an upper bound (``<=1.2.3``) instead of an exact
    pin.

    Example:
        [dependencies]
        foo = { path = "../foo", version = "1.0.0" }
        → foo = { path = "../foo", version = "2.0.0" }
    """
    logger = logger or NULL_LOGGER
    payload = content
    manifest = parse_cargo_manifest(content)

    for name, version in versions.items():
        for prefix, kind, deps in dependency_tables(manifest):
            dep = deps.get(name)
            if dep is None:
                continue
            new_version = f"<={version}" if kind == "dev-dependencies" else version
            payload = _bump_dependency(
                payload, [*prefix, name], dep, new_version, logger
            )

    return payload


def update_workspace_versions(
    content: str,
    version: str | None,
    versions: VersionsMap,
    logger: Logger | None = None,
) -> str:
    """Bump the shared versions declared in a workspace root manifest.

    Sets [workspace.package].version when ``version`` is given, and bumps the
    internal entries of [workspace.dependencies] with the same rules as
    update_dependency_versions (members refer to them with
    ``workspace = true``).
    """
    logger = logger or NULL_LOGGER
    payload = content
    workspace = parse_cargo_manifest(content).get("workspace", {})

    if version is not None:
        logger.info(
            "workspace_version_updated",
            old=workspace.get("package", {}).get("version"),
            new=version,
        )
        payload = replace_toml_value(
            payload, ["workspace", "package", "version"], version
        )

    deps = workspace.get("dependencies", {})
    for name, new_version in versions.items():
        dep = deps.get(name)
        if dep is not None:
            payload = _bump_dependency(
                payload, ["workspace", "dependencies", name], dep, new_version, logger
            )

    return payload


def remove_path_dependencies(
    content: str, package_names: Iterable[str], logger: Logger | None = None
) -> str:
    """Drop the ``path`` key of every dependency on one of ``package_names``.

    The rest of the dependency entry (version, features, ...) is kept, so a
    manifest published outside the workspace resolves the package from the
    registry instead.

    Raises:
        NotAPackageManifestError: If the manifest has no [package] table.
    """
    logger = logger or NULL_LOGGER
    payload = content
    manifest = parse_cargo_manifest(content)
    _require_package(manifest, logger)

    for name in package_names:
        for prefix, _kind, deps in dependency_tables(manifest):
            dep = deps.get(name)
            if dep is None:
                continue
            if not isinstance(dep, dict) or "path" not in dep:
                where = ".".join([*prefix, name])
                logger.info("dependency_skipped", dependency=where, reason="no path set")
                continue
            payload = replace_toml_value(payload, [*prefix, name, "path"], None)

    return payload


def _bump_dependency(
    payload: str, path: list[str], dep: Any, new_version: str, logger: Logger
) -> str:
    where = ".".join(path)
    if not isinstance(dep, dict) or "path" not in dep:
        logger.info("dependency_skipped", dependency=where, reason="no path set")
        return payload
    if "version" not in dep:
        logger.info("dependency_skipped", dependency=where, reason="no version set")
        return payload

    logger.info(
        "dependency_updated",
        dependency=where,
        old=dep["version"],
        new=new_version,
    )
    return replace_toml_value(payload, [*path, "version"], new_version)


def _require_package(manifest: dict[str, Any], logger: Logger) -> None:
    if "package" not in manifest:
        msg = "is not a package manifest (might be a cargo workspace)"
        logger.error("not_a_package_manifest", reason=msg)
        raise NotAPackageManifestError(msg)


class CargoToml(Updater):
    """Bump a package manifest: its own version, then its internal deps."""

    def __init__(self, version: str, versions: VersionsMap) -> None:
        self.version = version
        self.versions = versions

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        payload = update_package_version(content or "", self.version, logger)
        return update_dependency_versions(payload, self.versions, logger)


class CargoTomlRemovePaths(Updater):
    """Strip intra-workspace ``path`` keys from a package manifest."""

    def __init__(self, package_names: Iterable[str]) -> None:
        self.package_names = list(package_names)

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        return remove_path_dependencies(content or "", self.package_names, logger)


class CargoWorkspaceMembers(Updater):
    """Replace [workspace].members with a fixed list."""

    def __init__(self, members: list[str]) -> None:
        self.members = members

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        return replace_toml_value(content or "", ["workspace", "members"], self.members)


class CargoWorkspaceToml(Updater):
    """Bump the workspace root manifest's shared versions.

    Args:
        version: New [workspace.package].version, or None to keep it.
        versions: New versions for [workspace.dependencies] entries.
    """

    def __init__(self, version: str | None, versions: VersionsMap) -> None:
        self.version = version
        self.versions = versions

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        return update_workspace_versions(
            content or "", self.version, self.versions, logger
        )


class CargoLock(Updater):
    """Bump the locked version of workspace packages in Cargo.lock.

    Only entries without a ``source`` are touched: those are the local
    packages. Registry packages may share a name with a workspace package.
    """

    def __init__(self, versions: VersionsMap) -> None:
        self.versions = versions

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        logger = logger or NULL_LOGGER
        payload = content or ""
        lockfile = parse_cargo_manifest(payload)

        for index, entry in enumerate(lockfile.get("package", [])):
            name = entry.get("name")
            if name not in self.versions or "source" in entry:
                continue
            logger.info(
                "lockfile_updated",
                package=name,
                old=entry.get("version"),
                new=self.versions[name],
            )
            payload = replace_toml_value(
                payload, ["package", index, "version"], self.versions[name]
            )

        return payload
