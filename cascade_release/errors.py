"""Error types raised while planning a release.

Parse failures come straight from tomlkit and are re-exported here so callers
have a single place to import from. Everything else derives from
CascadeError.
"""

from __future__ import annotations

from tomlkit.exceptions import ParseError, TOMLKitError

__all__ = [
    "CascadeError",
    "ChainEncodingError",
    "ConfigError",
    "CorruptionError",
    "DependencyCycleError",
    "NotAPackageManifestError",
    "NotATaggedValueError",
    "ParseError",
    "PathNotFoundError",
    "TOMLKitError",
]


class CascadeError(Exception):
    """Base class for errors raised by cascade-release."""


class PathNotFoundError(CascadeError):
    """A key path does not lead to a value in the parsed document."""

    def __init__(self, path: list[str | int]) -> None:
        self.path = path
        super().__init__(f"path not found in document: {format_path(path)}")


class NotATaggedValueError(CascadeError):
    """A key path leads to a header-defined table instead of a value."""

    def __init__(self, path: list[str | int]) -> None:
        self.path = path
        super().__init__(f"value at path {format_path(path)} is not tagged")


class CorruptionError(CascadeError):
    """An edit produced text that no longer parses as TOML."""


class NotAPackageManifestError(CascadeError):
    """A package updater was given a manifest without a [package] table."""


class ChainEncodingError(CascadeError):
    """A text updater was chained after one that produces binary content."""


class DependencyCycleError(CascadeError, RuntimeError):
    """The intra-workspace dependency graph contains a cycle."""


class ConfigError(CascadeError):
    """The configuration file could not be read or validated."""


def format_path(path: list[str | int]) -> str:
    """Render a key path the way it would be written in TOML.

    Example:
        format_path(["target", "cfg(unix)", "dependencies", 0])
        → 'target."cfg(unix)".dependencies[0]'
    """
    rendered = ""
    for key in path:
        if isinstance(key, int):
            rendered += f"[{key}]"
            continue
        part = key if key.replace("-", "").replace("_", "").isalnum() else f'"{key}"'
        rendered += f".{part}" if rendered else part
    return rendered
