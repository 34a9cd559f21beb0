"""Repository configuration (``cascade-release.toml``).

Example:
    manifest-path = ".release-manifest.json"
    merge = false

    [[mirror]]
    source = "examples/latest"
    target = "examples/release"
    exceptions = ["Cargo.toml", "Justfile"]
    rewrite-manifests = true
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError, TOMLKitError
from .mirror import MirrorConfig
from .workspace import DEFAULT_MANIFEST_PATH

CONFIG_FILE = "cascade-release.toml"


class WorkspaceConfig(BaseModel):
    """Settings for one repository.

    Attributes:
        manifest_path: Where the package path → version record is written.
        merge: Fold all releases into a single root release.
        mirror: Directories rebuilt from their latest copy on each release.
                Empty by default.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    manifest_path: str = Field(default=DEFAULT_MANIFEST_PATH, alias="manifest-path")
    merge: bool = False
    mirror: list[MirrorConfig] = Field(default_factory=list)


def load_config(path: Path) -> WorkspaceConfig:
    """Load the config file, or the defaults when it doesn't exist.

    Raises:
        ConfigError: If the file isn't valid TOML or has unknown or
            mistyped settings.
    """
    path = Path(path)
    if not path.is_file():
        return WorkspaceConfig()

    try:
        data = tomlkit.parse(path.read_text()).unwrap()
    except TOMLKitError as e:
        raise ConfigError(f"{path}: invalid TOML: {e}") from e

    try:
        return WorkspaceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"{path}: {e}") from e
