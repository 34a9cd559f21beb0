"""Tests for cascade_release.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from cascade_release.config import WorkspaceConfig, load_config
from cascade_release.errors import ConfigError


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "cascade-release.toml")
        assert config == WorkspaceConfig()
        assert config.manifest_path == ".release-manifest.json"
        assert config.merge is False
        assert config.mirror == []

    def test_full_config(self, tmp_path: Path) -> None:
        path = tmp_path / "cascade-release.toml"
        path.write_text(
            """\
manifest-path = "versions.json"
merge = true

[[mirror]]
source = "examples/latest"
target = "examples/release"
exceptions = ["Cargo.toml", "Justfile"]
rewrite-manifests = true
"""
        )
        config = load_config(path)
        assert config.manifest_path == "versions.json"
        assert config.merge is True
        [mirror] = config.mirror
        assert mirror.source == "examples/latest"
        assert mirror.exceptions == ["Cargo.toml", "Justfile"]
        assert mirror.rewrite_manifests is True

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "cascade-release.toml"
        path.write_text("merge = \n")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_config(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "cascade-release.toml"
        path.write_text("marge = true\n")
        with pytest.raises(ConfigError, match="marge"):
            load_config(path)

    def test_missing_field(self, tmp_path: Path) -> None:
        path = tmp_path / "cascade-release.toml"
        path.write_text('[[mirror]]\nsource = "a"\n')
        with pytest.raises(ConfigError, match="target"):
            load_config(path)
