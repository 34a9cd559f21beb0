"""Tests for cascade_release.updaters."""

from __future__ import annotations

import json

import pytest

from cascade_release.errors import ChainEncodingError
from cascade_release.models import FileContents, Update, Updater
from cascade_release.updaters import (
    CompositeUpdater,
    RawContent,
    RemoveFile,
    VersionsManifest,
    merge_updates,
)


class Append(Updater):
    def __init__(self, suffix: str) -> None:
        self.suffix = suffix

    def update_content(self, content: str | None, logger=None) -> str | None:
        return f"{content}{self.suffix}"


class TestSimpleUpdaters:
    def test_raw_content_ignores_input(self) -> None:
        assert RawContent("new").update_content("old") == "new"

    def test_raw_content_encoding(self) -> None:
        assert RawContent("AAEC", encoding="base64").encoding == "base64"
        assert RawContent("text").encoding is None

    def test_remove_file(self) -> None:
        assert RemoveFile().update_content("anything") is None


class TestCompositeUpdater:
    def test_chains_in_order(self) -> None:
        updater = CompositeUpdater(Append("1"), Append("2"))
        assert updater.update_content("x") == "x12"

    def test_removal_passes_empty_string_on(self) -> None:
        updater = CompositeUpdater(RemoveFile(), Append("tail"))
        assert updater.update_content("x") == "tail"

    def test_removal_result_becomes_empty(self) -> None:
        assert CompositeUpdater(Append("x"), RemoveFile()).update_content("a") == ""

    def test_base64_must_be_last(self) -> None:
        with pytest.raises(ChainEncodingError, match="base64"):
            CompositeUpdater(RawContent("AAEC", encoding="base64"), Append("x"))

    def test_encoding_of_last_updater(self) -> None:
        updater = CompositeUpdater(Append("x"), RawContent("AAEC", encoding="base64"))
        assert updater.encoding == "base64"
        assert updater.update_content("") == "AAEC"


class TestVersionsManifest:
    def test_renders_sorted_json(self) -> None:
        updater = VersionsManifest({"crates/b": "0.2.1", "crates/a": "1.1.0"})
        result = updater.update_content('{"stale": "1.0.0"}')
        assert result == '{\n  "crates/a": "1.1.0",\n  "crates/b": "0.2.1"\n}\n'
        assert json.loads(result) == {"crates/a": "1.1.0", "crates/b": "0.2.1"}


class TestMergeUpdates:
    def test_groups_by_path_in_first_seen_order(self) -> None:
        a, b, c = Append("a"), Append("b"), Append("c")
        merged = merge_updates(
            [
                Update(path="x", updater=a),
                Update(path="y", updater=b),
                Update(path="x", updater=c),
            ]
        )
        assert [u.path for u in merged] == ["x", "y"]
        assert isinstance(merged[0].updater, CompositeUpdater)
        assert merged[0].updater.updaters == [a, c]
        assert merged[1].updater is b
        assert merged[0].updater.update_content("") == "ac"

    def test_flags_and_cached_contents(self) -> None:
        cached = FileContents.from_text("cached")
        merged = merge_updates(
            [
                Update(path="x", create_if_missing=True, updater=Append("1")),
                Update(path="x", updater=Append("2"), cached_file_contents=cached),
            ]
        )
        assert len(merged) == 1
        assert merged[0].create_if_missing is True
        assert merged[0].cached_file_contents == cached

    def test_single_updates_untouched(self) -> None:
        update = Update(path="x", updater=Append("1"))
        assert merge_updates([update]) == [update]

    def test_deterministic(self) -> None:
        updates = [Update(path=p, updater=Append(p)) for p in ["b", "a", "b", "c", "a"]]
        first = [u.path for u in merge_updates(updates)]
        second = [u.path for u in merge_updates(updates)]
        assert first == second == ["b", "a", "c"]
