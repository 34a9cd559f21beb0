"""Generic updaters and update composition.

Several rules may want to edit the same file in one release (the version
bump of a package manifest, then path stripping when that manifest is
mirrored, ...). CompositeUpdater chains them, and merge_updates folds every
update for a path into a single one before the candidate is handed off.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping

from .errors import ChainEncodingError
from .logging import NULL_LOGGER, Logger
from .models import Update, Updater


class RawContent(Updater):
    """Replace the file with fixed content, ignoring what was there."""

    def __init__(self, content: str, encoding: str | None = None) -> None:
        self.content = content
        self.encoding = encoding

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        return self.content


class RemoveFile(Updater):
    """Delete the file."""

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        return None


class CompositeUpdater(Updater):
    """Chain updaters, feeding each one's output into the next.

    Only the last updater may produce base64 content: everything else
    expects text input.

    Raises:
        ChainEncodingError: If a base64 updater is followed by another one.
    """

    def __init__(self, *updaters: Updater) -> None:
        for updater in updaters[:-1]:
            if updater.encoding == "base64":
                raise ChainEncodingError(
                    "Cannot chain updaters after an updater that returns base64 content"
                )
        self.updaters = list(updaters)
        self.encoding = updaters[-1].encoding if updaters else None

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        logger = logger or NULL_LOGGER
        new_content = content
        for updater in self.updaters:
            # An empty result (e.g. after RemoveFile) is passed on as "" so
            # every updater in the chain still runs.
            new_content = updater.update_content(
                new_content if new_content is not None else "", logger
            )
        return new_content or ""


class VersionsManifest(Updater):
    """Write the repo-wide record of package path → current version.

    The file is rendered from scratch on every run; previous content is
    discarded.
    """

    def __init__(self, versions_by_path: Mapping[str, str]) -> None:
        self.versions_by_path = versions_by_path

    def update_content(
        self, content: str | None, logger: Logger | None = None
    ) -> str | None:
        versions = dict(self.versions_by_path)
        return json.dumps(versions, indent=2, sort_keys=True) + "\n"


def merge_updates(updates: Iterable[Update]) -> list[Update]:
    """Fold updates that target the same path into one update per path.

    Updaters for a path are chained in the order they were given. The
    create_if_missing flag comes from the first update seen for each path,
    cached contents from the first update carrying any. Paths keep their
    first-seen order.

    Example:
        [A(x), B(y), C(x)] → [Composite(A, C)(x), B(y)]
    """
    by_path: dict[str, list[Update]] = {}
    for update in updates:
        by_path.setdefault(update.path, []).append(update)

    merged: list[Update] = []
    for path, group in by_path.items():
        if len(group) == 1:
            merged.append(group[0])
            continue
        first = group[0]
        merged.append(
            Update(
                path=path,
                create_if_missing=first.create_if_missing,
                updater=CompositeUpdater(*(u.updater for u in group)),
                cached_file_contents=next(
                    (u.cached_file_contents for u in group if u.cached_file_contents),
                    None,
                ),
            )
        )
    return merged
