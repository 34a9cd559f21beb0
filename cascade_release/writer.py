"""Apply release candidates to a checkout.

Writing happens in two passes: every update is rendered first, then the
results are written. An updater failing in the first pass leaves the
checkout untouched.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path

from .logging import Logger, get_logger
from .models import Candidate, Update
from .repository import Repository


@dataclass(frozen=True)
class RenderedUpdate:
    """New content of one file. ``content`` None removes the file."""

    path: str
    content: str | None
    encoding: str | None = None


def write_candidates(
    root: Path,
    candidates: list[Candidate],
    repository: Repository,
    ref: str | None = None,
    logger: Logger | None = None,
) -> list[str]:
    """Run every candidate's updates and write the results under ``root``.

    Args:
        root: Checkout to write into.
        candidates: Release candidates, applied in order.
        repository: Source of current file contents for updates that carry
                    no cached copy.
        ref: Git ref those contents are read at; None for the working tree.
        logger: structlog logger; defaults to this module's.

    Returns:
        Paths written or removed, in the order they were touched.
    """
    logger = logger or get_logger(__name__)
    rendered: list[RenderedUpdate] = []
    for candidate in candidates:
        for update in candidate.updates:
            result = render_update(update, repository, ref, logger)
            if result is not None:
                rendered.append(result)

    for result in rendered:
        write_rendered(Path(root), result, logger)
    return [result.path for result in rendered]


def render_update(
    update: Update, repository: Repository, ref: str | None, logger: Logger
) -> RenderedUpdate | None:
    """Compute the new content of one file. Returns None when skipped."""
    if update.cached_file_contents is not None:
        current = update.cached_file_contents
    else:
        try:
            current = repository.get_file_contents(update.path, ref)
        except FileNotFoundError:
            if not update.create_if_missing:
                logger.warning("file_missing_skipped", path=update.path)
                return None
            current = None

    content = None
    if current is not None:
        content = current.text()
        if content is None:
            content = current.parsed_content

    return RenderedUpdate(
        path=update.path,
        content=update.updater.update_content(content, logger),
        encoding=update.updater.encoding,
    )


def write_rendered(root: Path, rendered: RenderedUpdate, logger: Logger) -> None:
    file = root / rendered.path

    if rendered.content is None:
        if file.exists():
            file.unlink()
            logger.info("file_removed", path=rendered.path)
        return

    file.parent.mkdir(parents=True, exist_ok=True)
    if rendered.encoding == "base64":
        file.write_bytes(base64.b64decode(rendered.content))
    else:
        file.write_bytes(rendered.content.encode("utf-8"))
    logger.info("file_written", path=rendered.path)
