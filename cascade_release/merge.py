"""Fold all release candidates into a single root release."""

from __future__ import annotations

from .models import ROOT_PROJECT_PATH, Candidate
from .updaters import merge_updates


def merge_candidates(candidates: list[Candidate]) -> list[Candidate]:
    """Merge every candidate into one at the repository root.

    The version comes from the root candidate when there is one, else from
    the first candidate. Updates keep their order, and updates to the same
    file are chained.

    Example:
        [crates/a (1.1.0), crates/b (0.3.1)] → [. (1.1.0)]
    """
    if not candidates:
        return []
    root = next((c for c in candidates if c.path == ROOT_PROJECT_PATH), candidates[0])
    updates = [update for candidate in candidates for update in candidate.updates]
    return [
        Candidate(
            path=ROOT_PROJECT_PATH,
            version=root.version,
            release_type=root.release_type,
            updates=merge_updates(updates),
        )
    ]
