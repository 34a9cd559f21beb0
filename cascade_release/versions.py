"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0").
Also holds the default policy deciding each package's release version.
"""

from __future__ import annotations

import semver

from .models import Candidate, Package


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Full semver strings keep their prerelease/build parts.
    """
    if semver.Version.is_valid(version_str):
        return semver.Version.parse(version_str)
    parts = version_str.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def bump_patch(version_str: str) -> str:
    """Increment the patch version and return as a string.

    Examples:
        "1.2.3" → "1.2.4"
        "1.0" → "1.0.1"
        "2" → "2.0.1"
    """
    return str(parse_version(version_str).bump_patch())


class PatchBumpPolicy:
    """Release version for each package in the propagation closure.

    Packages with a candidate release at the version proposed by that
    candidate. Packages only pulled in because one of their dependencies
    changed get a patch bump.
    """

    def new_version(self, package: Package, candidate: Candidate | None) -> str:
        if candidate is not None and candidate.version:
            return candidate.version
        return bump_patch(package.version)
