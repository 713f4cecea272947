"""Semantic-version release selection over a release history.

Pure functions: no I/O and no state.  Ordering follows SemVer 2.0.0
precedence (numeric identifiers compare numerically, alphanumeric ones
lexically, and a pre-release sorts before the release of the same core
version), as implemented by :mod:`semver`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import semver

from .errors import NoLatestReleaseError
from .models import ReleaseEntry, ReleaseHistory

__all__ = [
    "check_is_mandatory",
    "compare_versions",
    "find_latest_release",
    "parse_release_history",
    "parse_version",
    "should_rollback",
]


def parse_version(version: str) -> semver.Version:
    """Parse *version*, raising ``ValueError`` for anything not SemVer.

    A missing minor or patch component counts as zero, so binary versions
    such as ``"1.0"`` compare as ``1.0.0``.  Release-history keys are held to
    the strict grammar by :func:`parse_release_history`.
    """
    return semver.Version.parse(str(version).strip(), optional_minor_and_patch=True)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as *a* sorts before, equal to, or after *b*."""
    return parse_version(a).compare(parse_version(b))


def parse_release_history(raw: Mapping[str, Any]) -> ReleaseHistory:
    """Build a :data:`ReleaseHistory` from its JSON/YAML shape."""
    if not isinstance(raw, Mapping):
        raise ValueError("Release history must be a mapping of version -> release")
    history: ReleaseHistory = {}
    for version, entry in raw.items():
        version = str(version)
        if not semver.Version.is_valid(version):
            raise ValueError(f"Release history key {version!r} is not a semantic version")
        if isinstance(entry, ReleaseEntry):
            history[version] = entry
        elif isinstance(entry, Mapping):
            history[version] = ReleaseEntry.from_dict(dict(entry))
        else:
            raise ValueError(f"Release {version!r} must be a mapping, got {type(entry).__name__}")
    return history


def _enabled_newest_first(history: ReleaseHistory) -> list[tuple[semver.Version, str, ReleaseEntry]]:
    enabled = [
        (parse_version(version), version, entry)
        for version, entry in history.items()
        if entry.enabled
    ]
    enabled.sort(key=lambda item: item[0], reverse=True)
    return enabled


def find_latest_release(history: ReleaseHistory) -> tuple[str, ReleaseEntry]:
    """Return ``(version, entry)`` of the newest enabled release.

    Disabled releases never win, even when nominally newer.  Raises
    :class:`~otasync.errors.NoLatestReleaseError` when nothing is enabled.
    """
    ordered = _enabled_newest_first(history)
    if not ordered:
        raise NoLatestReleaseError()
    _, version, entry = ordered[0]
    return version, entry


def check_is_mandatory(runtime_version: str, history: ReleaseHistory) -> bool:
    """True iff the newest enabled *mandatory* release is newer than *runtime_version*."""
    mandatory = [item for item in _enabled_newest_first(history) if item[2].mandatory]
    if not mandatory:
        return False
    latest_mandatory = mandatory[0][0]
    return latest_mandatory > parse_version(runtime_version)


def should_rollback(runtime_version: str, latest_version: str) -> bool:
    """True iff *latest_version* sorts strictly before *runtime_version*.

    That is the case where the running release has been withdrawn and the
    newest enabled release is an older one.
    """
    return parse_version(latest_version) < parse_version(runtime_version)
