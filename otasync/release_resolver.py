"""Update checker backed by a release history.

Plugs into :class:`~otasync.resolvers.CustomResolver`: given the update-check
request of a running instance it answers with the newest enabled release,
flags it mandatory when a newer mandatory release exists, and forces it
when the instance runs a release that has since been withdrawn.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any

import semver
import yaml

from .models import ReleaseHistory
from .versioning import (
    check_is_mandatory,
    find_latest_release,
    parse_release_history,
    parse_version,
    should_rollback,
)

LOGGER = logging.getLogger(__name__)

HistorySource = Callable[[], "Mapping[str, Any] | Awaitable[Mapping[str, Any]]"]


def load_release_history(path: str | Path) -> ReleaseHistory:
    """Read a release history from a ``.json`` or ``.yaml`` file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}
    return parse_release_history(data)


def _current_version(request: Mapping[str, Any]) -> str:
    """The label of the running bundle when it is a version, else the binary version."""
    label = request.get("label")
    if label and semver.Version.is_valid(str(label)):
        return str(label)
    return str(request.get("app_version") or "")


def build_update_response(request: Mapping[str, Any], history: ReleaseHistory) -> dict[str, Any]:
    """Answer one update-check *request* from *history*."""
    current = _current_version(request)
    latest_version, latest = find_latest_release(history)

    if parse_version(latest_version) == parse_version(current):
        return {"update_info": {"is_available": False}}

    rollback = should_rollback(current, latest_version)
    mandatory = rollback or check_is_mandatory(current, history)
    if rollback:
        LOGGER.info("Release %s withdrawn; rolling back to %s", current, latest_version)

    return {
        "update_info": {
            "is_available": True,
            "is_mandatory": mandatory,
            "label": latest_version,
            "target_binary_range": str(request.get("app_version") or ""),
            "package_hash": latest.package_hash,
            "download_url": latest.download_url,
            "description": latest.description,
        }
    }


class ReleaseHistoryChecker:
    """Async update checker over a release-history source.

    *source* is a callable (sync or async) returning the raw history mapping;
    it is called on every check so the latest history is always used.
    """

    def __init__(self, source: HistorySource) -> None:
        self._source = source

    @classmethod
    def from_file(cls, path: str | Path) -> ReleaseHistoryChecker:
        return cls(lambda: load_release_history(path))

    async def __call__(self, request: dict[str, Any]) -> dict[str, Any]:
        raw = self._source()
        if inspect.isawaitable(raw):
            raw = await raw
        history = parse_release_history(raw)
        return build_update_response(request, history)
