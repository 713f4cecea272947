"""Sync options and the explicit merge that replaces ad-hoc dict spreading.

Precedence for every field: explicit argument > stored config > built-in
default.  Keys may be given in camelCase (as written by app code) or
snake_case (as written in YAML); anything else is ignored.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from .errors import ConfigurationError
from .models import InstallMode

LOGGER = logging.getLogger(__name__)

DEFAULT_DELAY_IN_HOURS = 24
DEFAULT_MAX_RETRY_ATTEMPTS = 1


@dataclass(frozen=True)
class RollbackRetryOptions:
    """Bounded retry of a previously rolled-back update.

    Values are stored as given; :mod:`otasync.rollback_policy` validates them
    at decision time so a malformed policy degrades to "ignore the update"
    instead of failing the sync.
    """

    delay_in_hours: Any = DEFAULT_DELAY_IN_HOURS
    max_retry_attempts: Any = DEFAULT_MAX_RETRY_ATTEMPTS

    @classmethod
    def from_value(cls, value: Any) -> RollbackRetryOptions | None:
        if value is None or value is False:
            return None
        if isinstance(value, RollbackRetryOptions):
            return value
        if not isinstance(value, Mapping):
            return cls()
        known = _normalize_keys(value, cls)
        return cls(**known)


@dataclass(frozen=True)
class UpdateDialogOptions:
    append_release_description: bool = False
    description_prefix: str = " Description: "
    mandatory_continue_button_label: str = "Continue"
    mandatory_update_message: str = "An update is available that must be installed."
    optional_ignore_button_label: str = "Ignore"
    optional_install_button_label: str = "Install"
    optional_update_message: str = "An update is available. Would you like to install it?"
    title: str = "Update available"

    @classmethod
    def from_value(cls, value: Any) -> UpdateDialogOptions | None:
        """Any truthy non-mapping value selects the default dialog."""
        if not value:
            return None
        if isinstance(value, UpdateDialogOptions):
            return value
        if not isinstance(value, Mapping):
            return cls()
        return cls(**_normalize_keys(value, cls))


@dataclass(frozen=True)
class SyncOptions:
    deployment_key: str | None = None
    ignore_failed_updates: bool = True
    rollback_retry_options: RollbackRetryOptions | None = None
    install_mode: InstallMode = InstallMode.ON_NEXT_RESTART
    mandatory_install_mode: InstallMode = InstallMode.IMMEDIATE
    minimum_background_duration: int = 0
    update_dialog: UpdateDialogOptions | None = None

    def __post_init__(self) -> None:
        for name in ("install_mode", "mandatory_install_mode"):
            raw = getattr(self, name)
            try:
                # "ON_NEXT_RESTART" and "on_next_restart" are both accepted
                object.__setattr__(self, name, InstallMode(str(raw).strip().lower()))
            except ValueError:
                raise ConfigurationError(f"Unknown {name}: {raw!r}") from None
        duration = self.minimum_background_duration
        if not isinstance(duration, (int, float)) or isinstance(duration, bool) or duration < 0:
            raise ConfigurationError(
                f"minimum_background_duration must be a non-negative number, got {duration!r}"
            )
        object.__setattr__(
            self, "rollback_retry_options", RollbackRetryOptions.from_value(self.rollback_retry_options)
        )
        object.__setattr__(self, "update_dialog", UpdateDialogOptions.from_value(self.update_dialog))
        object.__setattr__(self, "ignore_failed_updates", bool(self.ignore_failed_updates))


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _normalize_keys(raw: Mapping[str, Any], cls: type) -> dict[str, Any]:
    allowed = {f.name for f in fields(cls)}
    out: dict[str, Any] = {}
    for key, value in raw.items():
        name = _snake(str(key))
        if name in allowed:
            out[name] = value
        else:
            LOGGER.debug("Ignoring unknown %s option %r", cls.__name__, key)
    return out


def merge_sync_options(
    explicit: Mapping[str, Any] | SyncOptions | None = None,
    stored: Mapping[str, Any] | SyncOptions | None = None,
) -> SyncOptions:
    """Build :class:`SyncOptions` from layered sources.

    Nested option groups (``updateDialog``, ``rollbackRetryOptions``) are
    replaced as a whole by the higher layer rather than merged key by key;
    each group is merged over its own built-in defaults.
    """
    merged: dict[str, Any] = {}
    for layer in (stored, explicit):
        if layer is None:
            continue
        if isinstance(layer, SyncOptions):
            merged.update({f.name: getattr(layer, f.name) for f in fields(SyncOptions)})
        else:
            merged.update(_normalize_keys(layer, SyncOptions))
    return SyncOptions(**merged)

