from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .acquisition import HttpRequester, validate_server_url
from .dialog import ConfirmationPresenter
from .lifecycle import LifecycleSignals
from .models import CheckFrequency
from .native import NativeBridge
from .options import SyncOptions, merge_sync_options
from .session import SyncSession

LOGGER = logging.getLogger(__name__)

ENV_SERVER_URL = "OTASYNC_SERVER_URL"
ENV_DEPLOYMENT_KEY = "OTASYNC_DEPLOYMENT_KEY"
ENV_BUNDLE_HOST = "OTASYNC_BUNDLE_HOST"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

DEFAULT_CONFIG: dict[str, Any] = {
    "server_url": "",
    "platform": "android",
    # None: derived from the platform (only iOS installers diff against the binary)
    "attach_binary_hash": None,
    "bundle_host": None,
    "check_frequency": CheckFrequency.ON_APP_START.value,
    "log_level": "INFO",
    "sync": {
        "deployment_key": None,
        "ignore_failed_updates": True,
        "rollback_retry_options": None,
        "install_mode": "on_next_restart",
        "mandatory_install_mode": "immediate",
        "minimum_background_duration": 0,
        "update_dialog": None,
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a YAML object at the top level.")
        return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    server_url = os.environ.get(ENV_SERVER_URL, "").strip()
    if server_url:
        overrides["server_url"] = server_url
    bundle_host = os.environ.get(ENV_BUNDLE_HOST, "").strip()
    if bundle_host:
        overrides["bundle_host"] = bundle_host
    deployment_key = os.environ.get(ENV_DEPLOYMENT_KEY, "").strip()
    if deployment_key:
        overrides["sync"] = {"deployment_key": deployment_key}
    return overrides


@dataclass(slots=True)
class ClientConfig:
    server_url: str = ""
    platform: str = "android"
    attach_binary_hash: bool = False
    bundle_host: str | None = None
    check_frequency: CheckFrequency = CheckFrequency.ON_APP_START
    log_level: str = "INFO"
    sync: SyncOptions = field(default_factory=SyncOptions)
    config_path: Path | None = None

    def __post_init__(self) -> None:
        if self.server_url:
            validate_server_url(self.server_url)
        try:
            self.check_frequency = CheckFrequency(str(self.check_frequency).strip().lower())
        except ValueError:
            raise ValueError(
                f"check_frequency must be one of {[m.value for m in CheckFrequency]}, "
                f"got {self.check_frequency!r}"
            ) from None
        level = str(self.log_level).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {self.log_level!r}")
        self.log_level = level


def load_config(config_path: Path | None = None) -> ClientConfig:
    """Load the client configuration.

    Values come from ``DEFAULT_CONFIG``, then the YAML file at
    *config_path* (missing file means no overrides), then ``OTASYNC_*``
    environment variables.
    """
    path = config_path.resolve() if config_path is not None else None
    override = _read_config_file(path) if path is not None else {}
    merged = _deep_merge(DEFAULT_CONFIG, override)
    merged = _deep_merge(merged, _env_overrides())

    sync_raw = merged.get("sync") or {}
    if not isinstance(sync_raw, dict):
        raise ValueError("sync must be a mapping of sync options.")

    platform = str(merged.get("platform") or "android").strip().lower()
    attach_binary_hash_raw = merged.get("attach_binary_hash")
    attach_binary_hash = (
        platform == "ios" if attach_binary_hash_raw is None else bool(attach_binary_hash_raw)
    )

    client_config = ClientConfig(
        server_url=str(merged.get("server_url") or "").rstrip("/"),
        platform=platform,
        attach_binary_hash=attach_binary_hash,
        bundle_host=str(merged["bundle_host"]) if merged.get("bundle_host") else None,
        check_frequency=merged.get("check_frequency") or CheckFrequency.ON_APP_START,
        log_level=str(merged.get("log_level") or "INFO"),
        sync=merge_sync_options(sync_raw),
        config_path=path,
    )
    LOGGER.info(
        "Loaded config=%s server_url=%s platform=%s check_frequency=%s",
        client_config.config_path,
        client_config.server_url or "<native>",
        client_config.platform,
        client_config.check_frequency.value,
    )
    return client_config


def create_session(
    config: ClientConfig,
    native: NativeBridge,
    *,
    lifecycle: LifecycleSignals | None = None,
    presenter: ConfirmationPresenter | None = None,
    requester: HttpRequester | None = None,
) -> SyncSession:
    """Build a :class:`SyncSession` wired with *config*."""
    session = SyncSession(
        native,
        server_url=config.server_url,
        attach_binary_hash=config.attach_binary_hash,
        lifecycle=lifecycle,
        presenter=presenter,
        requester=requester,
        sync_defaults=config.sync,
    )
    session.set_bundle_host(config.bundle_host)
    return session
