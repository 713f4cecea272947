"""Data models shared by the update client.

Native-side and wire-side dictionaries use camelCase keys; the dataclasses
use snake_case attributes.  ``from_dict`` tolerates missing keys and
``to_dict`` always emits the full shape.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .packages import PackageCapabilities


class SyncStatus(enum.IntEnum):
    UP_TO_DATE = 0
    UPDATE_INSTALLED = 1
    UPDATE_IGNORED = 2
    UNKNOWN_ERROR = 3
    SYNC_IN_PROGRESS = 4
    CHECKING_FOR_UPDATE = 5
    AWAITING_USER_ACTION = 6
    DOWNLOADING_PACKAGE = 7
    INSTALLING_UPDATE = 8


class InstallMode(enum.StrEnum):
    IMMEDIATE = "immediate"
    ON_NEXT_RESTART = "on_next_restart"
    ON_NEXT_RESUME = "on_next_resume"
    ON_NEXT_SUSPEND = "on_next_suspend"


class UpdateState(enum.StrEnum):
    RUNNING = "running"
    PENDING = "pending"
    LATEST = "latest"


class DeploymentStatus(enum.StrEnum):
    SUCCEEDED = "DeploymentSucceeded"
    FAILED = "DeploymentFailed"


class CheckFrequency(enum.StrEnum):
    ON_APP_START = "on_app_start"
    ON_APP_RESUME = "on_app_resume"
    MANUAL = "manual"


class AppState(enum.StrEnum):
    active = "active"
    background = "background"
    inactive = "inactive"


# ---------------------------------------------------------------------------
# Release history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReleaseEntry:
    enabled: bool
    mandatory: bool
    download_url: str
    package_hash: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "mandatory": self.mandatory,
            "downloadUrl": self.download_url,
            "packageHash": self.package_hash,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReleaseEntry:
        return cls(
            enabled=bool(data.get("enabled", False)),
            mandatory=bool(data.get("mandatory", False)),
            download_url=str(data.get("downloadUrl") or ""),
            package_hash=str(data.get("packageHash") or ""),
            description=str(data.get("description") or ""),
        )


ReleaseHistory = dict[str, ReleaseEntry]


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


@dataclass
class BinaryUpdate:
    """The server has an update, but only for a newer binary (store) version."""

    app_version: str
    update_app_version: bool = True


@dataclass
class RemotePackage:
    deployment_key: str = ""
    description: str = ""
    label: str = ""
    app_version: str = ""
    is_mandatory: bool = False
    package_hash: str = ""
    package_size: int = 0
    download_url: str = ""
    failed_install: bool = False
    capabilities: PackageCapabilities | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deploymentKey": self.deployment_key,
            "description": self.description,
            "label": self.label,
            "appVersion": self.app_version,
            "isMandatory": self.is_mandatory,
            "packageHash": self.package_hash,
            "packageSize": self.package_size,
            "downloadUrl": self.download_url,
            "failedInstall": self.failed_install,
        }

    async def download(self, progress_callback=None) -> LocalPackage:
        """Download this package through the native bridge."""
        if self.capabilities is None:
            raise RuntimeError("Package has no download capability attached")
        return await self.capabilities.download(self, progress_callback)


@dataclass
class LocalPackage:
    app_version: str = ""
    package_hash: str = ""
    label: str = ""
    deployment_key: str = ""
    description: str = ""
    is_mandatory: bool = False
    is_pending: bool = False
    is_first_run: bool = False
    failed_install: bool = False
    package_size: int = 0
    is_debug_only: bool = False
    capabilities: PackageCapabilities | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "appVersion": self.app_version,
            "packageHash": self.package_hash,
            "label": self.label,
            "deploymentKey": self.deployment_key,
            "description": self.description,
            "isMandatory": self.is_mandatory,
            "isPending": self.is_pending,
            "isFirstRun": self.is_first_run,
            "failedInstall": self.failed_install,
            "packageSize": self.package_size,
            "_isDebugOnly": self.is_debug_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalPackage:
        return cls(
            app_version=str(data.get("appVersion") or ""),
            package_hash=str(data.get("packageHash") or ""),
            label=str(data.get("label") or ""),
            deployment_key=str(data.get("deploymentKey") or ""),
            description=str(data.get("description") or ""),
            is_mandatory=bool(data.get("isMandatory", False)),
            is_pending=bool(data.get("isPending", False)),
            is_first_run=bool(data.get("isFirstRun", False)),
            failed_install=bool(data.get("failedInstall", False)),
            package_size=int(data.get("packageSize") or 0),
            is_debug_only=bool(data.get("_isDebugOnly", False)),
        )

    async def install(
        self,
        install_mode: InstallMode = InstallMode.ON_NEXT_RESTART,
        minimum_background_duration: int = 0,
        on_installed=None,
    ) -> None:
        """Install this package through the native bridge."""
        if self.capabilities is None:
            raise RuntimeError("Package has no install capability attached")
        await self.capabilities.install(
            self, install_mode, minimum_background_duration, on_installed
        )


# ---------------------------------------------------------------------------
# Persisted native-side records
# ---------------------------------------------------------------------------


@dataclass
class RollbackInfo:
    time: float
    """Epoch milliseconds of the last rollback."""
    count: int
    package_hash: str

    @classmethod
    def from_dict(cls, data: Any) -> RollbackInfo | None:
        """Return ``None`` when *data* is missing or incomplete."""
        if not isinstance(data, dict):
            return None
        time_ms = data.get("time")
        count = data.get("count")
        package_hash = data.get("packageHash")
        if not time_ms or not count or not package_hash:
            return None
        if not isinstance(time_ms, (int, float)) or not isinstance(count, (int, float)):
            return None
        return cls(time=float(time_ms), count=int(count), package_hash=str(package_hash))

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "count": self.count, "packageHash": self.package_hash}


@dataclass
class ConfigurationInfo:
    """Static configuration reported by the native side."""

    app_version: str
    deployment_key: str = ""
    package_hash: str = ""
    client_unique_id: str = ""
    server_url: str = ""
    ignore_app_version: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigurationInfo:
        return cls(
            app_version=str(data.get("appVersion") or ""),
            deployment_key=str(data.get("deploymentKey") or ""),
            package_hash=str(data.get("packageHash") or ""),
            client_unique_id=str(data.get("clientUniqueId") or ""),
            server_url=str(data.get("serverUrl") or ""),
            ignore_app_version=bool(data.get("ignoreAppVersion", False)),
        )


@dataclass
class StatusReport:
    """Outcome of the previous run, waiting to be delivered to the server.

    A binary-update report carries ``app_version``; a CodePush-update report
    carries ``package`` and ``status``.
    """

    app_version: str = ""
    package: LocalPackage | None = None
    status: DeploymentStatus | None = None
    previous_label_or_app_version: str = ""
    previous_deployment_key: str = ""

    @property
    def is_binary_update(self) -> bool:
        return bool(self.app_version)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "previousLabelOrAppVersion": self.previous_label_or_app_version,
            "previousDeploymentKey": self.previous_deployment_key,
        }
        if self.app_version:
            data["appVersion"] = self.app_version
        if self.package is not None:
            data["package"] = self.package.to_dict()
        if self.status is not None:
            data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusReport:
        package_raw = data.get("package")
        status_raw = data.get("status")
        return cls(
            app_version=str(data.get("appVersion") or ""),
            package=LocalPackage.from_dict(package_raw) if isinstance(package_raw, dict) else None,
            status=DeploymentStatus(status_raw) if status_raw else None,
            previous_label_or_app_version=str(data.get("previousLabelOrAppVersion") or ""),
            previous_deployment_key=str(data.get("previousDeploymentKey") or ""),
        )
