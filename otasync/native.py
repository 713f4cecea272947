"""Contract for the platform side of the update client.

The native collaborator owns everything stateful or platform specific:
persisted bundle metadata, downloading and unpacking archives, swapping the
running bundle, restarting the process, and the key-value store behind
rollback info and pending status reports.  Implementations subclass
:class:`NativeBridge`; tests use an in-memory fake.
"""

from __future__ import annotations

import abc
from collections.abc import Callable
from typing import Any

from .models import (
    ConfigurationInfo,
    InstallMode,
    LocalPackage,
    RemotePackage,
    StatusReport,
    UpdateState,
)

ProgressNotifier = Callable[[int, int], None]
"""``(received_bytes, total_bytes)``"""


class NativeBridge(abc.ABC):
    """Async interface to the platform module."""

    # -- configuration and metadata -----------------------------------------

    @abc.abstractmethod
    async def get_configuration(self) -> ConfigurationInfo: ...

    @abc.abstractmethod
    async def get_update_metadata(self, state: UpdateState) -> LocalPackage | None: ...

    @abc.abstractmethod
    async def is_failed_update(self, package_hash: str) -> bool: ...

    @abc.abstractmethod
    async def is_first_run(self, package_hash: str) -> bool: ...

    # -- rollback bookkeeping -----------------------------------------------

    @abc.abstractmethod
    async def get_latest_rollback_info(self) -> dict[str, Any] | None:
        """Return the raw persisted record; callers validate its shape."""

    @abc.abstractmethod
    async def set_latest_rollback_info(self, package_hash: str) -> None:
        """Record a rollback of *package_hash* (bumps the count, stamps the time)."""

    # -- status reports -----------------------------------------------------

    @abc.abstractmethod
    async def notify_application_ready(self) -> None: ...

    @abc.abstractmethod
    async def get_new_status_report(self) -> StatusReport | None: ...

    @abc.abstractmethod
    async def record_status_reported(self, report: StatusReport) -> None: ...

    @abc.abstractmethod
    async def save_status_report_for_retry(self, report: StatusReport) -> None: ...

    # -- bundle lifecycle ---------------------------------------------------

    @abc.abstractmethod
    async def download_update(
        self,
        package: RemotePackage,
        notify_progress: ProgressNotifier | None,
    ) -> LocalPackage: ...

    @abc.abstractmethod
    async def install_update(
        self,
        package: LocalPackage,
        install_mode: InstallMode,
        minimum_background_duration: int,
    ) -> None: ...

    @abc.abstractmethod
    async def restart_app(self, only_if_update_is_pending: bool = False) -> None: ...

    async def clear_pending_restart(self) -> None:
        """Forget a restart requested by an earlier install.  Optional."""

    async def clear_updates(self) -> None:
        """Drop every downloaded and pending update.  Optional."""

    async def allow_restart(self) -> None:
        """Re-enable programmatic restarts.  Optional."""

    async def disallow_restart(self) -> None:
        """Defer programmatic restarts until :meth:`allow_restart`.  Optional."""
