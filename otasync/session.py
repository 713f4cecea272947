"""Process-wide update client state.

A :class:`SyncSession` is created once at process start and lives for the
whole process.  It owns what would otherwise be module globals: the cached
native configuration, the single-flight sync flag, the bundle-host override,
the custom update checker and the memoized app-ready notification.  Tests
create a fresh session per case.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from .acquisition import AcquisitionClient, HttpRequester, validate_server_url
from .dialog import ConfirmationPresenter
from .errors import ConfigurationError
from .lifecycle import LifecycleSignals, Subscription
from .models import (
    AppState,
    CheckFrequency,
    ConfigurationInfo,
    LocalPackage,
    RemotePackage,
    StatusReport,
    SyncStatus,
    UpdateState,
)
from .native import NativeBridge
from .options import SyncOptions
from .packages import PackageCapabilities
from .report_queue import StatusReportQueue
from .resolvers import AcquisitionResolver, CustomResolver, Resolver, UpdateChecker
from .sync import ProgressCallback, StatusCallback, guarded, run_sync
from .update_check import BinaryMismatchCallback, check_for_update

LOGGER = logging.getLogger(__name__)


class SyncSession:
    def __init__(
        self,
        native: NativeBridge,
        *,
        server_url: str = "",
        attach_binary_hash: bool = False,
        lifecycle: LifecycleSignals | None = None,
        presenter: ConfirmationPresenter | None = None,
        requester: HttpRequester | None = None,
        sync_defaults: Mapping[str, Any] | SyncOptions | None = None,
    ) -> None:
        self.native = native
        self.server_url = server_url
        self.attach_binary_hash = attach_binary_hash
        self.lifecycle = lifecycle or LifecycleSignals()
        self.presenter = presenter
        self.sync_defaults = sync_defaults
        self._requester = requester or HttpRequester()
        self._config: ConfigurationInfo | None = None
        self._bundle_host: str | None = None
        self._update_checker: CustomResolver | None = None
        self._ready_task: asyncio.Task[StatusReport | None] | None = None
        self._sync_in_progress = False
        self._resume_sync: Subscription | None = None
        self.reports = StatusReportQueue(self)

    # -- shared settings ----------------------------------------------------

    @property
    def bundle_host(self) -> str | None:
        return self._bundle_host

    def set_bundle_host(self, bundle_host: str | None) -> None:
        self._bundle_host = bundle_host or None

    def set_update_checker(self, checker: UpdateChecker | None) -> None:
        """Resolve updates through *checker* instead of the acquisition server."""
        self._update_checker = CustomResolver(checker) if checker is not None else None

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    # -- collaborators ------------------------------------------------------

    async def get_configuration(self) -> ConfigurationInfo:
        if self._config is None:
            self._config = await self.native.get_configuration()
        return self._config

    def acquisition_client(
        self,
        config: ConfigurationInfo,
        *,
        deployment_key: str | None = None,
    ) -> AcquisitionClient:
        server_url = self.server_url or config.server_url
        if not server_url:
            raise ConfigurationError("No acquisition server URL configured")
        try:
            validate_server_url(server_url)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return AcquisitionClient(
            server_url,
            deployment_key=deployment_key or config.deployment_key,
            app_version=config.app_version,
            client_unique_id=config.client_unique_id,
            requester=self._requester,
        )

    def resolver_for(self, config: ConfigurationInfo) -> Resolver:
        if self._update_checker is not None:
            return self._update_checker
        return AcquisitionResolver(self.acquisition_client(config))

    def package_capabilities(self, config: ConfigurationInfo) -> PackageCapabilities:
        reporter = None
        if self.server_url or config.server_url:
            try:
                reporter = self.acquisition_client(config)
            except ConfigurationError as exc:
                LOGGER.warning("Package status reports disabled: %s", exc)
        return PackageCapabilities(self.native, reporter)

    # -- local packages -----------------------------------------------------

    async def get_update_metadata(
        self, state: UpdateState = UpdateState.RUNNING
    ) -> LocalPackage | None:
        package = await self.native.get_update_metadata(state)
        if package is None:
            return None
        package = replace(package)
        package.failed_install = await self.native.is_failed_update(package.package_hash)
        package.is_first_run = await self.native.is_first_run(package.package_hash)
        package.capabilities = self.package_capabilities(await self.get_configuration())
        return package

    async def get_current_package(self) -> LocalPackage | None:
        return await self.get_update_metadata(UpdateState.LATEST)

    # -- operations ---------------------------------------------------------

    async def check_for_update(
        self,
        deployment_key: str | None = None,
        on_binary_mismatch: BinaryMismatchCallback | None = None,
    ) -> RemotePackage | None:
        return await check_for_update(self, deployment_key, on_binary_mismatch)

    def notify_application_ready(self) -> asyncio.Task[StatusReport | None]:
        """Tell the native side the current bundle started fine.  Runs once per session.

        Concurrent and later callers all await the same task.
        """
        if self._ready_task is None:
            self._ready_task = asyncio.ensure_future(self._notify_application_ready())
        return self._ready_task

    async def _notify_application_ready(self) -> StatusReport | None:
        await self.native.notify_application_ready()
        report = await self.native.get_new_status_report()
        if report is not None:
            self.reports.submit(report)
        return report

    async def restart_app(self, only_if_update_is_pending: bool = False) -> None:
        await self.native.restart_app(only_if_update_is_pending)

    async def clear_updates(self) -> None:
        await self.native.clear_updates()

    async def allow_restart(self) -> None:
        await self.native.allow_restart()

    async def disallow_restart(self) -> None:
        await self.native.disallow_restart()

    async def sync(
        self,
        options: Mapping[str, Any] | SyncOptions | None = None,
        status_callback: StatusCallback | None = None,
        progress_callback: ProgressCallback | None = None,
        binary_mismatch_callback: BinaryMismatchCallback | None = None,
    ) -> SyncStatus:
        """Run one sync unless another is in flight.

        A call made while a sync is running returns ``SYNC_IN_PROGRESS``
        immediately and leaves the running one untouched.
        """
        on_status = guarded(status_callback, "status")
        on_progress = guarded(progress_callback, "progress")

        if self._sync_in_progress:
            if on_status is not None:
                on_status(SyncStatus.SYNC_IN_PROGRESS)
            else:
                LOGGER.info("Sync already in progress.")
            return SyncStatus.SYNC_IN_PROGRESS

        self._sync_in_progress = True
        try:
            return await run_sync(self, options, on_status, on_progress, binary_mismatch_callback)
        finally:
            self._sync_in_progress = False

    async def start(
        self,
        check_frequency: CheckFrequency = CheckFrequency.ON_APP_START,
        options: Mapping[str, Any] | SyncOptions | None = None,
        status_callback: StatusCallback | None = None,
        progress_callback: ProgressCallback | None = None,
        binary_mismatch_callback: BinaryMismatchCallback | None = None,
    ) -> SyncStatus | None:
        """Hook the client into the app lifecycle.

        ``MANUAL`` only confirms the running bundle; the other frequencies
        sync now, and ``ON_APP_RESUME`` also syncs on every return to the
        foreground.
        """
        check_frequency = CheckFrequency(check_frequency)
        if check_frequency == CheckFrequency.MANUAL:
            await self.notify_application_ready()
            return None

        if check_frequency == CheckFrequency.ON_APP_RESUME and self._resume_sync is None:

            async def _on_app_state(state: AppState) -> None:
                if state == AppState.active:
                    await self.sync(
                        options, status_callback, progress_callback, binary_mismatch_callback
                    )

            self._resume_sync = self.lifecycle.add_listener(_on_app_state)

        return await self.sync(options, status_callback, progress_callback, binary_mismatch_callback)

    def stop(self) -> None:
        """Stop syncing on resume."""
        if self._resume_sync is not None:
            self._resume_sync.remove()
            self._resume_sync = None

    def reset(self) -> None:
        """Forget all cached state, as if the process had just started."""
        self.stop()
        self.reports.close()
        self._config = None
        self._ready_task = None
        self._sync_in_progress = False
        self._bundle_host = None
        self._update_checker = None
        self.reports = StatusReportQueue(self)
