"""Download and install capabilities attached to resolved packages."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .acquisition import AcquisitionClient
from .models import InstallMode, LocalPackage, RemotePackage
from .native import NativeBridge

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class PackageCapabilities:
    """Binds packages to the native bridge and the reporting endpoint."""

    def __init__(self, native: NativeBridge, reporter: AcquisitionClient | None = None) -> None:
        self._native = native
        self._reporter = reporter

    async def download(
        self,
        package: RemotePackage,
        progress_callback: ProgressCallback | None = None,
    ) -> LocalPackage:
        if not package.download_url:
            raise ValueError("Cannot download an update without a download url")

        local = await self._native.download_update(package, progress_callback)
        local.capabilities = self

        if self._reporter is not None:
            try:
                await self._reporter.report_status_download(package)
            except Exception as exc:
                LOGGER.warning("Report download status failed: %s", exc)
        return local

    async def install(
        self,
        package: LocalPackage,
        install_mode: InstallMode,
        minimum_background_duration: int,
        on_installed: Callable[[], None] | None = None,
    ) -> None:
        await self._native.install_update(package, install_mode, minimum_background_duration)
        if on_installed is not None:
            on_installed()
        if install_mode == InstallMode.IMMEDIATE:
            await self._native.restart_app(False)
        else:
            await self._native.clear_pending_restart()
            package.is_pending = True
