"""One sync run: check, optionally confirm, download, install.

Status signals follow
``CHECKING_FOR_UPDATE -> UP_TO_DATE | UPDATE_INSTALLED | AWAITING_USER_ACTION
-> UPDATE_IGNORED | DOWNLOADING_PACKAGE -> INSTALLING_UPDATE -> UPDATE_INSTALLED``
with ``UNKNOWN_ERROR`` on any failure.  Single-flight is enforced by
:meth:`otasync.session.SyncSession.sync`, not here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .dialog import build_prompt
from .errors import ConfigurationError
from .models import InstallMode, RemotePackage, SyncStatus
from .options import SyncOptions, merge_sync_options
from .rollback_policy import should_ignore_update
from .update_check import BinaryMismatchCallback

if TYPE_CHECKING:
    from .session import SyncSession

LOGGER = logging.getLogger(__name__)

StatusCallback = Callable[[SyncStatus], None]
ProgressCallback = Callable[[int, int], None]

_STATUS_MESSAGES = {
    SyncStatus.CHECKING_FOR_UPDATE: "Checking for update.",
    SyncStatus.AWAITING_USER_ACTION: "Awaiting user action.",
    SyncStatus.DOWNLOADING_PACKAGE: "Downloading package.",
    SyncStatus.INSTALLING_UPDATE: "Installing update.",
    SyncStatus.UP_TO_DATE: "App is up to date.",
    SyncStatus.UPDATE_IGNORED: "User cancelled the update.",
    SyncStatus.UNKNOWN_ERROR: "An unknown error occurred.",
}


def guarded(callback: Callable[..., Any] | None, name: str) -> Callable[..., None] | None:
    """Wrap a user callback so its failures are logged instead of raised."""
    if callback is None:
        return None

    def _call(*args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            LOGGER.exception("An error has occurred in the %s callback", name)

    return _call


def _installed_message(install_mode: InstallMode | None, minimum_background_duration: int) -> str:
    if install_mode == InstallMode.ON_NEXT_RESTART:
        return "Update is installed and will be run on the next app restart."
    if install_mode == InstallMode.ON_NEXT_RESUME:
        if minimum_background_duration > 0:
            return (
                "Update is installed and will be run after the app has been in the "
                f"background for at least {minimum_background_duration} seconds."
            )
        return "Update is installed and will be run when the app next resumes."
    return "Update is installed."


class _StatusLogger:
    """Fallback status callback used when the caller supplies none."""

    def __init__(self, options: SyncOptions) -> None:
        self._options = options
        self.install_mode: InstallMode | None = None

    def __call__(self, status: SyncStatus) -> None:
        if status == SyncStatus.UPDATE_INSTALLED:
            LOGGER.info(
                _installed_message(self.install_mode, self._options.minimum_background_duration)
            )
        elif status in _STATUS_MESSAGES:
            LOGGER.info(_STATUS_MESSAGES[status])


async def run_sync(
    session: SyncSession,
    options: Mapping[str, Any] | SyncOptions | None = None,
    on_status: StatusCallback | None = None,
    on_progress: ProgressCallback | None = None,
    on_binary_mismatch: BinaryMismatchCallback | None = None,
) -> SyncStatus:
    """Execute one sync run and return its terminal status.

    Failures signal ``UNKNOWN_ERROR`` and are re-raised to the caller.
    """
    status_logger: _StatusLogger | None = None

    def signal(status: SyncStatus) -> None:
        if on_status is not None:
            on_status(status)
        elif status_logger is not None:
            status_logger(status)
        elif status in _STATUS_MESSAGES:
            LOGGER.info(_STATUS_MESSAGES[status])

    try:
        sync_options = merge_sync_options(options, session.sync_defaults)
        status_logger = _StatusLogger(sync_options)

        await session.notify_application_ready()

        signal(SyncStatus.CHECKING_FOR_UPDATE)
        remote = await session.check_for_update(sync_options.deployment_key, on_binary_mismatch)

        async def download_and_install() -> SyncStatus:
            signal(SyncStatus.DOWNLOADING_PACKAGE)
            local = await remote.download(on_progress)

            install_mode = (
                sync_options.mandatory_install_mode
                if local.is_mandatory
                else sync_options.install_mode
            )
            status_logger.install_mode = install_mode

            signal(SyncStatus.INSTALLING_UPDATE)
            await local.install(
                install_mode,
                sync_options.minimum_background_duration,
                lambda: signal(SyncStatus.UPDATE_INSTALLED),
            )
            return SyncStatus.UPDATE_INSTALLED

        ignored = await should_ignore_update(remote, sync_options, session.native)

        if remote is None or ignored:
            if ignored:
                LOGGER.info(
                    "An update is available, but it is being ignored due to having been "
                    "previously rolled back."
                )
            current = await session.get_current_package()
            if current is not None and current.is_pending:
                signal(SyncStatus.UPDATE_INSTALLED)
                return SyncStatus.UPDATE_INSTALLED
            signal(SyncStatus.UP_TO_DATE)
            return SyncStatus.UP_TO_DATE

        if sync_options.update_dialog is not None:
            return await _await_user_choice(session, remote, sync_options, signal, download_and_install)

        return await download_and_install()
    except Exception as exc:
        signal(SyncStatus.UNKNOWN_ERROR)
        LOGGER.error("Sync failed: %s", exc)
        raise


async def _await_user_choice(
    session: SyncSession,
    remote: RemotePackage,
    options: SyncOptions,
    signal: StatusCallback,
    download_and_install: Callable[[], Any],
) -> SyncStatus:
    presenter = session.presenter
    if presenter is None:
        raise ConfigurationError("update_dialog is set but no confirmation presenter is registered")

    loop = asyncio.get_running_loop()
    outcome: asyncio.Future[SyncStatus] = loop.create_future()
    install_tasks: list[asyncio.Task[SyncStatus]] = []

    def on_ignore() -> None:
        if outcome.done() or install_tasks:
            return
        signal(SyncStatus.UPDATE_IGNORED)
        outcome.set_result(SyncStatus.UPDATE_IGNORED)

    def on_install() -> None:
        if outcome.done() or install_tasks:
            return
        task = asyncio.ensure_future(download_and_install())
        install_tasks.append(task)
        task.add_done_callback(_forward_result)

    def _forward_result(task: asyncio.Task[SyncStatus]) -> None:
        if outcome.done():
            return
        if task.cancelled():
            outcome.cancel()
        elif task.exception() is not None:
            outcome.set_exception(task.exception())
        else:
            outcome.set_result(task.result())

    title, message, buttons = build_prompt(
        remote, options.update_dialog, on_ignore=on_ignore, on_install=on_install
    )
    signal(SyncStatus.AWAITING_USER_ACTION)
    presenter.present(title, message, buttons)
    return await outcome
