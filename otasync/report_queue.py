"""Durable delivery of deployment status reports.

A report that cannot be delivered is handed back to the native store and
retried the next time the app returns to the foreground.  At most one
resume listener and at most one delivery attempt exist at a time; the
listener removes itself once nothing is left to send.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .errors import ConfigurationError
from .lifecycle import Subscription
from .models import AppState, DeploymentStatus, StatusReport

if TYPE_CHECKING:
    from .session import SyncSession

LOGGER = logging.getLogger(__name__)


class StatusReportQueue:
    def __init__(self, session: SyncSession) -> None:
        self._session = session
        self._resume_subscription: Subscription | None = None
        self._delivering = False
        self._tasks: set[asyncio.Task[bool]] = set()
        self._rollbacks_recorded: set[tuple[str, str]] = set()

    @property
    def retry_pending(self) -> bool:
        return self._resume_subscription is not None and self._resume_subscription.active

    def submit(self, report: StatusReport) -> asyncio.Task[bool]:
        """Deliver *report* in the background."""
        task = asyncio.ensure_future(self.deliver(report))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for reports submitted so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def deliver(self, report: StatusReport) -> bool:
        """Send *report*.  Returns True when the server accepted it."""
        native = self._session.native
        self._delivering = True
        try:
            await self._send(report)
        except ConfigurationError as exc:
            LOGGER.error("Cannot report status: %s", exc)
            await native.save_status_report_for_retry(report)
            return False
        except Exception as exc:
            LOGGER.warning("Report status failed: %s (%s)", report.to_dict(), exc)
            await native.save_status_report_for_retry(report)
            self._listen_for_resume()
            return False
        finally:
            self._delivering = False

        await native.record_status_reported(report)
        self._stop_listening()
        return True

    async def _send(self, report: StatusReport) -> None:
        session = self._session
        config = await session.get_configuration()
        previous_deployment_key = report.previous_deployment_key or config.deployment_key

        if report.is_binary_update:
            LOGGER.info("Reporting binary update (%s)", report.app_version)
            if not config.deployment_key:
                raise ConfigurationError("Deployment key is missing")
            client = session.acquisition_client(config)
            await client.report_status_deploy(
                None,
                None,
                report.previous_label_or_app_version,
                previous_deployment_key,
            )
            return

        package = report.package
        if package is None:
            raise ValueError("Status report has neither an app version nor a package")
        if report.status == DeploymentStatus.SUCCEEDED:
            LOGGER.info("Reporting update success (%s)", package.label)
        else:
            LOGGER.info("Reporting update rollback (%s)", package.label)
            key = (package.label, package.package_hash)
            if key not in self._rollbacks_recorded:
                await session.native.set_latest_rollback_info(package.package_hash)
                self._rollbacks_recorded.add(key)

        client = session.acquisition_client(config, deployment_key=package.deployment_key or None)
        await client.report_status_deploy(
            package,
            report.status,
            report.previous_label_or_app_version,
            previous_deployment_key,
        )

    # -- retry on resume ----------------------------------------------------

    def _listen_for_resume(self) -> None:
        if self.retry_pending:
            return
        self._resume_subscription = self._session.lifecycle.add_listener(self._on_app_state)

    def close(self) -> None:
        """Stop retrying on resume.  Reports already handed back stay with the native side."""
        self._stop_listening()

    def _stop_listening(self) -> None:
        if self._resume_subscription is not None:
            self._resume_subscription.remove()
            self._resume_subscription = None

    async def _on_app_state(self, state: AppState) -> None:
        if state != AppState.active or self._delivering:
            return
        self._delivering = True
        try:
            refreshed = await self._session.native.get_new_status_report()
        finally:
            self._delivering = False
        if refreshed is None:
            self._stop_listening()
            return
        await self.deliver(refreshed)
