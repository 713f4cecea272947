"""Tests for status report delivery and retry-on-resume."""

from __future__ import annotations

import logging

import pytest
from fakes import RecordingChecker

from otasync.models import AppState, DeploymentStatus, LocalPackage, StatusReport, SyncStatus

DEPLOY = "/report_status/deploy"


def _package_report(status: DeploymentStatus = DeploymentStatus.SUCCEEDED) -> StatusReport:
    return StatusReport(
        package=LocalPackage(
            app_version="1.0.0",
            package_hash="hash-v2",
            label="v2",
            deployment_key="dk-package",
        ),
        status=status,
        previous_label_or_app_version="v1",
    )


def _binary_report() -> StatusReport:
    return StatusReport(app_version="1.1.0", previous_label_or_app_version="1.0.0")


# ---------------------------------------------------------------------------
# Delivery on app ready
# ---------------------------------------------------------------------------


class TestDelivery:
    @pytest.mark.asyncio
    async def test_package_report_delivered_on_app_ready(
        self, server_session, native, requester
    ) -> None:
        report = _package_report()
        native.pending_reports.append(report)

        assert await server_session.notify_application_ready() is report
        await server_session.reports.drain()

        assert requester.posts(DEPLOY) == [
            {
                "app_version": "1.0.0",
                "deployment_key": "dk-package",
                "client_unique_id": "device-1",
                "label": "v2",
                "status": "DeploymentSucceeded",
                "previous_label_or_app_version": "v1",
                "previous_deployment_key": "dk-prod",
            }
        ]
        assert native.reported == [report]
        assert server_session.reports.retry_pending is False

    @pytest.mark.asyncio
    async def test_rollback_records_rollback_info(self, server_session, native) -> None:
        await server_session.reports.deliver(_package_report(DeploymentStatus.FAILED))

        assert native.rollback_info["packageHash"] == "hash-v2"
        assert native.rollback_info["count"] == 1

    @pytest.mark.asyncio
    async def test_binary_report(self, server_session, requester) -> None:
        assert await server_session.reports.deliver(_binary_report()) is True

        body = requester.posts(DEPLOY)[0]
        assert body["deployment_key"] == "dk-prod"
        assert body["previous_label_or_app_version"] == "1.0.0"
        assert "label" not in body
        assert "status" not in body

    @pytest.mark.asyncio
    async def test_binary_report_without_deployment_key(
        self, server_session, native, requester, lifecycle, caplog
    ) -> None:
        native.config.deployment_key = ""
        report = _binary_report()

        with caplog.at_level(logging.ERROR, logger="otasync.report_queue"):
            assert await server_session.reports.deliver(report) is False

        assert "Deployment key is missing" in caplog.text
        assert requester.calls == []
        assert native.saved_for_retry == [report]
        assert lifecycle.listener_count == 0

    @pytest.mark.asyncio
    async def test_plain_http_server_url_is_not_retried(
        self, session, native, requester, lifecycle, caplog
    ) -> None:
        native.config.server_url = "http://updates.example.com"
        report = StatusReport(app_version="1.1.0")

        with caplog.at_level(logging.ERROR, logger="otasync.report_queue"):
            assert await session.reports.deliver(report) is False

        assert "Refusing non-HTTPS URL" in caplog.text
        assert requester.calls == []
        assert native.saved_for_retry == [report]
        assert lifecycle.listener_count == 0
        assert session.reports.retry_pending is False

    @pytest.mark.asyncio
    async def test_sync_not_blocked_by_failing_report(
        self, server_session, native, requester
    ) -> None:
        requester.set_response(DEPLOY, 500, "down")
        native.pending_reports.append(_package_report())
        server_session.set_update_checker(RecordingChecker({"update_info": None}))

        assert await server_session.sync() == SyncStatus.UP_TO_DATE
        await server_session.reports.drain()
        assert server_session.reports.retry_pending is True


# ---------------------------------------------------------------------------
# Retry on resume
# ---------------------------------------------------------------------------


class TestRetryOnResume:
    @pytest.mark.asyncio
    async def test_fail_then_resume_then_success(
        self, server_session, native, requester, lifecycle
    ) -> None:
        report = _package_report()
        requester.set_error(DEPLOY, ConnectionResetError("reset"))

        assert await server_session.reports.deliver(report) is False
        assert native.saved_for_retry == [report]
        assert server_session.reports.retry_pending is True
        assert lifecycle.listener_count == 1

        requester.responses.clear()
        lifecycle.emit(AppState.active)
        await lifecycle.drain()

        assert native.reported == [report]
        assert server_session.reports.retry_pending is False
        assert lifecycle.listener_count == 0

    @pytest.mark.asyncio
    async def test_repeated_failures_keep_one_listener(
        self, server_session, requester, lifecycle
    ) -> None:
        requester.set_response(DEPLOY, 502, "bad gateway")

        await server_session.reports.deliver(_package_report())
        lifecycle.emit(AppState.active)
        await lifecycle.drain()
        await server_session.reports.deliver(_package_report())

        assert lifecycle.listener_count == 1

    @pytest.mark.asyncio
    async def test_background_transition_ignored(
        self, server_session, native, requester, lifecycle
    ) -> None:
        requester.set_response(DEPLOY, 500, "down")
        await server_session.reports.deliver(_package_report())
        requester.responses.clear()

        lifecycle.emit(AppState.background)
        await lifecycle.drain()

        assert native.reported == []
        assert server_session.reports.retry_pending is True

    @pytest.mark.asyncio
    async def test_nothing_pending_deregisters(
        self, server_session, native, requester, lifecycle
    ) -> None:
        requester.set_response(DEPLOY, 500, "down")
        await server_session.reports.deliver(_package_report())
        native.pending_reports.clear()

        lifecycle.emit("active")
        await lifecycle.drain()

        assert server_session.reports.retry_pending is False
        assert lifecycle.listener_count == 0

    @pytest.mark.asyncio
    async def test_rollback_counted_once_across_retries(
        self, server_session, native, requester, lifecycle
    ) -> None:
        requester.set_response(DEPLOY, 500, "down")
        await server_session.reports.deliver(_package_report(DeploymentStatus.FAILED))
        requester.responses.clear()

        lifecycle.emit(AppState.active)
        await lifecycle.drain()

        assert native.call_names().count("set_latest_rollback_info") == 1
        assert native.rollback_info["count"] == 1
        assert len(native.reported) == 1
