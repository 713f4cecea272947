"""Tests for session lifecycle wiring, package capabilities and lifecycle signals."""

from __future__ import annotations

import logging

import pytest
from fakes import FakeNative, RecordingChecker, update_info

from otasync.lifecycle import LifecycleSignals
from otasync.models import (
    AppState,
    BinaryUpdate,
    CheckFrequency,
    InstallMode,
    LocalPackage,
    RemotePackage,
    SyncStatus,
    UpdateState,
)
from otasync.packages import PackageCapabilities

# ---------------------------------------------------------------------------
# LifecycleSignals
# ---------------------------------------------------------------------------


class TestLifecycleSignals:
    def test_plain_listener(self) -> None:
        signals = LifecycleSignals()
        seen: list[AppState] = []
        signals.add_listener(seen.append)

        signals.emit("background")

        assert seen == [AppState.background]
        assert signals.state is AppState.background

    def test_remove_is_idempotent(self) -> None:
        signals = LifecycleSignals()
        subscription = signals.add_listener(lambda state: None)
        subscription.remove()
        subscription.remove()
        assert subscription.active is False
        assert signals.listener_count == 0

    def test_failing_listener_does_not_block_others(self, caplog) -> None:
        signals = LifecycleSignals()
        seen: list[AppState] = []

        def broken(state):
            raise RuntimeError("listener bug")

        signals.add_listener(broken)
        signals.add_listener(seen.append)
        with caplog.at_level(logging.ERROR, logger="otasync.lifecycle"):
            signals.emit(AppState.active)

        assert seen == [AppState.active]
        assert "Lifecycle listener failed" in caplog.text

    @pytest.mark.asyncio
    async def test_coroutine_listener_scheduled(self) -> None:
        signals = LifecycleSignals()
        seen: list[AppState] = []

        async def listener(state):
            seen.append(state)

        signals.add_listener(listener)
        signals.emit(AppState.active)
        assert seen == []
        await signals.drain()
        assert seen == [AppState.active]

    def test_emit_without_running_loop(self, caplog) -> None:
        signals = LifecycleSignals()
        seen: list[AppState] = []
        started: list[AppState] = []

        async def listener(state):
            started.append(state)

        signals.add_listener(listener)
        signals.add_listener(seen.append)
        with caplog.at_level(logging.ERROR, logger="otasync.lifecycle"):
            signals.emit(AppState.active)

        assert seen == [AppState.active]
        assert started == []
        assert "needs a running event loop" in caplog.text

    def test_unknown_state_rejected(self) -> None:
        with pytest.raises(ValueError):
            LifecycleSignals().emit("sleeping")


# ---------------------------------------------------------------------------
# Package capabilities
# ---------------------------------------------------------------------------


class TestPackageCapabilities:
    @pytest.mark.asyncio
    async def test_download_requires_url(self) -> None:
        package = RemotePackage(label="v2", capabilities=PackageCapabilities(FakeNative()))
        with pytest.raises(ValueError, match="download url"):
            await package.download()

    @pytest.mark.asyncio
    async def test_package_without_capabilities(self) -> None:
        with pytest.raises(RuntimeError):
            await RemotePackage(download_url="https://cdn.example.com/x.zip").download()

    @pytest.mark.asyncio
    async def test_download_reports_and_tolerates_report_failure(
        self, server_session, requester
    ) -> None:
        requester.set_response("/report_status/download", 500, "down")
        server_session.set_update_checker(RecordingChecker(update_info()))
        remote = await server_session.check_for_update()

        local = await remote.download()

        assert local.package_hash == "hash-v2"
        assert local.capabilities is remote.capabilities
        assert len(requester.posts("/report_status/download")) == 1

    @pytest.mark.asyncio
    async def test_install_on_next_resume_marks_pending(self) -> None:
        native = FakeNative()
        package = LocalPackage(label="v2", capabilities=PackageCapabilities(native))
        installed: list[bool] = []

        await package.install(InstallMode.ON_NEXT_RESUME, 15, lambda: installed.append(True))

        assert installed == [True]
        assert package.is_pending is True
        assert native.call_names() == ["install_update", "clear_pending_restart"]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestSession:
    @pytest.mark.asyncio
    async def test_update_metadata_enriched(self, session, native) -> None:
        native.packages[UpdateState.RUNNING] = LocalPackage(package_hash="hash-v2", label="v2")
        native.failed_hashes.add("hash-v2")
        native.first_run_hashes.add("hash-v2")

        package = await session.get_update_metadata()

        assert package.failed_install is True
        assert package.is_first_run is True
        assert package.capabilities is not None

    @pytest.mark.asyncio
    async def test_no_update_metadata(self, session) -> None:
        assert await session.get_update_metadata(UpdateState.PENDING) is None

    @pytest.mark.asyncio
    async def test_restart_passthrough(self, session, native) -> None:
        await session.restart_app(True)
        await session.clear_updates()
        await session.disallow_restart()
        await session.allow_restart()
        assert ("restart_app", True) in native.calls

    @pytest.mark.asyncio
    async def test_start_manual_only_notifies(self, session, native, lifecycle) -> None:
        checker = RecordingChecker({"update_info": None})
        session.set_update_checker(checker)

        assert await session.start(CheckFrequency.MANUAL) is None

        assert native.call_names() == ["notify_application_ready"]
        assert checker.requests == []
        assert lifecycle.listener_count == 0

    @pytest.mark.asyncio
    async def test_start_on_app_start_syncs_once(self, session, lifecycle) -> None:
        checker = RecordingChecker({"update_info": None})
        session.set_update_checker(checker)

        assert await session.start(CheckFrequency.ON_APP_START) == SyncStatus.UP_TO_DATE
        lifecycle.emit(AppState.active)
        await lifecycle.drain()

        assert len(checker.requests) == 1

    @pytest.mark.asyncio
    async def test_start_on_app_resume_syncs_on_every_resume(self, session, lifecycle) -> None:
        checker = RecordingChecker({"update_info": None})
        session.set_update_checker(checker)

        await session.start("on_app_resume")
        lifecycle.emit(AppState.background)
        lifecycle.emit(AppState.active)
        await lifecycle.drain()
        lifecycle.emit(AppState.active)
        await lifecycle.drain()

        assert len(checker.requests) == 3

        session.stop()
        lifecycle.emit(AppState.active)
        await lifecycle.drain()
        assert len(checker.requests) == 3

    @pytest.mark.asyncio
    async def test_resume_sync_reports_binary_mismatch(self, session, lifecycle) -> None:
        session.set_update_checker(
            RecordingChecker(
                {"update_info": {"update_app_version": True, "target_binary_range": "2.0.0"}}
            )
        )
        seen: list[BinaryUpdate] = []

        await session.start(CheckFrequency.ON_APP_RESUME, binary_mismatch_callback=seen.append)
        lifecycle.emit(AppState.active)
        await lifecycle.drain()

        assert seen == [BinaryUpdate("2.0.0"), BinaryUpdate("2.0.0")]

    @pytest.mark.asyncio
    async def test_bad_server_url_leaves_package_without_reporter(
        self, session, native, caplog
    ) -> None:
        native.config.server_url = "http://updates.example.com"
        native.packages[UpdateState.RUNNING] = LocalPackage(package_hash="hash-v2", label="v2")

        with caplog.at_level(logging.WARNING, logger="otasync.session"):
            package = await session.get_update_metadata()

        assert package.capabilities is not None
        assert "Package status reports disabled" in caplog.text

    @pytest.mark.asyncio
    async def test_reset(self, session, native, lifecycle) -> None:
        session.set_update_checker(RecordingChecker({"update_info": None}))
        session.set_bundle_host("https://mirror.example.com")
        await session.start(CheckFrequency.ON_APP_RESUME)

        session.reset()

        assert session.bundle_host is None
        assert lifecycle.listener_count == 0
        await session.notify_application_ready()
        assert native.call_names().count("notify_application_ready") == 2
