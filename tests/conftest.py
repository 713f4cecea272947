"""Shared fixtures for the otasync test suite."""

from __future__ import annotations

import pytest
from fakes import FakeNative, FakePresenter, FakeRequester

from otasync.lifecycle import LifecycleSignals
from otasync.session import SyncSession

SERVER_URL = "https://updates.example.com"


@pytest.fixture
def native() -> FakeNative:
    return FakeNative()


@pytest.fixture
def requester() -> FakeRequester:
    return FakeRequester()


@pytest.fixture
def presenter() -> FakePresenter:
    return FakePresenter()


@pytest.fixture
def lifecycle() -> LifecycleSignals:
    return LifecycleSignals()


@pytest.fixture
def session(native, requester, presenter, lifecycle) -> SyncSession:
    """Session without an acquisition server; tests plug in an update checker."""
    return SyncSession(
        native,
        lifecycle=lifecycle,
        presenter=presenter,
        requester=requester,
    )


@pytest.fixture
def server_session(native, requester, presenter, lifecycle) -> SyncSession:
    """Session that talks to a (fake) acquisition server."""
    return SyncSession(
        native,
        server_url=SERVER_URL,
        lifecycle=lifecycle,
        presenter=presenter,
        requester=requester,
    )
