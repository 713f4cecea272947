"""Client for the remote acquisition (update-check / status-report) endpoint.

HTTP is done with :mod:`urllib.request` on a worker thread so the event
loop never blocks.  The transport is swappable through :class:`HttpRequester`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode, urlsplit
from urllib.request import Request, urlopen

from .contracts import (
    DeployStatusReport,
    DownloadStatusReport,
    UpdateCheckRequest,
    UpdateCheckResponse,
)
from .errors import ResolutionError
from .models import DeploymentStatus, LocalPackage, RemotePackage

LOGGER = logging.getLogger(__name__)

API_PREFIX = "/v0.1/public/codepush"
REQUEST_TIMEOUT_S = 30

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(url: str) -> None:
    """Refuse anything but HTTPS, except plain HTTP to a loopback host."""
    parts = urlsplit(url)
    if parts.scheme == "https":
        return
    if parts.scheme == "http" and parts.hostname in _LOOPBACK_HOSTS:
        return
    raise ValueError(f"Refusing non-HTTPS URL for acquisition request: {url}")


class HttpRequester:
    """Perform one HTTP request.  Override for testing."""

    async def request(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None = None,
    ) -> tuple[int, str]:
        """Return ``(status_code, body_text)``."""
        return await asyncio.to_thread(self._request_sync, method, url, body)

    @staticmethod
    def _request_sync(method: str, url: str, body: dict[str, Any] | None) -> tuple[int, str]:
        validate_server_url(url)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = {"Accept": "application/json"}
        if data is not None:
            headers["Content-Type"] = "application/json"
        req = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=REQUEST_TIMEOUT_S) as resp:  # noqa: S310
                return resp.status, resp.read().decode("utf-8")
        except HTTPError as exc:
            return exc.code, exc.read().decode("utf-8", errors="replace")


class AcquisitionClient:
    """Speaks the acquisition protocol for one deployment."""

    def __init__(
        self,
        server_url: str,
        *,
        deployment_key: str,
        app_version: str = "",
        client_unique_id: str = "",
        requester: HttpRequester | None = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._deployment_key = deployment_key
        self._app_version = app_version
        self._client_unique_id = client_unique_id
        self._requester = requester or HttpRequester()

    @property
    def deployment_key(self) -> str:
        return self._deployment_key

    def _url(self, path: str) -> str:
        return f"{self._server_url}{API_PREFIX}{path}"

    async def query_update(self, request: UpdateCheckRequest) -> UpdateCheckResponse:
        url = self._url("/update_check?" + urlencode(request.query_params()))
        try:
            status, text = await self._requester.request("GET", url)
        except OSError as exc:
            raise ResolutionError(f"Update check failed: {exc}") from exc
        if status != 200:
            raise ResolutionError(f"Update check returned HTTP {status}: {text[:200]}")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ResolutionError(f"Update check returned invalid JSON: {exc}") from exc
        return UpdateCheckResponse.model_validate(payload)

    async def report_status_deploy(
        self,
        deployed_package: LocalPackage | None,
        status: DeploymentStatus | None,
        previous_label_or_app_version: str = "",
        previous_deployment_key: str = "",
    ) -> None:
        report = DeployStatusReport(
            app_version=self._app_version,
            deployment_key=self._deployment_key,
            client_unique_id=self._client_unique_id or None,
            previous_label_or_app_version=previous_label_or_app_version or None,
            previous_deployment_key=previous_deployment_key or None,
        )
        if deployed_package is not None:
            report.label = deployed_package.label
            report.app_version = deployed_package.app_version
            if status is not None:
                report.status = status.value
        await self._post("/report_status/deploy", report.model_dump(exclude_none=True))

    async def report_status_download(self, package: RemotePackage | LocalPackage) -> None:
        report = DownloadStatusReport(
            client_unique_id=self._client_unique_id,
            deployment_key=self._deployment_key,
            label=package.label,
        )
        await self._post("/report_status/download", report.model_dump())

    async def _post(self, path: str, body: dict[str, Any]) -> None:
        status, text = await self._requester.request("POST", self._url(path), body)
        if status != 200:
            raise ResolutionError(f"POST {path} returned HTTP {status}: {text[:200]}")
