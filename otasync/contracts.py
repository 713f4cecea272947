"""Pydantic models for the update-check and status-report wire contracts.

Both resolution backends (the acquisition server and an injected resolver)
speak the same snake_case shape, so a single normalizer turns either
response into a :class:`RemotePackage`, a :class:`BinaryUpdate` or ``None``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import BinaryUpdate, RemotePackage

# ---------------------------------------------------------------------------
# Update check
# ---------------------------------------------------------------------------


class UpdateCheckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    deployment_key: str
    app_version: str
    package_hash: str | None = None
    is_companion: bool | None = None
    label: str | None = None
    client_unique_id: str | None = None

    def query_params(self) -> dict[str, str]:
        """Flatten to query-string parameters, skipping unset fields."""
        params: dict[str, str] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            params[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return params


class UpdateInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    is_available: bool = False
    update_app_version: bool = False
    target_binary_range: str | None = None
    description: str | None = None
    label: str | None = None
    is_mandatory: bool | None = None
    package_hash: str | None = None
    package_size: int | None = Field(default=None, ge=0)
    download_url: str | None = None


class UpdateCheckResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_info: UpdateInfo | None = None


def normalize_update_response(
    response: UpdateCheckResponse | dict[str, Any],
    deployment_key: str,
) -> RemotePackage | BinaryUpdate | None:
    """Map a raw update-check response to the client-side result.

    Raises ``pydantic.ValidationError`` when *response* is malformed.
    """
    if not isinstance(response, UpdateCheckResponse):
        response = UpdateCheckResponse.model_validate(response)
    info = response.update_info
    if info is None:
        return None
    if info.update_app_version:
        return BinaryUpdate(app_version=info.target_binary_range or "")
    if not info.is_available:
        return None
    return RemotePackage(
        deployment_key=deployment_key,
        description=info.description or "",
        label=info.label or "",
        app_version=info.target_binary_range or "",
        is_mandatory=bool(info.is_mandatory),
        package_hash=info.package_hash or "",
        package_size=info.package_size or 0,
        download_url=info.download_url or "",
    )


# ---------------------------------------------------------------------------
# Status reports
# ---------------------------------------------------------------------------


class DeployStatusReport(BaseModel):
    app_version: str
    deployment_key: str
    client_unique_id: str | None = None
    label: str | None = None
    status: str | None = None
    previous_label_or_app_version: str | None = None
    previous_deployment_key: str | None = None


class DownloadStatusReport(BaseModel):
    client_unique_id: str
    deployment_key: str
    label: str
