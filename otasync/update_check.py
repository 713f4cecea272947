"""Ask the active backend whether a newer bundle exists for this instance."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

from .contracts import UpdateCheckRequest
from .models import BinaryUpdate, ConfigurationInfo, LocalPackage, RemotePackage

if TYPE_CHECKING:
    from .session import SyncSession

LOGGER = logging.getLogger(__name__)

BinaryMismatchCallback = Callable[[BinaryUpdate], None]


def build_query(
    config: ConfigurationInfo,
    local_package: LocalPackage | None,
    *,
    attach_binary_hash: bool,
) -> UpdateCheckRequest:
    """Describe the running bundle to the backend.

    With an installed update its hash and label identify it.  Without one
    only the binary version is sent, plus the binary's own hash on platforms
    whose installer can diff against the binary.
    """
    if local_package is not None:
        app_version = local_package.app_version
        package_hash = local_package.package_hash or None
        label = local_package.label or None
    else:
        app_version = config.app_version
        package_hash = config.package_hash if attach_binary_hash and config.package_hash else None
        label = None
    return UpdateCheckRequest(
        deployment_key=config.deployment_key,
        app_version=app_version,
        package_hash=package_hash,
        is_companion=config.ignore_app_version,
        label=label,
        client_unique_id=config.client_unique_id or None,
    )


def rewrite_bundle_host(download_url: str, bundle_host: str | None) -> str:
    """Point *download_url* at *bundle_host*, keeping only its file name."""
    if not bundle_host or not download_url:
        return download_url
    file_name = download_url.rsplit("/", 1)[-1]
    if not file_name:
        return download_url
    return f"{bundle_host.rstrip('/')}/{file_name}"


async def check_for_update(
    session: SyncSession,
    deployment_key: str | None = None,
    on_binary_mismatch: BinaryMismatchCallback | None = None,
) -> RemotePackage | None:
    """Return the update to apply, or ``None`` when there is nothing to do."""
    native_config = await session.get_configuration()
    config = replace(native_config, deployment_key=deployment_key) if deployment_key else native_config

    local_package = await session.get_current_package()
    query = build_query(config, local_package, attach_binary_hash=session.attach_binary_hash)

    update = await session.resolver_for(config).resolve(query)

    if isinstance(update, RemotePackage):
        update.download_url = rewrite_bundle_host(update.download_url, session.bundle_host)

    if update is None:
        return None

    if isinstance(update, BinaryUpdate):
        LOGGER.info("An update is available but it is not targeting the binary version of your app.")
        if on_binary_mismatch is not None:
            try:
                on_binary_mismatch(update)
            except Exception:
                LOGGER.exception("Binary version mismatch callback failed")
        return None

    if local_package is not None and update.package_hash == local_package.package_hash:
        LOGGER.debug("Update %s is already installed", update.label)
        return None

    no_installed_update = local_package is None or local_package.is_debug_only
    if no_installed_update and config.package_hash and update.package_hash == config.package_hash:
        LOGGER.debug("Update %s matches the binary's own bundle", update.label)
        return None

    update.capabilities = session.package_capabilities(config)
    update.failed_install = await session.native.is_failed_update(update.package_hash)
    update.deployment_key = deployment_key or native_config.deployment_key
    return update
