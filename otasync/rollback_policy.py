"""Decide whether a previously rolled-back update should be skipped.

A failed update is retried at most ``max_retry_attempts`` times and no more
often than every ``delay_in_hours``.  Whenever the policy or the persisted
rollback info cannot be trusted the update is skipped; problems are logged,
never raised.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .models import RemotePackage, RollbackInfo
from .native import NativeBridge
from .options import RollbackRetryOptions, SyncOptions

LOGGER = logging.getLogger(__name__)

MS_PER_HOUR = 1000 * 60 * 60


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_rollback_retry_options(options: RollbackRetryOptions) -> bool:
    if not _is_number(options.delay_in_hours):
        LOGGER.warning("The 'delay_in_hours' rollback retry parameter must be a number.")
        return False
    if not _is_number(options.max_retry_attempts):
        LOGGER.warning("The 'max_retry_attempts' rollback retry parameter must be a number.")
        return False
    if options.max_retry_attempts < 1:
        LOGGER.warning("The 'max_retry_attempts' rollback retry parameter cannot be less than 1.")
        return False
    return True


def retry_allowed(
    info: RollbackInfo,
    options: RollbackRetryOptions,
    *,
    now_ms: float,
) -> bool:
    hours_since_rollback = (now_ms - info.time) / MS_PER_HOUR
    return (
        hours_since_rollback >= options.delay_in_hours
        and info.count <= options.max_retry_attempts
    )


async def should_ignore_update(
    package: RemotePackage | None,
    options: SyncOptions,
    native: NativeBridge,
    *,
    clock: Callable[[], float] = time.time,
) -> bool:
    """Return True when *package* failed before and must not be offered again yet."""
    if package is None or not package.failed_install or not options.ignore_failed_updates:
        return False

    retry_options = options.rollback_retry_options
    if retry_options is None:
        return True

    if not validate_rollback_retry_options(retry_options):
        return True

    info = RollbackInfo.from_dict(await native.get_latest_rollback_info())
    if info is None or info.package_hash != package.package_hash:
        LOGGER.info("The latest rollback info is not valid.")
        return True

    if retry_allowed(info, retry_options, now_ms=clock() * 1000):
        LOGGER.info("Previous rollback should be ignored due to rollback retry options.")
        return False
    return True
