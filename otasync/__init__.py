"""Over-the-air update client: release resolution, sync and status reporting."""

from importlib.metadata import PackageNotFoundError, version

from .config import ClientConfig, create_session, load_config
from .errors import ConfigurationError, NoLatestReleaseError, OtaSyncError, ResolutionError
from .models import (
    AppState,
    CheckFrequency,
    DeploymentStatus,
    InstallMode,
    LocalPackage,
    RemotePackage,
    SyncStatus,
    UpdateState,
)
from .native import NativeBridge
from .options import SyncOptions, merge_sync_options
from .release_resolver import ReleaseHistoryChecker
from .session import SyncSession

__all__ = [
    "AppState",
    "CheckFrequency",
    "ClientConfig",
    "ConfigurationError",
    "DeploymentStatus",
    "InstallMode",
    "LocalPackage",
    "NativeBridge",
    "NoLatestReleaseError",
    "OtaSyncError",
    "ReleaseHistoryChecker",
    "RemotePackage",
    "ResolutionError",
    "SyncOptions",
    "SyncSession",
    "SyncStatus",
    "UpdateState",
    "__version__",
    "create_session",
    "load_config",
    "merge_sync_options",
]

try:
    __version__: str = version("otasync")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
