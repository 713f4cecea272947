"""Exception hierarchy for the update client."""

from __future__ import annotations


class OtaSyncError(Exception):
    """Base class for every error raised by :mod:`otasync`."""


class ConfigurationError(OtaSyncError, ValueError):
    """A required setting is missing or malformed.  Never retried."""


class ResolutionError(OtaSyncError):
    """The update backend failed or returned something unusable."""


class NoLatestReleaseError(OtaSyncError, LookupError):
    """The release history holds no enabled release."""

    def __init__(self, message: str = "There is no latest release.") -> None:
        super().__init__(message)
