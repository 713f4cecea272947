"""Update-resolution backends.

The orchestrator only depends on :class:`Resolver`.  Two implementations
exist: :class:`AcquisitionResolver` asks the remote acquisition server and
:class:`CustomResolver` delegates to an application-supplied function that
returns the same ``{"update_info": ...}`` shape.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from .acquisition import AcquisitionClient
from .contracts import UpdateCheckRequest, normalize_update_response
from .errors import ResolutionError
from .models import BinaryUpdate, RemotePackage

LOGGER = logging.getLogger(__name__)

ResolveResult = RemotePackage | BinaryUpdate | None
UpdateChecker = Callable[[dict[str, Any]], "dict[str, Any] | Awaitable[dict[str, Any]]"]


class Resolver(Protocol):
    async def resolve(self, query: UpdateCheckRequest) -> ResolveResult: ...


class AcquisitionResolver:
    """Resolve through the remote acquisition protocol."""

    def __init__(self, client: AcquisitionClient) -> None:
        self._client = client

    async def resolve(self, query: UpdateCheckRequest) -> ResolveResult:
        response = await self._client.query_update(query)
        return normalize_update_response(response, query.deployment_key)


class CustomResolver:
    """Resolve through an injected update-checker function.

    The checker receives the request as a plain dict and may be sync or
    async.  Its own exceptions propagate unchanged; a response that is not
    a mapping is a :class:`~otasync.errors.ResolutionError`.
    """

    def __init__(self, checker: UpdateChecker) -> None:
        if not callable(checker):
            raise TypeError("pass a function to set_update_checker")
        self._checker = checker

    async def resolve(self, query: UpdateCheckRequest) -> ResolveResult:
        response = self._checker(query.model_dump())
        if inspect.isawaitable(response):
            response = await response
        if not isinstance(response, dict):
            raise ResolutionError(
                f"Update checker returned {type(response).__name__}, expected a mapping"
            )
        return normalize_update_response(response, query.deployment_key)
