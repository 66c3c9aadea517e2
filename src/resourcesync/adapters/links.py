"""Concurrent HEAD checks for resource links."""

from __future__ import annotations

import asyncio
import socket
from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from resourcesync.adapters.http_resilience import ResilientClient
from resourcesync.domain.links import LinkCheckResult, LinkFailure, is_working_status

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from resourcesync.config.http_resilience import ResilienceConfig
    from resourcesync.config.links import LinkCheckConfig

log = getLogger(__name__)

_NAME_RESOLUTION_MARKERS = (
    "Name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "Temporary failure in name resolution",
    "No address associated with hostname",
)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _causes(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def classify_connect_error(exc: httpx.ConnectError) -> LinkFailure:
    chain = _causes(exc)
    if any(isinstance(cause, ConnectionRefusedError) for cause in chain):
        return LinkFailure.CONNECTION_REFUSED
    if any(isinstance(cause, socket.gaierror) for cause in chain):
        return LinkFailure.DOMAIN_NOT_FOUND
    message = " ".join(str(cause) for cause in chain)
    if "Connection refused" in message:
        return LinkFailure.CONNECTION_REFUSED
    if any(marker in message for marker in _NAME_RESOLUTION_MARKERS):
        return LinkFailure.DOMAIN_NOT_FOUND
    return LinkFailure.OTHER


@dataclass(slots=True)
class HttpLinkChecker:
    """Checks links with HEAD requests; failures are reported, never raised."""

    config: LinkCheckConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False)
    _semaphore: asyncio.Semaphore | None = field(default=None, init=False)

    async def __aenter__(self) -> HttpLinkChecker:
        self._client = self.client_factory(self.config.resilience)
        self._semaphore = asyncio.Semaphore(self.config.concurrency)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def check(self, url: str) -> LinkCheckResult:
        if self._client is None:
            raise RuntimeError("HttpLinkChecker must be used as an async context manager")
        try:
            response = await self._client.head(url)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            return LinkCheckResult(url=url, failure=LinkFailure.INVALID_URL, detail=str(exc))
        except httpx.TimeoutException:
            return LinkCheckResult(url=url, failure=LinkFailure.TIMED_OUT)
        except httpx.ConnectError as exc:
            failure = classify_connect_error(exc)
            detail = str(exc) if failure is LinkFailure.OTHER else None
            return LinkCheckResult(url=url, failure=failure, detail=detail)
        except httpx.HTTPError as exc:
            return LinkCheckResult(
                url=url, failure=LinkFailure.OTHER, detail=str(exc) or type(exc).__name__
            )

        if is_working_status(response.status_code):
            return LinkCheckResult(url=url, status_code=response.status_code)
        return LinkCheckResult(
            url=url, status_code=response.status_code, failure=LinkFailure.HTTP_STATUS
        )

    async def check_many(self, urls: Sequence[str]) -> list[LinkCheckResult]:
        """Check ``urls`` concurrently; results keep the order of ``urls``."""

        return list(await asyncio.gather(*(self._bounded_check(url) for url in urls)))

    async def _bounded_check(self, url: str) -> LinkCheckResult:
        if self._semaphore is None:
            raise RuntimeError("HttpLinkChecker must be used as an async context manager")
        async with self._semaphore:
            result = await self.check(url)
        if result.ok:
            log.debug("Working link: %s", url)
        else:
            log.info("Broken link: %s (%s)", url, result.error)
        return result
