"""Port for checking whether URLs are reachable."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from resourcesync.domain.links import LinkCheckResult


@runtime_checkable
class LinkChecker(Protocol):
    async def check(self, url: str) -> LinkCheckResult: ...

    async def check_many(self, urls: Sequence[str]) -> list[LinkCheckResult]: ...
