"""Link validation results and URL repair rules."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Final
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

# Fields that may hold a resource's URL, in lookup order.
URL_FIELDS: Final[tuple[str, ...]] = ("link", "url", "website")

INVALID_URL_MARKERS: Final[tuple[str, ...]] = ("Invalid URL", "Parse Error")

KNOWN_URL_TYPOS: Final[Mapping[str, str]] = {
    "www.capp.og": "www.capp.org",
}

_WHITESPACE = re.compile(r"\s+")


class LinkFailure(StrEnum):
    CONNECTION_REFUSED = "Connection refused"
    TIMED_OUT = "Connection timed out"
    DOMAIN_NOT_FOUND = "Domain not found"
    INVALID_URL = "Invalid URL"
    HTTP_STATUS = "HTTP Status"
    OTHER = "Request failed"


def is_working_status(status_code: int) -> bool:
    return 200 <= status_code < 400


@dataclass(frozen=True, slots=True)
class LinkCheckResult:
    url: str
    status_code: int | None = None
    failure: LinkFailure | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def error(self) -> str | None:
        match self.failure:
            case None:
                return None
            case LinkFailure.HTTP_STATUS:
                return f"HTTP Status {self.status_code}"
            case LinkFailure.INVALID_URL | LinkFailure.OTHER if self.detail:
                return f"{self.failure}: {self.detail}"
            case _:
                return str(self.failure)


@dataclass(frozen=True, slots=True)
class LinkTarget:
    """A document whose URL should be checked."""

    identifier: str
    name: str
    url: str


@dataclass(frozen=True, slots=True)
class BrokenLink:
    identifier: str
    name: str
    url: str
    status_code: int | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class LinkValidationSummary:
    total_resources: int
    working_links: int
    broken_links: int


@dataclass(slots=True)
class BrokenLinksReport:
    timestamp: datetime
    summary: LinkValidationSummary
    broken_links: list[BrokenLink] = field(default_factory=list["BrokenLink"])

    def invalid_url_links(self) -> list[BrokenLink]:
        return [link for link in self.broken_links if is_invalid_url_error(link.error)]


def extract_url(record: Mapping[str, object]) -> str | None:
    """First non-empty value of ``link``, ``url`` or ``website``."""

    name = url_field(record)
    if name is None:
        return None
    value = record[name]
    return value if isinstance(value, str) else str(value)


def url_field(record: Mapping[str, object]) -> str | None:
    """Name of the field that holds the record's URL, if any."""

    for name in URL_FIELDS:
        if record.get(name):
            return name
    return None


def resource_name(record: Mapping[str, object]) -> str:
    name = record.get("name") or record.get("title")
    return str(name) if name else "No name"


def link_targets(documents: Iterable[tuple[str, Mapping[str, object]]]) -> list[LinkTarget]:
    targets: list[LinkTarget] = []
    for identifier, data in documents:
        url = extract_url(data)
        if url:
            targets.append(LinkTarget(identifier=identifier, name=resource_name(data), url=url))
    return targets


def build_broken_links_report(
    targets: Sequence[LinkTarget],
    results: Sequence[LinkCheckResult],
    *,
    total_resources: int | None = None,
    clock: Callable[[], datetime] | None = None,
) -> BrokenLinksReport:
    """Pair ``targets`` with their check ``results`` (same order) into a report."""

    if len(targets) != len(results):
        raise ValueError("Each link target needs exactly one check result")
    broken = [
        BrokenLink(
            identifier=target.identifier,
            name=target.name,
            url=target.url,
            status_code=result.status_code,
            error=result.error,
        )
        for target, result in zip(targets, results, strict=True)
        if not result.ok
    ]
    now = clock() if clock is not None else datetime.now(UTC)
    return BrokenLinksReport(
        timestamp=now,
        summary=LinkValidationSummary(
            total_resources=len(targets) if total_resources is None else total_resources,
            working_links=len(results) - len(broken),
            broken_links=len(broken),
        ),
        broken_links=broken,
    )


def is_invalid_url_error(error: str | None) -> bool:
    if not error:
        return False
    return any(marker in error for marker in INVALID_URL_MARKERS)


def is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.hostname)


def fix_url(url: str | None) -> str | None:
    """Best-effort repair of a malformed URL, ``None`` if it stays invalid."""

    if not url:
        return None
    fixed = url.strip()
    if not fixed.startswith(("http://", "https://")):
        fixed = f"https://{fixed}"
    for typo, correction in KNOWN_URL_TYPOS.items():
        fixed = fixed.replace(typo, correction)
    fixed = _WHITESPACE.sub("", fixed)
    return fixed if is_valid_url(fixed) else None
