"""Link validation settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig

LINK_CHECK_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_LINK_CHECK_CONCURRENCY: Final[int] = 10
BROKEN_LINKS_REPORT_FILE: Final[str] = "broken_links_report.json"


def _default_resilience_config() -> ResilienceConfig:
    return ResilienceConfig(
        name="links",
        timeout_seconds=LINK_CHECK_TIMEOUT_SECONDS,
        retry=NO_RETRY,
        ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        follow_redirects=False,
    )


@dataclass(frozen=True, slots=True)
class LinkCheckConfig:
    concurrency: int = DEFAULT_LINK_CHECK_CONCURRENCY
    report_path: str = BROKEN_LINKS_REPORT_FILE
    resilience: ResilienceConfig = field(default_factory=_default_resilience_config)


def get_link_check_config() -> LinkCheckConfig:
    return LinkCheckConfig()
