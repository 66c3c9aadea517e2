"""Field and value statistics over a collection of resources.

The analysis answers three questions about a collection: which fields the
documents carry, which values the categorical fields take, and how healthy
the URLs are. Results are plain dataclasses so that reports can be
serialized by an adapter.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from resourcesync.domain.links import BrokenLinksReport

NOT_SPECIFIED: Final = "Not specified"

ANALYZED_FIELDS: Final[tuple[str, ...]] = ("Resource Type", "state", "title")

URL_CANDIDATE_FIELDS: Final[tuple[str, ...]] = ("url", "website", "link", "URL", "Website", "Link")

_URL_LIKE_MARKERS: Final[tuple[str, ...]] = ("url", "website", "link")

FREQUENT_FIELD_THRESHOLD: Final[float] = 50.0


def percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count / total * 100, 1)


@dataclass(frozen=True, slots=True)
class FieldPresence:
    name: str
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class ValueCount:
    value: str
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class FieldValueAnalysis:
    field: str
    display_name: str
    present_in: int
    percentage_present: float
    has_multiple_values: bool
    values: tuple[ValueCount, ...] = ()

    @property
    def unique_value_count(self) -> int:
        return sum(1 for item in self.values if item.value != NOT_SPECIFIED)


@dataclass(frozen=True, slots=True)
class BrokenLinkDigest:
    total_resources: int
    working_links: int
    broken_links: int
    error_types: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True, slots=True)
class UrlAnalysis:
    url_field: str
    resources_with_url: int
    percentage_with_url: float
    duplicate_urls: tuple[tuple[str, int], ...] = ()
    broken_links: BrokenLinkDigest | None = None


@dataclass(slots=True)
class ResourceAnalysis:
    generated_at: datetime
    total_resources: int
    example_document: Mapping[str, object] | None = None
    fields_overview: list[FieldPresence] = field(default_factory=list["FieldPresence"])
    field_analysis: list[FieldValueAnalysis] = field(default_factory=list["FieldValueAnalysis"])
    url_analysis: UrlAnalysis | None = None


def fields_overview(records: Sequence[Mapping[str, object]]) -> list[FieldPresence]:
    """Every field with the number of records carrying it, most frequent first."""

    counts: Counter[str] = Counter()
    for record in records:
        counts.update(record.keys())
    total = len(records)
    return [
        FieldPresence(name=name, count=count, percentage=percentage(count, total))
        for name, count in counts.most_common()
    ]


def split_values(value: object) -> list[str]:
    """Individual values of a field: lists and comma-separated strings are split."""

    if isinstance(value, str):
        if "," in value:
            return [part.strip() for part in value.split(",")]
        return [value]
    if isinstance(value, list | tuple):
        return [str(item) for item in value]
    return [str(value)]


def is_url_like(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _URL_LIKE_MARKERS)


def display_name(name: str) -> str:
    return name[:1].upper() + name[1:]


def value_counts(records: Sequence[Mapping[str, object]], name: str) -> FieldValueAnalysis:
    """Value frequencies of ``name``; records without the field count as ``Not specified``."""

    counts: Counter[str] = Counter()
    present = 0
    instances = 0
    for record in records:
        if name not in record:
            counts[NOT_SPECIFIED] += 1
            continue
        present += 1
        values = split_values(record[name])
        instances += len(values)
        counts.update(values)

    total = len(records)
    if not present:
        return FieldValueAnalysis(
            field=name,
            display_name=display_name(name),
            present_in=0,
            percentage_present=0.0,
            has_multiple_values=False,
        )
    return FieldValueAnalysis(
        field=name,
        display_name=display_name(name),
        present_in=present,
        percentage_present=percentage(present, total),
        has_multiple_values=instances > present,
        values=tuple(
            ValueCount(value=value, count=count, percentage=percentage(count, total))
            for value, count in counts.most_common()
        ),
    )


def fields_to_analyze(
    overview: Iterable[FieldPresence],
    *,
    priority: Sequence[str] = ANALYZED_FIELDS,
    threshold: float = FREQUENT_FIELD_THRESHOLD,
) -> list[str]:
    names = list(priority)
    for presence in overview:
        if presence.percentage > threshold and presence.name not in names:
            names.append(presence.name)
    return [name for name in names if not is_url_like(name)]


def find_url_field(records: Sequence[Mapping[str, object]]) -> str | None:
    return next(
        (name for name in URL_CANDIDATE_FIELDS if any(name in record for record in records)),
        None,
    )


def url_analysis(
    records: Sequence[Mapping[str, object]],
    *,
    broken_links: BrokenLinksReport | None = None,
) -> UrlAnalysis | None:
    """URL coverage and duplicates, or ``None`` when no record has a URL field."""

    url_field = find_url_field(records)
    if url_field is None:
        return None
    urls = [str(record[url_field]) for record in records if record.get(url_field)]
    duplicates = tuple((url, count) for url, count in Counter(urls).most_common() if count > 1)
    return UrlAnalysis(
        url_field=url_field,
        resources_with_url=len(urls),
        percentage_with_url=percentage(len(urls), len(records)),
        duplicate_urls=duplicates,
        broken_links=digest_broken_links(broken_links) if broken_links is not None else None,
    )


def digest_broken_links(report: BrokenLinksReport) -> BrokenLinkDigest:
    error_types: Counter[str] = Counter(
        (link.error or "Unknown").split(":")[0] for link in report.broken_links
    )
    return BrokenLinkDigest(
        total_resources=report.summary.total_resources,
        working_links=report.summary.working_links,
        broken_links=report.summary.broken_links,
        error_types=tuple(error_types.most_common()),
    )


def analyze_resources(
    records: Sequence[Mapping[str, object]],
    *,
    broken_links: BrokenLinksReport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ResourceAnalysis:
    overview = fields_overview(records)
    return ResourceAnalysis(
        generated_at=clock() if clock is not None else datetime.now(UTC),
        total_resources=len(records),
        example_document=dict(records[0]) if records else None,
        fields_overview=overview,
        field_analysis=[value_counts(records, name) for name in fields_to_analyze(overview)],
        url_analysis=url_analysis(records, broken_links=broken_links),
    )
