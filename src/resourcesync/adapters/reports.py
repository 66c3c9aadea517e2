"""JSON report files: broken-link reports and resource analyses."""

from __future__ import annotations

from datetime import datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from resourcesync.domain.links import BrokenLink, BrokenLinksReport, LinkValidationSummary

if TYPE_CHECKING:
    from pathlib import Path

    from resourcesync.domain.analysis import (
        BrokenLinkDigest,
        FieldValueAnalysis,
        ResourceAnalysis,
        UrlAnalysis,
    )

log = getLogger(__name__)

ANALYSIS_REPORT_PREFIX = "resource_analysis_report"


class ReportFormatError(ValueError):
    """Raised when a report file does not have the expected structure."""


class ReportModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Broken links ----------------------------------------------------------------


class BrokenLinkModel(ReportModel):
    identifier: str = Field(alias="id")
    name: str = "No name"
    url: str
    status_code: int | None = Field(alias="statusCode", default=None)
    error: str | None = None


class LinkSummaryModel(ReportModel):
    total_resources: int = Field(alias="totalResources")
    working_links: int = Field(alias="workingLinks")
    broken_links: int = Field(alias="brokenLinks")


class BrokenLinksReportModel(ReportModel):
    timestamp: datetime
    summary: LinkSummaryModel
    broken_links: list[BrokenLinkModel] = Field(alias="brokenLinks", default_factory=list)

    @classmethod
    def from_domain(cls, report: BrokenLinksReport) -> BrokenLinksReportModel:
        return cls(
            timestamp=report.timestamp,
            summary=LinkSummaryModel(
                total_resources=report.summary.total_resources,
                working_links=report.summary.working_links,
                broken_links=report.summary.broken_links,
            ),
            broken_links=[
                BrokenLinkModel(
                    identifier=link.identifier,
                    name=link.name,
                    url=link.url,
                    status_code=link.status_code,
                    error=link.error,
                )
                for link in report.broken_links
            ],
        )

    def to_domain(self) -> BrokenLinksReport:
        return BrokenLinksReport(
            timestamp=self.timestamp,
            summary=LinkValidationSummary(
                total_resources=self.summary.total_resources,
                working_links=self.summary.working_links,
                broken_links=self.summary.broken_links,
            ),
            broken_links=[
                BrokenLink(
                    identifier=link.identifier,
                    name=link.name,
                    url=link.url,
                    status_code=link.status_code,
                    error=link.error,
                )
                for link in self.broken_links
            ],
        )


def write_broken_links_report(path: Path, report: BrokenLinksReport) -> None:
    model = BrokenLinksReportModel.from_domain(report)
    path.write_text(model.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    log.info("Broken links report saved to %s", path)


def read_broken_links_report(path: Path) -> BrokenLinksReport:
    """Load a report written by ``write_broken_links_report``.

    Raises ``FileNotFoundError`` if ``path`` does not exist and
    ``ReportFormatError`` if its content does not validate.
    """

    raw = path.read_text(encoding="utf-8")
    try:
        model = BrokenLinksReportModel.model_validate_json(raw)
    except ValidationError as exc:
        raise ReportFormatError(f"Invalid broken links report {path}: {exc}") from exc
    return model.to_domain()


# Resource analysis -------------------------------------------------------------


class FieldPresenceModel(ReportModel):
    name: str
    count: int
    percentage: float


class ValueCountModel(ReportModel):
    value: str
    count: int
    percentage: float


class FieldValueAnalysisModel(ReportModel):
    display_name: str = Field(alias="displayName")
    present_in_resources: int = Field(alias="presentInResources")
    percentage_present: float = Field(alias="percentagePresent")
    has_multiple_values: bool = Field(alias="hasMultipleValues")
    unique_value_count: int = Field(alias="uniqueValueCount")
    values: list[ValueCountModel]

    @classmethod
    def from_domain(cls, analysis: FieldValueAnalysis) -> FieldValueAnalysisModel:
        return cls(
            display_name=analysis.display_name,
            present_in_resources=analysis.present_in,
            percentage_present=analysis.percentage_present,
            has_multiple_values=analysis.has_multiple_values,
            unique_value_count=analysis.unique_value_count,
            values=[
                ValueCountModel(value=item.value, count=item.count, percentage=item.percentage)
                for item in analysis.values
            ],
        )


class UrlCountModel(ReportModel):
    url: str
    count: int


class ErrorTypeModel(ReportModel):
    type: str
    count: int


class BrokenLinkDigestModel(ReportModel):
    summary: LinkSummaryModel
    error_types: list[ErrorTypeModel] = Field(alias="errorTypes")

    @classmethod
    def from_domain(cls, digest: BrokenLinkDigest) -> BrokenLinkDigestModel:
        return cls(
            summary=LinkSummaryModel(
                total_resources=digest.total_resources,
                working_links=digest.working_links,
                broken_links=digest.broken_links,
            ),
            error_types=[
                ErrorTypeModel(type=error_type, count=count)
                for error_type, count in digest.error_types
            ],
        )


class UrlAnalysisModel(ReportModel):
    url_field: str = Field(alias="urlField")
    resources_with_url: int = Field(alias="resourcesWithUrl")
    percentage_with_url: float = Field(alias="percentageWithUrl")
    duplicate_urls: list[UrlCountModel] = Field(alias="duplicateUrls")
    broken_links: BrokenLinkDigestModel | None = Field(alias="brokenLinks", default=None)

    @classmethod
    def from_domain(cls, analysis: UrlAnalysis) -> UrlAnalysisModel:
        return cls(
            url_field=analysis.url_field,
            resources_with_url=analysis.resources_with_url,
            percentage_with_url=analysis.percentage_with_url,
            duplicate_urls=[
                UrlCountModel(url=url, count=count) for url, count in analysis.duplicate_urls
            ],
            broken_links=(
                BrokenLinkDigestModel.from_domain(analysis.broken_links)
                if analysis.broken_links is not None
                else None
            ),
        )


class ResourceAnalysisModel(ReportModel):
    generated_at: datetime = Field(alias="generatedAt")
    total_resources: int = Field(alias="totalResources")
    example_document: dict[str, Any] | None = Field(alias="exampleDocument", default=None)
    fields_overview: list[FieldPresenceModel] = Field(alias="fieldsOverview")
    field_analysis: dict[str, FieldValueAnalysisModel] = Field(alias="fieldAnalysis")
    url_analysis: UrlAnalysisModel | None = Field(alias="urlAnalysis", default=None)

    @classmethod
    def from_domain(cls, analysis: ResourceAnalysis) -> ResourceAnalysisModel:
        return cls(
            generated_at=analysis.generated_at,
            total_resources=analysis.total_resources,
            example_document=(
                dict(analysis.example_document) if analysis.example_document is not None else None
            ),
            fields_overview=[
                FieldPresenceModel(name=item.name, count=item.count, percentage=item.percentage)
                for item in analysis.fields_overview
            ],
            field_analysis={
                item.field: FieldValueAnalysisModel.from_domain(item)
                for item in analysis.field_analysis
            },
            url_analysis=(
                UrlAnalysisModel.from_domain(analysis.url_analysis)
                if analysis.url_analysis is not None
                else None
            ),
        )


def analysis_report_filename(generated_at: datetime) -> str:
    return f"{ANALYSIS_REPORT_PREFIX}_{generated_at:%Y-%m-%d}.json"


def write_analysis_report(path: Path, analysis: ResourceAnalysis) -> None:
    model = ResourceAnalysisModel.from_domain(analysis)
    path.write_text(model.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    log.info("Report saved to %s", path)
