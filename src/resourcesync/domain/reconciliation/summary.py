"""Run tally for one reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field

from resourcesync.domain.model import Classification, RejectionReason


@dataclass(frozen=True, slots=True)
class GeneratedIdentifier:
    position: int
    identifier: str
    title: str | None = None


@dataclass(frozen=True, slots=True)
class RederivedIdentifier:
    position: int
    original: str
    identifier: str


@dataclass(frozen=True, slots=True)
class RejectedEntry:
    position: int
    reason: RejectionReason
    identifier: str | None = None


@dataclass(slots=True)
class RunSummary:
    """Counts and notable records of one run."""

    total: int = 0
    new: int = 0
    updated: int = 0
    unchanged: int = 0
    rejected: int = 0
    processed: int = 0
    committed: int = 0
    flushes: int = 0
    simulated: bool = False
    error: str | None = None
    generated: list[GeneratedIdentifier] = field(default_factory=list["GeneratedIdentifier"])
    rederived: list[RederivedIdentifier] = field(default_factory=list["RederivedIdentifier"])
    rejections: list[RejectedEntry] = field(default_factory=list["RejectedEntry"])

    @property
    def failed(self) -> int:
        return self.total - self.processed

    def count(self, classification: Classification) -> None:
        match classification:
            case Classification.NEW:
                self.new += 1
            case Classification.UPDATED:
                self.updated += 1
            case Classification.UNCHANGED:
                self.unchanged += 1
            case Classification.REJECTED:
                self.rejected += 1

    def reject(self, entry: RejectedEntry) -> None:
        self.rejections.append(entry)
        self.count(Classification.REJECTED)

    def duplicate_identifiers(self) -> list[str]:
        return [
            entry.identifier
            for entry in self.rejections
            if entry.reason is RejectionReason.DUPLICATE_IDENTIFIER and entry.identifier
        ]

    def report_lines(self, *, limit: int = 10) -> list[str]:
        """Human-readable report; lists are capped at ``limit`` entries."""

        would = self.simulated
        lines = [
            f"Processed {self.processed}/{self.total} records",
            f"- {self.new} new records {'would be created' if would else 'created'}",
            f"- {self.updated} existing records {'would be updated' if would else 'updated'}",
            f"- {self.unchanged} existing records "
            f"{'would be skipped' if would else 'skipped'} (no changes)",
            f"- {len(self.generated)} records had identifiers generated",
            f"- {self.rejected} records rejected",
        ]
        if not would:
            lines.append(f"- {self.committed} operations committed in {self.flushes} batches")

        if self.generated:
            lines.append("Generated identifiers:")
            lines.extend(
                f'- Record at index {item.position}: "{item.title or "No title"}" '
                f'-> ID: "{item.identifier}"'
                for item in self.generated[:limit]
            )
            lines.extend(_overflow(len(self.generated), limit))

        if self.rederived:
            lines.append("Re-derived identifiers after collision:")
            lines.extend(
                f'- Record at index {item.position}: "{item.original}" -> "{item.identifier}"'
                for item in self.rederived[:limit]
            )
            lines.extend(_overflow(len(self.rederived), limit))

        if self.rejections:
            lines.append(f"{len(self.rejections)} records rejected:")
            for entry in self.rejections[:limit]:
                id_part = f", ID: {entry.identifier}" if entry.identifier else ""
                lines.append(f"- Index {entry.position}{id_part}, Reason: {entry.reason}")
            lines.extend(_overflow(len(self.rejections), limit))

        if self.error is not None:
            lines.append(f"- {self.failed} records not written: {self.error}")
        return lines


def _overflow(size: int, limit: int) -> list[str]:
    if size <= limit:
        return []
    return [f"  ... and {size - limit} more"]
