"""Identifier derivation and intra-run collision handling.

Incoming records either carry an identifier or get a synthetic one derived
from their descriptive fields. Explicit identifiers are taken as-is; synthetic
ones are re-suffixed on collision so that two records with the same content
never overwrite each other.
"""

from __future__ import annotations

import logging
import re
import time
import unicodedata
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Final

SLUG_MAX_LENGTH: Final[int] = 30
GENERATED_PREFIX: Final[str] = "generated-resource"

_WHITESPACE_RE = re.compile(r"\s+")
_NON_SLUG_RE = re.compile(r"[^a-z0-9_\-]+")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")

type SuffixProvider = Callable[[], str]

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IdentifierFields:
    """Field names consulted when deriving identifiers."""

    identifier: str = "id"
    title: str = "title"
    type: str = "Resource Type"
    state: str = "state"


DEFAULT_IDENTIFIER_FIELDS: Final[IdentifierFields] = IdentifierFields()


def slugify(value: object) -> str:
    """Return a lowercase, hyphenated, URL-safe slug of at most 30 characters."""

    decomposed = unicodedata.normalize("NFKD", str(value))
    text = "".join(char for char in decomposed if not unicodedata.combining(char)).lower()
    text = _WHITESPACE_RE.sub("-", text)
    text = _NON_SLUG_RE.sub("", text)
    text = _HYPHEN_RUN_RE.sub("-", text)
    return text.strip("-")[:SLUG_MAX_LENGTH]


def time_suffix() -> str:
    """Last six digits of the current epoch milliseconds."""

    return str(time.time_ns() // 1_000_000)[-6:]


def explicit_identifier(
    record: Mapping[str, object],
    fields: IdentifierFields = DEFAULT_IDENTIFIER_FIELDS,
) -> str | None:
    value = record.get(fields.identifier)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _text(record: Mapping[str, object], name: str) -> str | None:
    value = record.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def synthesize_identifier(
    record: Mapping[str, object],
    position: int,
    *,
    fields: IdentifierFields = DEFAULT_IDENTIFIER_FIELDS,
    suffix: SuffixProvider = time_suffix,
) -> str:
    """Build an identifier from title, type and state, ignoring any explicit id."""

    title_slug, type_slug, state_slug = (
        slugify(text) if (text := _text(record, name)) else ""
        for name in (fields.title, fields.type, fields.state)
    )

    # a title that slugifies to nothing counts as no title
    if title_slug:
        return f"{title_slug}-{type_slug}" if type_slug else title_slug

    if type_slug and state_slug:
        return f"{type_slug}-{state_slug}-{suffix()}"

    return f"{GENERATED_PREFIX}-{position}-{suffix()}"


def derive_identifier(
    record: Mapping[str, object],
    position: int,
    *,
    fields: IdentifierFields = DEFAULT_IDENTIFIER_FIELDS,
    suffix: SuffixProvider = time_suffix,
) -> str:
    """Return the record's own identifier, or a synthetic one when it has none."""

    return explicit_identifier(record, fields) or synthesize_identifier(
        record, position, fields=fields, suffix=suffix
    )


@dataclass(frozen=True, slots=True)
class IdentifierAssignment:
    identifier: str
    derived: bool
    duplicate: bool = False
    rederived_from: str | None = None


@dataclass(slots=True)
class IdentifierRegistry:
    """Hand out identifiers for one run, enforcing uniqueness among accepted records."""

    fields: IdentifierFields = DEFAULT_IDENTIFIER_FIELDS
    suffix: SuffixProvider = time_suffix
    _assigned: set[str] = field(default_factory=set)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._assigned

    def assign(self, record: Mapping[str, object], position: int) -> IdentifierAssignment:
        """Reserve an identifier for ``record``.

        An explicit identifier that is already taken comes back flagged as a
        duplicate and is not reserved again. A synthetic identifier that is
        already taken is replaced with a suffixed variant.
        """

        explicit = explicit_identifier(record, self.fields)
        if explicit is not None:
            if explicit in self._assigned:
                return IdentifierAssignment(identifier=explicit, derived=False, duplicate=True)
            self._assigned.add(explicit)
            return IdentifierAssignment(identifier=explicit, derived=False)

        candidate = synthesize_identifier(record, position, fields=self.fields, suffix=self.suffix)
        if candidate not in self._assigned:
            self._assigned.add(candidate)
            return IdentifierAssignment(identifier=candidate, derived=True)

        variant = self._unique_variant(candidate)
        self._assigned.add(variant)
        log.info('Modified duplicate generated ID "%s" to "%s"', candidate, variant)
        return IdentifierAssignment(identifier=variant, derived=True, rederived_from=candidate)

    def _unique_variant(self, candidate: str) -> str:
        base = f"{candidate}-{self.suffix()}"
        variant = base
        counter = 2
        while variant in self._assigned:
            variant = f"{base}-{counter}"
            counter += 1
        return variant
