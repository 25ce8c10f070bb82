"""Per-variant field mapping tables for the document normalizer.

Content types name the same concept differently (a news article's teaser
may live in ``summary`` or ``lead``, legacy rows keep their publication date
in ``oldPublishedAt``). Each variant declares, per canonical field, an
ordered tuple of accessors; the normalizer takes the first accessor that
yields a usable value. The order is data, so it can be read and tested
directly instead of being buried in conditionals.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from .variants import ContentVariant

Record = Mapping[str, Any]
Accessor = Callable[[Record], Any]


@dataclass(frozen=True)
class Key:
    """Accessor reading one top-level field of a record."""

    name: str

    def __call__(self, record: Record) -> Any:
        return record.get(self.name)


# ---- Value coercion ----

def relation_name(value: Any, *name_fields: str) -> Optional[str]:
    """Display name of a relation given as a plain string or an object."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        for name_field in name_fields or ("name",):
            name = value.get(name_field)
            if isinstance(name, str) and name.strip():
                return name.strip()
    return None


def relation_names(value: Any) -> list[str]:
    """Names of a single or multiple relation, empties dropped, first-seen order kept."""
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    names: list[str] = []
    for item in items:
        name = relation_name(item)
        if name and name not in names:
            names.append(name)
    return names


def to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def author_name(value: Any) -> Optional[str]:
    return relation_name(value, "name", "username")


@dataclass(frozen=True)
class ExtraField:
    """Variant-specific document field: where to read it and how to coerce it."""

    target: str
    accessor: Accessor
    convert: Callable[[Any], Any]


@dataclass(frozen=True)
class VariantFieldMapping:
    """Ordered accessors for every canonical field of one content variant."""

    variant: ContentVariant
    short_description: tuple[Accessor, ...]
    published_at: tuple[Accessor, ...]
    industries: tuple[Accessor, ...]
    geographies: tuple[Accessor, ...]
    highlight_image: tuple[Accessor, ...]
    created_at: Accessor = Key("createdAt")
    # Relation keys an event payload must carry to be normalized without a re-fetch
    required_relations: tuple[str, ...] = ()
    extras: tuple[ExtraField, ...] = field(default_factory=tuple)


_DESCRIPTION_FIELDS = (Key("shortDescription"), Key("excerpt"), Key("description"))

# Legacy rows keep the original publication date in oldPublishedAt
_DATE_FIELDS = (
    Key("oldPublishedAt"),
    Key("publishedAt"),
    Key("published_at"),
    Key("publicationDate"),
)

_IMAGE_FIELDS = (Key("highlightImage"), Key("featuredImage"))


FIELD_MAPPINGS: dict[ContentVariant, VariantFieldMapping] = {
    ContentVariant.REPORT: VariantFieldMapping(
        variant=ContentVariant.REPORT,
        short_description=_DESCRIPTION_FIELDS,
        published_at=_DATE_FIELDS,
        industries=(Key("industry"), Key("industries")),
        geographies=(Key("geographies"), Key("geography")),
        highlight_image=_IMAGE_FIELDS,
        required_relations=("industry", "geographies", "highlightImage"),
        extras=(
            ExtraField("report_type", Key("reportType"), relation_name),
            ExtraField("pages", Key("pages"), to_int),
            ExtraField("price", Key("price"), to_float),
        ),
    ),
    ContentVariant.BLOG: VariantFieldMapping(
        variant=ContentVariant.BLOG,
        short_description=_DESCRIPTION_FIELDS,
        published_at=_DATE_FIELDS,
        industries=(Key("industries"), Key("industry")),
        geographies=(),
        highlight_image=_IMAGE_FIELDS,
        required_relations=("industries", "highlightImage"),
        extras=(
            ExtraField("author", Key("author"), author_name),
            ExtraField("tags", Key("tags"), lambda v: relation_names(v) or None),
        ),
    ),
    ContentVariant.NEWS_ARTICLE: VariantFieldMapping(
        variant=ContentVariant.NEWS_ARTICLE,
        short_description=_DESCRIPTION_FIELDS + (Key("summary"), Key("lead")),
        published_at=_DATE_FIELDS,
        industries=(Key("industries"), Key("industry")),
        geographies=(),
        highlight_image=_IMAGE_FIELDS,
        required_relations=("industries", "highlightImage"),
        extras=(
            ExtraField("source", Key("source"), relation_name),
            ExtraField("category", Key("category"), relation_name),
        ),
    ),
}


def get_field_mapping(variant: ContentVariant) -> VariantFieldMapping:
    return FIELD_MAPPINGS[variant]
