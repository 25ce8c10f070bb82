"""Content record to search document normalization.

Turns a Report, Blog or NewsArticle record (a plain dict with the CMS's
camelCase field names, relations either populated or absent) into one
canonical ``IndexDocument``. Pure: no I/O and no side effects beyond
logging. Apart from the current-time date fallback, the same input always
produces the same document.
"""

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

from ...schemas.search import IndexDocument
from .errors import NormalizationError
from .field_mappings import VariantFieldMapping, get_field_mapping, relation_names
from .variants import DEFAULT_LOCALE, ContentVariant

logger = logging.getLogger(__name__)

# Shortest digit string accepted as epoch milliseconds
MIN_EPOCH_DIGITS = 10


def build_document_id(original_id: Any, variant: ContentVariant, locale: Optional[str]) -> str:
    """Index id for one record+locale. Unique across content types and locales."""
    return f"{original_id}_{variant.tag}_{locale or DEFAULT_LOCALE}"


def to_epoch_millis(value: Any) -> Optional[int]:
    """Parse a timestamp into epoch milliseconds, or None if it is not a valid date.

    Accepts datetimes (naive values are taken as UTC), dates, epoch
    milliseconds as int or digit string, and ISO-8601 strings. Digit strings
    shorter than an epoch value (compact dates such as "20240115") are not
    dates.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, date):
        return int(datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp() * 1000)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.lstrip("-").isdigit():
            if len(text.lstrip("-")) < MIN_EPOCH_DIGITS:
                return None
            return int(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_epoch_millis(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def extract_image_url(value: Any) -> Optional[str]:
    """URL of a highlight image in any of the shapes the CMS hands out.

    Supported: ``{"url": ...}``, ``{"data": {"attributes": {"url": ...}}}``,
    ``[{"url": ...}, ...]`` and a bare URL string. Anything else is None.
    """
    url = None
    if isinstance(value, str):
        url = value
    elif isinstance(value, Mapping):
        if value.get("url"):
            url = value["url"]
        else:
            data = value.get("data")
            if isinstance(data, Mapping):
                url = (data.get("attributes") or {}).get("url")
    elif isinstance(value, (list, tuple)) and value:
        first = value[0]
        if isinstance(first, Mapping):
            url = first.get("url")

    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


def _first_text(record: Mapping[str, Any], accessors) -> str:
    for accessor in accessors:
        value = accessor(record)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _first_names(record: Mapping[str, Any], accessors) -> list[str]:
    for accessor in accessors:
        names = relation_names(accessor(record))
        if names:
            return names
    return []


def _highlight_image_url(record: Mapping[str, Any], mapping: VariantFieldMapping) -> Optional[str]:
    try:
        for accessor in mapping.highlight_image:
            url = extract_image_url(accessor(record))
            if url:
                return url
    except Exception as exc:
        logger.warning(
            "Unreadable highlight image on %s %s: %s",
            mapping.variant.value, record.get("id"), exc,
        )
    return None


def _published_at_millis(record: Mapping[str, Any], mapping: VariantFieldMapping, now: datetime) -> int:
    for accessor in mapping.published_at:
        millis = to_epoch_millis(accessor(record))
        if millis is not None:
            return millis

    created = to_epoch_millis(mapping.created_at(record))
    if created is not None:
        return created

    logger.warning(
        "No valid publication or creation date on %s %s, using current time",
        mapping.variant.value, record.get("id"),
    )
    return to_epoch_millis(now)


def normalize(
    record: Mapping[str, Any],
    variant: ContentVariant,
    mapping: Optional[VariantFieldMapping] = None,
    now: Optional[datetime] = None,
) -> IndexDocument:
    """Build the canonical index document for a content record.

    Missing optional fields (industries, geographies, image, dates) never
    raise; they fall back to empty lists, None or the date fallback chain.

    Raises:
        NormalizationError: the record is not a mapping or has no id.
    """
    if not isinstance(record, Mapping):
        raise NormalizationError(f"Expected a mapping for {variant.value}, got {type(record).__name__}")
    if record.get("id") is None:
        raise NormalizationError(f"{variant.value} record has no id")

    mapping = mapping or get_field_mapping(variant)
    now = now or datetime.now(timezone.utc)

    original_id = str(record["id"])
    locale = record.get("locale") or DEFAULT_LOCALE
    title = str(record.get("title") or "")

    extras: dict[str, Any] = {}
    for extra in mapping.extras:
        try:
            value = extra.convert(extra.accessor(record))
        except Exception as exc:
            logger.warning(
                "Dropping %s on %s %s: %s", extra.target, variant.value, original_id, exc,
            )
            value = None
        if value is not None:
            extras[extra.target] = value

    return IndexDocument(
        id=build_document_id(original_id, variant, locale),
        original_id=original_id,
        title=title,
        short_description=_first_text(record, mapping.short_description) or title,
        slug=str(record.get("slug") or ""),
        entity=variant.value,
        locale=locale,
        industries=_first_names(record, mapping.industries),
        geographies=_first_names(record, mapping.geographies),
        highlight_image_url=_highlight_image_url(record, mapping),
        published_at_millis=_published_at_millis(record, mapping, now),
        created_at_millis=to_epoch_millis(mapping.created_at(record)),
        **extras,
    )


def is_published(record: Mapping[str, Any]) -> bool:
    """Whether the CMS considers the record published (drafts are never indexed)."""
    return bool(record.get("publishedAt") or record.get("published_at"))
