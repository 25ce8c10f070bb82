"""Search collection schema and its provisioning.

The collection is created once with a fixed field list. It is never
migrated in place: a schema change means dropping and recreating the
collection (``recreate_collection``) followed by a full sync.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .client import SearchIndexClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """One declared field: name, engine type and how it may be queried."""

    name: str
    type: str
    facet: bool = False
    sortable: bool = False
    optional: bool = False
    searchable: bool = False


@dataclass(frozen=True)
class CollectionSchema:
    name: str
    fields: tuple[FieldSpec, ...]
    primary_key: str = "id"
    default_sort: str = "publishedAtMillis:desc"

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def searchable_attributes(self) -> list[str]:
        return [f.name for f in self.fields if f.searchable]

    @property
    def filterable_attributes(self) -> list[str]:
        return [f.name for f in self.fields if f.facet]

    @property
    def sortable_attributes(self) -> list[str]:
        return [f.name for f in self.fields if f.sortable]

    @property
    def ranking_rules(self) -> list[str]:
        return [
            "words",
            "typo",
            "proximity",
            "attribute",
            "sort",
            "exactness",
            self.default_sort,
        ]

    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if not f.optional]


def content_schema(name: str) -> CollectionSchema:
    """Field list of the content search collection."""
    return CollectionSchema(
        name=name,
        fields=(
            FieldSpec("id", "string"),
            FieldSpec("originalId", "string", facet=True),
            FieldSpec("title", "string", sortable=True, searchable=True),
            FieldSpec("shortDescription", "string", optional=True, searchable=True),
            FieldSpec("slug", "string", optional=True),
            FieldSpec("entity", "string", facet=True),
            FieldSpec("locale", "string", facet=True),
            FieldSpec("industries", "string[]", facet=True, optional=True, searchable=True),
            FieldSpec("geographies", "string[]", facet=True, optional=True, searchable=True),
            FieldSpec("highlightImageUrl", "string", optional=True),
            FieldSpec("publishedAtMillis", "int64", sortable=True, facet=True),
            FieldSpec("createdAtMillis", "int64", sortable=True, optional=True),
            FieldSpec("author", "string", optional=True, searchable=True),
            FieldSpec("tags", "string[]", facet=True, optional=True, searchable=True),
            FieldSpec("source", "string", optional=True),
            FieldSpec("category", "string", facet=True, optional=True),
            FieldSpec("reportType", "string", facet=True, optional=True),
            FieldSpec("pages", "int32", optional=True),
            FieldSpec("price", "float", sortable=True, optional=True),
        ),
    )


class CollectionSchemaManager:
    """Provisions the content collection on the search engine."""

    def __init__(self, client: "SearchIndexClient", schema: CollectionSchema) -> None:
        self.client = client
        self.schema = schema

    async def ensure_collection(self) -> bool:
        """Create the collection if missing. Returns True when it was created.

        "Already exists" counts as success; every other failure propagates.
        """
        created = await self.client.ensure_collection(self.schema)
        if created:
            logger.info("Created search collection %s", self.schema.name)
        else:
            logger.info("Search collection %s already exists", self.schema.name)
        return created

    async def recreate_collection(self) -> None:
        """Drop the collection and provision it from scratch (manual schema change)."""
        logger.warning("Recreating search collection %s", self.schema.name)
        await self.client.drop_collection()
        await self.client.ensure_collection(self.schema)
