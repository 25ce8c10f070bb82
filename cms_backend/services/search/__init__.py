"""Search index synchronization.

Keeps the search collection consistent with published CMS content: a
normalizer shared by full syncs and lifecycle hooks, an engine adapter, and
the startup orchestrator that ties them together.
"""

from .bulk_sync import BulkSynchronizer
from .client import SearchIndexClient, SearchQuery, SearchResult
from .errors import NormalizationError, SearchIndexError, SearchIndexUnavailable
from .events import ContentEvent, ContentEventBus, LifecycleAction
from .hooks import ContentSyncHooks, register_sync_hooks
from .normalizer import build_document_id, normalize
from .orchestrator import SyncOrchestrator, SyncState
from .scheduler import CronScheduler, parse_cron_expression
from .schema import CollectionSchema, CollectionSchemaManager, FieldSpec, content_schema
from .variants import TRACKED_VARIANTS, ContentVariant

__all__ = [
    "BulkSynchronizer",
    "CollectionSchema",
    "CollectionSchemaManager",
    "ContentEvent",
    "ContentEventBus",
    "ContentSyncHooks",
    "ContentVariant",
    "CronScheduler",
    "FieldSpec",
    "LifecycleAction",
    "NormalizationError",
    "SearchIndexClient",
    "SearchIndexError",
    "SearchIndexUnavailable",
    "SearchQuery",
    "SearchResult",
    "SyncOrchestrator",
    "SyncState",
    "TRACKED_VARIANTS",
    "build_document_id",
    "content_schema",
    "normalize",
    "parse_cron_expression",
    "register_sync_hooks",
]
