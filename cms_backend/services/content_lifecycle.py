"""Bridge from SQLAlchemy session events to content lifecycle events.

During a flush the bridge records which tracked content rows were inserted,
updated or deleted. Only once the transaction commits are the matching
``ContentEvent``s published on the bus, each as an independent asyncio task
so the committing request never waits on the search engine. A rollback
discards whatever was recorded.

Publish and unpublish are derived from changes to ``published_at``: setting
it marks a publish, clearing it an unpublish.
"""

import logging
from typing import Any, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from .content_repository import MODEL_VARIANTS, to_record
from .search.events import ContentEvent, ContentEventBus, LifecycleAction

logger = logging.getLogger(__name__)

_PENDING_KEY = "content_lifecycle_events"


def _publication_action(instance: Any) -> Optional[LifecycleAction]:
    """PUBLISH / UNPUBLISH when published_at changed in this flush, else None."""
    history = inspect(instance).attrs.published_at.history
    if not history.added:
        return None
    return LifecycleAction.PUBLISH if history.added[0] is not None else LifecycleAction.UNPUBLISH


class ContentLifecycleBridge:
    """Publishes content events for rows written through ``session_class``."""

    def __init__(self, bus: ContentEventBus, session_class: type[Session] = Session) -> None:
        self.bus = bus
        self.session_class = session_class
        self._attached = False

    def attach(self) -> None:
        if self._attached:
            return
        event.listen(self.session_class, "after_flush", self._after_flush)
        event.listen(self.session_class, "after_commit", self._after_commit)
        event.listen(self.session_class, "after_rollback", self._after_rollback)
        self._attached = True
        logger.info("Content lifecycle events attached to %s", self.session_class.__name__)

    def detach(self) -> None:
        if not self._attached:
            return
        event.remove(self.session_class, "after_flush", self._after_flush)
        event.remove(self.session_class, "after_commit", self._after_commit)
        event.remove(self.session_class, "after_rollback", self._after_rollback)
        self._attached = False

    def _after_flush(self, session: Session, flush_context: Any) -> None:
        pending: list[ContentEvent] = session.info.setdefault(_PENDING_KEY, [])

        for instance in session.new:
            variant = MODEL_VARIANTS.get(type(instance))
            if variant is not None:
                pending.append(ContentEvent(variant.value, LifecycleAction.CREATE, to_record(instance)))

        for instance in session.dirty:
            variant = MODEL_VARIANTS.get(type(instance))
            if variant is None or not session.is_modified(instance):
                continue
            action = _publication_action(instance) or LifecycleAction.UPDATE
            pending.append(ContentEvent(variant.value, action, to_record(instance)))

        for instance in session.deleted:
            variant = MODEL_VARIANTS.get(type(instance))
            if variant is not None:
                pending.append(ContentEvent(variant.value, LifecycleAction.DELETE, to_record(instance)))

    def _after_commit(self, session: Session) -> None:
        pending = session.info.pop(_PENDING_KEY, [])
        for content_event in pending:
            try:
                self.bus.publish_nowait(content_event)
            except RuntimeError as exc:
                # No running event loop (sync usage); nothing can be scheduled
                logger.warning(
                    "Dropped %s event for %s %s: %s",
                    content_event.action.value, content_event.model,
                    content_event.result.get("id"), exc,
                )

    def _after_rollback(self, session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)
