"""In-process content lifecycle event bus.

The host integration (see ``services/content_lifecycle.py``) publishes one
``ContentEvent`` per content write; subscribers implement the
``ContentLifecycleHandler`` interface and are registered per CMS model.
Handlers are isolated from each other: one raising never stops the others
and never reaches the publisher.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class LifecycleAction(str, Enum):
    CREATE = "afterCreate"
    UPDATE = "afterUpdate"
    DELETE = "afterDelete"
    PUBLISH = "afterPublish"
    UNPUBLISH = "afterUnpublish"


@dataclass(frozen=True)
class ContentEvent:
    """A content write: which model, what happened, and the row as written."""

    model: str
    action: LifecycleAction
    result: dict[str, Any] = field(default_factory=dict)


class ContentLifecycleHandler(Protocol):
    async def on_create(self, event: ContentEvent) -> None: ...

    async def on_update(self, event: ContentEvent) -> None: ...

    async def on_delete(self, event: ContentEvent) -> None: ...

    async def on_publish(self, event: ContentEvent) -> None: ...

    async def on_unpublish(self, event: ContentEvent) -> None: ...


_HANDLER_METHODS = {
    LifecycleAction.CREATE: "on_create",
    LifecycleAction.UPDATE: "on_update",
    LifecycleAction.DELETE: "on_delete",
    LifecycleAction.PUBLISH: "on_publish",
    LifecycleAction.UNPUBLISH: "on_unpublish",
}


async def _dispatch(handler: ContentLifecycleHandler, method_name: str, event: ContentEvent) -> None:
    await getattr(handler, method_name)(event)


class ContentEventBus:
    """Dispatches content events to the handlers subscribed for their model."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[ContentLifecycleHandler]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, model: str, handler: ContentLifecycleHandler) -> None:
        self._handlers.setdefault(model, []).append(handler)
        logger.debug("Subscribed %s to %s events", type(handler).__name__, model)

    def unsubscribe(self, model: str) -> None:
        self._handlers.pop(model, None)

    def handlers_for(self, model: str) -> list[ContentLifecycleHandler]:
        return list(self._handlers.get(model, []))

    async def publish(self, event: ContentEvent) -> None:
        """Run every subscribed handler for the event. Never raises."""
        method_name = _HANDLER_METHODS[event.action]
        handlers = self.handlers_for(event.model)
        if not handlers:
            return

        results = await asyncio.gather(
            *(_dispatch(handler, method_name, event) for handler in handlers),
            return_exceptions=True,
        )
        for handler, outcome in zip(handlers, results):
            if isinstance(outcome, Exception):
                logger.error(
                    "%s.%s failed for %s %s: %s",
                    type(handler).__name__, method_name, event.model,
                    event.result.get("id"), outcome,
                )

    def publish_nowait(self, event: ContentEvent) -> asyncio.Task:
        """Schedule ``publish`` as an independent task and return it.

        Used from ORM callbacks, which cannot await. A reference to the task
        is kept until it finishes.
        """
        task = asyncio.get_running_loop().create_task(self.publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all scheduled publications to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
