"""
shared/events.py
In-process entity-changed bus.

The data-access layer publishes an EntityChange after every committed write;
handlers subscribe per (collection, kind). This stands in for document-store
triggers, so side effects such as email can be tested without a backend.

Handler failures are logged and never reach the writer.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class EntityChange:
    collection: str
    kind: ChangeKind
    entity_id: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    def changed(self, field_name: str) -> bool:
        return (self.before or {}).get(field_name) != (self.after or {}).get(field_name)


Handler = Callable[[EntityChange], Awaitable[None]]


@dataclass
class EventBus:
    _handlers: Dict[Tuple[str, ChangeKind], List[Handler]] = field(default_factory=dict)

    def subscribe(self, collection: str, kind: ChangeKind, handler: Handler) -> None:
        handlers = self._handlers.setdefault((collection, kind), [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, collection: str, kind: ChangeKind, handler: Handler) -> None:
        handlers = self._handlers.get((collection, kind), [])
        if handler in handlers:
            handlers.remove(handler)

    def on(self, collection: str, kind: ChangeKind):
        """Decorator form of subscribe()."""
        def decorator(handler: Handler) -> Handler:
            self.subscribe(collection, kind, handler)
            return handler
        return decorator

    def handlers_for(self, collection: str, kind: ChangeKind) -> List[Handler]:
        return list(self._handlers.get((collection, kind), []))

    async def publish(self, change: EntityChange) -> None:
        for handler in self.handlers_for(change.collection, change.kind):
            try:
                await handler(change)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s %s/%s",
                    getattr(handler, "__name__", handler),
                    change.kind.value,
                    change.collection,
                    change.entity_id,
                )


event_bus = EventBus()


def snapshot(entity) -> Dict[str, Any]:
    """Plain-dict copy of an ORM row's columns, enums flattened to values."""
    data = {}
    for column in entity.__table__.columns:
        value = getattr(entity, column.key)
        data[column.key] = value.value if isinstance(value, Enum) else value
    return data
