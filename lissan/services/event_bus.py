"""
Event Bus
In-process publish/subscribe for domain events raised after a successful commit
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

# Event names as seen by realtime clients
NEW_MESSAGE = "new-message"
DOCUMENT_UPLOADED = "document-uploaded"
DOCUMENT_DELETED = "document-deleted"
WORKFLOW_COMPLETED = "workflow-completed"


@dataclass
class DomainEvent:
    company_id: str
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    """Fans events out to every subscriber; a failing subscriber never fails the publisher"""

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler):
        self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def publish(self, event: DomainEvent):
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Event handler failed for {event.name} (company {event.company_id}): {e}")
