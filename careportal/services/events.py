"""
Messaging events.

Views that care about read-state changes (notification counters, audit sinks,
the Dapr forwarder) subscribe to an EventBus instead of sharing global state.
Events are published only after the originating transaction has committed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List
import logging
import uuid

logger = logging.getLogger(__name__)

MESSAGE_SENT = "message.sent"
CONVERSATION_READ = "conversation.read"
MESSAGE_MODERATED = "message.moderated"


@dataclass(frozen=True)
class MessagingEvent:
    type: str
    data: Dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


EventHandler = Callable[[MessagingEvent], None]


class EventBus:
    """Synchronous publish/subscribe registry for messaging events."""

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: MessagingEvent) -> None:
        # The write already committed, so a failing subscriber must not fail the request
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.type} ({event.event_id})")
