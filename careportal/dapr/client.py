"""Dapr forwarder for messaging events."""
import json
import logging
from typing import Any, Dict

from dapr.clients import DaprClient

from careportal.config import DAPR_PUBSUB_NAME, MESSAGE_EVENTS_TOPIC
from careportal.services.events import MessagingEvent

logger = logging.getLogger(__name__)


class DaprEventPublisher:
    """Publishes messaging events to a pub/sub topic via the Dapr sidecar."""

    def __init__(self, pubsub_name: str = DAPR_PUBSUB_NAME, topic: str = MESSAGE_EVENTS_TOPIC,
                 source: str = "careportal-messaging"):
        self.pubsub_name = pubsub_name
        self.topic = topic
        self.source = source

    def publish_event(self, event: MessagingEvent) -> Dict[str, Any]:
        """Publish one event envelope to the configured topic."""
        envelope = event.to_dict()
        envelope["source"] = self.source

        try:
            with DaprClient() as client:
                client.publish_event(
                    pubsub_name=self.pubsub_name,
                    topic_name=self.topic,
                    data=json.dumps(envelope),
                    data_content_type="application/json"
                )
        except Exception as e:
            logger.error(f"Failed to publish event to topic {self.topic}: {str(e)}")
            raise

        logger.info(f"Published event {event.type} to topic {self.topic}")
        return {"success": True, "event_id": event.event_id}

    def __call__(self, event: MessagingEvent) -> None:
        self.publish_event(event)
