"""Tests for the event bus, the Dapr forwarder and metrics."""

import json

import pytest

from careportal.dapr import client as dapr_client
from careportal.dapr.client import DaprEventPublisher
from careportal.services import events
from careportal.services.events import EventBus, MessagingEvent
from careportal.utils.metrics import MetricsCollector


def test_subscribe_and_unsubscribe():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)

    bus.publish(MessagingEvent(type=events.MESSAGE_SENT, data={"n": 1}))
    unsubscribe()
    bus.publish(MessagingEvent(type=events.MESSAGE_SENT, data={"n": 2}))

    assert [e.data["n"] for e in received] == [1]


def test_failing_handler_does_not_stop_others(caplog):
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("subscriber down")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.publish(MessagingEvent(type=events.CONVERSATION_READ, data={}))

    assert len(received) == 1
    assert "Event handler failed" in caplog.text


class FakeDaprClient:
    published = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def publish_event(self, **kwargs):
        FakeDaprClient.published.append(kwargs)


def test_dapr_publisher_sends_envelope(monkeypatch):
    FakeDaprClient.published = []
    monkeypatch.setattr(dapr_client, "DaprClient", FakeDaprClient)
    event = MessagingEvent(type=events.MESSAGE_SENT, data={"message_id": "m1"})

    result = DaprEventPublisher(pubsub_name="pubsub", topic="message-events")(event)

    assert result is None
    call = FakeDaprClient.published[0]
    assert call["pubsub_name"] == "pubsub"
    assert call["topic_name"] == "message-events"
    payload = json.loads(call["data"])
    assert payload["type"] == events.MESSAGE_SENT
    assert payload["event_id"] == event.event_id
    assert payload["source"] == "careportal-messaging"


def test_dapr_publisher_propagates_failures(monkeypatch):
    class Unreachable(FakeDaprClient):
        def publish_event(self, **kwargs):
            raise ConnectionError("sidecar not running")

    monkeypatch.setattr(dapr_client, "DaprClient", Unreachable)

    with pytest.raises(ConnectionError):
        DaprEventPublisher().publish_event(MessagingEvent(type=events.MESSAGE_SENT, data={}))


def test_metrics_counters():
    metrics = MetricsCollector()
    metrics.message_sent()
    metrics.message_sent()
    metrics.moderation_action()

    counters = metrics.get_metrics()["counters"]
    assert counters["messages_sent_total"] == 2
    assert counters["moderation_actions_total"] == 1
    assert counters["send_forbidden_total"] == 0
