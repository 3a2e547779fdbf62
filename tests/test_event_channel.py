from __future__ import annotations

from marketgap.models.events import EventType, SSEEvent
from marketgap.services import streaming
from marketgap.services.event_channel import EventChannel


def test_subscribers_receive_events_in_emission_order():
    channel = EventChannel("run-1")
    first: list[dict] = []
    second: list[dict] = []
    channel.subscribe(first.append)
    channel.subscribe(second.append)

    channel.publish(streaming.run_start("podcasters"))
    channel.publish(streaming.phase_start("scout", "go"))
    channel.publish(streaming.phase_complete("scout", "done"))

    assert [e["type"] for e in first] == ["run_start", "phase_start", "phase_complete"]
    assert first == second
    assert all(e["run_id"] == "run-1" and e["timestamp"] for e in first)


def test_late_subscriber_gets_no_replay():
    channel = EventChannel("run-1")
    channel.publish(streaming.run_start("podcasters"))
    late: list[dict] = []
    channel.subscribe(late.append)
    channel.publish(streaming.phase_start("scout", "go"))

    assert [e["type"] for e in late] == ["phase_start"]


def test_failing_handler_does_not_break_delivery():
    channel = EventChannel("run-1")
    received: list[dict] = []

    def broken(_payload):
        raise ValueError("consumer bug")

    channel.subscribe(broken)
    channel.subscribe(received.append)
    payload = channel.publish(streaming.error("boom"))

    assert payload["message"] == "boom"
    assert [e["type"] for e in received] == ["error"]


def test_unsubscribe_and_close_on_done():
    channel = EventChannel("run-1")
    received: list[dict] = []
    handler = channel.subscribe(received.append)
    channel.unsubscribe(handler)
    channel.unsubscribe(handler)

    channel.publish(streaming.done("complete", "s1", 0, 10))

    assert received == []
    assert channel.closed
    assert channel.subscriber_count == 0


def test_wire_encoding_lives_on_the_channel_payload():
    channel = EventChannel("run-1")

    payload = channel.publish(SSEEvent(event=EventType.ERROR, data={"message": "boom"}))

    assert payload["type"] == "error"
    assert payload["run_id"] == "run-1"
    assert "timestamp" in payload
    assert not hasattr(SSEEvent, "format")
