from kitchenhub.services import events


def test_subscribers_receive_payload() -> None:
    received = []

    def handler(event_type, payload):
        received.append((event_type, payload))

    events.subscribe(events.RESERVATION_CONFIRMED, handler)
    try:
        events.publish_event(events.RESERVATION_CONFIRMED, {"reservation_id": "r1"})
    finally:
        events.unsubscribe(events.RESERVATION_CONFIRMED, handler)

    assert received == [(events.RESERVATION_CONFIRMED, {"reservation_id": "r1"})]


def test_failing_subscriber_does_not_stop_others() -> None:
    received = []

    def broken(event_type, payload):
        raise RuntimeError("smtp down")

    def working(event_type, payload):
        received.append(payload["reservation_id"])

    events.subscribe(events.RESERVATION_CANCELLED, broken)
    events.subscribe(events.RESERVATION_CANCELLED, working)
    try:
        events.publish_event(events.RESERVATION_CANCELLED, {"reservation_id": "r2"})
    finally:
        events.unsubscribe(events.RESERVATION_CANCELLED, broken)
        events.unsubscribe(events.RESERVATION_CANCELLED, working)

    assert received == ["r2"]


def test_unsubscribed_handler_not_called() -> None:
    calls = []

    def handler(event_type, payload):
        calls.append(payload)

    events.subscribe(events.STAGE_ADVANCED, handler)
    events.unsubscribe(events.STAGE_ADVANCED, handler)
    events.publish_event(events.STAGE_ADVANCED, {"stage": 2})
    assert calls == []
