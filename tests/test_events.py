"""Tests for the pinch event bus."""

from pinch_engine.events import PinchEvent, PinchEventBus, PinchKind
from pinch_engine.hands import Handed, vec3


def make_event(kind=PinchKind.START, hand=Handed.RIGHT):
    return PinchEvent(hand=hand, kind=kind, position=vec3(), timestamp=0.0)


class TestPinchEventBus:
    def test_delivers_to_all_subscribers_of_kind(self):
        bus = PinchEventBus()
        got = []
        bus.subscribe(PinchKind.START, lambda e: got.append("a"))
        bus.subscribe(PinchKind.START, lambda e: got.append("b"))
        bus.subscribe(PinchKind.END, lambda e: got.append("end"))

        assert bus.publish(make_event(PinchKind.START)) == 2
        assert sorted(got) == ["a", "b"]

    def test_delivery_is_synchronous(self):
        bus = PinchEventBus()
        got = []
        bus.subscribe(PinchKind.HOLD, got.append)
        event = make_event(PinchKind.HOLD)
        bus.publish(event)
        assert got == [event]

    def test_failing_subscriber_is_isolated(self):
        bus = PinchEventBus()
        got = []

        def bad(event):
            raise RuntimeError("boom")

        bus.subscribe(PinchKind.END, bad)
        bus.subscribe(PinchKind.END, got.append)

        # Should not raise
        delivered = bus.publish(make_event(PinchKind.END))
        assert delivered == 1
        assert len(got) == 1

    def test_no_subscribers(self):
        bus = PinchEventBus()
        assert bus.publish(make_event()) == 0

    def test_unsubscribe(self):
        bus = PinchEventBus()
        got = []
        bus.subscribe(PinchKind.START, got.append)
        assert bus.unsubscribe(PinchKind.START, got.append)
        assert not bus.unsubscribe(PinchKind.START, got.append)
        bus.publish(make_event())
        assert got == []

    def test_decorator(self):
        bus = PinchEventBus()
        got = []

        @bus.on(PinchKind.START)
        def started(event):
            got.append(event.hand)

        bus.publish(make_event(hand=Handed.LEFT))
        assert got == [Handed.LEFT]
        assert bus.subscriber_count(PinchKind.START) == 1

    def test_unsubscribe_during_delivery(self):
        bus = PinchEventBus()
        got = []

        def once(event):
            got.append(event)
            bus.unsubscribe(PinchKind.START, once)

        bus.subscribe(PinchKind.START, once)
        bus.subscribe(PinchKind.START, got.append)
        bus.publish(make_event())
        bus.publish(make_event())
        assert len(got) == 3

    def test_separate_buses_do_not_share_subscribers(self):
        a, b = PinchEventBus(), PinchEventBus()
        got = []
        a.subscribe(PinchKind.START, got.append)
        b.publish(make_event())
        assert got == []

    def test_clear(self):
        bus = PinchEventBus()
        bus.subscribe(PinchKind.START, print)
        bus.subscribe(PinchKind.END, print)
        bus.clear()
        assert bus.subscriber_count() == 0
