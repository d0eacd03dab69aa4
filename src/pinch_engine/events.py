"""Pinch transition events and the bus that carries them.

The bus is a plain object handed to whoever publishes or subscribes, so two
pipelines in one process never share subscribers.

Usage:
    bus = PinchEventBus()

    @bus.on(PinchKind.START)
    def started(event):
        print(f"{event.hand.label} pinch at {event.position}")

    bus.publish(PinchEvent(hand=Handed.RIGHT, kind=PinchKind.START, ...))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from pinch_engine.hands import Handed

logger = logging.getLogger("pinch_engine.events")


class PinchKind(Enum):
    START = "start"
    HOLD = "hold"
    END = "end"


@dataclass(frozen=True, eq=False)
class PinchEvent:
    """A single pinch transition for one hand."""
    hand: Handed
    kind: PinchKind
    position: np.ndarray
    timestamp: float
    duration: Optional[float] = None  # only set on END


PinchHandler = Callable[[PinchEvent], None]


class PinchEventBus:
    """Synchronous publish/subscribe channel with one topic per PinchKind.

    Every subscriber has run by the time ``publish`` returns. A subscriber
    that raises is logged and skipped; the rest still receive the event.
    """

    def __init__(self):
        self._subscribers: dict[PinchKind, list[PinchHandler]] = {
            kind: [] for kind in PinchKind
        }

    def subscribe(self, kind: PinchKind, handler: PinchHandler):
        self._subscribers[kind].append(handler)

    def unsubscribe(self, kind: PinchKind, handler: PinchHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        try:
            self._subscribers[kind].remove(handler)
        except ValueError:
            return False
        return True

    def on(self, kind: PinchKind):
        """Decorator to subscribe a function to one kind of event."""
        def decorator(fn: PinchHandler):
            self.subscribe(kind, fn)
            return fn
        return decorator

    def publish(self, event: PinchEvent) -> int:
        """Deliver an event to every subscriber of its kind.

        Returns the number of subscribers that handled it without raising.
        """
        delivered = 0
        # Copy so handlers may unsubscribe while being called
        for handler in list(self._subscribers[event.kind]):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber %r failed on %s %s event",
                    handler, event.hand.label, event.kind.value,
                )
        return delivered

    def subscriber_count(self, kind: Optional[PinchKind] = None) -> int:
        if kind is not None:
            return len(self._subscribers[kind])
        return sum(len(s) for s in self._subscribers.values())

    def clear(self):
        for handlers in self._subscribers.values():
            handlers.clear()
