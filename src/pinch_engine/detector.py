"""Hysteresis pinch detection.

Turns the continuous per-hand pinch strength into debounced START / HOLD /
END transitions. Engaging a pinch needs a higher strength than keeping one,
so a hand hovering near a single threshold does not flicker.

Usage:
    detector = PinchGestureDetector(bus)
    events = detector.update({Handed.RIGHT: sample, Handed.LEFT: other}, timestamp=now)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from pinch_engine.events import PinchEvent, PinchEventBus, PinchKind
from pinch_engine.hands import Handed, HandSample, format_vec3, vec3

logger = logging.getLogger("pinch_engine.detector")

PINCH_THRESHOLD = 0.7
RELEASE_THRESHOLD = 0.3


@dataclass
class PinchState:
    """Debounced pinch state for one hand, carried between frames."""
    is_pinching: bool = False
    pinch_started_at: float = 0.0
    last_pinch_position: np.ndarray = field(default_factory=vec3)


class PinchGestureDetector:
    """Per-hand hysteresis pinch detector.

    Hands that are not tracked on a frame are skipped entirely: their state
    is left as it was and no event fires, so a pinch interrupted by tracking
    loss resumes cleanly once the hand is seen again.
    """

    def __init__(
        self,
        bus: Optional[PinchEventBus] = None,
        pinch_threshold: float = PINCH_THRESHOLD,
        release_threshold: float = RELEASE_THRESHOLD,
    ):
        if not 0.0 <= release_threshold <= pinch_threshold <= 1.0:
            raise ValueError(
                f"thresholds must satisfy 0 <= release ({release_threshold}) "
                f"<= pinch ({pinch_threshold}) <= 1"
            )
        self.bus = bus if bus is not None else PinchEventBus()
        self.pinch_threshold = pinch_threshold
        self.release_threshold = release_threshold
        self._states: dict[Handed, PinchState] = {h: PinchState() for h in Handed}

    def update(
        self,
        samples: dict[Handed, HandSample],
        timestamp: Optional[float] = None,
    ) -> list[PinchEvent]:
        """Process one frame of hand samples.

        Args:
            samples: One sample per hand. A missing hand counts as untracked.
            timestamp: Current time (monotonic).

        Returns:
            Events fired this frame, right hand first.
        """
        now = timestamp if timestamp is not None else time.monotonic()
        events: list[PinchEvent] = []
        for hand in (Handed.RIGHT, Handed.LEFT):
            sample = samples.get(hand)
            if sample is None or not sample.is_tracked:
                continue
            event = self._update_hand(hand, sample, now)
            if event is not None:
                events.append(event)
                self.bus.publish(event)
        return events

    def _update_hand(
        self, hand: Handed, sample: HandSample, now: float
    ) -> Optional[PinchEvent]:
        state = self._states[hand]
        was_pinching = state.is_pinching
        position = sample.pinch_position
        strength = float(sample.pinch_strength)

        if was_pinching:
            is_pinching = strength > self.release_threshold
        else:
            is_pinching = strength > self.pinch_threshold

        state.is_pinching = is_pinching
        state.last_pinch_position = position

        if is_pinching and not was_pinching:
            state.pinch_started_at = now
            logger.info("%s hand pinch started at %s", hand.label, format_vec3(position))
            return PinchEvent(hand=hand, kind=PinchKind.START, position=position, timestamp=now)

        if was_pinching and not is_pinching:
            duration = now - state.pinch_started_at
            logger.info("%s hand pinch ended. Duration: %.2fs", hand.label, duration)
            return PinchEvent(
                hand=hand, kind=PinchKind.END, position=position,
                timestamp=now, duration=duration,
            )

        if is_pinching:
            return PinchEvent(hand=hand, kind=PinchKind.HOLD, position=position, timestamp=now)

        return None

    def is_pinching(self, hand: Handed) -> bool:
        return self._states[hand].is_pinching

    def pinch_position(self, hand: Handed) -> np.ndarray:
        return self._states[hand].last_pinch_position.copy()

    def state(self, hand: Handed) -> PinchState:
        """A copy of the hand's current state."""
        s = self._states[hand]
        return PinchState(
            is_pinching=s.is_pinching,
            pinch_started_at=s.pinch_started_at,
            last_pinch_position=s.last_pinch_position.copy(),
        )

    def reset(self):
        """Clear all state."""
        self._states = {h: PinchState() for h in Handed}
