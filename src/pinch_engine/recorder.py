"""Hand session recording and replay.

Record per-tick hand samples to JSON so pinch sessions can be replayed:
- Reproducible tests without a headset or camera
- Tuning thresholds against real tracking noise
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from pinch_engine.hands import Handed, HandSample, untracked

FORMAT_VERSION = 1


@dataclass
class RecordedTick:
    """One tick of hand input."""
    timestamp: float  # seconds from recording start
    hands: dict[Handed, HandSample]

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "hands": {h.value: s.to_dict() for h, s in self.hands.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> RecordedTick:
        hands = {}
        for hand in Handed:
            entry = data.get("hands", {}).get(hand.value)
            hands[hand] = HandSample.from_dict(hand, entry) if entry else untracked(hand)
        return cls(timestamp=float(data["timestamp"]), hands=hands)


class HandRecorder:
    """Records hand samples tick by tick.

    Usage:
        recorder = HandRecorder()
        recorder.start()
        # In your frame loop:
        recorder.add_tick(samples)
        # When done:
        recorder.save("session.json")
    """

    def __init__(self):
        self._ticks: list[RecordedTick] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self, timestamp: Optional[float] = None):
        self._ticks = []
        self._start_time = timestamp if timestamp is not None else time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of ticks captured."""
        self._recording = False
        return len(self._ticks)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def tick_count(self) -> int:
        return len(self._ticks)

    @property
    def duration(self) -> float:
        if not self._ticks:
            return 0.0
        return self._ticks[-1].timestamp

    def add_tick(self, samples: dict[Handed, HandSample], timestamp: Optional[float] = None):
        if not self._recording:
            return
        now = timestamp if timestamp is not None else time.monotonic()
        self._ticks.append(RecordedTick(
            timestamp=now - self._start_time,
            hands={h: samples.get(h, untracked(h)) for h in Handed},
        ))

    def save(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": FORMAT_VERSION,
            "tick_count": len(self._ticks),
            "duration": self.duration,
            "ticks": [t.to_dict() for t in self._ticks],
        }
        with open(path, "w") as f:
            json.dump(data, f)


class HandPlayer:
    """Replays a recorded hand session.

    Usage:
        player = HandPlayer.load("session.json")
        for tick in player.play():
            pipeline.tick(tick.hands, timestamp=tick.timestamp)
    """

    def __init__(self, ticks: list[RecordedTick]):
        self._ticks = ticks

    @classmethod
    def load(cls, path: str | Path) -> HandPlayer:
        with open(Path(path)) as f:
            data = json.load(f)
        version = data.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported recording version {version}")
        return cls([RecordedTick.from_dict(t) for t in data["ticks"]])

    @classmethod
    def from_strengths(
        cls,
        right: list[float],
        left: Optional[list[float]] = None,
        interval: float = 1 / 30,
    ) -> HandPlayer:
        """Build a session from pinch strength sequences (tracked, fixed tips)."""
        left = left or []
        ticks = []
        for i in range(max(len(right), len(left))):
            hands = {}
            for hand, values in ((Handed.RIGHT, right), (Handed.LEFT, left)):
                if i < len(values):
                    hands[hand] = HandSample(hand, True, values[i])
                else:
                    hands[hand] = untracked(hand)
            ticks.append(RecordedTick(timestamp=i * interval, hands=hands))
        return cls(ticks)

    @property
    def tick_count(self) -> int:
        return len(self._ticks)

    @property
    def duration(self) -> float:
        if not self._ticks:
            return 0.0
        return self._ticks[-1].timestamp

    def play(self) -> Iterator[RecordedTick]:
        """Iterate through all ticks instantly (no timing)."""
        yield from self._ticks

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedTick]:
        """Replay at original timing (or scaled by speed factor)."""
        if not self._ticks:
            return

        start = time.monotonic()
        for tick in self._ticks:
            target_time = tick.timestamp / speed
            elapsed = time.monotonic() - start
            if target_time > elapsed:
                time.sleep(target_time - elapsed)
            yield tick
