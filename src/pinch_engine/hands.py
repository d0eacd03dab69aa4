"""Per-hand tracking samples and hand input sources.

The core only consumes a tracking flag, a continuous pinch strength and two
fingertip positions per hand. Anything that can produce a
``dict[Handed, HandSample]`` every frame is a valid input source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None


class Handed(Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Build a float32 3-vector."""
    return np.array([x, y, z], dtype=np.float32)


def format_vec3(v: np.ndarray) -> str:
    return "({:.2f}, {:.2f}, {:.2f})".format(*(float(x) for x in v))


@dataclass(frozen=True, eq=False)
class HandSample:
    """One frame of tracking data for a single hand."""
    handedness: Handed
    is_tracked: bool
    pinch_strength: float  # [0, 1]
    index_tip: np.ndarray = field(default_factory=vec3)
    thumb_tip: np.ndarray = field(default_factory=vec3)

    @property
    def pinch_position(self) -> np.ndarray:
        """Midpoint between index tip and thumb tip."""
        return (np.asarray(self.index_tip, dtype=np.float32)
                + np.asarray(self.thumb_tip, dtype=np.float32)) * 0.5

    def to_dict(self) -> dict:
        return {
            "is_tracked": self.is_tracked,
            "pinch_strength": float(self.pinch_strength),
            "index_tip": [float(v) for v in self.index_tip],
            "thumb_tip": [float(v) for v in self.thumb_tip],
        }

    @classmethod
    def from_dict(cls, handedness: Handed, data: dict) -> HandSample:
        return cls(
            handedness=handedness,
            is_tracked=bool(data.get("is_tracked", False)),
            pinch_strength=float(data.get("pinch_strength", 0.0)),
            index_tip=np.array(data.get("index_tip", [0, 0, 0]), dtype=np.float32),
            thumb_tip=np.array(data.get("thumb_tip", [0, 0, 0]), dtype=np.float32),
        )


def untracked(handedness: Handed) -> HandSample:
    return HandSample(handedness=handedness, is_tracked=False, pinch_strength=0.0)


class HandInputSource(Protocol):
    """Anything that yields one sample per hand per frame."""

    def poll(self) -> dict[Handed, HandSample]:
        ...


# MediaPipe hand landmark indices
WRIST = 0
THUMB_TIP = 4
INDEX_TIP = 8
MIDDLE_MCP = 9


def pinch_strength_from_landmarks(
    landmarks: np.ndarray,
    closed_ratio: float = 0.2,
    open_ratio: float = 1.0,
) -> float:
    """Map thumb-index tip distance to a [0, 1] pinch strength.

    The tip distance is divided by the wrist to middle-MCP length so the
    value does not depend on how far the hand is from the camera. Ratios at
    or below ``closed_ratio`` give 1.0, at or above ``open_ratio`` give 0.0.
    """
    palm = float(np.linalg.norm(landmarks[MIDDLE_MCP] - landmarks[WRIST])) + 1e-8
    gap = float(np.linalg.norm(landmarks[THUMB_TIP] - landmarks[INDEX_TIP]))
    ratio = gap / palm
    strength = (open_ratio - ratio) / (open_ratio - closed_ratio)
    return float(np.clip(strength, 0.0, 1.0))


class MediaPipeHandSource:
    """Webcam hand input using MediaPipe Hands.

    Stands in for a headset's hand tracking during desktop development.
    Frames are read from an OpenCV capture; hands MediaPipe does not report
    come back untracked.
    """

    def __init__(
        self,
        camera_index: int = 0,
        mirrored: bool = True,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install mediapipe"
            )
        import cv2

        self._cv2 = cv2
        self.mirrored = mirrored
        self._capture = cv2.VideoCapture(camera_index)
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=2,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def poll(self) -> dict[Handed, HandSample]:
        samples = {h: untracked(h) for h in Handed}
        ok, frame_bgr = self._capture.read()
        if not ok:
            return samples

        if self.mirrored:
            frame_bgr = self._cv2.flip(frame_bgr, 1)
        frame_rgb = self._cv2.cvtColor(frame_bgr, self._cv2.COLOR_BGR2RGB)
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return samples

        for hand_landmarks, handedness in zip(
            results.multi_hand_landmarks, results.multi_handedness
        ):
            handed = self._handed_from_label(handedness.classification[0].label)
            if handed is None:
                continue
            landmarks = np.array(
                [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
                dtype=np.float32,
            )
            samples[handed] = HandSample(
                handedness=handed,
                is_tracked=True,
                pinch_strength=pinch_strength_from_landmarks(landmarks),
                index_tip=landmarks[INDEX_TIP],
                thumb_tip=landmarks[THUMB_TIP],
            )
        return samples

    def _handed_from_label(self, label: str) -> Optional[Handed]:
        # MediaPipe labels assume a mirrored image
        label = label.lower()
        if label not in ("left", "right"):
            return None
        handed = Handed(label)
        if not self.mirrored:
            handed = Handed.LEFT if handed is Handed.RIGHT else Handed.RIGHT
        return handed

    def close(self):
        """Release MediaPipe and camera resources."""
        self._hands.close()
        self._capture.release()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
