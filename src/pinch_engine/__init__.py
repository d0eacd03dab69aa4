"""pinch_engine - Pinch gesture detection driving a voice recording workflow."""

__version__ = "0.1.0"

from pinch_engine.hands import Handed, HandSample, HandInputSource, MediaPipeHandSource
from pinch_engine.events import PinchEvent, PinchEventBus, PinchKind
from pinch_engine.detector import PinchGestureDetector, PinchState
from pinch_engine.microphone import (
    CaptureError,
    MicrophoneRecorder,
    NormalizedClip,
    peak_normalize,
    rms,
)
from pinch_engine.workflow import RecordingWorkflow, RecordingStatus, RecordingSummary, WorkflowState
from pinch_engine.storage import MemoryClipStore, NpzClipStore
from pinch_engine.audio import SimulatedAudio, SoundDeviceAudio
from pinch_engine.recorder import HandRecorder, HandPlayer
from pinch_engine.profiler import TickProfiler
from pinch_engine.config import EngineConfig, load_config
from pinch_engine.pipeline import PinchPipeline, TickResult
