"""Data models for the udpmaster streaming pipeline."""

from .audio import AudioFrame, StreamStats
from .state import CaptureState, FailureReason, StateSnapshot
from .events import StateChangeEvent

__all__ = [
    "AudioFrame",
    "StreamStats",
    "CaptureState",
    "FailureReason",
    "StateSnapshot",
    "StateChangeEvent",
]
