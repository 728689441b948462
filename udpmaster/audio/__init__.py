"""Audio capture and frame buffering module."""

from .capture import CaptureSource, CaptureHandle, check_microphone_permission
from .cancellation import CancellationToken
from .frame_queue import FrameQueue
from .sink import SinkAdapter, PubSubFrameSink

__all__ = [
    'CaptureSource',
    'CaptureHandle',
    'check_microphone_permission',
    'CancellationToken',
    'FrameQueue',
    'SinkAdapter',
    'PubSubFrameSink',
]
