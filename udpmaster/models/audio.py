"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional

import numpy as np


MAX_SAMPLE_VALUE = 32767


@dataclass(frozen=True, eq=False)
class AudioFrame:
    """A fixed-length block of 16-bit mono PCM samples.
    
    The samples array is made read-only on construction so a frame can be
    handed between threads without copying.
    """
    sequence_number: int
    samples: np.ndarray
    timestamp: float  # Time when this frame was captured
    
    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.int16)
        if samples.ndim != 1:
            raise ValueError(f"AudioFrame samples must be one-dimensional, got shape {samples.shape}")
        if samples.flags.writeable:
            samples = samples.copy()
            samples.setflags(write=False)
        object.__setattr__(self, 'samples', samples)
    
    @classmethod
    def from_pcm_bytes(cls, sequence_number: int, data: bytes, timestamp: float) -> "AudioFrame":
        """Build a frame from native-endian int16 PCM bytes as read from the device."""
        return cls(
            sequence_number=sequence_number,
            samples=np.frombuffer(data, dtype=np.int16),
            timestamp=timestamp,
        )
    
    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])
    
    def duration_ms(self, sample_rate: int) -> float:
        """Duration of this frame in milliseconds at the given sample rate."""
        return self.sample_count * 1000.0 / sample_rate
    
    def to_float(self) -> np.ndarray:
        """Samples scaled into [-1.0, 1.0] for display."""
        return self.samples.astype(np.float64) / MAX_SAMPLE_VALUE
    
    def peak_level(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return float(np.max(np.abs(self.samples.astype(np.int32)))) / (MAX_SAMPLE_VALUE + 1)


@dataclass
class StreamStats:
    """Streaming session statistics."""
    is_running: bool
    duration_seconds: float
    sample_rate: int
    frame_samples: int
    frames_captured: int
    frames_sent: int
    frames_dropped: int
    send_failures: int
    queue_depth: int = 0
    destination: Optional[str] = None
