"""Bounded drop-oldest frame queue between the capture and transmit loops."""

import time
import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from ..models.audio import AudioFrame
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class FrameQueue:
    """Single-producer/single-consumer ring buffer of AudioFrames.
    
    ``push`` never blocks: when the queue is full the oldest frame is
    evicted, because stale audio is worse than a short gap. ``pop`` blocks
    until a frame arrives or the cancellation token fires.
    """
    
    def __init__(self, capacity: int = 6):
        """Initialize the frame queue.
        
        Args:
            capacity: Maximum number of frames held at once
        """
        if capacity < 1:
            raise ValueError(f"FrameQueue capacity must be at least 1, got {capacity}")
        
        self.capacity = capacity
        self._frames: Deque[AudioFrame] = deque()
        self._condition = threading.Condition()
        self._last_sequence: Optional[int] = None
        
        self.overflow_count = 0
    
    def push(self, frame: AudioFrame) -> None:
        """Append a frame, evicting the oldest one if the queue is full."""
        with self._condition:
            if self._last_sequence is not None and frame.sequence_number <= self._last_sequence:
                raise ValueError(
                    f"Frame sequence {frame.sequence_number} does not follow "
                    f"last pushed sequence {self._last_sequence}")
            
            if len(self._frames) >= self.capacity:
                evicted = self._frames.popleft()
                self.overflow_count += 1
                if self.overflow_count == 1:
                    logger.warning(f"FrameQueue full ({self.capacity} frames), dropping oldest frames")
                logger.debug(f"Evicted frame {evicted.sequence_number}, "
                             f"overflow count now {self.overflow_count}")
            
            self._frames.append(frame)
            self._last_sequence = frame.sequence_number
            self._condition.notify()
    
    def pop(self, token: CancellationToken, timeout: Optional[float] = None) -> Optional[AudioFrame]:
        """Remove and return the oldest frame.
        
        Args:
            token: Cancellation token; cancelling it wakes this call up
            timeout: Optional maximum wait in seconds
            
        Returns:
            The oldest frame, or None when cancelled or timed out
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        token.add_callback(self.wake)
        try:
            with self._condition:
                while not self._frames:
                    if token.is_cancelled:
                        return None
                    remaining = None
                    if deadline is not None:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            return None
                    self._condition.wait(remaining)
                if token.is_cancelled:
                    return None
                return self._frames.popleft()
        finally:
            token.remove_callback(self.wake)
    
    def drain(self) -> List[AudioFrame]:
        """Remove and return every queued frame, oldest first."""
        with self._condition:
            frames = list(self._frames)
            self._frames.clear()
        if frames:
            logger.debug(f"Drained {len(frames)} frames from queue")
        return frames
    
    def wake(self) -> None:
        """Wake any thread blocked in pop()."""
        with self._condition:
            self._condition.notify_all()
    
    def __len__(self) -> int:
        with self._condition:
            return len(self._frames)
