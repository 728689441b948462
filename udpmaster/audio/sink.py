"""Host-facing sinks that mirror streamed frames to a UI layer."""

import logging
from abc import ABC, abstractmethod
from pubsub import pub
from ..models.audio import AudioFrame

logger = logging.getLogger(__name__)


class SinkAdapter(ABC):
    """Receives every frame on the transmit path before it is sent.
    
    Implementations must return quickly; the transmit loop does not wait
    for slow sinks and only logs sink errors.
    """
    
    @abstractmethod
    def on_frame(self, frame: AudioFrame) -> None:
        """Handle one frame."""
        pass


class PubSubFrameSink(SinkAdapter):
    """Publishes frames using pubsub.pub for the UI layer."""
    
    def __init__(self, topic: str = "audio.frame"):
        """Initialize frame sink.
        
        Args:
            topic: Pub/sub topic name for audio frames
        """
        self.topic = topic
        logger.info(f"PubSubFrameSink initialized with topic: {topic}")
    
    def on_frame(self, frame: AudioFrame) -> None:
        """Publish a frame with its samples scaled to [-1.0, 1.0].
        
        Args:
            frame: AudioFrame to publish
        """
        pub.sendMessage(self.topic, frame=frame, samples=frame.to_float())
