"""State-change publisher for pub/sub status notifications."""

import logging
from typing import Callable
from pubsub import pub
from ..models.events import StateChangeEvent

logger = logging.getLogger(__name__)


class StatePublisher:
    """Publishes lifecycle transitions using pubsub.pub."""
    
    def __init__(self, topic: str = "stream.state"):
        """Initialize state publisher.
        
        Args:
            topic: Pub/sub topic name for state changes
        """
        self.topic = topic
        logger.info(f"StatePublisher initialized with topic: {topic}")
    
    def publish_state_change(self, event: StateChangeEvent) -> None:
        """Publish a state change to the pub/sub topic.
        
        Args:
            event: StateChangeEvent to publish
        """
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published state change: {event.previous} -> {event.current}")
    
    def get_callback(self) -> Callable[[StateChangeEvent], None]:
        """Get callback function for LifecycleController to use."""
        return self.publish_state_change
