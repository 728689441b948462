"""Services layer for udpmaster session control."""

from .lifecycle import LifecycleController, StreamSession, get_controller
from .status import StatePublisher

__all__ = [
    "LifecycleController",
    "StreamSession",
    "get_controller",
    "StatePublisher",
]
