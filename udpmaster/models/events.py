"""Event models published by the streaming pipeline."""

import time
from dataclasses import dataclass, field

from .state import StateSnapshot


@dataclass
class StateChangeEvent:
    """Lifecycle transition notification."""
    previous: StateSnapshot
    current: StateSnapshot
    timestamp: float = field(default_factory=time.time)
