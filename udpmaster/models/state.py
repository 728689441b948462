"""Capture lifecycle state models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CaptureState(str, Enum):
    """Lifecycle states of a streaming session."""
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a session entered the FAILED state."""
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    INVALID_CONFIGURATION = "invalid_configuration"
    TRANSPORT_DOWN = "transport_down"


@dataclass(frozen=True)
class StateSnapshot:
    """Consistent view of the controller state at one instant."""
    state: CaptureState
    reason: Optional[FailureReason] = None
    
    def __str__(self) -> str:
        if self.reason is not None:
            return f"{self.state.value}({self.reason.value})"
        return self.state.value
