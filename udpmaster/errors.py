"""Exception hierarchy for the udpmaster streaming pipeline."""


class UdpMasterError(Exception):
    """Base exception for all udpmaster errors."""
    pass


class CaptureError(UdpMasterError):
    """Raised when the capture device cannot be opened or read."""
    pass


class PermissionDenied(CaptureError):
    """Raised when the process is not allowed to record from the microphone."""
    pass


class DeviceUnavailable(CaptureError):
    """Raised when the capture device is missing, busy or was revoked."""
    pass


class InvalidConfiguration(UdpMasterError):
    """Raised when stream configuration values are out of range."""
    pass


class TransportError(UdpMasterError):
    """Raised when a datagram session cannot be opened or a send fails."""
    pass


class TransportDown(TransportError):
    """Raised when a session has failed too many sends in a row."""
    pass


class WireFormatError(UdpMasterError):
    """Raised when a datagram does not match the wire format."""
    pass


class AlreadyRunning(UdpMasterError):
    """Raised when start() is called while a session is active."""
    pass


class ShutdownTimeout(UdpMasterError):
    """Raised when worker loops do not exit within the shutdown timeout."""
    pass
