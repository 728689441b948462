"""Datagram transport: wire codec, transmitter and receiver."""

from .wire import encode_frame, decode_datagram, MAX_SAMPLES_PER_DATAGRAM
from .transmitter import Transmitter, TransportSession
from .receiver import FrameReceiver, SequenceTracker

__all__ = [
    'encode_frame',
    'decode_datagram',
    'MAX_SAMPLES_PER_DATAGRAM',
    'Transmitter',
    'TransportSession',
    'FrameReceiver',
    'SequenceTracker',
]
