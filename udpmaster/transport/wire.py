"""Binary datagram framing for streamed audio frames.

Each UDP datagram carries exactly one frame:

    4 bytes  sequence_number (u32, big-endian)
    2 bytes  sample_count    (u16, big-endian)
    N*2 bytes samples        (i16, big-endian, signed)
"""

import time
import struct
from typing import Optional

import numpy as np

from ..errors import WireFormatError
from ..models.audio import AudioFrame


HEADER_FORMAT = ">IH"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
SAMPLE_DTYPE = np.dtype(">i2")

SEQUENCE_MODULUS = 2 ** 32
MAX_SAMPLE_COUNT = 0xFFFF

# 1500 byte Ethernet MTU minus IPv4 and UDP headers
MAX_DATAGRAM_PAYLOAD = 1472
MAX_SAMPLES_PER_DATAGRAM = (MAX_DATAGRAM_PAYLOAD - HEADER_SIZE) // SAMPLE_DTYPE.itemsize


def encode_frame(frame: AudioFrame) -> bytes:
    """Encode one AudioFrame into a datagram payload."""
    if frame.sample_count > MAX_SAMPLE_COUNT:
        raise WireFormatError(f"Frame has {frame.sample_count} samples, "
                              f"more than the {MAX_SAMPLE_COUNT} a header can describe")
    header = struct.pack(HEADER_FORMAT,
                         frame.sequence_number % SEQUENCE_MODULUS,
                         frame.sample_count)
    return header + frame.samples.astype(SAMPLE_DTYPE).tobytes()


def decode_datagram(data: bytes, timestamp: Optional[float] = None) -> AudioFrame:
    """Decode a datagram payload back into an AudioFrame.
    
    Args:
        data: Raw datagram bytes
        timestamp: Receive time to stamp on the frame (defaults to now)
        
    Returns:
        AudioFrame with native-endian samples
    """
    if len(data) < HEADER_SIZE:
        raise WireFormatError(f"Datagram of {len(data)} bytes is shorter than the {HEADER_SIZE} byte header")
    
    sequence_number, sample_count = struct.unpack_from(HEADER_FORMAT, data)
    payload = data[HEADER_SIZE:]
    expected = sample_count * SAMPLE_DTYPE.itemsize
    if len(payload) != expected:
        raise WireFormatError(f"Datagram {sequence_number} declares {sample_count} samples "
                              f"({expected} bytes) but carries {len(payload)} bytes")
    
    samples = np.frombuffer(payload, dtype=SAMPLE_DTYPE).astype(np.int16)
    return AudioFrame(
        sequence_number=sequence_number,
        samples=samples,
        timestamp=time.time() if timestamp is None else timestamp,
    )


def datagram_size(sample_count: int) -> int:
    return HEADER_SIZE + sample_count * SAMPLE_DTYPE.itemsize
