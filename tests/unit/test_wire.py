"""Unit tests for the datagram wire format."""

import pytest
import struct
import numpy as np

from udpmaster.errors import WireFormatError
from udpmaster.models.audio import AudioFrame
from udpmaster.transport.wire import (
    HEADER_SIZE,
    MAX_SAMPLES_PER_DATAGRAM,
    datagram_size,
    decode_datagram,
    encode_frame,
)


@pytest.mark.unit
class TestWireFormat:
    """Test cases for encode_frame / decode_datagram."""
    
    def test_header_layout_is_big_endian(self):
        frame = AudioFrame(sequence_number=0x01020304,
                           samples=np.array([1, -2, 32767, -32768], dtype=np.int16),
                           timestamp=0.0)
        
        data = encode_frame(frame)
        
        assert data[:4] == b'\x01\x02\x03\x04'
        assert data[4:6] == b'\x00\x04'
        assert data[6:] == b'\x00\x01' + b'\xff\xfe' + b'\x7f\xff' + b'\x80\x00'
    
    def test_encoded_length(self, make_frame):
        data = encode_frame(make_frame(3, sample_count=256))
        
        assert len(data) == HEADER_SIZE + 256 * 2
        assert len(data) == datagram_size(256)
    
    def test_round_trip(self, audio_test_data):
        samples = audio_test_data("noise", duration_seconds=0.01)
        frame = AudioFrame(sequence_number=42, samples=samples, timestamp=1.5)
        
        decoded = decode_datagram(encode_frame(frame), timestamp=2.0)
        
        assert decoded.sequence_number == 42
        assert decoded.sample_count == frame.sample_count
        assert np.array_equal(decoded.samples, frame.samples)
        assert decoded.samples.dtype == np.int16
        assert decoded.timestamp == 2.0
    
    def test_empty_frame(self):
        frame = AudioFrame(sequence_number=1, samples=np.array([], dtype=np.int16), timestamp=0.0)
        
        decoded = decode_datagram(encode_frame(frame))
        
        assert decoded.sample_count == 0
    
    def test_sequence_wraps_at_u32(self, make_frame):
        data = encode_frame(make_frame(2 ** 32 + 5, sample_count=1))
        
        assert struct.unpack('>I', data[:4])[0] == 5
    
    def test_too_many_samples(self, make_frame):
        with pytest.raises(WireFormatError):
            encode_frame(make_frame(0, sample_count=0x10000, value=0))
    
    def test_short_datagram(self):
        with pytest.raises(WireFormatError):
            decode_datagram(b'\x00\x00\x00')
    
    def test_payload_length_mismatch(self):
        data = struct.pack('>IH', 1, 4) + b'\x00' * 6
        with pytest.raises(WireFormatError):
            decode_datagram(data)
    
    def test_max_frame_fits_path_mtu(self):
        assert datagram_size(MAX_SAMPLES_PER_DATAGRAM) <= 1472
        assert datagram_size(MAX_SAMPLES_PER_DATAGRAM + 1) > 1472
