"""Pytest configuration and fixtures for udpmaster tests."""

import pytest
import tempfile
import time
import logging
from unittest.mock import Mock, patch
import numpy as np

from udpmaster.config import StreamConfig
from udpmaster.models.audio import AudioFrame
from udpmaster.transport.transmitter import Transmitter


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 256 samples of 16-bit audio (sine wave)
    sample_rate = 44100
    duration = 256 / sample_rate
    freq = 440  # A4 note
    
    t = np.linspace(0, duration, 256, False)
    wave_data = np.sin(2 * np.pi * freq * t)
    
    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


def _paced_read(frame_samples, exception_on_overflow=False):
    # roughly the cadence of a real device so worker threads interleave
    time.sleep(0.002)
    return b'\x00' * (frame_samples * 2)


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()
        
        # Configure mock stream
        mock_stream.read.side_effect = _paced_read
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None
        
        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'name': 'Mock Microphone',
            'maxInputChannels': 1,
            'defaultLowInputLatency': 0.01,
            'defaultSampleRate': 44100.0,
        }
        
        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance
        
        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def mock_socket():
    """Mock UDP socket and a Transmitter that creates it."""
    sock = Mock()
    sock.sendto.return_value = None
    sock.close.return_value = None
    factory = Mock(return_value=sock)
    return {
        'socket': sock,
        'factory': factory,
        'transmitter': Transmitter(socket_factory=factory),
    }


@pytest.fixture
def stream_config():
    """Stream configuration aimed at a local test port."""
    return StreamConfig(
        sample_rate=44100,
        destination_host='127.0.0.1',
        destination_port=9999,
        queue_capacity=4,
        frame_buffer_samples=256,
    )


@pytest.fixture
def make_frame():
    """Factory for AudioFrames with predictable samples."""
    def _make_frame(sequence_number, sample_count=256, value=None):
        if value is None:
            samples = (np.arange(sample_count) - sample_count // 2).astype(np.int16)
        else:
            samples = np.full(sample_count, value, dtype=np.int16)
        return AudioFrame(sequence_number=sequence_number, samples=samples, timestamp=time.time())
    
    return _make_frame


@pytest.fixture
def wait_for():
    """Poll a predicate until it is true or the timeout expires."""
    def _wait_for(predicate, timeout=2.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    
    return _wait_for


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=44100):
        """Generate audio data for testing.
        
        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz
            
        Returns:
            np.ndarray: int16 samples
        """
        samples = int(duration_seconds * sample_rate)
        
        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = np.sin(2 * np.pi * 440 * t)
        elif pattern == "noise":
            wave_data = np.random.uniform(-1, 1, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")
        
        return (wave_data * 32767).astype(np.int16)
    
    return generate_audio
