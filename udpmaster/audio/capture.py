"""Microphone capture source producing fixed-size PCM frames."""

import pyaudio
import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from ..errors import DeviceUnavailable, InvalidConfiguration, PermissionDenied
from ..models.audio import AudioFrame
from ..transport.wire import MAX_SAMPLES_PER_DATAGRAM


logger = logging.getLogger(__name__)


MIN_FRAME_SAMPLES = 64
FALLBACK_FRAME_SAMPLES = 512

_CONFIGURATION_ERRORS = {
    pyaudio.paInvalidSampleRate,
    pyaudio.paInvalidChannelCount,
    pyaudio.paSampleFormatNotSupported,
}


@dataclass
class CaptureHandle:
    """An open input stream and the PyAudio instance that owns it."""
    pyaudio_instance: pyaudio.PyAudio
    stream: pyaudio.Stream
    sample_rate: int
    frame_samples: int
    next_sequence: int = 0
    frames_read: int = 0
    closed: bool = False


class CaptureSource:
    """Opens the default microphone and reads one frame per device buffer."""

    def __init__(self, pyaudio_factory: Callable[[], pyaudio.PyAudio] = None):
        """Initialize capture source.

        Args:
            pyaudio_factory: Callable returning a PyAudio instance (defaults to pyaudio.PyAudio)
        """
        self.pyaudio_factory = pyaudio_factory

    def _new_pyaudio(self) -> pyaudio.PyAudio:
        # looked up at call time so tests can patch pyaudio.PyAudio
        factory = self.pyaudio_factory or pyaudio.PyAudio
        return factory()

    def open(
        self,
        sample_rate: int,
        channels: int = 1,
        bit_depth: int = 16,
        frame_samples: Optional[int] = None,
    ) -> CaptureHandle:
        """Open the capture device.

        Args:
            sample_rate: Sample rate in Hz
            channels: Channel count, only mono is supported
            bit_depth: Bits per sample, only 16 is supported
            frame_samples: Samples per frame; None asks the device for its minimum

        Returns:
            CaptureHandle that must be passed to close()
        """
        if channels != 1:
            raise InvalidConfiguration(f"Only mono capture is supported, got {channels} channels")
        if bit_depth != 16:
            raise InvalidConfiguration(f"Only 16-bit capture is supported, got {bit_depth} bits")
        if sample_rate <= 0:
            raise InvalidConfiguration(f"Invalid sample rate: {sample_rate}")

        try:
            pyaudio_instance = self._new_pyaudio()
        except OSError as e:
            raise DeviceUnavailable(f"Audio system unavailable: {e}") from e

        try:
            if frame_samples is None:
                frame_samples = self._device_frame_samples(pyaudio_instance, sample_rate)

            stream = pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=sample_rate,
                input=True,
                frames_per_buffer=frame_samples,
                stream_callback=None
            )
        except OSError as e:
            pyaudio_instance.terminate()
            raise _map_open_error(e) from e
        except (InvalidConfiguration, DeviceUnavailable):
            pyaudio_instance.terminate()
            raise

        logger.info(f"Audio stream opened: {sample_rate}Hz, "
                    f"{frame_samples} samples/frame")
        return CaptureHandle(
            pyaudio_instance=pyaudio_instance,
            stream=stream,
            sample_rate=sample_rate,
            frame_samples=frame_samples,
        )

    def _device_frame_samples(self, pyaudio_instance: pyaudio.PyAudio, sample_rate: int) -> int:
        """Smallest buffer the default input device supports, bounded to one datagram."""
        try:
            device_info = pyaudio_instance.get_default_input_device_info()
        except OSError as e:
            raise DeviceUnavailable(f"No default input device: {e}") from e

        if int(device_info.get('maxInputChannels', 0)) < 1:
            raise DeviceUnavailable(f"Device '{device_info.get('name')}' has no input channels")

        latency = device_info.get('defaultLowInputLatency')
        if not latency:
            logger.debug(f"Device reports no input latency, using {FALLBACK_FRAME_SAMPLES} samples")
            return FALLBACK_FRAME_SAMPLES

        frame_samples = int(round(float(latency) * sample_rate))
        return max(MIN_FRAME_SAMPLES, min(frame_samples, MAX_SAMPLES_PER_DATAGRAM))

    def read_frame(self, handle: CaptureHandle) -> AudioFrame:
        """Block until the device fills one buffer and return it as a frame.

        Raises:
            DeviceUnavailable: if the stream is closed or the read failed
        """
        if handle.closed:
            raise DeviceUnavailable("Capture handle is closed")

        try:
            data = handle.stream.read(handle.frame_samples, exception_on_overflow=False)
        except OSError as e:
            raise DeviceUnavailable(f"Audio read failed: {e}") from e

        expected = handle.frame_samples * 2
        if len(data) != expected:
            raise DeviceUnavailable(f"Short read from device: {len(data)} of {expected} bytes")

        frame = AudioFrame.from_pcm_bytes(
            sequence_number=handle.next_sequence,
            data=data,
            timestamp=time.time(),
        )
        # unbounded here; encode_frame wraps it to u32 on the wire
        handle.next_sequence += 1
        handle.frames_read += 1
        return frame

    def close(self, handle: Optional[CaptureHandle]) -> None:
        """Release the device; safe to call more than once."""
        if handle is None or handle.closed:
            return
        handle.closed = True
        try:
            handle.stream.stop_stream()
            handle.stream.close()
        except OSError as e:
            logger.warning(f"Error closing audio stream: {e}")
        finally:
            handle.pyaudio_instance.terminate()
        logger.info(f"Audio stream closed after {handle.frames_read} frames")

    @contextmanager
    def session(self, sample_rate: int, frame_samples: Optional[int] = None) -> Iterator[CaptureHandle]:
        """Open the device for the duration of a with-block."""
        handle = self.open(sample_rate, frame_samples=frame_samples)
        try:
            yield handle
        finally:
            self.close(handle)


def _map_open_error(error: OSError) -> Exception:
    code = getattr(error, 'errno', None)
    if code in _CONFIGURATION_ERRORS:
        return InvalidConfiguration(f"Device rejected stream parameters: {error}")
    message = str(error).lower()
    if 'permission' in message or 'not permitted' in message:
        return PermissionDenied(f"Microphone access denied: {error}")
    return DeviceUnavailable(f"Cannot open capture device: {error}")


def check_microphone_permission(pyaudio_factory: Callable[[], pyaudio.PyAudio] = None) -> bool:
    """Test microphone access by opening and closing a minimal input stream.

    Other device errors do not count as a refusal; open() reports them as
    DeviceUnavailable.

    Returns:
        False only if the host refused access to the microphone
    """
    factory = pyaudio_factory or pyaudio.PyAudio
    try:
        pyaudio_instance = factory()
    except OSError as e:
        logger.debug(f"Audio system unavailable during permission check: {e}")
        return True

    try:
        test_stream = pyaudio_instance.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=16000,
            input=True,
            frames_per_buffer=256,
        )
        test_stream.close()
        logger.debug("Basic microphone access test passed")
        return True
    except OSError as e:
        logger.debug(f"Basic microphone access test failed: {e}")
        return not isinstance(_map_open_error(e), PermissionDenied)
    finally:
        pyaudio_instance.terminate()
