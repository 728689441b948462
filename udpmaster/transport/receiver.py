"""Receiving side of the stream: decodes datagrams and tracks loss."""

import wave
import socket
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..errors import TransportError, WireFormatError
from ..models.audio import AudioFrame
from .wire import MAX_DATAGRAM_PAYLOAD, SEQUENCE_MODULUS, decode_datagram

logger = logging.getLogger(__name__)


@dataclass
class ReceiveStats:
    """Receiver statistics derived from datagram sequence numbers."""
    received: int = 0
    lost: int = 0
    reordered: int = 0
    duplicates: int = 0
    stale: int = 0
    malformed: int = 0
    highest_sequence: Optional[int] = None


class SequenceTracker:
    """Classifies arriving sequence numbers as in-order, late, duplicate or after a gap.

    A late frame that fills an earlier gap is counted as reordered and is no
    longer counted as lost. Frames older than the history window cannot be
    told apart from duplicates and are dropped as stale.
    """

    def __init__(self, history: int = 256):
        self.history = history
        self.stats = ReceiveStats()
        self._seen: set = set()

    def observe(self, sequence_number: int) -> str:
        """Record one arrival and return 'ok', 'gap', 'reordered', 'duplicate' or 'stale'."""
        stats = self.stats
        if sequence_number in self._seen:
            stats.duplicates += 1
            return 'duplicate'
        if self._is_stale(sequence_number):
            stats.stale += 1
            return 'stale'

        stats.received += 1
        status = self._classify(sequence_number)
        self._remember(sequence_number)
        return status

    def _is_stale(self, sequence_number: int) -> bool:
        newest = self.stats.highest_sequence
        if newest is None:
            return False
        behind = (newest - sequence_number) % SEQUENCE_MODULUS
        return self.history <= behind < SEQUENCE_MODULUS // 2

    def _classify(self, sequence_number: int) -> str:
        stats = self.stats
        if stats.highest_sequence is None:
            stats.highest_sequence = sequence_number
            return 'ok'

        delta = (sequence_number - stats.highest_sequence) % SEQUENCE_MODULUS
        if delta == 1:
            stats.highest_sequence = sequence_number
            return 'ok'
        if delta < SEQUENCE_MODULUS // 2:
            stats.lost += delta - 1
            stats.highest_sequence = sequence_number
            return 'gap'

        stats.reordered += 1
        if stats.lost > 0:
            stats.lost -= 1
        return 'reordered'

    def _remember(self, sequence_number: int) -> None:
        self._seen.add(sequence_number)
        if len(self._seen) > self.history:
            # keep only the window just below the newest sequence
            newest = self.stats.highest_sequence
            self._seen = {s for s in self._seen
                          if (newest - s) % SEQUENCE_MODULUS < self.history}


class FrameReceiver:
    """Listens on a UDP port and decodes streamed audio frames in a background thread."""

    def __init__(
        self,
        port: int,
        host: str = '0.0.0.0',
        callback: Optional[Callable[[AudioFrame], None]] = None,
        keep_frames: bool = False,
        socket_factory: Callable[..., socket.socket] = socket.socket,
    ):
        """Initialize frame receiver.

        Args:
            port: UDP port to listen on
            host: Interface address to bind
            callback: Called with every decoded, non-duplicate frame
            keep_frames: Keep received frames in memory for save_to_file()
            socket_factory: Callable creating sockets, replaced in tests
        """
        self.host = host
        self.port = port
        self.callback = callback
        self.keep_frames = keep_frames
        self.socket_factory = socket_factory

        self.tracker = SequenceTracker()
        self.frames: List[AudioFrame] = []

        self.sock: Optional[socket.socket] = None
        self.receive_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()
        self.is_receiving = False

    @property
    def stats(self) -> ReceiveStats:
        return self.tracker.stats

    def start(self) -> None:
        """Bind the socket and start the receive thread."""
        if self.is_receiving:
            logger.warning("Receiver already running")
            return

        try:
            self.sock = self.socket_factory(socket.AF_INET, socket.SOCK_DGRAM)
            self.sock.bind((self.host, self.port))
            self.sock.settimeout(0.2)
            # port 0 lets the OS pick one
            self.port = self.sock.getsockname()[1]
        except OSError as e:
            if self.sock is not None:
                self.sock.close()
                self.sock = None
            raise TransportError(f"Cannot listen on {self.host}:{self.port}: {e}") from e

        self.stop_event.clear()
        self.receive_thread = threading.Thread(target=self._receive_continuously, daemon=True)
        self.receive_thread.name = "FrameReceiverThread"
        self.receive_thread.start()
        self.is_receiving = True
        logger.info(f"Receiving frames on {self.host}:{self.port}")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the receive thread and close the socket."""
        if not self.is_receiving:
            return

        self.stop_event.set()
        if self.receive_thread and self.receive_thread.is_alive():
            self.receive_thread.join(timeout=timeout)
            if self.receive_thread.is_alive():
                logger.warning("Receive thread did not stop cleanly")

        if self.sock is not None:
            self.sock.close()
            self.sock = None
        self.is_receiving = False
        stats = self.stats
        logger.info(f"Receiver stopped: {stats.received} frames, {stats.lost} lost, "
                    f"{stats.reordered} reordered, {stats.duplicates} duplicates, "
                    f"{stats.stale} stale, {stats.malformed} malformed")

    def handle_datagram(self, data: bytes) -> Optional[AudioFrame]:
        """Decode and account for one datagram; returns the frame unless it was dropped."""
        try:
            frame = decode_datagram(data)
        except WireFormatError as e:
            self.stats.malformed += 1
            logger.debug(f"Ignoring malformed datagram: {e}")
            return None

        status = self.tracker.observe(frame.sequence_number)
        if status in ('duplicate', 'stale'):
            return None
        if status == 'gap':
            logger.debug(f"Sequence gap before frame {frame.sequence_number}")

        if self.keep_frames:
            self.frames.append(frame)
        if self.callback:
            self.callback(frame)
        return frame

    def _receive_continuously(self) -> None:
        """Internal method: receive loop in background thread."""
        while not self.stop_event.is_set():
            try:
                data, _ = self.sock.recvfrom(MAX_DATAGRAM_PAYLOAD + 1024)
            except socket.timeout:
                continue
            except OSError as e:
                if not self.stop_event.is_set():
                    logger.error(f"Receive failed: {e}")
                break
            self.handle_datagram(data)

    def save_to_file(self, filepath: str, sample_rate: int) -> None:
        """Save received audio to WAV file, ordered by sequence number.

        Args:
            filepath: Path to save the WAV file
            sample_rate: Sample rate the stream was captured at
        """
        if not self.frames:
            logger.warning("No audio data to save")
            return

        ordered = sorted(self.frames, key=lambda f: f.sequence_number)
        with wave.open(filepath, 'wb') as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            for frame in ordered:
                wf.writeframes(frame.samples.astype('<i2').tobytes())

        logger.info(f"Audio saved to {filepath}")
