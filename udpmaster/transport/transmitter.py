"""UDP transmitter that sends one datagram per audio frame."""

import time
import socket
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from ..errors import TransportDown, TransportError, WireFormatError
from ..models.audio import AudioFrame
from .wire import encode_frame

logger = logging.getLogger(__name__)


Endpoint = Tuple[str, int]

MAX_CONSECUTIVE_FAILURES = 3


@dataclass
class TransportSession:
    """One open datagram socket aimed at a single destination."""
    destination: Endpoint
    sock: socket.socket
    datagrams_sent: int = 0
    bytes_sent: int = 0
    send_failures: int = 0
    consecutive_failures: int = 0
    closed: bool = False

    @property
    def is_down(self) -> bool:
        """True once MAX_CONSECUTIVE_FAILURES sends in a row have failed."""
        return self.consecutive_failures >= MAX_CONSECUTIVE_FAILURES


class Transmitter:
    """Serializes frames into datagrams and sends them best-effort.

    There is no retransmission: a failed send drops the frame, since a
    late audio slice is worth less than a missing one.
    """

    def __init__(self, socket_factory: Callable[..., socket.socket] = socket.socket):
        """Initialize transmitter.

        Args:
            socket_factory: Callable creating sockets, replaced in tests
        """
        self.socket_factory = socket_factory

    def open(self, destination: Endpoint) -> TransportSession:
        """Open a UDP socket for the given (host, port) destination.

        Raises:
            TransportError: if the host cannot be resolved or the socket cannot be created
        """
        host, port = destination
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        except socket.gaierror as e:
            raise TransportError(f"Cannot resolve destination {host}:{port}: {e}") from e
        if not infos:
            raise TransportError(f"No address found for destination {host}:{port}")

        family, sock_type, proto, _, address = infos[0]
        try:
            sock = self.socket_factory(family, sock_type, proto)
        except OSError as e:
            raise TransportError(f"Cannot create UDP socket: {e}") from e

        logger.info(f"Transport session opened to {address[0]}:{address[1]}")
        return TransportSession(destination=(address[0], address[1]), sock=sock)

    def send(self, session: TransportSession, frame: AudioFrame) -> None:
        """Send a frame as one datagram.

        Raises:
            TransportError: if the send failed; the frame is dropped
            TransportDown: if this failure marked the session down
        """
        if session.closed:
            raise TransportError("Transport session is closed")

        try:
            datagram = encode_frame(frame)
        except WireFormatError as e:
            session.send_failures += 1
            raise TransportError(f"Cannot encode frame {frame.sequence_number}: {e}") from e

        try:
            session.sock.sendto(datagram, session.destination)
        except OSError as e:
            session.send_failures += 1
            session.consecutive_failures += 1
            logger.warning(f"Dropped frame {frame.sequence_number}: send failed "
                           f"({session.consecutive_failures} in a row): {e}")
            if session.is_down:
                raise TransportDown(f"Transport to {session.destination[0]}:{session.destination[1]} is down "
                                    f"after {session.consecutive_failures} failed sends: {e}") from e
            raise TransportError(f"Send to {session.destination[0]}:{session.destination[1]} failed: {e}") from e

        session.consecutive_failures = 0
        session.datagrams_sent += 1
        session.bytes_sent += len(datagram)

    def flush(self, session: TransportSession, frames: Iterable[AudioFrame], timeout: float = 0.5) -> int:
        """Send leftover frames during shutdown, giving up at the deadline.

        Args:
            session: Open transport session
            frames: Frames drained from the queue, oldest first
            timeout: Seconds allowed for the whole flush

        Returns:
            Number of frames sent
        """
        deadline = time.monotonic() + timeout
        sent = 0
        skipped = 0
        for frame in frames:
            if time.monotonic() >= deadline or session.is_down:
                skipped += 1
                continue
            try:
                self.send(session, frame)
                sent += 1
            except TransportError as e:
                logger.debug(f"Flush send failed: {e}")

        if skipped:
            logger.warning(f"Final flush skipped {skipped} frames")
        logger.debug(f"Final flush sent {sent} frames")
        return sent

    def close(self, session: Optional[TransportSession]) -> None:
        """Close the session socket; safe to call more than once."""
        if session is None or session.closed:
            return
        session.closed = True
        try:
            session.sock.close()
        except OSError as e:
            logger.warning(f"Error closing transport socket: {e}")
        logger.info(f"Transport session closed: {session.datagrams_sent} datagrams, "
                    f"{session.send_failures} failures")
