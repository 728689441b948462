"""Lifecycle controller that owns the capture → queue → transmit session."""

import time
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..audio.cancellation import CancellationToken
from ..audio.capture import CaptureHandle, CaptureSource, check_microphone_permission
from ..audio.frame_queue import FrameQueue
from ..audio.sink import SinkAdapter
from ..config import StreamConfig
from ..errors import (
    AlreadyRunning,
    CaptureError,
    InvalidConfiguration,
    PermissionDenied,
    ShutdownTimeout,
    TransportError,
)
from ..models.audio import AudioFrame, StreamStats
from ..models.events import StateChangeEvent
from ..models.state import CaptureState, FailureReason, StateSnapshot
from ..transport.transmitter import Transmitter, TransportSession

logger = logging.getLogger(__name__)


DEFAULT_SHUTDOWN_TIMEOUT = 2.0
DEFAULT_FLUSH_TIMEOUT = 0.5


@dataclass
class StreamSession:
    """Resources and worker threads of one active stream."""
    config: StreamConfig
    capture: CaptureHandle
    transport: TransportSession
    queue: FrameQueue
    token: CancellationToken = field(default_factory=CancellationToken)
    sink: Optional[SinkAdapter] = None
    capture_thread: Optional[threading.Thread] = None
    transmit_thread: Optional[threading.Thread] = None
    started_at: float = field(default_factory=time.time)
    shutting_down: bool = False


class LifecycleController:
    """Owns start/stop transitions and the single active streaming session.

    State machine: IDLE -> STARTING -> RUNNING -> STOPPING -> IDLE, with
    FAILED(reason) reachable from STARTING or RUNNING and left only by the
    next start(). Only this class writes the state, always under ``_lock``;
    worker threads read snapshots.
    """

    def __init__(
        self,
        capture_source: Optional[CaptureSource] = None,
        transmitter: Optional[Transmitter] = None,
        state_callback: Optional[Callable[[StateChangeEvent], None]] = None,
        permission_check: Callable[[], bool] = check_microphone_permission,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        flush_timeout: float = DEFAULT_FLUSH_TIMEOUT,
    ):
        """Initialize lifecycle controller.

        Args:
            capture_source: Source of audio frames
            transmitter: Datagram transmitter
            state_callback: Called with a StateChangeEvent after every transition
            permission_check: Returns False when microphone access is refused
            shutdown_timeout: Seconds stop() waits for the worker loops
            flush_timeout: Seconds allowed for sending drained frames on stop
        """
        self.capture_source = capture_source or CaptureSource()
        self.transmitter = transmitter or Transmitter()
        self.state_callback = state_callback
        self.permission_check = permission_check
        self.shutdown_timeout = shutdown_timeout
        self.flush_timeout = flush_timeout

        self._lock = threading.Lock()
        self._snapshot = StateSnapshot(CaptureState.IDLE)
        self._session: Optional[StreamSession] = None
        self._stop_requested = False
        self._last_stats: Optional[StreamStats] = None

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def state(self) -> CaptureState:
        return self.snapshot().state

    @property
    def failure_reason(self) -> Optional[FailureReason]:
        return self.snapshot().reason

    @property
    def is_running(self) -> bool:
        return self.state is CaptureState.RUNNING

    def get_stream_stats(self) -> Optional[StreamStats]:
        """Statistics of the active session, or of the last one if none is active."""
        with self._lock:
            session = self._session
            running = self._snapshot.state is CaptureState.RUNNING
        if session is None:
            return self._last_stats
        return self._build_stats(session, running)

    # ------------------------------------------------------------------
    # Public lifecycle API
    # ------------------------------------------------------------------

    def start(self, config: StreamConfig, sink: Optional[SinkAdapter] = None) -> None:
        """Open the device and socket and launch the capture and transmit loops.

        Returns once both resources are open; streaming continues in the
        background.

        Args:
            config: Validated or unvalidated stream configuration
            sink: Optional host sink that sees every frame before it is sent

        Raises:
            AlreadyRunning: if a session is starting, running or stopping
            PermissionDenied, DeviceUnavailable, InvalidConfiguration, TransportError:
                if startup failed; the controller is left FAILED
        """
        with self._lock:
            previous = self._snapshot
            leftover = self._session
            if previous.state not in (CaptureState.IDLE, CaptureState.FAILED):
                raise AlreadyRunning(f"Cannot start while {previous}")
            if leftover is not None and leftover.shutting_down:
                raise AlreadyRunning("Previous session is still shutting down")
            if leftover is not None:
                leftover.shutting_down = True
            self._session = None
            self._stop_requested = False
            self._snapshot = StateSnapshot(CaptureState.STARTING)
            current = self._snapshot
        self._notify(previous, current)

        if leftover is not None:
            logger.info("Releasing resources of the failed session before restart")
            self._last_stats = self._teardown(leftover, self.shutdown_timeout)

        logger.info(f"Starting stream to {config.destination_host}:{config.destination_port}")
        try:
            session = self._open_session(config, sink)
        except Exception as e:
            reason = _failure_reason(e)
            logger.error(f"Failed to start stream ({reason.value}): {e}")
            self._transition(CaptureState.FAILED, reason)
            raise

        with self._lock:
            if self._stop_requested:
                self._stop_requested = False
                cancelled = True
            else:
                cancelled = False
                self._session = session
                previous = self._snapshot
                self._snapshot = StateSnapshot(CaptureState.RUNNING)
                current = self._snapshot

        if cancelled:
            logger.info("stop() was requested during startup, releasing resources")
            self.capture_source.close(session.capture)
            self.transmitter.close(session.transport)
            self._transition(CaptureState.IDLE)
            return

        self._notify(previous, current)
        self._launch_workers(session)
        logger.info(f"Streaming started: {session.capture.frame_samples} samples/frame, "
                    f"queue capacity {session.queue.capacity}")

    def stop(self, timeout: Optional[float] = None) -> Optional[StreamStats]:
        """Stop streaming, flush queued frames and release the device and socket.

        No-op while IDLE or STOPPING. From FAILED, releases any leftover
        resources but keeps the FAILED state so its reason stays visible.

        Args:
            timeout: Seconds to wait for the worker loops (default shutdown_timeout)

        Returns:
            Final statistics of the stopped session, or None if nothing was stopped
        """
        timeout = self.shutdown_timeout if timeout is None else timeout

        with self._lock:
            previous = self._snapshot
            session = self._session
            if previous.state is CaptureState.STARTING:
                self._stop_requested = True
                logger.info("stop() requested while starting, will stop once startup completes")
                return None
            if session is None or session.shutting_down:
                return None
            if previous.state is CaptureState.RUNNING:
                self._snapshot = StateSnapshot(CaptureState.STOPPING)
            elif previous.state is not CaptureState.FAILED:
                return None
            session.shutting_down = True
            current = self._snapshot

        if current != previous:
            self._notify(previous, current)

        logger.info("Stopping stream")
        stats = self._teardown(session, timeout)

        with self._lock:
            if self._session is session:
                self._session = None
            self._last_stats = stats
            previous = self._snapshot
            if previous.state is CaptureState.STOPPING:
                self._snapshot = StateSnapshot(CaptureState.IDLE)
            current = self._snapshot
        if current != previous:
            self._notify(previous, current)

        logger.info(f"Stream stopped. Frames captured: {stats.frames_captured}, "
                    f"sent: {stats.frames_sent}, dropped: {stats.frames_dropped}")
        return stats

    # ------------------------------------------------------------------
    # Session setup and teardown
    # ------------------------------------------------------------------

    def _open_session(self, config: StreamConfig, sink: Optional[SinkAdapter]) -> StreamSession:
        config.validate()

        if not self.permission_check():
            raise PermissionDenied("Microphone permission not granted")

        capture = self.capture_source.open(
            config.sample_rate,
            frame_samples=config.frame_buffer_samples,
        )
        try:
            transport = self.transmitter.open(config.destination)
        except Exception:
            self.capture_source.close(capture)
            raise

        return StreamSession(
            config=config,
            capture=capture,
            transport=transport,
            queue=FrameQueue(config.queue_capacity),
            sink=sink,
        )

    def _launch_workers(self, session: StreamSession) -> None:
        session.capture_thread = threading.Thread(
            target=self._capture_loop, args=(session,), daemon=True)
        session.capture_thread.name = "AudioCaptureThread"
        session.transmit_thread = threading.Thread(
            target=self._transmit_loop, args=(session,), daemon=True)
        session.transmit_thread.name = "FrameTransmitThread"

        session.transmit_thread.start()
        session.capture_thread.start()

    def _teardown(self, session: StreamSession, timeout: float) -> StreamStats:
        """Cancel the loops, flush what is left and release resources."""
        deadline = time.monotonic() + timeout
        session.token.cancel()

        try:
            self._join_workers(session, deadline, timeout)
        except ShutdownTimeout as e:
            logger.warning(f"{e}; forcing resource release")

        try:
            frames = session.queue.drain()
            if frames and not session.transport.is_down:
                for frame in frames:
                    self._notify_sink(session, frame)
                self.transmitter.flush(session.transport, frames, timeout=self.flush_timeout)
        finally:
            self.capture_source.close(session.capture)
            self.transmitter.close(session.transport)

        return self._build_stats(session, running=False)

    def _join_workers(self, session: StreamSession, deadline: float, timeout: float) -> None:
        current = threading.current_thread()
        workers = [t for t in (session.capture_thread, session.transmit_thread)
                   if t is not None and t is not current]
        for thread in workers:
            if thread.is_alive():
                thread.join(max(0.0, deadline - time.monotonic()))

        stuck = [t.name for t in workers if t.is_alive()]
        if stuck:
            raise ShutdownTimeout(f"Worker loops did not exit within {timeout}s: {', '.join(stuck)}")

    # ------------------------------------------------------------------
    # Worker loops
    # ------------------------------------------------------------------

    def _capture_loop(self, session: StreamSession) -> None:
        """Internal method: read frames from the device into the queue."""
        token = session.token
        try:
            while not token.is_cancelled:
                frame = self.capture_source.read_frame(session.capture)
                session.queue.push(frame)
        except CaptureError as e:
            if token.is_cancelled:
                logger.debug(f"Capture ended during shutdown: {e}")
            else:
                logger.error(f"Capture device failed: {e}")
                self._fail(session, _failure_reason(e))
        except Exception as e:
            logger.error(f"Unhandled exception in capture loop: {e}", exc_info=True)
            self._fail(session, FailureReason.DEVICE_UNAVAILABLE)
        logger.debug("Capture loop exited")

    def _transmit_loop(self, session: StreamSession) -> None:
        """Internal method: pop frames and send them as datagrams."""
        token = session.token
        try:
            while not token.is_cancelled:
                frame = session.queue.pop(token)
                if frame is None:
                    break
                self._deliver(session, frame)
                if session.transport.is_down:
                    logger.error(f"Transport down after {session.transport.consecutive_failures} "
                                 f"consecutive send failures")
                    self._fail(session, FailureReason.TRANSPORT_DOWN)
                    break
        except Exception as e:
            logger.error(f"Unhandled exception in transmit loop: {e}", exc_info=True)
            self._fail(session, FailureReason.TRANSPORT_DOWN)
        logger.debug("Transmit loop exited")

    def _deliver(self, session: StreamSession, frame: AudioFrame) -> None:
        self._notify_sink(session, frame)
        try:
            self.transmitter.send(session.transport, frame)
        except TransportError as e:
            logger.debug(f"Frame {frame.sequence_number} dropped: {e}")

    def _notify_sink(self, session: StreamSession, frame: AudioFrame) -> None:
        if session.sink is None:
            return
        try:
            session.sink.on_frame(frame)
        except Exception as e:
            logger.error(f"Frame sink raised: {e}", exc_info=True)

    def _fail(self, session: StreamSession, reason: FailureReason) -> None:
        """Move a running session to FAILED and cancel its loops."""
        with self._lock:
            if self._session is not session or self._snapshot.state is not CaptureState.RUNNING:
                return
            previous = self._snapshot
            self._snapshot = StateSnapshot(CaptureState.FAILED, reason)
            current = self._snapshot
        session.token.cancel()
        logger.error(f"Stream failed: {current}")
        self._notify(previous, current)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, state: CaptureState, reason: Optional[FailureReason] = None) -> None:
        with self._lock:
            previous = self._snapshot
            self._snapshot = StateSnapshot(state, reason)
            current = self._snapshot
        self._notify(previous, current)

    def _notify(self, previous: StateSnapshot, current: StateSnapshot) -> None:
        logger.info(f"State: {previous} -> {current}")
        if self.state_callback is None:
            return
        try:
            self.state_callback(StateChangeEvent(previous=previous, current=current))
        except Exception as e:
            logger.error(f"State callback raised: {e}", exc_info=True)

    def _build_stats(self, session: StreamSession, running: bool) -> StreamStats:
        host, port = session.transport.destination
        return StreamStats(
            is_running=running,
            duration_seconds=time.time() - session.started_at,
            sample_rate=session.capture.sample_rate,
            frame_samples=session.capture.frame_samples,
            frames_captured=session.capture.frames_read,
            frames_sent=session.transport.datagrams_sent,
            frames_dropped=session.queue.overflow_count,
            send_failures=session.transport.send_failures,
            queue_depth=len(session.queue),
            destination=f"{host}:{port}",
        )


def _failure_reason(error: Exception) -> FailureReason:
    if isinstance(error, PermissionDenied):
        return FailureReason.PERMISSION_DENIED
    if isinstance(error, InvalidConfiguration):
        return FailureReason.INVALID_CONFIGURATION
    if isinstance(error, TransportError):
        return FailureReason.TRANSPORT_DOWN
    return FailureReason.DEVICE_UNAVAILABLE


_active_controller: Optional[LifecycleController] = None
_active_lock = threading.Lock()


def get_controller(**kwargs) -> LifecycleController:
    """Return the process-wide controller, creating it on first use."""
    global _active_controller
    with _active_lock:
        if _active_controller is None:
            _active_controller = LifecycleController(**kwargs)
        return _active_controller
