"""Unit tests for pub/sub state publishing, the frame sink and the status display."""

import pytest
import io
import numpy as np
from pubsub import pub
from rich.console import Console

from udpmaster.audio.sink import PubSubFrameSink
from udpmaster.models.audio import StreamStats
from udpmaster.models.events import StateChangeEvent
from udpmaster.models.state import CaptureState, FailureReason, StateSnapshot
from udpmaster.services import lifecycle
from udpmaster.services.status import StatePublisher
from udpmaster.ui.status_display import StatusDisplay


@pytest.fixture
def received():
    """Subscribes a recorder to test topics and unsubscribes afterwards."""
    messages = []

    def on_state(event):
        messages.append(('state', event))

    def on_frame(frame, samples):
        messages.append(('frame', frame, samples))

    pub.subscribe(on_state, "test.state")
    pub.subscribe(on_frame, "test.frame")
    yield messages
    pub.unsubscribe(on_state, "test.state")
    pub.unsubscribe(on_frame, "test.frame")


@pytest.mark.unit
class TestStatePublisher:
    """Test cases for StatePublisher."""

    def test_publishes_state_change(self, received):
        publisher = StatePublisher("test.state")
        event = StateChangeEvent(
            previous=StateSnapshot(CaptureState.RUNNING),
            current=StateSnapshot(CaptureState.FAILED, FailureReason.TRANSPORT_DOWN),
        )

        publisher.get_callback()(event)

        assert received == [('state', event)]
        assert str(received[0][1].current) == "failed(transport_down)"


@pytest.mark.unit
class TestPubSubFrameSink:
    """Test cases for PubSubFrameSink."""

    def test_publishes_normalized_samples(self, received, make_frame):
        sink = PubSubFrameSink("test.frame")
        frame = make_frame(7, sample_count=4, value=-32767)

        sink.on_frame(frame)

        kind, published_frame, samples = received[0]
        assert kind == 'frame'
        assert published_frame is frame
        assert samples.dtype == np.float64
        np.testing.assert_allclose(samples, [-1.0] * 4)


@pytest.mark.unit
class TestGetController:
    """Test cases for the process-wide controller accessor."""

    def test_returns_same_instance(self, monkeypatch):
        monkeypatch.setattr(lifecycle, "_active_controller", None)

        first = lifecycle.get_controller(permission_check=lambda: True)
        second = lifecycle.get_controller()

        assert first is second
        assert first.state is CaptureState.IDLE


@pytest.mark.unit
class TestStatusDisplay:
    """Test cases for the rich status display."""

    def _display(self):
        console = Console(file=io.StringIO(), width=100, force_terminal=False)
        return StatusDisplay("display.state", "display.frame", console=console), console

    def test_state_change_is_printed(self):
        display, console = self._display()
        display.on_state_change(StateChangeEvent(
            previous=StateSnapshot(CaptureState.STARTING),
            current=StateSnapshot(CaptureState.RUNNING),
        ))

        assert "RUNNING" in console.file.getvalue()

    def test_show_status(self):
        display, console = self._display()
        stats = StreamStats(
            is_running=False,
            duration_seconds=1.5,
            sample_rate=44100,
            frame_samples=441,
            frames_captured=100,
            frames_sent=98,
            frames_dropped=2,
            send_failures=0,
            destination="127.0.0.1:9999",
        )

        display.show_status(stats)

        output = console.file.getvalue()
        assert "127.0.0.1:9999" in output
        assert "98" in output

    def test_subscribe_receives_published_frames(self, make_frame):
        display, _ = self._display()
        display.subscribe()
        try:
            PubSubFrameSink("display.frame").on_frame(make_frame(3, value=1000))
        finally:
            display.unsubscribe()

        assert display.frames_seen == 1
