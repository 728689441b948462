"""Console status display fed by pub/sub state and frame notifications."""

import logging
from typing import Optional
from pubsub import pub
from rich.console import Console
from rich.table import Table

from ..models.audio import AudioFrame, StreamStats
from ..models.events import StateChangeEvent
from ..models.state import CaptureState, StateSnapshot

logger = logging.getLogger(__name__)


_STATE_STYLES = {
    CaptureState.IDLE: "yellow",
    CaptureState.STARTING: "blue",
    CaptureState.RUNNING: "bold red",
    CaptureState.STOPPING: "blue",
    CaptureState.FAILED: "bold magenta",
}


class StatusDisplay:
    """Prints state changes and a peak level meter to the console."""
    
    def __init__(self, state_topic: str = "stream.state", frame_topic: str = "audio.frame",
                 console: Optional[Console] = None):
        self.console = console or Console()
        self.state_topic = state_topic
        self.frame_topic = frame_topic
        self.snapshot = StateSnapshot(CaptureState.IDLE)
        self.peak_level = 0.0
        self.frames_seen = 0
        self._subscribed = False
    
    def subscribe(self) -> None:
        if self._subscribed:
            return
        pub.subscribe(self.on_state_change, self.state_topic)
        pub.subscribe(self.on_frame, self.frame_topic)
        self._subscribed = True
    
    def unsubscribe(self) -> None:
        if not self._subscribed:
            return
        pub.unsubscribe(self.on_state_change, self.state_topic)
        pub.unsubscribe(self.on_frame, self.frame_topic)
        self._subscribed = False
    
    def on_state_change(self, event: StateChangeEvent) -> None:
        self.snapshot = event.current
        style = _STATE_STYLES.get(event.current.state, "white")
        self.console.print(f"● {str(event.current).upper()}", style=style)
    
    def on_frame(self, frame: AudioFrame, samples) -> None:
        self.frames_seen += 1
        self.peak_level = frame.peak_level()
    
    def render_stats(self, stats: Optional[StreamStats]) -> Table:
        """Build a table for the given statistics."""
        table = Table(title="udpmaster", show_header=False)
        table.add_column("field", style="cyan")
        table.add_column("value")
        table.add_row("State", str(self.snapshot))
        if stats is not None:
            table.add_row("Destination", stats.destination or "-")
            table.add_row("Duration", f"{stats.duration_seconds:.1f}s")
            table.add_row("Frame size", f"{stats.frame_samples} samples @ {stats.sample_rate}Hz")
            table.add_row("Captured", str(stats.frames_captured))
            table.add_row("Sent", str(stats.frames_sent))
            table.add_row("Dropped", str(stats.frames_dropped))
            table.add_row("Send failures", str(stats.send_failures))
        peak_bar = "█" * int(self.peak_level * 20)
        table.add_row("Audio", f"[{peak_bar:<20}] {self.peak_level:.3f}")
        return table
    
    def show_status(self, stats: Optional[StreamStats]) -> None:
        self.console.print(self.render_stats(stats))
