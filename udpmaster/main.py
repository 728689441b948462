"""Main application entry point for udpmaster."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional

from udpmaster.audio.sink import PubSubFrameSink
from udpmaster.errors import UdpMasterError
from udpmaster.models.state import CaptureState
from udpmaster.services.lifecycle import get_controller
from udpmaster.services.status import StatePublisher
from udpmaster.transport.receiver import FrameReceiver
from udpmaster.ui.status_display import StatusDisplay

from .config import UdpMasterConfig

logger = logging.getLogger(__name__)


class Server:
    """Runs one streaming session from the command line."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = UdpMasterConfig(config_path)
        # Set up logging (override config with command line if specified)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.should_exit = False

    def init(self):
        # Initialize services
        logger.info("Initializing services...")

        self.stream_config = self.config.get_stream_config()
        logger.info(f"Stream settings: {self.stream_config.sample_rate}Hz, "
                    f"destination {self.stream_config.destination_host}:{self.stream_config.destination_port}, "
                    f"queue capacity {self.stream_config.queue_capacity}")

        self.state_publisher = StatePublisher("stream.state")
        self.frame_sink = PubSubFrameSink("audio.frame")
        self.status_display = StatusDisplay("stream.state", "audio.frame")
        self.status_display.subscribe()

        self.controller = get_controller(state_callback=self.state_publisher.get_callback())

    def run(self, duration: Optional[int]):
        try:
            self.controller.start(self.stream_config, sink=self.frame_sink)
            started = time.time()
            while not self.should_exit:
                time.sleep(1)
                if self.controller.state is CaptureState.FAILED:
                    logger.error(f"Stream failed: {self.controller.snapshot()}")
                    break
                if duration and time.time() - started >= duration:
                    break
        finally:
            self.cleanup()

    def cleanup(self):
        stats = self.controller.stop()
        self.status_display.show_status(stats or self.controller.get_stream_stats())
        self.status_display.unsubscribe()


def listen(port: int, host: str, duration: Optional[int], output: Optional[str], sample_rate: int) -> None:
    """Receive a stream and report loss statistics."""
    receiver = FrameReceiver(port=port, host=host, keep_frames=output is not None)
    receiver.start()
    try:
        started = time.time()
        while not duration or time.time() - started < duration:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        receiver.stop()

    stats = receiver.stats
    print(f"Received {stats.received} frames, {stats.lost} lost, "
          f"{stats.reordered} reordered, {stats.duplicates} duplicates, {stats.stale} stale, "
          f"{stats.malformed} malformed")
    if output:
        receiver.save_to_file(output, sample_rate)


def setup_logging(config, level: str = "INFO") -> None:

    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path', 'data/logs/udpmaster.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # Set up handlers
    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    # Log startup
    logger = logging.getLogger(__name__)
    logger.info("="*50)
    logger.info("udpmaster starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("="*50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="udpmaster - stream microphone audio over UDP"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="udpmaster v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    stream_parser = subparsers.add_parser("stream", help="Capture the microphone and send it as datagrams")
    stream_parser.add_argument("--host", type=str, help="Destination host (overrides config)")
    stream_parser.add_argument("--port", type=int, help="Destination port (overrides config)")
    stream_parser.add_argument("--sample-rate", type=int, help="Sample rate in Hz (overrides config)")
    stream_parser.add_argument("--queue-capacity", type=int, help="Frame queue capacity (overrides config)")
    stream_parser.add_argument("--frame-samples", type=int, help="Samples per frame (default: device minimum)")
    stream_parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Stop after this many seconds (default: run until interrupted)"
    )

    listen_parser = subparsers.add_parser("listen", help="Receive a stream and report loss statistics")
    listen_parser.add_argument("--port", type=int, required=True, help="UDP port to listen on")
    listen_parser.add_argument("--bind", type=str, default="0.0.0.0", help="Interface to bind (default: 0.0.0.0)")
    listen_parser.add_argument("--duration", type=int, default=0, help="Stop after this many seconds")
    listen_parser.add_argument("--output", type=str, help="Save received audio to this WAV file")
    listen_parser.add_argument("--sample-rate", type=int, default=44100, help="Sample rate of the stream for --output")

    return parser


def main() -> None:
    """Main entry point for udpmaster."""
    args = build_parser().parse_args()

    if args.command == "listen":
        config = UdpMasterConfig(args.config)
        setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))
        try:
            listen(args.port, args.bind, args.duration, args.output, args.sample_rate)
        except UdpMasterError as e:
            print(f"❌ Error: {e}")
            logging.error(f"Receiver error: {e}")
            sys.exit(1)
        return

    server = Server(args.config, args.log_level)
    overrides = {
        'stream.destination_host': args.host,
        'stream.destination_port': args.port,
        'stream.sample_rate': args.sample_rate,
        'stream.queue_capacity': args.queue_capacity,
        'stream.frame_buffer_samples': args.frame_samples,
    }
    for key_path, value in overrides.items():
        if value is not None:
            server.config.set(key_path, value)

    try:
        server.init()
        server.run(args.duration)
    except KeyboardInterrupt:
        # run() already stopped the stream in its finally block
        print("\n👋 Goodbye!")
    except UdpMasterError as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
