"""Unit tests for the command line parser."""

import pytest

from udpmaster.main import build_parser


@pytest.mark.unit
class TestBuildParser:
    """Test cases for build_parser()."""

    def test_stream_overrides(self):
        args = build_parser().parse_args([
            "--log-level", "DEBUG", "stream",
            "--host", "10.0.0.2", "--port", "5005", "--queue-capacity", "8", "--duration", "3",
        ])

        assert args.command == "stream"
        assert args.log_level == "DEBUG"
        assert args.host == "10.0.0.2"
        assert args.port == 5005
        assert args.queue_capacity == 8
        assert args.duration == 3
        assert args.sample_rate is None
        assert args.frame_samples is None

    def test_listen_defaults(self):
        args = build_parser().parse_args(["listen", "--port", "5005"])

        assert args.command == "listen"
        assert args.bind == "0.0.0.0"
        assert args.duration == 0
        assert args.output is None
        assert args.sample_rate == 44100

    def test_listen_requires_port(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["listen"])

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
