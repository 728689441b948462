"""Simple YAML configuration loader for udpmaster."""

import os
import copy
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import InvalidConfiguration
from ..transport.wire import MAX_SAMPLES_PER_DATAGRAM

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'stream': {
        'sample_rate': 44100,
        'destination_host': '127.0.0.1',
        'destination_port': None,
        'queue_capacity': 6,
        'frame_buffer_samples': None,
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/udpmaster.log',
        'console_output': True,
    },
}


class UdpMasterConfig:
    """udpmaster configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults are used.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidConfiguration(f"Invalid YAML in configuration file: {e}")

        if not loaded:
            raise InvalidConfiguration("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise InvalidConfiguration("Configuration file must contain a mapping")

        config = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        if 'logging' in config and config['logging'].get('file_path'):
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'stream.sample_rate').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return default if value is None else value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'stream.destination_port')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_stream_config(self) -> "StreamConfig":
        """Build a validated StreamConfig from the 'stream' section."""
        stream_config = StreamConfig(
            sample_rate=self.get('stream.sample_rate', 44100),
            destination_host=self.get('stream.destination_host', '127.0.0.1'),
            destination_port=self.get('stream.destination_port'),
            queue_capacity=self.get('stream.queue_capacity', 6),
            frame_buffer_samples=self.get('stream.frame_buffer_samples'),
        )
        stream_config.validate()
        return stream_config


@dataclass
class StreamConfig:
    """Options recognized by LifecycleController.start()."""
    destination_port: Optional[int] = None
    destination_host: str = '127.0.0.1'
    sample_rate: int = 44100
    queue_capacity: int = 6
    frame_buffer_samples: Optional[int] = None  # None: device-computed minimum

    @property
    def destination(self):
        return (self.destination_host, self.destination_port)

    def validate(self) -> None:
        """Check every option, raising InvalidConfiguration on the first bad one."""
        if not _is_int(self.sample_rate) or self.sample_rate <= 0:
            raise InvalidConfiguration(f"sample_rate must be a positive integer, got {self.sample_rate!r}")
        if not isinstance(self.destination_host, str) or not self.destination_host:
            raise InvalidConfiguration("destination_host must be a non-empty string")
        if not _is_int(self.destination_port) or not 0 < self.destination_port <= 0xFFFF:
            raise InvalidConfiguration(
                f"destination_port must be an integer in 1..65535, got {self.destination_port!r}")
        if not _is_int(self.queue_capacity) or self.queue_capacity < 1:
            raise InvalidConfiguration(f"queue_capacity must be at least 1, got {self.queue_capacity!r}")
        if self.frame_buffer_samples is not None:
            if not _is_int(self.frame_buffer_samples) or self.frame_buffer_samples < 1:
                raise InvalidConfiguration(
                    f"frame_buffer_samples must be a positive integer, got {self.frame_buffer_samples!r}")
            if self.frame_buffer_samples > MAX_SAMPLES_PER_DATAGRAM:
                raise InvalidConfiguration(
                    f"frame_buffer_samples={self.frame_buffer_samples} does not fit one datagram "
                    f"(max {MAX_SAMPLES_PER_DATAGRAM})")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
