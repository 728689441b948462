"""Unit tests for configuration loading and validation."""

import pytest
from pathlib import Path

from udpmaster.config import StreamConfig, UdpMasterConfig
from udpmaster.errors import InvalidConfiguration


@pytest.mark.unit
class TestUdpMasterConfig:
    """Test cases for UdpMasterConfig class."""
    
    def test_defaults_without_file(self):
        config = UdpMasterConfig()
        
        assert config.get('stream.sample_rate') == 44100
        assert config.get('stream.queue_capacity') == 6
        assert config.get('stream.destination_port') is None
        assert config.get('missing.key', 'fallback') == 'fallback'
    
    def test_load_yaml_merges_defaults(self, temp_data_dir):
        path = Path(temp_data_dir) / "udpmaster.yaml"
        path.write_text(
            "stream:\n"
            "  destination_host: 10.0.0.5\n"
            "  destination_port: 9999\n"
            "logging:\n"
            "  file_path: logs/test.log\n"
        )
        
        config = UdpMasterConfig(str(path))
        
        assert config.get('stream.destination_host') == '10.0.0.5'
        assert config.get('stream.destination_port') == 9999
        assert config.get('stream.sample_rate') == 44100
        assert config.get('logging.file_path') == str(Path(temp_data_dir) / "logs/test.log")
    
    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            UdpMasterConfig(str(Path(temp_data_dir) / "nope.yaml"))
    
    def test_empty_file(self, temp_data_dir):
        path = Path(temp_data_dir) / "empty.yaml"
        path.write_text("")
        
        with pytest.raises(InvalidConfiguration):
            UdpMasterConfig(str(path))
    
    def test_invalid_yaml(self, temp_data_dir):
        path = Path(temp_data_dir) / "broken.yaml"
        path.write_text("stream: [unclosed\n")
        
        with pytest.raises(InvalidConfiguration):
            UdpMasterConfig(str(path))
    
    def test_set_and_stream_config(self):
        config = UdpMasterConfig()
        config.set('stream.destination_port', 5004)
        config.set('stream.queue_capacity', 4)
        
        stream_config = config.get_stream_config()
        
        assert stream_config.destination == ('127.0.0.1', 5004)
        assert stream_config.queue_capacity == 4
        assert stream_config.frame_buffer_samples is None
    
    def test_stream_config_requires_port(self):
        with pytest.raises(InvalidConfiguration):
            UdpMasterConfig().get_stream_config()


@pytest.mark.unit
class TestStreamConfig:
    
    def test_valid(self, stream_config):
        stream_config.validate()
    
    @pytest.mark.parametrize("field,value", [
        ('sample_rate', 0),
        ('sample_rate', 44100.0),
        ('destination_host', ''),
        ('destination_port', None),
        ('destination_port', 0),
        ('destination_port', 70000),
        ('destination_port', True),
        ('queue_capacity', 0),
        ('frame_buffer_samples', 0),
        ('frame_buffer_samples', 4096),
    ])
    def test_invalid_values(self, stream_config, field, value):
        setattr(stream_config, field, value)
        
        with pytest.raises(InvalidConfiguration):
            stream_config.validate()
    
    def test_defaults(self):
        config = StreamConfig(destination_port=9999)
        
        assert config.sample_rate == 44100
        assert config.queue_capacity == 6
        assert config.destination_host == '127.0.0.1'
        config.validate()
