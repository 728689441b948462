"""udpmaster: stream microphone audio as UDP datagrams."""

__version__ = "0.1.0"
