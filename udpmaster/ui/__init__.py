"""Console user interface for udpmaster."""

from .status_display import StatusDisplay

__all__ = ['StatusDisplay']
