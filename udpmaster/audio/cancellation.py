"""Cooperative cancellation shared by the capture and transmit loops."""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal.
    
    Worker loops check ``is_cancelled`` at each blocking-call boundary.
    Blocking waits that cannot poll the flag register a wake-up callback
    which runs exactly once when ``cancel()`` is first called.
    """
    
    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
    
    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
    
    def cancel(self) -> None:
        """Set the token and run the registered wake-up callbacks."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Cancellation callback failed: {e}", exc_info=True)
    
    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()
    
    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
    
    def wait(self, timeout: float = None) -> bool:
        """Block until cancelled or timeout; returns True when cancelled."""
        return self._event.wait(timeout)
