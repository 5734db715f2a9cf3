"""
Background network monitor.

Polls the machine's interfaces on a fixed interval and notifies
subscribers only when the set of active IPv4 addresses changes.
"""

import logging
import threading
from typing import Callable, List, Optional

from .interfaces import (
    InterfaceSnapshot,
    InterfaceSource,
    detect_interfaces,
    psutil_interface_source,
    snapshots_differ,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 5.0

NetworkChangeCallback = Callable[[InterfaceSnapshot], None]


class NetworkMonitor:
    """
    Polls interfaces and publishes snapshots on meaningful change.

    Subscribers are called synchronously, in registration order, on the
    monitor's own thread and without the internal lock held. They must not
    block for long.

    Usage:
        monitor = NetworkMonitor()
        monitor.on_change(lambda snap: print(snap.active_addresses()))
        monitor.start()
        # ... later ...
        monitor.stop()
    """

    def __init__(
        self,
        source: InterfaceSource = psutil_interface_source,
        interval: float = POLL_INTERVAL_SEC,
    ):
        self.source = source
        self.interval = interval

        self._lock = threading.Lock()
        self._snapshot = InterfaceSnapshot()
        self._callbacks: List[NetworkChangeCallback] = []
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the polling loop. Idempotent."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,),
                name="srtla-network-monitor", daemon=True,
            )
            thread = self._thread
        thread.start()
        logger.info(f"Network monitor started (interval {self.interval}s)")

    def stop(self) -> None:
        """Ask the polling loop to exit. Idempotent, does not join."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            stop_event = self._stop_event
        stop_event.set()
        logger.info("Network monitor stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the polling thread to finish after stop()."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def detect(self) -> InterfaceSnapshot:
        """Fresh, synchronous enumeration. Does not publish."""
        return detect_interfaces(self.source)

    def current_snapshot(self) -> InterfaceSnapshot:
        """Most recently published snapshot."""
        with self._lock:
            return self._snapshot

    def on_change(self, callback: NetworkChangeCallback) -> None:
        """Register a subscriber for network changes."""
        with self._lock:
            self._callbacks.append(callback)

    def poll_once(self) -> bool:
        """
        Run one detection cycle.

        Returns:
            True if a changed snapshot was published
        """
        snapshot = self.detect()

        with self._lock:
            if not snapshots_differ(self._snapshot, snapshot):
                return False
            previous = self._snapshot
            self._snapshot = snapshot
            callbacks = list(self._callbacks)

        logger.info(
            f"Network change detected: {previous.address_set()} -> {snapshot.address_set()}"
        )
        self._notify(callbacks, snapshot)
        return True

    def _notify(self, callbacks: List[NetworkChangeCallback], snapshot: InterfaceSnapshot) -> None:
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Network change callback {callback!r} failed: {e}", exc_info=True)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.poll_once()
            stop_event.wait(self.interval)
