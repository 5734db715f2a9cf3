"""
Relay application wiring.

RelayApp owns one monitor, controller, sync engine and host connection and
hands them to each other explicitly. Host integrations forward their
lifecycle events to handle_event().
"""

import logging
from enum import Enum
from typing import Optional

from .config import RelayPaths, SettingsStore
from .network.monitor import NetworkMonitor
from .relay.controller import RelayProcessController
from .relay.supervisor import ProcessSupervisor
from .sync.engine import SyncEngine
from .sync.host import HostConnection

logger = logging.getLogger(__name__)

STARTUP_SYNC_CHECKS = 3


class HostEvent(str, Enum):
    """Host lifecycle events the relay reacts to."""
    STREAMING_STARTING = "streaming_starting"
    STREAMING_STOPPING = "streaming_stopping"
    FINISHED_LOADING = "finished_loading"
    PROFILE_CHANGED = "profile_changed"


class RelayApp:
    """
    Explicitly owned relay instance.

    Usage:
        app = RelayApp(host=ServiceFileHost(path))
        app.initialize()
        app.handle_event(HostEvent.STREAMING_STARTING)
        ...
        app.shutdown()
    """

    def __init__(
        self,
        host: HostConnection,
        store: Optional[SettingsStore] = None,
        paths: Optional[RelayPaths] = None,
        monitor: Optional[NetworkMonitor] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        **controller_kwargs,
    ):
        self.paths = paths or RelayPaths()
        self.store = store or SettingsStore(self.paths.settings_path)
        self.monitor = monitor or NetworkMonitor()
        self.host = host
        self.controller = RelayProcessController(
            self.monitor,
            supervisor=supervisor,
            store=self.store,
            paths=self.paths,
            **controller_kwargs,
        )
        self.sync = SyncEngine(self.controller, host).attach()
        self._startup_checks_done = 0

    @property
    def sync_enabled(self) -> bool:
        return self.controller.bidirectional_sync_enabled

    def initialize(self, start_monitor: bool = True) -> None:
        """Start monitoring and push saved settings to the host."""
        self.paths.ensure_temp_dir()
        if start_monitor:
            self.monitor.start()

        if self.sync_enabled:
            logger.info("Forcing initial sync of saved settings to host at startup")
            self.sync.sync_to_external()

    def handle_event(self, event: HostEvent) -> bool:
        """
        React to a host lifecycle event.

        Returns:
            True if the event caused an action that succeeded
        """
        controller = self.controller

        if event == HostEvent.STREAMING_STARTING:
            if not controller.auto_start or controller.is_running():
                logger.info("SRTLA auto-start not enabled or already running")
                return False
            if not controller.server_host:
                logger.warning("SRTLA server not configured")
                return False
            logger.info("Auto-starting SRTLA sender")
            if controller.start():
                logger.info("SRTLA sender auto-started successfully")
                return True
            logger.error("Failed to auto-start SRTLA sender")
            return False

        if event == HostEvent.STREAMING_STOPPING:
            if controller.is_running() and controller.auto_start:
                logger.info("Auto-stopping SRTLA sender")
                controller.stop()
                return True
            return False

        if event in (HostEvent.FINISHED_LOADING, HostEvent.PROFILE_CHANGED):
            if self.sync_enabled:
                logger.info("Bidirectional sync is enabled, syncing settings")
                return self.sync.sync_from_external()
            return False

        logger.warning(f"Unhandled host event: {event}")
        return False

    def startup_check(self) -> bool:
        """
        One startup reconciliation step.

        Only the first STARTUP_SYNC_CHECKS calls with a host URL present do
        any work.

        Returns:
            True if either side changed
        """
        if self._startup_checks_done >= STARTUP_SYNC_CHECKS or not self.sync_enabled:
            return False
        if not self.host.get_current_connection_url():
            return False

        self._startup_checks_done += 1
        logger.info(f"Performing startup sync check #{self._startup_checks_done}")
        changed = self.sync.reconcile()
        if self._startup_checks_done >= STARTUP_SYNC_CHECKS:
            logger.info("Startup synchronization complete, disabling periodic checks")
        return changed

    @property
    def startup_complete(self) -> bool:
        return self._startup_checks_done >= STARTUP_SYNC_CHECKS

    def shutdown(self) -> None:
        """Stop monitoring and the sender, and clean up the IP bank."""
        self.monitor.stop()
        self.controller.close()
