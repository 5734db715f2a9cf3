"""
Lifecycle management for the srtla_send process.

The controller owns the relay settings and the handle of the running
sender. It feeds the sender the current IP bank, restarts it when the
local port changes, and asks it to reload the IP bank (SIGHUP) when the
network monitor reports a change.
"""

import logging
import random
import signal
import socket
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from ..config import (
    DEFAULT_LOCAL_PORT,
    MAX_LATENCY_MS,
    MIN_LATENCY_MS,
    RelayPaths,
    RelaySettings,
    SettingsStore,
)
from ..network.interfaces import InterfaceSnapshot
from ..network.ip_bank import write_address_file
from ..network.monitor import NetworkChangeCallback, NetworkMonitor
from .supervisor import UNKNOWN_PID, ProcessSupervisor, SystemProcessSupervisor

if TYPE_CHECKING:
    from ..sync.engine import SyncEngine

logger = logging.getLogger(__name__)

DEFAULT_SENDER_EXECUTABLE = "/usr/bin/srtla_send"

# Range for randomly drawn local ports
RANDOM_PORT_MIN = 10000
RANDOM_PORT_MAX = 65000

MAX_PORT = 65535


@dataclass
class ProcessHandle:
    """Bookkeeping for the running sender."""
    running: bool = False
    pid: int = UNKNOWN_PID
    bound_local_port: int = 0


@dataclass
class SettingUpdate:
    """
    Side effects of one setter call.

    Truthy when the setting actually changed.
    """
    changed: bool = False
    persisted: bool = False
    url_synced: bool = False

    def __bool__(self) -> bool:
        return self.changed


def resolve_host(host: str) -> str:
    """
    Resolve a hostname to an IPv4 literal.

    Hosts that already start with a digit are returned untouched. Lookup
    failures fall back to the original string.
    """
    if not host or host[0].isdigit():
        return host

    logger.info(f"Resolving hostname: {host}")
    try:
        resolved = socket.gethostbyname(host)
    except (OSError, UnicodeError) as e:
        logger.warning(f"Could not resolve hostname, using as-is: {host} ({e})")
        return host

    logger.info(f"Resolved {host} to IP: {resolved}")
    return resolved


class RelayProcessController:
    """
    Starts, stops and reloads the SRTLA sender.

    Only Stopped and Running are observable through is_running(). Starting
    while running is a no-op; stopping always returns to Stopped even when
    the OS-level termination could not be confirmed.

    Setters persist immediately and report their side effects as a
    SettingUpdate. With bidirectional sync enabled, setters for the local
    port, stream ID and latency push the new connection URL to the host
    through the attached SyncEngine.
    """

    def __init__(
        self,
        monitor: NetworkMonitor,
        supervisor: Optional[ProcessSupervisor] = None,
        store: Optional[SettingsStore] = None,
        paths: Optional[RelayPaths] = None,
        settings: Optional[RelaySettings] = None,
        executable: str = DEFAULT_SENDER_EXECUTABLE,
        resolver: Callable[[str], str] = resolve_host,
        rng: Optional[random.Random] = None,
    ):
        self.monitor = monitor
        self.supervisor = supervisor or SystemProcessSupervisor()
        self.store = store
        self.paths = paths or RelayPaths()
        self.executable = executable
        self.resolver = resolver
        self._rng = rng or random.Random()

        if settings is not None:
            self._settings = replace(settings).normalize()
        elif store is not None:
            self._settings = store.load()
        else:
            self._settings = RelaySettings()

        self._handle = ProcessHandle()
        self._sync_engine: Optional["SyncEngine"] = None

        self.monitor.on_change(self.on_network_change)

    # === State ===

    @property
    def settings(self) -> RelaySettings:
        """A copy of the current settings record."""
        return replace(self._settings)

    @property
    def handle(self) -> ProcessHandle:
        return replace(self._handle)

    @property
    def process_name(self) -> str:
        return Path(self.executable).name

    @property
    def ip_bank_path(self) -> Path:
        return self.paths.ip_bank_path

    def is_running(self) -> bool:
        return self._handle.running

    def attach_sync_engine(self, engine: "SyncEngine") -> None:
        """Use engine to push URL changes made through setters."""
        self._sync_engine = engine

    def register_network_change_callback(self, callback: NetworkChangeCallback) -> None:
        self.monitor.on_change(callback)

    # === Persistence ===

    def load_settings(self) -> RelaySettings:
        """Reload settings from the store."""
        if self.store is not None:
            self._settings = self.store.load()
        return self.settings

    def save_settings(self) -> bool:
        """
        Persist the current settings.

        Returns:
            True if a settings record already existed
        """
        if self.store is None:
            return False
        return self.store.save(self._settings)

    def _persist(self) -> bool:
        if self.store is None:
            return False
        self.store.save(self._settings)
        return self.store.last_save_ok

    # === Process lifecycle ===

    def start(self) -> bool:
        """
        Launch the sender.

        Returns:
            True if the sender is running afterwards
        """
        settings = self._settings
        if not settings.server_host:
            logger.error("SRTLA server not configured")
            return False

        if self._handle.running:
            logger.info("SRTLA process already running")
            return True

        local_port = self._select_local_port()
        server = self.resolver(settings.server_host)

        snapshot = self.monitor.detect()
        ip_bank = self.ip_bank_path
        if not write_address_file(snapshot, ip_bank, fallback=True):
            logger.error(f"Failed to create IP list file: {ip_bank}")
            return False

        argv = [
            self.executable,
            str(local_port),
            server,
            str(settings.server_port),
            str(ip_bank),
        ]
        logger.info(f"Starting SRTLA process with command: {' '.join(argv)}")

        result = self.supervisor.spawn(argv, self.paths.sender_log)
        if not result.success:
            logger.error(f"Failed to start SRTLA process: {result.error}")
            return False

        pid = result.pid
        if pid <= 0:
            pid = self.supervisor.find_pid(f"{self.process_name} {local_port}")

        self._handle = ProcessHandle(running=True, pid=pid, bound_local_port=local_port)
        if pid > 0:
            logger.info(f"SRTLA process started with PID: {pid}")
        else:
            logger.warning("SRTLA process started but its PID is unknown")
        return True

    def stop(self) -> None:
        """Terminate the sender. Best effort, always ends in Stopped."""
        if not self._handle.running:
            logger.info("SRTLA process is not running")
            return

        logger.info("Stopping SRTLA process")
        if self._handle.pid > 0:
            logger.info(f"Killing process with PID: {self._handle.pid}")
            self.supervisor.terminate_by_id(self._handle.pid)
        else:
            logger.info(f"No PID available, killing all {self.process_name} processes")
            self.supervisor.terminate_by_name(self.process_name)

        self._handle = ProcessHandle()

    def restart_with_port(self, port: int) -> bool:
        """Stop if running, switch the local port, and start again."""
        if not 0 < port <= MAX_PORT:
            logger.warning(f"Ignoring restart with invalid local port: {port}")
            return False

        if self._handle.running:
            self.stop()

        self._settings.local_port = port
        self._persist()
        logger.info(f"Restarting SRTLA process with port: {port}")
        return self.start()

    def on_network_change(self, snapshot: InterfaceSnapshot) -> bool:
        """
        Rewrite the IP bank and ask a running sender to reload it.

        Runs on the monitor thread.

        Returns:
            True if a reload signal was issued
        """
        logger.info("Network change detected - updating IP bank file")
        if write_address_file(snapshot, self.ip_bank_path):
            logger.info("IP bank file updated successfully")
        else:
            logger.error("Failed to update IP bank file after network change")

        if not self._handle.running:
            return False

        logger.info("Sending HUP signal to SRTLA process to reload IP list")
        self.supervisor.signal_by_name(self.process_name, signal.SIGHUP)
        return True

    def generate_random_port(self) -> int:
        return self._rng.randint(RANDOM_PORT_MIN, RANDOM_PORT_MAX)

    def _select_local_port(self) -> int:
        settings = self._settings
        if settings.bidirectional_sync_enabled:
            if settings.local_port <= 0:
                settings.local_port = DEFAULT_LOCAL_PORT
            self._enforce_fixed_port()
            logger.info(f"Bidirectional sync enabled, using fixed local port: {settings.local_port}")
        elif not settings.use_fixed_local_port or settings.local_port <= 0:
            settings.local_port = self.generate_random_port()
            self._persist()
            logger.info(f"Using random local port: {settings.local_port}")
        else:
            logger.info(f"Using fixed local port: {settings.local_port}")
        return settings.local_port

    def _enforce_fixed_port(self) -> bool:
        if self._settings.use_fixed_local_port:
            return False
        self._settings.use_fixed_local_port = True
        self._persist()
        return True

    def close(self) -> None:
        """Stop the sender and remove the IP bank file."""
        self.stop()
        ip_bank = self.ip_bank_path
        try:
            if ip_bank.exists():
                ip_bank.unlink()
            parent = ip_bank.parent
            if parent.exists() and not any(parent.iterdir()):
                parent.rmdir()
        except OSError as e:
            logger.warning(f"Could not clean up {ip_bank}: {e}")

    def __enter__(self) -> "RelayProcessController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # === Settings accessors ===

    @property
    def server_host(self) -> str:
        return self._settings.server_host

    @property
    def server_port(self) -> int:
        return self._settings.server_port

    @property
    def stream_id(self) -> str:
        return self._settings.stream_id

    @property
    def local_port(self) -> int:
        return self._settings.local_port

    @property
    def use_fixed_local_port(self) -> bool:
        return self._settings.use_fixed_local_port

    @property
    def latency_ms(self) -> int:
        return self._settings.latency_ms

    @property
    def auto_start(self) -> bool:
        return self._settings.auto_start

    @property
    def bidirectional_sync_enabled(self) -> bool:
        return self._settings.bidirectional_sync_enabled

    # === Setters ===

    def _update(self, field_name: str, value, push_url: bool = False) -> SettingUpdate:
        if getattr(self._settings, field_name) == value:
            return SettingUpdate()

        setattr(self._settings, field_name, value)
        logger.info(f"{field_name} set to: {value}")

        update = SettingUpdate(changed=True, persisted=self._persist())
        if push_url and self._settings.bidirectional_sync_enabled:
            update.url_synced = self._push_url()
        return update

    def _push_url(self) -> bool:
        if self._sync_engine is None:
            return False
        logger.info("Bidirectional sync enabled - updating host URL")
        return self._sync_engine.sync_to_external()

    def set_server_host(self, host: str) -> SettingUpdate:
        # The server address only matters to the sender, never to the host URL
        return self._update("server_host", host.strip())

    def set_server_port(self, port: int) -> SettingUpdate:
        if not 0 < port <= MAX_PORT:
            logger.warning(f"Ignoring invalid server port: {port}")
            return SettingUpdate()
        return self._update("server_port", port)

    def set_stream_id(self, stream_id: str) -> SettingUpdate:
        return self._update("stream_id", stream_id, push_url=True)

    def set_local_port(self, port: int) -> SettingUpdate:
        if not 0 < port <= MAX_PORT:
            logger.warning(f"Ignoring invalid local port: {port}")
            return SettingUpdate()
        return self._update("local_port", port, push_url=True)

    def set_latency(self, latency_ms: int) -> SettingUpdate:
        if not MIN_LATENCY_MS <= latency_ms <= MAX_LATENCY_MS:
            logger.warning(
                f"Rejecting latency {latency_ms} ms outside {MIN_LATENCY_MS}-{MAX_LATENCY_MS}"
            )
            return SettingUpdate()
        return self._update("latency_ms", latency_ms, push_url=True)

    def set_auto_start(self, enable: bool) -> SettingUpdate:
        return self._update("auto_start", enable)

    def set_use_fixed_local_port(self, enable: bool) -> SettingUpdate:
        if not enable and self._settings.bidirectional_sync_enabled:
            logger.warning("Fixed port mode is required while bidirectional sync is enabled")
            return SettingUpdate()
        return self._update("use_fixed_local_port", enable, push_url=enable)

    def set_bidirectional_sync(self, enable: bool) -> SettingUpdate:
        """
        Toggle bidirectional sync.

        Enabling forces fixed-port mode and pushes the current settings to
        the host, so the internal record wins at the moment sync starts.
        """
        was_enabled = self._settings.bidirectional_sync_enabled
        if enable == was_enabled:
            return SettingUpdate()

        self._settings.bidirectional_sync_enabled = enable
        if enable:
            self._settings.use_fixed_local_port = True
        logger.info(f"Bidirectional sync set to: {'enabled' if enable else 'disabled'}")

        update = SettingUpdate(changed=True, persisted=self._persist())
        if enable:
            update.url_synced = self._push_url()
        return update

    # === Sync support ===

    def adopt_external(
        self,
        local_port: Optional[int] = None,
        latency_ms: Optional[int] = None,
        stream_id: Optional[str] = None,
    ) -> bool:
        """
        Apply values taken from the host URL without pushing them back.

        A changed local port forces fixed-port mode and restarts a running
        sender. Settings are persisted once.

        Returns:
            True if anything changed
        """
        settings = self._settings
        changed = False
        port_changed = False

        if local_port is not None and local_port != settings.local_port:
            logger.info(f"Updating local port from {settings.local_port} to: {local_port}")
            settings.local_port = local_port
            settings.use_fixed_local_port = True
            changed = port_changed = True

        if latency_ms is not None and latency_ms != settings.latency_ms:
            logger.info(f"Updating latency from {settings.latency_ms} to: {latency_ms}")
            settings.latency_ms = latency_ms
            changed = True

        if stream_id is not None and stream_id != settings.stream_id:
            logger.info(f"Using stream ID from URL: {stream_id}")
            settings.stream_id = stream_id
            changed = True

        if changed:
            self._persist()

        if port_changed and self._handle.running:
            logger.info("Restarting SRTLA with new port")
            self.restart_with_port(settings.local_port)

        return changed
