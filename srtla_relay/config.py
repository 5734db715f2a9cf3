"""
Configuration management for the SRTLA relay.

Handles:
- Relay settings (server, ports, stream ID, latency, sync policy)
- Durable key/value storage of those settings
- Well-known file locations (settings, IP bank, sender log)
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "srtla-relay"
CONFIG_DIR_ENV = "SRTLA_RELAY_CONFIG_DIR"
SETTINGS_FILENAME = "settings.json"

DEFAULT_TEMP_DIR = Path.home() / "srtla_relay_temp"
FALLBACK_TEMP_DIR = Path("/tmp/srtla_relay_temp")
IP_BANK_FILENAME = "ip_bank.txt"
DEFAULT_SENDER_LOG = Path("/tmp/srtla.log")

# Setting defaults
DEFAULT_SERVER_PORT = 3000
DEFAULT_LOCAL_PORT = 9000
DEFAULT_LATENCY_MS = 2000
MIN_LATENCY_MS = 1000
MAX_LATENCY_MS = 8000

# On-disk key for each RelaySettings field
SETTINGS_KEYS = {
    "server_host": "srtla_server",
    "server_port": "srtla_port",
    "stream_id": "srtla_stream_id",
    "auto_start": "srtla_auto_start",
    "latency_ms": "srtla_latency",
    "use_fixed_local_port": "srtla_use_fixed_port",
    "local_port": "srtla_local_port",
    "bidirectional_sync_enabled": "srtla_bidirectional_sync",
}


@dataclass
class RelaySettings:
    """
    Structured relay configuration.

    Invariant: bidirectional_sync_enabled implies use_fixed_local_port.
    """
    server_host: str = ""
    server_port: int = DEFAULT_SERVER_PORT
    stream_id: str = ""
    local_port: int = DEFAULT_LOCAL_PORT
    use_fixed_local_port: bool = True
    latency_ms: int = DEFAULT_LATENCY_MS
    auto_start: bool = False
    bidirectional_sync_enabled: bool = True

    def __post_init__(self):
        if self.bidirectional_sync_enabled:
            self.use_fixed_local_port = True

    def normalize(self) -> "RelaySettings":
        """Apply load-time defaults and the fixed-port invariant in place."""
        if self.server_port <= 0:
            self.server_port = DEFAULT_SERVER_PORT
        if self.local_port <= 0:
            self.local_port = DEFAULT_LOCAL_PORT
        if not MIN_LATENCY_MS <= self.latency_ms <= MAX_LATENCY_MS:
            logger.warning(
                f"Stored latency {self.latency_ms} ms outside "
                f"{MIN_LATENCY_MS}-{MAX_LATENCY_MS}, using {DEFAULT_LATENCY_MS} ms"
            )
            self.latency_ms = DEFAULT_LATENCY_MS
        if self.bidirectional_sync_enabled:
            self.use_fixed_local_port = True
        return self

    def to_dict(self) -> dict:
        return {
            SETTINGS_KEYS["server_host"]: self.server_host,
            SETTINGS_KEYS["server_port"]: self.server_port,
            SETTINGS_KEYS["stream_id"]: self.stream_id,
            SETTINGS_KEYS["auto_start"]: self.auto_start,
            SETTINGS_KEYS["latency_ms"]: self.latency_ms,
            SETTINGS_KEYS["use_fixed_local_port"]: self.use_fixed_local_port,
            SETTINGS_KEYS["local_port"]: self.local_port,
            SETTINGS_KEYS["bidirectional_sync_enabled"]: self.bidirectional_sync_enabled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RelaySettings":
        # Unknown keys are ignored to handle settings file evolution
        kwargs = {}
        for attr, key in SETTINGS_KEYS.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]
        settings = cls(**kwargs)
        settings.server_host = str(settings.server_host or "")
        settings.stream_id = str(settings.stream_id or "")
        settings.server_port = _as_int(settings.server_port, 0)
        settings.local_port = _as_int(settings.local_port, 0)
        settings.latency_ms = _as_int(settings.latency_ms, DEFAULT_LATENCY_MS)
        return settings.normalize()


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class RelayPaths:
    """Well-known file locations used by the relay."""
    config_dir: Path = field(default_factory=lambda: default_config_dir())
    temp_dir: Path = field(default_factory=lambda: DEFAULT_TEMP_DIR)
    sender_log: Path = DEFAULT_SENDER_LOG

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    @property
    def ip_bank_path(self) -> Path:
        return self.temp_dir / IP_BANK_FILENAME

    def ensure_temp_dir(self) -> Path:
        """
        Create the IP bank directory, falling back to /tmp when the
        preferred location is not writable.
        """
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create {self.temp_dir} ({e}), using {FALLBACK_TEMP_DIR}")
            self.temp_dir = FALLBACK_TEMP_DIR
            try:
                self.temp_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Cannot create {self.temp_dir}: {e}")
        logger.info(f"Using IP bank file: {self.ip_bank_path}")
        return self.temp_dir


def default_config_dir() -> Path:
    """Config directory, overridable through SRTLA_RELAY_CONFIG_DIR."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_DIR


class SettingsStore:
    """
    Durable key/value storage for RelaySettings.

    Stored at ~/.config/srtla-relay/settings.json
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_config_dir() / SETTINGS_FILENAME
        self.last_save_ok = True

    def exists(self) -> bool:
        """Check if a settings record exists."""
        return self.path.exists()

    def load(self) -> RelaySettings:
        """Load settings from disk, falling back to defaults."""
        if not self.path.exists():
            return RelaySettings()

        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read settings from {self.path}: {e}")
            return RelaySettings()

        if not isinstance(data, dict):
            logger.error(f"Ignoring malformed settings file {self.path}")
            return RelaySettings()

        return RelaySettings.from_dict(data)

    def save(self, settings: RelaySettings) -> bool:
        """
        Save settings to disk.

        Returns:
            True if a settings record already existed before this save
        """
        existed = self.path.exists()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(settings.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save settings to {self.path}: {e}")
            self.last_save_ok = False
            return existed

        self.last_save_ok = True
        logger.debug(
            f"Settings saved: server={settings.server_host}, port={settings.server_port}, "
            f"stream_id={settings.stream_id}, latency={settings.latency_ms}, "
            f"use_fixed_port={settings.use_fixed_local_port}, local_port={settings.local_port}, "
            f"bidirectional_sync={settings.bidirectional_sync_enabled}"
        )
        return existed
