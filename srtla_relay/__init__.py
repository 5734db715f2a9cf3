"""
SRTLA Relay - bonded SRT sender supervision

Keeps an srtla_send process fed with the machine's current network paths
and keeps its settings in sync with the host application's SRT URL.

Example:
    >>> from srtla_relay import RelayApp, ServiceFileHost
    >>> app = RelayApp(host=ServiceFileHost("service.json"))
    >>> app.initialize()
    >>> app.controller.start()
"""

__version__ = "1.0.0"

from .config import RelaySettings, SettingsStore, RelayPaths
from .network import NetworkMonitor, InterfaceSnapshot, NetworkInterfaceInfo
from .relay import RelayProcessController, ProcessSupervisor, SettingUpdate
from .sync import SyncEngine, HostConnection, InMemoryHost, ServiceFileHost, build_url, parse_url
from .app import RelayApp, HostEvent

__all__ = [
    "__version__",
    "RelaySettings",
    "SettingsStore",
    "RelayPaths",
    "NetworkMonitor",
    "InterfaceSnapshot",
    "NetworkInterfaceInfo",
    "RelayProcessController",
    "ProcessSupervisor",
    "SettingUpdate",
    "SyncEngine",
    "HostConnection",
    "InMemoryHost",
    "ServiceFileHost",
    "build_url",
    "parse_url",
    "RelayApp",
    "HostEvent",
]
