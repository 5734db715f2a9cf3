"""
Shared fixtures: a fake process supervisor and a scriptable interface source.
"""

import signal
import socket
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from srtla_relay.config import RelayPaths, SettingsStore
from srtla_relay.network.monitor import NetworkMonitor
from srtla_relay.relay.supervisor import ProcessSupervisor, SpawnResult, UNKNOWN_PID


class FakeSupervisor(ProcessSupervisor):
    """Records every call instead of touching real processes."""

    def __init__(self, spawn_ok: bool = True, pid: int = 4242):
        self.spawn_ok = spawn_ok
        self.pid = pid
        self.found_pid = UNKNOWN_PID
        self.spawned: List[List[str]] = []
        self.terminated_ids: List[int] = []
        self.terminated_names: List[str] = []
        self.signals: List[Tuple[str, int]] = []

    def spawn(self, argv, log_path: Path) -> SpawnResult:
        if not self.spawn_ok:
            return SpawnResult(success=False, error="boom")
        self.spawned.append(list(argv))
        return SpawnResult(success=True, pid=self.pid)

    def find_pid(self, pattern: str) -> int:
        return self.found_pid

    def terminate_by_id(self, pid: int) -> bool:
        self.terminated_ids.append(pid)
        return True

    def terminate_by_name(self, name: str) -> int:
        self.terminated_names.append(name)
        return 1

    def signal_by_name(self, name: str, sig: int = signal.SIGHUP) -> int:
        self.signals.append((name, sig))
        return 1


class FakeInterfaces:
    """
    Scriptable stand-in for psutil's interface enumeration.

    interfaces maps name -> (ipv4, isup, running).
    """

    def __init__(self, interfaces: Dict[str, Tuple[str, bool, bool]] = None):
        self.interfaces = dict(interfaces or {})

    def __call__(self):
        addrs = {}
        stats = {}
        for name, (ip, isup, running) in self.interfaces.items():
            addrs[name] = [(socket.AF_INET, ip)]
            flags = ["up"] if isup else []
            if running:
                flags.append("running")
            if name == "lo":
                flags.append("loopback")
            stats[name] = (isup, ",".join(flags))
        return addrs, stats


@pytest.fixture
def fake_interfaces():
    return FakeInterfaces({
        "lo": ("127.0.0.1", True, True),
        "eth0": ("192.168.1.10", True, True),
        "wlan0": ("10.0.0.5", True, True),
    })


@pytest.fixture
def supervisor():
    return FakeSupervisor()


@pytest.fixture
def monitor(fake_interfaces):
    return NetworkMonitor(source=fake_interfaces, interval=0.01)


@pytest.fixture
def paths(tmp_path):
    return RelayPaths(
        config_dir=tmp_path / "config",
        temp_dir=tmp_path / "srtla_relay_temp",
        sender_log=tmp_path / "srtla.log",
    )


@pytest.fixture
def store(paths):
    return SettingsStore(paths.settings_path)
