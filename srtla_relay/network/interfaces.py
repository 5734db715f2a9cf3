"""
Network interface detection for the SRTLA relay.

Enumerates the machine's IPv4-bearing interfaces and provides the
change predicate used to decide when the sender must reload its
address list.
"""

import socket
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Tuple

import psutil

logger = logging.getLogger(__name__)

LOOPBACK_NAME = "lo"
LOOPBACK_IP = "127.0.0.1"


class InterfaceClass(str, Enum):
    """Interface classification from common naming conventions."""
    ETHERNET = "ethernet"
    WIRELESS = "wireless"
    MODEM = "modem"
    OTHER = "other"


def classify_interface(name: str) -> InterfaceClass:
    """Classify an interface by its name prefix."""
    if name.startswith(("eth", "en")):
        return InterfaceClass.ETHERNET
    if name.startswith(("wlan", "wifi", "wl")):
        return InterfaceClass.WIRELESS
    if name.startswith(("ppp", "tun", "tap")):
        return InterfaceClass.MODEM
    return InterfaceClass.OTHER


@dataclass(frozen=True)
class NetworkInterfaceInfo:
    """One IPv4 address bound to a network interface."""
    name: str
    ipv4: str
    is_up: bool
    is_running: bool
    classification: InterfaceClass = InterfaceClass.OTHER

    @property
    def is_active(self) -> bool:
        return self.is_up and self.is_running

    @property
    def is_loopback(self) -> bool:
        return self.name == LOOPBACK_NAME or self.ipv4 == LOOPBACK_IP

    @property
    def is_usable(self) -> bool:
        """Active, non-loopback, with an address."""
        return self.is_active and bool(self.ipv4) and not self.is_loopback

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ipv4": self.ipv4,
            "is_up": self.is_up,
            "is_running": self.is_running,
            "classification": self.classification.value,
        }


@dataclass(frozen=True)
class InterfaceSnapshot:
    """Interfaces captured at one point in time. Never mutated."""
    interfaces: Tuple[NetworkInterfaceInfo, ...] = ()
    captured_at: float = field(default_factory=time.time, compare=False)

    def __iter__(self):
        return iter(self.interfaces)

    def __len__(self) -> int:
        return len(self.interfaces)

    def active_addresses(self) -> List[str]:
        """Usable IPv4 addresses in snapshot order."""
        return [iface.ipv4 for iface in self.interfaces if iface.is_usable]

    def address_set(self) -> List[str]:
        """Sorted usable addresses, the basis of change detection."""
        return sorted(self.active_addresses())

    def describe(self) -> str:
        return " ".join(
            f"{iface.name}({iface.ipv4})" for iface in self.interfaces if iface.is_usable
        )


def snapshots_differ(old: InterfaceSnapshot, new: InterfaceSnapshot) -> bool:
    """
    Report whether two snapshots differ in their active address sets.

    Names and classification are ignored: two interfaces carrying the same
    address count as no change, so the sender is not reloaded needlessly.
    """
    return old.address_set() != new.address_set()


# (name -> [(family, address)], name -> (isup, flags))
InterfaceSource = Callable[[], Tuple[Dict[str, List[Tuple[int, str]]], Dict[str, Tuple[bool, str]]]]


def psutil_interface_source() -> Tuple[Dict[str, List[Tuple[int, str]]], Dict[str, Tuple[bool, str]]]:
    """Read addresses and link state from psutil."""
    addrs = {
        name: [(addr.family, addr.address) for addr in entries]
        for name, entries in psutil.net_if_addrs().items()
    }
    stats = {
        name: (st.isup, getattr(st, "flags", ""))
        for name, st in psutil.net_if_stats().items()
    }
    return addrs, stats


def _is_running(isup: bool, flags: str) -> bool:
    # psutil exposes interface flags on Linux/macOS; elsewhere fall back to isup
    if not flags:
        return isup
    return "running" in flags.split(",")


def _has_loopback_flag(flags: str) -> bool:
    return bool(flags) and "loopback" in flags.split(",")


def detect_interfaces(source: InterfaceSource = psutil_interface_source) -> InterfaceSnapshot:
    """
    Enumerate IPv4-bearing, non-loopback interfaces.

    Side-effect free. Enumeration failures produce an empty snapshot.
    """
    try:
        addrs, stats = source()
    except (OSError, psutil.Error) as e:
        logger.warning(f"Interface enumeration failed: {e}")
        return InterfaceSnapshot()

    found: List[NetworkInterfaceInfo] = []
    for name, entries in addrs.items():
        isup, flags = stats.get(name, (False, ""))
        if name == LOOPBACK_NAME or _has_loopback_flag(flags):
            continue

        for family, address in entries:
            if family != socket.AF_INET:
                continue
            found.append(NetworkInterfaceInfo(
                name=name,
                ipv4=address,
                is_up=isup,
                is_running=_is_running(isup, flags),
                classification=classify_interface(name),
            ))

    logger.debug(f"Detected {len(found)} IPv4 interface address(es)")
    return InterfaceSnapshot(interfaces=tuple(found))


def snapshot_from(entries: Iterable[NetworkInterfaceInfo]) -> InterfaceSnapshot:
    """Build a snapshot from an existing list of interfaces."""
    return InterfaceSnapshot(interfaces=tuple(entries))
