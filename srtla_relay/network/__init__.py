"""
Network utilities for the SRTLA relay.

This module provides:
- IPv4 interface detection and the address-change predicate
- A background monitor that publishes snapshots on change
- The IP bank file consumed by the sender process
"""

from .interfaces import (
    InterfaceClass,
    NetworkInterfaceInfo,
    InterfaceSnapshot,
    classify_interface,
    detect_interfaces,
    snapshots_differ,
)
from .monitor import (
    NetworkMonitor,
    NetworkChangeCallback,
    POLL_INTERVAL_SEC,
)
from .ip_bank import (
    FALLBACK_ADDRESS,
    write_address_file,
    read_address_file,
)

__all__ = [
    "InterfaceClass",
    "NetworkInterfaceInfo",
    "InterfaceSnapshot",
    "classify_interface",
    "detect_interfaces",
    "snapshots_differ",
    "NetworkMonitor",
    "NetworkChangeCallback",
    "POLL_INTERVAL_SEC",
    "FALLBACK_ADDRESS",
    "write_address_file",
    "read_address_file",
]
