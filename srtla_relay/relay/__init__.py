"""
Sender process management.
"""

from .supervisor import (
    ProcessSupervisor,
    SystemProcessSupervisor,
    SpawnResult,
    UNKNOWN_PID,
)
from .controller import (
    RelayProcessController,
    ProcessHandle,
    SettingUpdate,
    resolve_host,
    DEFAULT_SENDER_EXECUTABLE,
)

__all__ = [
    "ProcessSupervisor",
    "SystemProcessSupervisor",
    "SpawnResult",
    "UNKNOWN_PID",
    "RelayProcessController",
    "ProcessHandle",
    "SettingUpdate",
    "resolve_host",
    "DEFAULT_SENDER_EXECUTABLE",
]
