"""
Process supervision primitives for the sender.

The controller only talks to the narrow ProcessSupervisor interface so its
lifecycle logic can run against a fake in tests.
"""

import logging
import os
import signal
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)

UNKNOWN_PID = -1

# How long terminate_by_id waits for the process to exit
TERMINATE_TIMEOUT_SEC = 3.0


@dataclass
class SpawnResult:
    """Outcome of launching a detached process."""
    success: bool
    pid: int = UNKNOWN_PID
    error: Optional[str] = None


class ProcessSupervisor(ABC):
    """Capability set the relay controller needs from the OS."""

    @abstractmethod
    def spawn(self, argv: List[str], log_path: Path) -> SpawnResult:
        """Launch argv detached with stdout/stderr appended to log_path."""
        pass

    @abstractmethod
    def find_pid(self, pattern: str) -> int:
        """Return the PID of a process whose command line contains pattern."""
        pass

    @abstractmethod
    def terminate_by_id(self, pid: int) -> bool:
        """Send a termination request to one process."""
        pass

    @abstractmethod
    def terminate_by_name(self, name: str) -> int:
        """Terminate every process whose command line contains name. Returns the count signaled."""
        pass

    @abstractmethod
    def signal_by_name(self, name: str, sig: int = signal.SIGHUP) -> int:
        """Send sig to every process named exactly name. Returns the count signaled."""
        pass


def _matches(proc_info: dict, pattern: str, exact_name: bool = False) -> bool:
    """
    Match a psutil process_iter info dict against pattern.

    With exact_name only the process name is compared, like killall.
    Otherwise the name or the joined command line may contain pattern,
    like pkill -f.
    """
    if proc_info.get("pid") == os.getpid():
        return False
    name = proc_info.get("name") or ""
    if exact_name:
        return name == pattern
    if pattern in name:
        return True
    cmdline = proc_info.get("cmdline") or []
    return pattern in " ".join(cmdline)


class SystemProcessSupervisor(ProcessSupervisor):
    """
    ProcessSupervisor backed by subprocess and psutil.

    Spawned children are kept until they have been waited for, so stopped
    senders never linger as zombies.
    """

    def __init__(self, terminate_timeout: float = TERMINATE_TIMEOUT_SEC):
        self.terminate_timeout = terminate_timeout
        self._children: Dict[int, subprocess.Popen] = {}

    def spawn(self, argv: List[str], log_path: Path) -> SpawnResult:
        self._reap_finished()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, 'ab') as log_file:
                proc = subprocess.Popen(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            logger.error(f"Failed to launch {argv[0]}: {e}")
            return SpawnResult(success=False, error=str(e))

        self._children[proc.pid] = proc
        return SpawnResult(success=True, pid=proc.pid)

    def find_pid(self, pattern: str) -> int:
        for proc in psutil.process_iter(['pid', 'name', 'cmdline', 'status']):
            try:
                if proc.info['status'] == psutil.STATUS_ZOMBIE:
                    continue
                if _matches(proc.info, pattern):
                    return proc.info['pid']
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return UNKNOWN_PID

    def terminate_by_id(self, pid: int) -> bool:
        try:
            psutil.Process(pid).terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.warning(f"Could not terminate PID {pid}: {e}")
            self._reap_finished()
            return False

        self._wait_for_exit(pid)
        self._reap_finished()
        return True

    def terminate_by_name(self, name: str) -> int:
        count = self._send_matching(name, signal.SIGTERM, exact_name=False)
        self._reap_finished()
        return count

    def signal_by_name(self, name: str, sig: int = signal.SIGHUP) -> int:
        return self._send_matching(name, sig, exact_name=True)

    def _send_matching(self, pattern: str, sig: int, exact_name: bool) -> int:
        count = 0
        for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
            try:
                if _matches(proc.info, pattern, exact_name=exact_name):
                    proc.send_signal(sig)
                    count += 1
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        logger.debug(f"Sent signal {sig} to {count} '{pattern}' process(es)")
        return count

    def _wait_for_exit(self, pid: int) -> None:
        child = self._children.get(pid)
        try:
            if child is not None:
                child.wait(timeout=self.terminate_timeout)
                del self._children[pid]
            else:
                psutil.Process(pid).wait(timeout=self.terminate_timeout)
        except (subprocess.TimeoutExpired, psutil.TimeoutExpired):
            logger.warning(f"PID {pid} did not exit within {self.terminate_timeout}s")
        except psutil.NoSuchProcess:
            pass

    def _reap_finished(self) -> None:
        """Collect exit status of children that have already exited."""
        for pid, child in list(self._children.items()):
            if child.poll() is not None:
                del self._children[pid]
