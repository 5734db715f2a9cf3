"""
Tests for the psutil/subprocess process supervisor.
"""

import os
import shutil
import signal
import sys
import time

import psutil
import pytest

from srtla_relay.relay.supervisor import UNKNOWN_PID, SystemProcessSupervisor, _matches

linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux") or shutil.which("sleep") is None,
    reason="needs Linux process names and a sleep binary",
)


def info(name, cmdline, pid=1):
    return {"pid": pid, "name": name, "cmdline": cmdline}


def wait_for_zombie(pid, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
            return True
        time.sleep(0.05)
    return False


@pytest.fixture
def supervisor():
    sup = SystemProcessSupervisor(terminate_timeout=3.0)
    yield sup
    for pid, child in list(sup._children.items()):
        child.kill()
        child.wait(timeout=3.0)


@pytest.fixture
def named_sender(tmp_path):
    """A script whose process name is srtla_fake_tx."""
    script = tmp_path / "srtla_fake_tx"
    script.write_text("#!/bin/sh\nwhile :; do sleep 0.2; done\n")
    script.chmod(0o755)
    return script


class TestMatching:
    """Tests for process matching on psutil info dicts."""

    def test_exact_name(self):
        assert _matches(info("srtla_send", ["/usr/bin/srtla_send", "9000"]), "srtla_send", exact_name=True)

    def test_exact_name_ignores_command_line(self):
        """Log viewers and shell wrappers must not receive the reload signal."""
        tail = info("tail", ["tail", "-f", "/tmp/srtla_send.log"])
        wrapper = info("sh", ["sh", "-c", "/usr/bin/srtla_send 9000 host 3000 ips"])

        assert not _matches(tail, "srtla_send", exact_name=True)
        assert not _matches(wrapper, "srtla_send", exact_name=True)

    def test_exact_name_rejects_substring(self):
        assert not _matches(info("srtla_send_dbg", []), "srtla_send", exact_name=True)

    def test_command_line_match(self):
        sender = info("srtla_send", ["/usr/bin/srtla_send", "9000", "1.2.3.4"])
        assert _matches(sender, "srtla_send")
        assert _matches(info("python3", ["srtla_send", "9000"]), "srtla_send 9000")

    def test_own_process_never_matches(self):
        me = info("srtla_send", ["srtla_send"], pid=os.getpid())
        assert not _matches(me, "srtla_send")
        assert not _matches(me, "srtla_send", exact_name=True)

    def test_missing_fields(self):
        assert not _matches({"pid": 1, "name": None, "cmdline": None}, "srtla_send")


@linux_only
class TestSystemProcessSupervisor:
    """Tests against real short-lived child processes."""

    def test_spawn_redirects_output(self, supervisor, tmp_path):
        log_path = tmp_path / "logs" / "sender.log"
        result = supervisor.spawn(["sh", "-c", "echo started"], log_path)

        assert result.success is True
        assert result.pid > 0
        supervisor._children[result.pid].wait(timeout=3.0)
        assert "started" in log_path.read_text()

    def test_spawn_failure(self, supervisor, tmp_path):
        result = supervisor.spawn([str(tmp_path / "missing-binary")], tmp_path / "sender.log")

        assert result.success is False
        assert result.pid == UNKNOWN_PID
        assert result.error

    def test_terminate_leaves_no_zombie(self, supervisor, tmp_path):
        result = supervisor.spawn(["sleep", "30"], tmp_path / "sender.log")

        assert supervisor.terminate_by_id(result.pid) is True
        assert not psutil.pid_exists(result.pid)
        assert result.pid not in supervisor._children

    def test_terminate_unknown_pid(self, supervisor):
        assert supervisor.terminate_by_id(2 ** 22 + 12345) is False

    def test_find_pid_by_command_line(self, supervisor, tmp_path):
        result = supervisor.spawn(["sleep", "31.25"], tmp_path / "sender.log")

        assert supervisor.find_pid("sleep 31.25") == result.pid
        assert supervisor.find_pid("no-such-process-pattern") == UNKNOWN_PID

    def test_find_pid_skips_exited_process(self, supervisor, tmp_path):
        result = supervisor.spawn(["sleep", "32.5"], tmp_path / "sender.log")
        psutil.Process(result.pid).kill()
        assert wait_for_zombie(result.pid)

        assert supervisor.find_pid("sleep 32.5") == UNKNOWN_PID

    def test_signal_by_exact_name(self, supervisor, named_sender, tmp_path):
        result = supervisor.spawn([str(named_sender)], tmp_path / "sender.log")
        time.sleep(0.2)

        assert supervisor.signal_by_name("srtla_fake", signal.SIGTERM) == 0
        assert supervisor.signal_by_name("srtla_fake_tx", signal.SIGTERM) == 1

        supervisor._children[result.pid].wait(timeout=3.0)

    def test_terminate_by_name_uses_command_line(self, supervisor, tmp_path):
        result = supervisor.spawn(["sleep", "33.75"], tmp_path / "sender.log")

        assert supervisor.terminate_by_name("sleep 33.75") == 1
        child = supervisor._children.get(result.pid)
        if child is not None:
            child.wait(timeout=3.0)
        assert not psutil.pid_exists(result.pid)
