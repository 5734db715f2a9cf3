"""
Tests for bidirectional settings/URL synchronization and host adapters.
"""

import json
import random

import pytest

from srtla_relay.config import RelaySettings
from srtla_relay.relay.controller import RelayProcessController
from srtla_relay.sync.engine import SyncEngine
from srtla_relay.sync.host import InMemoryHost, ServiceFileHost


@pytest.fixture
def host():
    return InMemoryHost()


@pytest.fixture
def controller(monitor, supervisor, store, paths):
    return RelayProcessController(
        monitor,
        supervisor=supervisor,
        store=store,
        paths=paths,
        settings=RelaySettings(server_host="203.0.113.5"),
        resolver=lambda host: host,
        rng=random.Random(3),
    )


@pytest.fixture
def engine(controller, host):
    return SyncEngine(controller, host).attach()


class TestSyncFromExternal:
    """Tests for adopting the host URL."""

    def test_adopts_port_and_latency(self, engine, controller, host, store):
        """Host URL wins for the fields it carries, then nothing is left to push."""
        host.url = "srt://localhost:9500?latency=3000"

        assert engine.sync_from_external() is True
        assert controller.local_port == 9500
        assert controller.latency_ms == 3000
        assert controller.use_fixed_local_port is True
        assert store.load().local_port == 9500

        assert engine.sync_to_external() is False
        assert host.writes == []

    def test_adopts_stream_id(self, engine, controller, host):
        host.url = "srt://localhost:9000?streamid=cam1&latency=2000"

        assert engine.sync_from_external() is True
        assert controller.stream_id == "cam1"

    def test_matching_url_reports_no_change(self, engine, host):
        host.url = "srt://localhost:9000?latency=2000"
        assert engine.sync_from_external() is False

    def test_default_latency_not_adopted(self, engine, controller, host):
        controller.set_latency(4000)
        host.url = "srt://localhost:9000?latency=2000"

        assert engine.sync_from_external() is False
        assert controller.latency_ms == 4000

    def test_out_of_range_latency_ignored(self, engine, controller, host):
        host.url = "srt://localhost:9500?latency=9000"

        assert engine.sync_from_external() is True
        assert controller.local_port == 9500
        assert controller.latency_ms == 2000

    def test_empty_url(self, engine, host):
        assert engine.sync_from_external() is False
        assert host.writes == []

    def test_non_srt_url_is_replaced(self, engine, controller, host):
        host.url = "rtmp://live.example.com/app"

        assert engine.sync_from_external() is True
        assert host.url == "srt://localhost:9000?latency=2000"
        assert controller.local_port == 9000

    def test_explicit_url_argument(self, engine, controller, host):
        host.url = "srt://localhost:9000?latency=2000"
        assert engine.sync_from_external("srt://localhost:9600?latency=2000") is True
        assert controller.local_port == 9600

    def test_port_change_restarts_running_sender(self, engine, controller, host, supervisor):
        controller.start()
        host.url = "srt://localhost:9500?latency=2000"

        engine.sync_from_external()

        assert supervisor.terminated_ids == [4242]
        assert [argv[1] for argv in supervisor.spawned] == ["9000", "9500"]
        assert controller.is_running() is True

    def test_adoption_does_not_write_back(self, engine, host):
        host.url = "srt://localhost:9500?latency=3000&streamid=x"
        engine.sync_from_external()
        assert host.writes == []


class TestSyncToExternal:
    """Tests for pushing settings to the host."""

    def test_writes_when_different(self, engine, host):
        host.url = "srt://localhost:1234?latency=2000"

        assert engine.sync_to_external() is True
        assert host.url == "srt://localhost:9000?latency=2000"

    def test_idempotent(self, engine, host):
        engine.sync_to_external()
        assert engine.sync_to_external() is False
        assert len(host.writes) == 1

    def test_includes_stream_id(self, engine, controller, host):
        controller.set_stream_id("live/cam1")
        assert host.url == "srt://localhost:9000?streamid=live/cam1&latency=2000"


class TestReconcile:
    """Tests for the combined startup check."""

    def test_empty_host_url(self, engine, host):
        assert engine.reconcile() is False
        assert host.writes == []

    def test_non_srt_url_converted(self, engine, host):
        host.url = "rtmp://live.example.com/app"
        assert engine.reconcile() is True
        assert host.url == "srt://localhost:9000?latency=2000"

    def test_adopts_then_fills_missing_parameters(self, engine, controller, host):
        host.url = "srt://localhost:9500"

        assert engine.reconcile() is True
        assert controller.local_port == 9500
        assert host.url == "srt://localhost:9500?latency=2000"


class TestServiceFileHost:
    """Tests for the JSON service file adapter."""

    def test_missing_file(self, tmp_path):
        assert ServiceFileHost(tmp_path / "service.json").get_current_connection_url() == ""

    def test_reads_server_first(self, tmp_path):
        path = tmp_path / "service.json"
        path.write_text(json.dumps({"settings": {"server": "srt://localhost:9100", "url": "other"}}))
        assert ServiceFileHost(path).get_current_connection_url() == "srt://localhost:9100"

    def test_reads_url_fallbacks(self, tmp_path):
        path = tmp_path / "service.json"
        path.write_text(json.dumps({"settings": {"url": "srt://localhost:9200"}}))
        assert ServiceFileHost(path).get_current_connection_url() == "srt://localhost:9200"

        path.write_text(json.dumps({"url": "srt://localhost:9300"}))
        assert ServiceFileHost(path).get_current_connection_url() == "srt://localhost:9300"

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "service.json"
        path.write_text("{not json")
        assert ServiceFileHost(path).get_current_connection_url() == ""

    def test_write_preserves_other_fields(self, tmp_path):
        path = tmp_path / "service.json"
        path.write_text(json.dumps({"type": "rtmp_custom", "settings": {"key": "abc"}}))
        host = ServiceFileHost(path)

        assert host.set_connection_url("srt://localhost:9000?latency=2000") is True

        data = json.loads(path.read_text())
        assert data["type"] == "rtmp_custom"
        assert data["settings"]["key"] == "abc"
        assert data["settings"]["server"] == "srt://localhost:9000?latency=2000"
        assert data["settings"]["url"] == "srt://localhost:9000?latency=2000"

    def test_engine_against_service_file(self, tmp_path, controller):
        path = tmp_path / "service.json"
        path.write_text(json.dumps({"settings": {"server": "srt://localhost:9700?latency=2500"}}))
        engine = SyncEngine(controller, ServiceFileHost(path)).attach()

        assert engine.sync_from_external() is True
        assert controller.local_port == 9700
        assert controller.latency_ms == 2500
