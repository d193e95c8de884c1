# ABOUTME: Unit tests for the keep-alive monitor
# ABOUTME: Uses injected probes and short intervals to drive both monitor phases

"""Tests for bifrost.tunnel.keepalive."""

import logging
import socket

import pytest

from bifrost.cancel import CancelToken
from bifrost.errors import KeepAliveProbeError
from bifrost.tunnel.keepalive import KeepAliveMonitor, probe_local_port
from bifrost.tunnel.session import KeepAliveConfig

FAST = KeepAliveConfig(interval=0.01, probe_timeout=0.1, ready_interval=0.001, ready_attempts=5)


class ScriptedProbe:
    """Probe that follows a list of outcomes and cancels the token when it runs out."""

    def __init__(self, outcomes, cancel):
        self.outcomes = list(outcomes)
        self.cancel = cancel
        self.calls = 0

    def __call__(self, port, timeout):
        self.calls += 1
        if not self.outcomes:
            self.cancel.cancel()
            return
        if not self.outcomes.pop(0):
            raise KeepAliveProbeError(f"failed to connect to local port {port}")


class TestProbeLocalPort:
    """Tests for the TCP probe."""

    def test_succeeds_against_listening_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            probe_local_port(server.getsockname()[1], timeout=1)

    def test_raises_when_nothing_listens(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]

        with pytest.raises(KeepAliveProbeError, match=f"local port {port}"):
            probe_local_port(port, timeout=1)


class TestKeepAliveMonitor:
    """Tests for KeepAliveMonitor phases."""

    def test_gives_up_after_readiness_ceiling(self, caplog):
        cancel = CancelToken()
        probe = ScriptedProbe([False] * 100, cancel)
        monitor = KeepAliveMonitor(8080, FAST, cancel, probe=probe)

        with caplog.at_level(logging.WARNING):
            monitor.run()

        assert probe.calls == FAST.ready_attempts
        assert not monitor.ready.is_set()
        assert "did not become ready" in caplog.text

    def test_single_failure_does_not_stop_next_probe(self, caplog):
        cancel = CancelToken()
        # ready, then steady state: fail, succeed, then the script ends and cancels
        probe = ScriptedProbe([True, False, True], cancel)
        monitor = KeepAliveMonitor(8080, FAST, cancel, probe=probe)

        with caplog.at_level(logging.WARNING):
            monitor.run()

        assert monitor.ready.is_set()
        assert probe.calls == 4
        assert caplog.text.count("Keep alive check failed") == 1

    def test_becomes_ready_after_early_failures(self):
        cancel = CancelToken()
        probe = ScriptedProbe([False, False, True], cancel)
        monitor = KeepAliveMonitor(8080, FAST, cancel, probe=probe)

        monitor.run()

        assert monitor.ready.is_set()

    def test_cancelled_before_start_never_probes(self):
        cancel = CancelToken()
        cancel.cancel()
        probe = ScriptedProbe([True], cancel)

        KeepAliveMonitor(8080, FAST, cancel, probe=probe).run()

        assert probe.calls == 0

    def test_thread_stops_on_cancel(self):
        cancel = CancelToken()
        config = KeepAliveConfig(interval=60, probe_timeout=0.1, ready_interval=0.001, ready_attempts=5)
        monitor = KeepAliveMonitor(8080, config, cancel, probe=lambda port, timeout: None)

        monitor.start()
        assert monitor.ready.wait(1)
        cancel.cancel()
        monitor.join(1)

        assert not monitor.is_alive()
