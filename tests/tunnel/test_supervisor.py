# ABOUTME: Unit tests for the tunnel process supervisor
# ABOUTME: Uses fake subprocesses to cover exit, cancellation, signals, and launch failure

"""Tests for bifrost.tunnel.supervisor."""

import io
import logging
import signal
import subprocess
import threading
import time
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from bifrost.cancel import CancelToken
from bifrost.errors import TunnelLaunchError
from bifrost.tunnel.keepalive import KeepAliveMonitor
from bifrost.tunnel.session import KeepAliveConfig, TunnelSession
from bifrost.tunnel.supervisor import EndReason, TunnelResult, TunnelSupervisor

SESSION = TunnelSession("i-0abc", "orders.rds.amazonaws.com", 3306, 13306, "eu-west-1")
FAST_KEEP_ALIVE = KeepAliveConfig(interval=0.01, probe_timeout=0.05, ready_interval=0.001, ready_attempts=3)


class FakeProcess:
    """Minimal Popen stand-in."""

    def __init__(self, exit_code=None, exits_on_terminate=True, terminate_code=-15):
        self.returncode = exit_code
        self._done = threading.Event()
        if exit_code is not None:
            self._done.set()
        self.exits_on_terminate = exits_on_terminate
        self.terminate_code = terminate_code
        self.terminate_calls = 0

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if not self._done.wait(timeout):
            raise subprocess.TimeoutExpired("aws", timeout)
        return self.returncode

    def terminate(self):
        self.terminate_calls += 1
        if self.exits_on_terminate:
            self.returncode = self.terminate_code
            self._done.set()


@pytest.fixture
def console():
    return Console(file=io.StringIO())


def _supervisor(credentials, console, process, **kwargs):
    kwargs.setdefault("keep_alive", KeepAliveConfig(enabled=False))
    kwargs.setdefault("handle_signals", False)
    return TunnelSupervisor(SESSION, credentials, popen=MagicMock(return_value=process), console=console, **kwargs)


class TestTunnelResult:
    """Tests for mapping results to exit statuses."""

    @pytest.mark.parametrize(
        "result,expected",
        [
            (TunnelResult(EndReason.EXITED, 0), 0),
            (TunnelResult(EndReason.EXITED, 2), 2),
            (TunnelResult(EndReason.EXITED, -9), 1),
            (TunnelResult(EndReason.SIGNALLED, None), 0),
            (TunnelResult(EndReason.CANCELLED, -15), 0),
        ],
    )
    def test_exit_status(self, result, expected):
        assert result.exit_status == expected


class TestBuildEnvironment:
    """Tests for the subprocess environment."""

    def test_long_lived_credentials_are_removed(self, credentials, console):
        supervisor = _supervisor(credentials, console, FakeProcess(0))

        env = supervisor.build_environment(
            {"PATH": "/usr/bin", "AWS_PROFILE": "admin", "AWS_ACCESS_KEY_ID": "AKIALONGLIVED"}
        )

        assert "AWS_PROFILE" not in env
        assert env["AWS_ACCESS_KEY_ID"] == "ASIATESTKEY"
        assert env["AWS_SESSION_TOKEN"] == "test-session-token"
        assert env["AWS_REGION"] == "eu-west-1"
        assert env["PATH"] == "/usr/bin"


class TestTunnelSupervisor:
    """Tests for TunnelSupervisor.run."""

    def test_clean_exit_returns_zero_without_terminating(self, credentials, console, monkeypatch):
        monkeypatch.setenv("AWS_PROFILE", "admin")
        process = FakeProcess(exit_code=0)
        popen = MagicMock(return_value=process)
        supervisor = TunnelSupervisor(
            SESSION, credentials, keep_alive=KeepAliveConfig(enabled=False), handle_signals=False, popen=popen,
            console=console,
        )

        result = supervisor.run()

        assert result == TunnelResult(EndReason.EXITED, 0)
        assert result.exit_status == 0
        assert process.terminate_calls == 0

        command = popen.call_args.args[0]
        env = popen.call_args.kwargs["env"]
        assert command == SESSION.command()
        assert "AWS_PROFILE" not in env
        assert "ASIATESTKEY" not in " ".join(command)

    def test_nonzero_exit_with_keep_alive_disabled(self, credentials, console, caplog):
        factory = MagicMock()
        supervisor = _supervisor(credentials, console, FakeProcess(exit_code=2), monitor_factory=factory)

        with caplog.at_level(logging.WARNING):
            result = supervisor.run()

        assert result.exit_status == 2
        factory.assert_not_called()
        assert caplog.records == []

    def test_cancellation_terminates_within_grace_and_stops_monitor(self, credentials, console):
        process = FakeProcess()
        monitors = []

        def factory(port, config, cancel):
            monitor = KeepAliveMonitor(port, config, cancel, probe=lambda p, t: None)
            monitors.append(monitor)
            return monitor

        supervisor = _supervisor(
            credentials, console, process, keep_alive=FAST_KEEP_ALIVE, monitor_factory=factory, grace_period=1.0
        )
        cancel = CancelToken()
        threading.Timer(0.05, cancel.cancel).start()

        started = time.monotonic()
        result = supervisor.run(cancel)
        elapsed = time.monotonic() - started

        assert result.reason is EndReason.CANCELLED
        assert result.exit_status == 0
        assert process.terminate_calls == 1
        assert elapsed < 1.5
        assert len(monitors) == 1
        assert not monitors[0].is_alive()
        assert "Shutting down connection" in console.file.getvalue()

    def test_process_ignoring_terminate_is_abandoned_after_grace(self, credentials, console):
        process = FakeProcess(exits_on_terminate=False)
        supervisor = _supervisor(credentials, console, process, grace_period=0.1)
        cancel = CancelToken()
        threading.Timer(0.02, cancel.cancel).start()

        result = supervisor.run(cancel)

        assert result == TunnelResult(EndReason.CANCELLED, None)
        assert result.exit_status == 0

    def test_already_cancelled_token_does_not_launch(self, credentials, console):
        popen = MagicMock()
        supervisor = TunnelSupervisor(SESSION, credentials, popen=popen, handle_signals=False, console=console)
        cancel = CancelToken()
        cancel.cancel()

        assert supervisor.run(cancel).reason is EndReason.CANCELLED
        popen.assert_not_called()

    def test_signal_handler_triggers_shutdown_and_is_restored(self, credentials, console):
        process = FakeProcess()
        supervisor = _supervisor(credentials, console, process, handle_signals=True)
        original = signal.getsignal(signal.SIGINT)

        def deliver():
            # Invoke the installed handler directly instead of raising a real SIGINT
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)

        threading.Timer(0.05, deliver).start()
        result = supervisor.run()

        assert result.reason is EndReason.SIGNALLED
        assert process.terminate_calls == 1
        assert signal.getsignal(signal.SIGINT) is original

    def test_launch_failure_raises(self, credentials, console):
        factory = MagicMock()
        supervisor = TunnelSupervisor(
            SESSION,
            credentials,
            popen=MagicMock(side_effect=FileNotFoundError("aws")),
            monitor_factory=factory,
            handle_signals=False,
            console=console,
        )

        with pytest.raises(TunnelLaunchError, match="i-0abc"):
            supervisor.run()

        factory.assert_not_called()

    @pytest.mark.parametrize("error", [RuntimeError("monitor failed"), KeyboardInterrupt()])
    def test_setup_failure_after_launch_terminates_session(self, credentials, console, error):
        process = FakeProcess()
        factory = MagicMock(side_effect=error)
        supervisor = _supervisor(
            credentials, console, process, keep_alive=FAST_KEEP_ALIVE, monitor_factory=factory, grace_period=0.1
        )
        cancel = CancelToken()

        with pytest.raises(type(error)):
            supervisor.run(cancel)

        assert process.terminate_calls == 1
        assert process.poll() == -15
        assert not cancel.cancelled

