# ABOUTME: Supervises the aws ssm start-session subprocess for one tunnel
# ABOUTME: Races process exit, SIGINT/SIGTERM, and caller cancellation; cleans up keep-alive

"""Tunnel process supervisor.

``TunnelSupervisor.run`` launches the SSM session with the delegated
credentials in its environment and then blocks on a single event queue fed by
three independent sources:

* a waiter thread that reports the subprocess exit status,
* SIGINT/SIGTERM handlers (installed only on the main thread),
* a callback on the caller's cancel token.

The first event decides the outcome. Signal and cancellation both take the
shutdown path: stop keep-alive, send SIGTERM to the subprocess, wait a short
grace period, and report success whether or not the subprocess has exited.
"""

import logging
import os
import queue
import signal
import subprocess
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from rich.console import Console

from bifrost.cancel import CancelToken
from bifrost.errors import TunnelLaunchError
from bifrost.sso.client import DelegatedCredentials
from bifrost.tunnel.keepalive import KeepAliveMonitor
from bifrost.tunnel.session import KeepAliveConfig, TunnelSession

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 1.0

# Removed from the inherited environment so the session only ever sees the
# delegated role credentials
LONG_LIVED_ENV_VARS = (
    "AWS_PROFILE",
    "AWS_DEFAULT_PROFILE",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_SECURITY_TOKEN",
)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class EndReason(Enum):
    EXITED = "exited"
    SIGNALLED = "signalled"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TunnelResult:
    """How a tunnel session ended."""

    reason: EndReason
    returncode: int | None = None

    @property
    def exit_status(self) -> int:
        """Process exit status for the CLI."""
        if self.reason is not EndReason.EXITED or self.returncode is None:
            return 0
        if self.returncode < 0:
            return 1
        return self.returncode


class TunnelSupervisor:
    """Owns exactly one SSM session subprocess and decides when the session ends."""

    def __init__(
        self,
        session: TunnelSession,
        credentials: DelegatedCredentials,
        keep_alive: KeepAliveConfig | None = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        handle_signals: bool = True,
        aws_cli: str = "aws",
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        monitor_factory: Callable[..., KeepAliveMonitor] = KeepAliveMonitor,
        console: Console | None = None,
    ):
        self.session = session
        self.credentials = credentials
        self.keep_alive = keep_alive or KeepAliveConfig()
        self.grace_period = grace_period
        self.handle_signals = handle_signals
        self.aws_cli = aws_cli
        self._popen = popen
        self._monitor_factory = monitor_factory
        self.console = console or Console()

    def build_environment(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Return the subprocess environment with only the delegated credentials."""
        env = dict(os.environ if base is None else base)
        for name in LONG_LIVED_ENV_VARS:
            env.pop(name, None)
        env.update(self.credentials.to_env(self.session.region))
        return env

    def run(self, cancel: CancelToken | None = None) -> TunnelResult:
        """Run the session until the subprocess exits, a signal arrives, or ``cancel`` fires.

        Raises:
            TunnelLaunchError: If the subprocess cannot be started.
        """
        cancel = cancel or CancelToken()
        if cancel.cancelled:
            return TunnelResult(EndReason.CANCELLED)

        # SimpleQueue.put is safe to call from a signal handler
        events: queue.SimpleQueue = queue.SimpleQueue()
        env = self.build_environment()
        command = self.session.command(self.aws_cli)
        logger.debug("Starting SSM session: %s", " ".join(command))

        monitor_cancel = cancel.child()
        try:
            process = self._popen(command, env=env, stdin=None, stdout=None, stderr=None)
        except OSError as e:
            monitor_cancel.cancel()
            raise TunnelLaunchError(
                f"Failed to start SSM session to {self.session.target_instance_id}: {e}"
            ) from e

        monitor = None
        previous_handlers: dict = {}
        remove_cancel_callback = None

        try:
            waiter = threading.Thread(
                target=lambda: events.put((EndReason.EXITED, process.wait())),
                name="ssm-session-waiter",
                daemon=True,
            )
            waiter.start()

            if self.keep_alive.enabled:
                started = self._monitor_factory(self.session.local_port, self.keep_alive, monitor_cancel)
                started.start()
                monitor = started

            previous_handlers = self._install_signal_handlers(events)
            remove_cancel_callback = cancel.add_callback(lambda: events.put((EndReason.CANCELLED, None)))

            reason, value = events.get()
            if reason is EndReason.EXITED:
                logger.debug("SSM session exited with code %s", value)
                return TunnelResult(EndReason.EXITED, value)

            returncode = self._shutdown(process, monitor_cancel)
            return TunnelResult(reason, returncode)
        except BaseException:
            # The session must not outlive a failed or interrupted supervisor
            monitor_cancel.cancel()
            self._stop_process(process)
            raise
        finally:
            if remove_cancel_callback is not None:
                remove_cancel_callback()
            self._restore_signal_handlers(previous_handlers)
            monitor_cancel.cancel()
            if monitor is not None:
                monitor.join(self.keep_alive.probe_timeout + self.keep_alive.ready_interval)

    def _shutdown(self, process: subprocess.Popen, monitor_cancel: CancelToken) -> int | None:
        self.console.print("\n🛑 Shutting down connection...")
        monitor_cancel.cancel()
        return self._stop_process(process)

    def _stop_process(self, process: subprocess.Popen) -> int | None:
        """Send SIGTERM if still running and wait at most the grace period."""
        if process.poll() is None:
            try:
                process.terminate()
            except OSError as e:
                logger.warning("Failed to send termination signal: %s", e)

        try:
            return process.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            logger.debug("SSM session still running after %.1fs grace period", self.grace_period)
            return None

    def _install_signal_handlers(self, events: queue.SimpleQueue) -> dict:
        if not self.handle_signals or threading.current_thread() is not threading.main_thread():
            return {}

        def on_signal(signum, frame):
            events.put((EndReason.SIGNALLED, signum))

        previous = {}
        for signum in SHUTDOWN_SIGNALS:
            previous[signum] = signal.signal(signum, on_signal)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
