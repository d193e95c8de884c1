# ABOUTME: Background keep-alive loop for an SSM port-forwarding tunnel
# ABOUTME: Waits for the forwarded port to accept connections, then probes it periodically

"""Keep-alive monitor.

The monitor has two phases. While the SSM plugin is still starting, it probes
the forwarded port every ``ready_interval`` seconds, up to ``ready_attempts``
times. Once a probe succeeds it switches to steady state and probes every
``interval`` seconds until cancelled. Probe failures are logged and never end
the session.
"""

import logging
import socket
import threading
from collections.abc import Callable

from bifrost.cancel import CancelToken
from bifrost.errors import KeepAliveProbeError
from bifrost.tunnel.session import KeepAliveConfig

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"


def probe_local_port(port: int, timeout: float = 5.0) -> None:
    """Open and immediately close a TCP connection to the forwarded port.

    Raises:
        KeepAliveProbeError: If the connection cannot be established.
    """
    try:
        conn = socket.create_connection((LOCALHOST, port), timeout=timeout)
    except OSError as e:
        raise KeepAliveProbeError(f"failed to connect to local port {port}: {e}") from e

    try:
        conn.close()
    except OSError as e:
        logger.debug("Ignoring close error on keep-alive probe: %s", e)


class KeepAliveMonitor:
    """Runs the keep-alive loop on a daemon thread."""

    def __init__(
        self,
        port: int,
        config: KeepAliveConfig,
        cancel: CancelToken,
        probe: Callable[[int, float], None] = probe_local_port,
    ):
        self.port = port
        self.config = config
        self.cancel = cancel
        self._probe = probe
        self._thread: threading.Thread | None = None
        self.ready = threading.Event()

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name=f"keepalive-{self.port}", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        if self._wait_until_ready():
            self.ready.set()
            logger.debug("Tunnel on port %d is accepting connections", self.port)
            self._steady_state()

    def _probe_once(self) -> bool:
        try:
            self._probe(self.port, self.config.probe_timeout)
        except KeepAliveProbeError as e:
            logger.debug("Keep-alive probe failed: %s", e)
            return False
        return True

    def _wait_until_ready(self) -> bool:
        for _ in range(self.config.ready_attempts):
            if self.cancel.cancelled:
                return False
            if self._probe_once():
                return True
            if self.cancel.wait(self.config.ready_interval):
                return False

        ceiling = self.config.ready_interval * self.config.ready_attempts
        logger.warning("⚠️ Keep alive disabled - SSM tunnel did not become ready within %g seconds", ceiling)
        return False

    def _steady_state(self) -> None:
        while not self.cancel.wait(self.config.interval):
            try:
                self._probe(self.port, self.config.probe_timeout)
            except KeepAliveProbeError as e:
                logger.warning("⚠️ Keep alive check failed: %s", e)
