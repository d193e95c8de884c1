# ABOUTME: SSM port-forwarding tunnel lifecycle
# ABOUTME: Session descriptors, keep-alive monitor, and process supervisor

"""Tunnel lifecycle for Bifrost."""

from bifrost.tunnel.keepalive import KeepAliveMonitor, probe_local_port
from bifrost.tunnel.session import KeepAliveConfig, TunnelSession
from bifrost.tunnel.supervisor import EndReason, TunnelResult, TunnelSupervisor

__all__ = [
    "EndReason",
    "KeepAliveConfig",
    "KeepAliveMonitor",
    "TunnelResult",
    "TunnelSession",
    "TunnelSupervisor",
    "probe_local_port",
]
