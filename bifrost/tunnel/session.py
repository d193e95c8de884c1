# ABOUTME: Immutable description of one SSM port-forwarding session
# ABOUTME: Builds the aws ssm start-session command line and keep-alive settings

"""Tunnel session descriptors."""

from dataclasses import dataclass

SSM_DOCUMENT_NAME = "AWS-StartPortForwardingSessionToRemoteHost"


@dataclass(frozen=True)
class TunnelSession:
    """Forward ``local_port`` on this machine to ``remote_host:remote_port`` via a bastion."""

    target_instance_id: str
    remote_host: str
    remote_port: int
    local_port: int
    region: str

    @property
    def parameters(self) -> str:
        return f"host={self.remote_host},portNumber={self.remote_port},localPortNumber={self.local_port}"

    def command(self, aws_cli: str = "aws") -> list[str]:
        """Return the argv that starts the session. Credentials never go on argv."""
        return [
            aws_cli,
            "ssm",
            "start-session",
            "--target",
            self.target_instance_id,
            "--region",
            self.region,
            "--document-name",
            SSM_DOCUMENT_NAME,
            "--parameters",
            self.parameters,
        ]


@dataclass(frozen=True)
class KeepAliveConfig:
    """Keep-alive settings for a tunnel session (times in seconds)."""

    enabled: bool = True
    interval: float = 30.0
    probe_timeout: float = 5.0
    ready_interval: float = 0.5
    ready_attempts: int = 60
