# ABOUTME: Connect command that opens an SSM port-forwarding tunnel to RDS or Redis
# ABOUTME: Resolves profile, credentials, bastion and endpoint, then supervises the session

"""Connect command - Forward a local port to a data store through a bastion host."""

import logging

from cleo.commands.command import Command
from cleo.helpers import option
from rich.console import Console

from bifrost.cli.utils import prompts
from bifrost.cli.utils.aws import auth_settings, create_sso_client, resolve_credentials
from bifrost.config import DEFAULT_PORTS, ENVIRONMENTS, SERVICE_TYPES, ConfigManager, ConnectionProfile
from bifrost.discovery import (
    choose_endpoint,
    find_bastion_instance,
    find_rds_endpoints,
    find_redis_endpoints,
    session_for,
)
from bifrost.errors import BifrostError, UserInputError
from bifrost.ports import port_validator, validate_port
from bifrost.tunnel import KeepAliveConfig, TunnelSession, TunnelSupervisor

logger = logging.getLogger(__name__)

MANUAL_SETUP = "⚙️ Manual setup"
PROFILE_PREFIX = "🔗 "
SAVE_LOCAL = "📁 Local (.bifrost.config.yaml)"
SAVE_GLOBAL = "🌍 Global (~/.bifrost/config.yaml)"

SERVICE_LABELS = {"rds": "RDS instance", "redis": "Redis cluster"}


class ConnectCommand(Command):
    """
    Connect to an RDS instance or Redis cluster through an SSM tunnel

    Authenticates with AWS SSO, finds the bastion host for the environment and
    forwards a local port until interrupted.
    """

    name = "connect"
    description = "Connect to RDS or Redis through a bastion host using AWS SSO"

    options = [
        option("profile", "P", description="Connection profile to use", flag=False, default=None),
        option("sso-profile", description="SSO profile to authenticate with", flag=False, default=None),
        option("account-id", "a", description="AWS account ID", flag=False, default=None),
        option("role-name", "r", description="AWS SSO role name", flag=False, default=None),
        option("region", description="AWS region where the RDS/Redis resources are", flag=False, default=None),
        option("env", "e", description="Environment (dev, stg, prd)", flag=False, default=None),
        option("service", "s", description="Service type (rds, redis)", flag=False, default=None),
        option("port", "p", description="Local port to forward", flag=False, default=None),
        option("bastion-instance-id", description="Bastion EC2 instance ID", flag=False, default=None),
        option("no-keep-alive", description="Disable the keep-alive probe", flag=True),
        option(
            "keep-alive-interval",
            description="Seconds between keep-alive probes",
            flag=False,
            default="30",
        ),
        option("token-ttl", description="Hours a new SSO token is cached for", flag=False, default=None),
    ]

    def handle(self) -> int:
        """Execute the connect command."""
        console = Console()

        try:
            return self._connect(console)
        except UserInputError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        except BifrostError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1
        except (OSError, ValueError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return 1
        except KeyboardInterrupt:
            console.print("\n[yellow]Connection cancelled.[/yellow]")
            return 1

    def _connect(self, console: Console) -> int:
        manager = ConfigManager()
        selected = self._select_connection_profile(console, manager)
        values = self._merge_profile(selected)

        keep_alive = self._keep_alive_config()
        settings = auth_settings(self.option("token-ttl"))

        sso_profile_name = self._resolve_sso_profile(console, manager, values["sso_profile"])
        values["sso_profile"] = sso_profile_name
        sso_profile = manager.get_sso_profile(sso_profile_name)

        if not values["region"]:
            values["region"] = prompts.text("AWS region (where your RDS/Redis instances are)")

        client = create_sso_client(sso_profile, settings)
        resolved = resolve_credentials(console, client, values["account_id"], values["role_name"])
        values["account_id"] = resolved.account_id
        values["role_name"] = resolved.role_name

        environment = values["environment"] or prompts.select("Select environment", ENVIRONMENTS)
        if environment not in ENVIRONMENTS:
            raise UserInputError("Invalid environment. Please choose either 'dev', 'stg', or 'prd'.")
        values["environment"] = environment
        console.print(f"🌍 Environment: {environment}")

        service = values["service"] or prompts.select("Select service type", SERVICE_TYPES)
        if service not in SERVICE_TYPES:
            raise UserInputError("Invalid service type. Please choose either 'rds' or 'redis'.")
        values["service"] = service
        console.print(f"🛠️ Service type: {service}")

        port_value = values["port"] or prompts.text(
            "Enter local port to use for forwarding", validate=port_validator, default=DEFAULT_PORTS[service]
        )
        local_port = validate_port(port_value)
        values["port"] = str(local_port)
        console.print(f"🌐 Port: {local_port}")

        aws_session = session_for(resolved.credentials, values["region"])
        bastion_id = values["bastion_instance_id"]
        if bastion_id:
            console.print(f"🏰 Using configured bastion instance: {bastion_id}")
        else:
            bastion_id = find_bastion_instance(aws_session, environment)

        endpoint = self._find_endpoint(console, aws_session, service, environment, selected)

        if selected is None:
            self._offer_to_save_profile(console, manager, values)

        console.print(
            f"🔌 Forwarding `{service}` to 127.0.0.1:{local_port} (use this as host in your app or client)"
        )
        console.print("📝 Press Ctrl+C to stop the connection\n")
        if keep_alive.enabled:
            console.print(f"💓 Keep alive enabled (interval: {keep_alive.interval:g}s)")

        session = TunnelSession(
            target_instance_id=bastion_id,
            remote_host=endpoint.address,
            remote_port=endpoint.port,
            local_port=local_port,
            region=values["region"],
        )
        supervisor = TunnelSupervisor(session, resolved.credentials, keep_alive=keep_alive, console=console)
        result = supervisor.run()
        logger.debug("Tunnel ended: %s (return code %s)", result.reason.value, result.returncode)
        return result.exit_status

    def _select_connection_profile(self, console: Console, manager: ConfigManager) -> ConnectionProfile | None:
        profile_name = self.option("profile")
        if profile_name:
            profile = manager.get_connection_profile(profile_name)
            console.print(f"🔗 Using connection profile: {profile_name}")
            return profile

        names = sorted(manager.load().connection_profiles)
        if not names:
            return None

        choice = prompts.select(
            "Select connection profile or manual setup",
            [MANUAL_SETUP] + [PROFILE_PREFIX + name for name in names],
        )
        if choice == MANUAL_SETUP:
            return None

        profile_name = choice[len(PROFILE_PREFIX) :]
        profile = manager.get_connection_profile(profile_name)
        console.print(f"🔗 Using connection profile: {profile_name}")
        return profile

    def _merge_profile(self, profile: ConnectionProfile | None) -> dict[str, str]:
        """Flags win; profile values fill whatever was not given on the command line."""
        values = {
            "sso_profile": self.option("sso-profile") or "",
            "account_id": self.option("account-id") or "",
            "role_name": self.option("role-name") or "",
            "region": self.option("region") or "",
            "environment": self.option("env") or "",
            "service": self.option("service") or "",
            "port": self.option("port") or "",
            "bastion_instance_id": self.option("bastion-instance-id") or "",
        }
        if profile is not None:
            for key in values:
                if not values[key]:
                    values[key] = getattr(profile, key)
        return values

    def _keep_alive_config(self) -> KeepAliveConfig:
        raw = self.option("keep-alive-interval")
        try:
            interval = float(raw)
        except (TypeError, ValueError):
            raise UserInputError(f"invalid keep-alive interval: {raw}") from None
        if interval <= 0:
            raise UserInputError("keep-alive interval must be greater than zero")
        return KeepAliveConfig(enabled=not self.option("no-keep-alive"), interval=interval)

    def _resolve_sso_profile(self, console: Console, manager: ConfigManager, name: str) -> str:
        if name:
            console.print(f"🔐 Using SSO profile: {name}")
            return name

        default = manager.default_sso_profile()
        if default:
            console.print(f"🔐 Using SSO profile: {default}")
            return default

        profiles = sorted(manager.load().sso_profiles)
        if not profiles:
            raise UserInputError("No SSO profiles found. Please create one with 'bifrost auth configure'")
        return prompts.select("Select SSO profile", profiles)

    def _find_endpoint(self, console: Console, aws_session, service: str, environment: str, selected):
        name = selected.resource_name if selected is not None else ""
        label = SERVICE_LABELS[service]
        finder = find_redis_endpoints if service == "redis" else find_rds_endpoints

        endpoints = finder(aws_session, environment, name or None)
        endpoint = choose_endpoint(
            endpoints,
            lambda names: prompts.select(f"Select {label}", names),
            label,
            environment,
        )
        console.print(f"🎯 Connecting to {label}: {endpoint.name}")
        return endpoint

    def _offer_to_save_profile(self, console: Console, manager: ConfigManager, values: dict[str, str]) -> None:
        console.print()
        try:
            if not prompts.confirm(
                "Would you like to save this configuration as a connection profile for future use?"
            ):
                return
            profile_name = prompts.text("Profile name", default=f"{values['environment']}-{values['service']}")
            location = prompts.select("Where would you like to save this profile?", [SAVE_LOCAL, SAVE_GLOBAL])
        except UserInputError as e:
            logger.debug("Skipping profile save: %s", e)
            return

        profile = ConnectionProfile(**values)
        is_global = location == SAVE_GLOBAL
        try:
            manager.add_connection_profile(profile_name, profile, local=not is_global)
        except (OSError, ValueError) as e:
            console.print(f"[red]❌ Error saving profile: {e}[/red]")
            return

        where = "global config" if is_global else "local config (.bifrost.config.yaml)"
        console.print(f"✅ Connection profile '{profile_name}' saved to {where}")
        console.print(f"💡 You can now use this profile with: bifrost connect --profile {profile_name}")
