# ABOUTME: Connection profile commands for Bifrost
# ABOUTME: Implements profile create, list, and delete across local and global config

"""Profile commands - Manage connection profiles."""

from cleo.commands.command import Command
from cleo.helpers import option
from rich.console import Console

from bifrost.cli.utils import prompts
from bifrost.config import DEFAULT_PORTS, ENVIRONMENTS, SERVICE_TYPES, ConfigManager, ConnectionProfile
from bifrost.errors import UserInputError


class ProfileCreateCommand(Command):
    """
    Create a new connection profile

    Profiles are saved locally (.bifrost.config.yaml) by default, use --global for system-wide profiles.
    """

    name = "profile create"
    description = "Create a new connection profile"
    options = [
        option("name", description="Connection profile name", flag=False, default=None),
        option("sso-profile", description="SSO profile to use", flag=False, default=None),
        option("account-id", "a", description="AWS account ID", flag=False, default=None),
        option("role-name", "r", description="AWS role name", flag=False, default=None),
        option("region", description="AWS region where workloads are deployed", flag=False, default=None),
        option("env", "e", description="Environment (dev, stg, prd)", flag=False, default=None),
        option("service", "s", description="Service type (rds, redis)", flag=False, default=None),
        option("port", "p", description="Default local port", flag=False, default=None),
        option("bastion-id", description="Bastion instance ID (optional)", flag=False, default=None),
        option("global", description="Save to global config instead of local (.bifrost.config.yaml)", flag=True),
    ]

    def handle(self) -> int:
        """Execute the profile create command."""
        console = Console()
        manager = ConfigManager()

        try:
            profile_name, profile = self._collect(console, manager)
            is_global = self.option("global")
            manager.add_connection_profile(profile_name, profile, local=not is_global)
        except UserInputError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        except (OSError, ValueError) as e:
            console.print(f"[red]Error saving connection profile: {e}[/red]")
            return 1

        where = "global config" if is_global else "local config (.bifrost.config.yaml)"
        console.print(f"[green]✅ Connection profile '{profile_name}' saved to {where}[/green]")
        console.print(f"You can now use it with: [cyan]bifrost connect --profile {profile_name}[/cyan]")
        return 0

    def _collect(self, console: Console, manager: ConfigManager) -> tuple[str, ConnectionProfile]:
        sso_profiles = sorted(manager.load().sso_profiles)

        profile_name = self.option("name") or prompts.text("Connection profile name")
        if not profile_name:
            raise UserInputError("Connection profile name is required")

        sso_profile = self.option("sso-profile")
        if not sso_profile:
            if not sso_profiles:
                raise UserInputError("No SSO profiles found. Please create one with 'bifrost auth configure'")
            if len(sso_profiles) == 1:
                sso_profile = sso_profiles[0]
                console.print(f"🔐 Using SSO profile: {sso_profile}")
            else:
                sso_profile = prompts.select("Select SSO profile", sso_profiles)
        if sso_profile not in sso_profiles:
            available = ", ".join(sso_profiles) or "none"
            raise UserInputError(f"SSO profile '{sso_profile}' not found. Available profiles: {available}")

        region = self.option("region") or prompts.text("AWS region (where your RDS/Redis instances are)")

        environment = self.option("env") or prompts.select("Select environment", ENVIRONMENTS)
        if environment not in ENVIRONMENTS:
            raise UserInputError("Invalid environment. Please choose either 'dev', 'stg', or 'prd'.")

        service = self.option("service") or prompts.select("Select service type", SERVICE_TYPES)
        if service not in SERVICE_TYPES:
            raise UserInputError("Invalid service type. Please choose either 'rds' or 'redis'.")

        account_id = self.option("account-id") or prompts.text("AWS Account ID")
        role_name = self.option("role-name") or prompts.text("AWS Role Name (e.g., PowerUserAccess)")
        port = self.option("port") or prompts.text("Local port", default=DEFAULT_PORTS[service])
        bastion_id = self.option("bastion-id") or prompts.text("Bastion Instance ID")

        profile = ConnectionProfile(
            sso_profile=sso_profile,
            account_id=account_id,
            role_name=role_name,
            region=region,
            environment=environment,
            service=service,
            port=port,
            bastion_instance_id=bastion_id,
        )
        if service == "rds":
            profile.rds_instance_name = prompts.text("RDS DB Instance Name")
        else:
            profile.redis_cluster_name = prompts.text("Redis Cluster Name (replication group ID)")

        return profile_name, profile


class ProfileListCommand(Command):
    """List all connection profiles."""

    name = "profile list"
    description = "List all connection profiles"

    def handle(self) -> int:
        """Execute the profile list command."""
        console = Console()

        try:
            profiles = ConfigManager().load().connection_profiles
        except (OSError, ValueError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return 1

        if not profiles:
            console.print("No connection profiles configured. Use 'bifrost profile create' to create one.")
            return 0

        console.print("🔗 Connection Profiles:")
        for name, profile in sorted(profiles.items()):
            console.print(f"  • {name}")
            console.print(f"    SSO Profile: {profile.sso_profile}")
            console.print(f"    Environment: {profile.environment}")
            console.print(f"    Service: {profile.service}")
            console.print(f"    Region: {profile.region}")
            optional = [
                ("Account ID", profile.account_id),
                ("Role", profile.role_name),
                ("Port", profile.port),
                ("Bastion", profile.bastion_instance_id),
                ("RDS Instance", profile.rds_instance_name),
                ("Redis Cluster", profile.redis_cluster_name),
            ]
            for label, value in optional:
                if value:
                    console.print(f"    {label}: {value}")
            console.print()
        return 0


class ProfileDeleteCommand(Command):
    """Delete a connection profile."""

    name = "profile delete"
    description = "Delete a connection profile"
    options = [
        option("name", description="Connection profile name to delete", flag=False, default=None),
        option("force", "f", description="Skip the confirmation prompt", flag=True),
    ]

    def handle(self) -> int:
        """Execute the profile delete command."""
        console = Console()
        manager = ConfigManager()

        try:
            profile_name = self.option("name")
            if not profile_name:
                names = sorted(manager.load().connection_profiles)
                if not names:
                    console.print("No connection profiles found.")
                    return 0
                profile_name = prompts.select("Select profile to delete", names)

            if not self.option("force") and not prompts.confirm(
                f"Are you sure you want to delete profile '{profile_name}'?"
            ):
                console.print("Deletion cancelled")
                return 0

            location = manager.delete_connection_profile(profile_name)
        except UserInputError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        except (OSError, ValueError) as e:
            console.print(f"[red]Error saving config: {e}[/red]")
            return 1

        where = "local config (.bifrost.config.yaml)" if location == "local" else "global config"
        console.print(f"[green]✅ Connection profile '{profile_name}' deleted from {where}[/green]")
        return 0
