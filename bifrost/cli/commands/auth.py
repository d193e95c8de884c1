# ABOUTME: SSO authentication profile commands for Bifrost
# ABOUTME: Implements auth login, configure, list, and logout

"""Auth commands - Manage SSO profiles and cached tokens."""

from cleo.commands.command import Command
from cleo.helpers import option
from rich.console import Console

from bifrost.cli.utils import prompts
from bifrost.cli.utils.aws import create_sso_client
from bifrost.config import ConfigManager, SSOProfile
from bifrost.errors import BifrostError, ProfileNotFoundError, RegionDetectionError, UserInputError
from bifrost.sso import TokenCache, detect_sso_region


class AuthLoginCommand(Command):
    """Log in to AWS SSO using an existing profile."""

    name = "auth login"
    description = "Login to AWS SSO using an existing profile"
    options = [
        option("profile", description="SSO profile to login with", flag=False, default=None),
    ]

    def handle(self) -> int:
        """Execute the auth login command."""
        console = Console()

        try:
            manager = ConfigManager()
            profiles = sorted(manager.load().sso_profiles)
            if not profiles:
                console.print("[yellow]No SSO profiles found. Use 'bifrost auth configure' to create one.[/yellow]")
                return 1

            profile_name = self.option("profile") or manager.default_sso_profile()
            if not profile_name:
                profile_name = prompts.select("Select SSO profile to login with", profiles)

            profile = manager.get_sso_profile(profile_name)
            console.print(f"🔐 Authenticating with profile '{profile_name}'...")
            token = create_sso_client(profile).authenticate()
        except UserInputError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        except BifrostError as e:
            console.print(f"[red]Authentication failed: {e}[/red]")
            return 1
        except (OSError, ValueError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return 1

        if token.from_cache:
            expires = token.expires_at.astimezone().strftime("%Y-%m-%d %H:%M")
            console.print(
                f"[green]✅ Already authenticated with profile '{profile_name}' (token valid until {expires})[/green]"
            )
            return 0

        console.print(f"[green]✅ Successfully authenticated with profile '{profile_name}'[/green]")
        return 0


class AuthConfigureCommand(Command):
    """
    Create or update an SSO profile

    The SSO region is auto-detected from the start URL unless --no-auto-detect is given.
    """

    name = "auth configure"
    description = "Create or update SSO profile configuration"
    options = [
        option("profile", description="SSO profile name", flag=False, default=None),
        option("sso-url", description="SSO start URL", flag=False, default=None),
        option("sso-region", description="SSO region", flag=False, default=None),
        option("no-auto-detect", description="Do not auto-detect the SSO region from the start URL", flag=True),
    ]

    def handle(self) -> int:
        """Execute the auth configure command."""
        console = Console()
        manager = ConfigManager()

        try:
            profile_name = self.option("profile") or prompts.text("Profile name")
            if not profile_name:
                raise UserInputError("Profile name is required")

            try:
                existing = manager.get_sso_profile(profile_name)
            except ProfileNotFoundError:
                existing = None

            sso_url = self.option("sso-url") or prompts.text(
                "SSO Start URL (e.g. https://a-123456789.awsapps.com/start)",
                default=existing.sso_url if existing else "",
            )

            sso_region = self.option("sso-region")
            if not sso_region:
                default_region = existing.sso_region if existing else ""
                if not default_region and sso_url and not self.option("no-auto-detect"):
                    default_region = self._detect_region(console, sso_url)
                sso_region = prompts.text("SSO region (e.g. us-east-1)", default=default_region)

            manager.add_sso_profile(profile_name, SSOProfile(sso_url=sso_url, sso_region=sso_region))
        except UserInputError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        except (OSError, ValueError) as e:
            console.print(f"[red]Error saving profile: {e}[/red]")
            return 1

        console.print(f"[green]✅ SSO profile '{profile_name}' configured[/green]")
        console.print("Use [cyan]bifrost auth login[/cyan] to authenticate with this profile.")
        return 0

    @staticmethod
    def _detect_region(console: Console, sso_url: str) -> str:
        console.print("🔍 Auto-detecting SSO region from URL...")
        try:
            region = detect_sso_region(sso_url)
        except RegionDetectionError as e:
            console.print(f"[yellow]⚠️ Could not auto-detect region: {e}[/yellow]")
            return ""
        console.print(f"✅ Detected SSO region: {region}")
        return region


class AuthListCommand(Command):
    """List all SSO profiles."""

    name = "auth list"
    description = "List all SSO profiles"

    def handle(self) -> int:
        """Execute the auth list command."""
        console = Console()

        try:
            profiles = ConfigManager().load().sso_profiles
        except (OSError, ValueError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return 1

        if not profiles:
            console.print("No SSO profiles configured. Use 'bifrost auth configure' to create one.")
            return 0

        console.print("📋 SSO Profiles:")
        for name, profile in sorted(profiles.items()):
            console.print(f"  • {name}")
            console.print(f"    SSO URL: {profile.sso_url}")
            console.print(f"    Region: {profile.sso_region}")
            console.print()
        return 0


class AuthLogoutCommand(Command):
    """Clear cached SSO tokens."""

    name = "auth logout"
    description = "Clear cached SSO tokens"

    def handle(self) -> int:
        """Execute the auth logout command."""
        console = Console()

        try:
            TokenCache().clear()
        except OSError as e:
            console.print(f"[red]Error clearing token cache: {e}[/red]")
            return 1

        console.print("[green]✅ Token cache cleared[/green]")
        return 0
