# ABOUTME: AWS helper functions shared by Bifrost CLI commands
# ABOUTME: Builds SSO clients from profiles and resolves account/role credentials

"""AWS utilities for CLI commands."""

from dataclasses import dataclass
from datetime import timedelta

from rich.console import Console

from bifrost.cli.utils import prompts
from bifrost.config import SSOProfile
from bifrost.errors import UserInputError
from bifrost.sso.client import AuthSettings, DelegatedCredentials, SSOClient


@dataclass(frozen=True)
class ResolvedCredentials:
    credentials: DelegatedCredentials
    account_id: str
    role_name: str


def auth_settings(token_ttl_hours: str | float | None = None) -> AuthSettings:
    """Build AuthSettings, overriding the cached-token lifetime if given."""
    settings = AuthSettings()
    if token_ttl_hours:
        try:
            hours = float(token_ttl_hours)
        except (TypeError, ValueError):
            raise UserInputError(f"invalid token TTL: {token_ttl_hours}") from None
        if hours <= 0:
            raise UserInputError("token TTL must be greater than zero")
        settings.token_ttl = timedelta(hours=hours)
    return settings


def create_sso_client(profile: SSOProfile, settings: AuthSettings | None = None) -> SSOClient:
    return SSOClient(profile.start_url, profile.sso_region, settings=settings)


def resolve_credentials(
    console: Console,
    client: SSOClient,
    account_id: str | None = None,
    role_name: str | None = None,
) -> ResolvedCredentials:
    """Authenticate, prompt for any missing account/role, and fetch role credentials."""
    token = client.authenticate()

    if not account_id:
        account = prompts.select_account(client.list_accounts(token))
        account_id = account.account_id
    console.print(f"🪪 Account ID: {account_id}")

    if not role_name:
        role_name = prompts.select_role(client.list_account_roles(token, account_id))
    console.print(f"👤 Role: {role_name}")

    credentials = client.get_role_credentials(token, account_id, role_name)
    return ResolvedCredentials(credentials=credentials, account_id=account_id, role_name=role_name)
