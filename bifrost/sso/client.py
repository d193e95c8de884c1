# ABOUTME: AWS IAM Identity Center client - device authorization and role credentials
# ABOUTME: Runs the device-code flow as an explicit state machine with cancellation

"""SSO authentication and credential exchange.

Authentication walks a fixed set of states::

    CHECK_CACHE -> REGISTER -> START_DEVICE_AUTH -> AWAIT_APPROVAL -> AUTHENTICATED
         \\______________________________________________________________/
                               (valid cached token)

The approval poll loop is bounded by ``AuthSettings.max_poll_attempts`` and
checks the cancel token before every wait and right after waking.
"""

import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from bifrost.cancel import CancelToken
from bifrost.errors import (
    AuthenticationCancelled,
    AuthenticationTimeout,
    CredentialExchangeError,
    DeviceAuthorizationError,
    RegistrationError,
    TokenCacheError,
)
from bifrost.sso.cache import CachedToken, TokenCache

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
CLIENT_NAME = "bifrost"
CLIENT_TYPE = "public"

PENDING_ERROR = "AuthorizationPendingException"
SLOW_DOWN_ERROR = "SlowDownException"


@dataclass
class AuthSettings:
    """Tunables for the device authorization flow."""

    max_poll_attempts: int = 30
    # Identity Center does not always report the session lifetime, so cached
    # tokens are assumed valid for this long (capped by expiresIn when given)
    token_ttl: timedelta = field(default_factory=lambda: timedelta(hours=8))
    slow_down_increment: int = 5
    client_name: str = CLIENT_NAME


class AuthState(Enum):
    CHECK_CACHE = "check_cache"
    REGISTER = "register"
    START_DEVICE_AUTH = "start_device_auth"
    AWAIT_APPROVAL = "await_approval"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class SSOToken:
    """An SSO access token usable against the SSO portal API."""

    access_token: str
    expires_at: datetime
    from_cache: bool = False


@dataclass(frozen=True)
class DeviceAuthorizationState:
    """Everything needed to poll for one pending device authorization."""

    client_id: str
    client_secret: str
    device_code: str
    user_code: str
    verification_url: str
    interval: int
    expires_at: datetime


@dataclass(frozen=True)
class DelegatedCredentials:
    """Short-lived role credentials returned by GetRoleCredentials."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime | None = None

    def to_env(self, region: str) -> dict[str, str]:
        """Environment variables exposing these credentials to a subprocess."""
        return {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
            "AWS_SESSION_TOKEN": self.session_token,
            "AWS_REGION": region,
            "AWS_DEFAULT_REGION": region,
        }


@dataclass(frozen=True)
class Account:
    account_id: str
    account_name: str
    email: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.account_name} ({self.account_id})"


@dataclass(frozen=True)
class Role:
    role_name: str
    account_id: str


@dataclass
class _AuthAttempt:
    """Mutable state for a single authenticate() call."""

    client_id: str | None = None
    client_secret: str | None = None
    device: DeviceAuthorizationState | None = None
    token: SSOToken | None = None


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class SSOClient:
    """Authenticates against one SSO start URL and exchanges tokens for role credentials."""

    def __init__(
        self,
        start_url: str,
        region: str,
        cache: TokenCache | None = None,
        settings: AuthSettings | None = None,
        oidc_client: Any = None,
        sso_client: Any = None,
        opener: Callable[[str], bool] = webbrowser.open,
        console: Console | None = None,
    ):
        self.start_url = start_url
        self.region = region
        self.cache = cache or TokenCache()
        self.settings = settings or AuthSettings()
        self._oidc_client = oidc_client
        self._sso_client = sso_client
        self._opener = opener
        self.console = console or Console(stderr=True)

    @property
    def oidc(self):
        if self._oidc_client is None:
            self._oidc_client = boto3.client(
                "sso-oidc", region_name=self.region, config=Config(signature_version=UNSIGNED)
            )
        return self._oidc_client

    @property
    def sso(self):
        if self._sso_client is None:
            self._sso_client = boto3.client("sso", region_name=self.region, config=Config(signature_version=UNSIGNED))
        return self._sso_client

    # Authentication

    def authenticate(self, cancel: CancelToken | None = None) -> SSOToken:
        """Return a valid SSO token, running the device flow if nothing usable is cached.

        Raises:
            RegistrationError: Client registration failed.
            DeviceAuthorizationError: Device authorization could not start or was rejected.
            AuthenticationTimeout: Approval did not arrive within the polling ceiling.
            AuthenticationCancelled: ``cancel`` fired while waiting for approval.
        """
        cancel = cancel or CancelToken()
        handlers = {
            AuthState.CHECK_CACHE: self._check_cache,
            AuthState.REGISTER: self._register,
            AuthState.START_DEVICE_AUTH: self._start_device_authorization,
            AuthState.AWAIT_APPROVAL: self._await_approval,
        }

        attempt = _AuthAttempt()
        state = AuthState.CHECK_CACHE
        while state is not AuthState.AUTHENTICATED:
            logger.debug("SSO authentication state: %s", state.value)
            state = handlers[state](attempt, cancel)

        return attempt.token

    def _check_cache(self, attempt: _AuthAttempt, cancel: CancelToken) -> AuthState:
        try:
            cached = self.cache.load(self.start_url)
        except TokenCacheError as e:
            logger.warning("Failed to load cached token: %s", e)
            cached = None

        if cached is not None and cached.is_valid():
            self.console.print("🔄 Using cached SSO token...")
            attempt.token = SSOToken(access_token=cached.access_token, expires_at=cached.expires_at, from_cache=True)
            return AuthState.AUTHENTICATED

        return AuthState.REGISTER

    def _register(self, attempt: _AuthAttempt, cancel: CancelToken) -> AuthState:
        try:
            response = self.oidc.register_client(clientName=self.settings.client_name, clientType=CLIENT_TYPE)
        except (ClientError, BotoCoreError) as e:
            raise RegistrationError(f"RegisterClient failed for {self.start_url}: {e}") from e

        attempt.client_id = response["clientId"]
        attempt.client_secret = response["clientSecret"]
        return AuthState.START_DEVICE_AUTH

    def _start_device_authorization(self, attempt: _AuthAttempt, cancel: CancelToken) -> AuthState:
        try:
            response = self.oidc.start_device_authorization(
                clientId=attempt.client_id,
                clientSecret=attempt.client_secret,
                startUrl=self.start_url,
            )
        except (ClientError, BotoCoreError) as e:
            raise DeviceAuthorizationError(f"StartDeviceAuthorization failed for {self.start_url}: {e}") from e

        now = datetime.now(timezone.utc)
        attempt.device = DeviceAuthorizationState(
            client_id=attempt.client_id,
            client_secret=attempt.client_secret,
            device_code=response["deviceCode"],
            user_code=response["userCode"],
            verification_url=response.get("verificationUriComplete") or response["verificationUri"],
            interval=int(response.get("interval") or 5),
            expires_at=now + timedelta(seconds=int(response.get("expiresIn") or 600)),
        )
        return AuthState.AWAIT_APPROVAL

    def _open_verification_url(self, url: str) -> None:
        try:
            opened = self._opener(url)
        except (webbrowser.Error, OSError) as e:
            logger.warning("Could not open browser: %s", e)
            opened = False

        if opened is False:
            self.console.print(f"Open this URL to continue: [cyan]{url}[/cyan]")

    def _await_approval(self, attempt: _AuthAttempt, cancel: CancelToken) -> AuthState:
        device = attempt.device
        self._open_verification_url(device.verification_url)

        self.console.print("\n🔐 Please complete the AWS SSO login in your browser")
        self.console.print(f"🔑 Code: [bold]{device.user_code}[/bold]\n")

        interval = device.interval
        polls = 0
        while True:
            if cancel.cancelled:
                raise AuthenticationCancelled("Cancelled while waiting for device authorization")
            if polls >= self.settings.max_poll_attempts:
                raise AuthenticationTimeout(
                    f"Device authorization not approved after {polls} attempts for {self.start_url}"
                )
            if cancel.wait(interval):
                raise AuthenticationCancelled("Cancelled while waiting for device authorization")

            polls += 1
            try:
                response = self.oidc.create_token(
                    clientId=device.client_id,
                    clientSecret=device.client_secret,
                    grantType=DEVICE_CODE_GRANT_TYPE,
                    deviceCode=device.device_code,
                )
            except ClientError as e:
                code = _error_code(e)
                if code == PENDING_ERROR:
                    logger.debug("Authorization pending (attempt %d/%d)", polls, self.settings.max_poll_attempts)
                    continue
                if code == SLOW_DOWN_ERROR:
                    interval += self.settings.slow_down_increment
                    logger.debug("Provider asked to slow down, polling every %ds", interval)
                    continue
                raise DeviceAuthorizationError(f"CreateToken failed for {self.start_url}: {e}") from e
            except BotoCoreError as e:
                raise DeviceAuthorizationError(f"CreateToken failed for {self.start_url}: {e}") from e

            attempt.token = self._store_token(response, device)
            return AuthState.AUTHENTICATED

    def _store_token(self, response: dict, device: DeviceAuthorizationState) -> SSOToken:
        ttl = self.settings.token_ttl
        expires_in = response.get("expiresIn")
        if expires_in:
            ttl = min(ttl, timedelta(seconds=int(expires_in)))
        expires_at = datetime.now(timezone.utc) + ttl

        token = SSOToken(access_token=response["accessToken"], expires_at=expires_at)
        cached = CachedToken(
            access_token=token.access_token,
            expires_at=expires_at,
            client_id=device.client_id,
            client_secret=device.client_secret,
            start_url=self.start_url,
            region=self.region,
        )
        try:
            self.cache.save(cached)
        except OSError as e:
            logger.warning("Failed to cache token: %s", e)

        return token

    # Credential exchange

    def list_accounts(self, token: SSOToken) -> list[Account]:
        """List the accounts the token can access."""
        accounts = []
        try:
            paginator = self.sso.get_paginator("list_accounts")
            for page in paginator.paginate(accessToken=token.access_token):
                for item in page.get("accountList", []):
                    accounts.append(
                        Account(
                            account_id=item["accountId"],
                            account_name=item.get("accountName", item["accountId"]),
                            email=item.get("emailAddress", ""),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise CredentialExchangeError(f"ListAccounts failed: {e}") from e
        return accounts

    def list_account_roles(self, token: SSOToken, account_id: str) -> list[Role]:
        """List the roles available in ``account_id``."""
        roles = []
        try:
            paginator = self.sso.get_paginator("list_account_roles")
            for page in paginator.paginate(accessToken=token.access_token, accountId=account_id):
                for item in page.get("roleList", []):
                    roles.append(Role(role_name=item["roleName"], account_id=item.get("accountId", account_id)))
        except (ClientError, BotoCoreError) as e:
            raise CredentialExchangeError(f"ListAccountRoles failed for account {account_id}: {e}") from e
        return roles

    def get_role_credentials(self, token: SSOToken, account_id: str, role_name: str) -> DelegatedCredentials:
        """Exchange the SSO token for credentials of ``role_name`` in ``account_id``."""
        try:
            response = self.sso.get_role_credentials(
                accessToken=token.access_token, accountId=account_id, roleName=role_name
            )
        except (ClientError, BotoCoreError) as e:
            raise CredentialExchangeError(
                f"GetRoleCredentials failed for account {account_id}, role {role_name}: {e}"
            ) from e

        creds = response["roleCredentials"]
        expiration = None
        if creds.get("expiration"):
            expiration = datetime.fromtimestamp(creds["expiration"] / 1000, tz=timezone.utc)

        return DelegatedCredentials(
            access_key_id=creds["accessKeyId"],
            secret_access_key=creds["secretAccessKey"],
            session_token=creds["sessionToken"],
            expiration=expiration,
        )
