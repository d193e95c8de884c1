# ABOUTME: AWS IAM Identity Center (SSO) integration
# ABOUTME: Token cache, device authorization, credential exchange, region detection

"""SSO authentication for Bifrost."""

from bifrost.sso.cache import CachedToken, TokenCache
from bifrost.sso.client import (
    Account,
    AuthSettings,
    AuthState,
    DelegatedCredentials,
    DeviceAuthorizationState,
    Role,
    SSOClient,
    SSOToken,
)
from bifrost.sso.region import detect_sso_region

__all__ = [
    "Account",
    "AuthSettings",
    "AuthState",
    "CachedToken",
    "DelegatedCredentials",
    "DeviceAuthorizationState",
    "Role",
    "SSOClient",
    "SSOToken",
    "TokenCache",
    "detect_sso_region",
]
