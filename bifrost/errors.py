# ABOUTME: Exception hierarchy shared by the SSO, tunnel, and CLI layers
# ABOUTME: Separates user-input errors from external-dependency failures

"""Errors raised by Bifrost components."""


class BifrostError(Exception):
    """Base class for all Bifrost errors."""


class UserInputError(BifrostError):
    """Input from the operator (flag or prompt) is invalid."""


class PortValidationError(UserInputError):
    """Requested local port is malformed, out of range, or already bound."""


class ProfileNotFoundError(UserInputError):
    """A named SSO or connection profile does not exist."""


class AuthenticationError(BifrostError):
    """SSO authentication did not produce a token."""


class RegistrationError(AuthenticationError):
    """Registering the public OIDC client failed."""


class DeviceAuthorizationError(AuthenticationError):
    """Starting or completing the device authorization failed."""


class AuthenticationTimeout(AuthenticationError):
    """Device authorization was not approved within the polling ceiling."""


class AuthenticationCancelled(AuthenticationError):
    """Device authorization polling was cancelled by the caller."""


class CredentialExchangeError(BifrostError):
    """An SSO portal request (accounts, roles, role credentials) failed."""


class TokenCacheError(BifrostError):
    """The token cache file exists but could not be read or parsed."""


class TunnelLaunchError(BifrostError):
    """The SSM session subprocess could not be started."""


class DiscoveryError(BifrostError):
    """No suitable bastion or endpoint could be found."""


class RegionDetectionError(BifrostError):
    """The SSO region could not be derived from the start URL."""


class KeepAliveProbeError(BifrostError):
    """A keep-alive probe could not connect to the forwarded port."""
