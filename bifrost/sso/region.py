# ABOUTME: Detects the Identity Center region behind an SSO start URL
# ABOUTME: Reads the region from the portal's Content-Security-Policy report URI

"""SSO region auto-detection."""

import re

import requests

from bifrost.errors import RegionDetectionError

CSP_REGION_PATTERN = re.compile(r"https://log\.sso-portal\.([a-z0-9-]+)\.amazonaws\.com/log")


def detect_sso_region(start_url: str, timeout: int = 10) -> str:
    """Return the SSO region for ``start_url``.

    The portal answers a HEAD request with a CSP header whose report URI
    embeds the region (``https://log.sso-portal.<region>.amazonaws.com/log``).

    Raises:
        RegionDetectionError: On request failure or if no region is present.
    """
    try:
        response = requests.head(start_url, allow_redirects=False, timeout=timeout)
    except requests.RequestException as e:
        raise RegionDetectionError(f"failed to make request: {e}") from e

    csp = response.headers.get("Content-Security-Policy")
    if not csp:
        raise RegionDetectionError("no Content-Security-Policy header found")

    match = CSP_REGION_PATTERN.search(csp)
    if not match:
        raise RegionDetectionError(f"could not extract region from CSP header: {csp}")

    return match.group(1)
