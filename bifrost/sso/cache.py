# ABOUTME: On-disk cache of SSO access tokens keyed by start URL
# ABOUTME: Uses the AWS CLI cache directory and file format with owner-only permissions

"""SSO token cache."""

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from bifrost.errors import TokenCacheError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".aws" / "sso" / "cache"


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 UTC with a trailing Z."""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class CachedToken:
    """A cached SSO access token and the client registration that produced it."""

    access_token: str
    expires_at: datetime
    client_id: str
    client_secret: str
    start_url: str
    region: str
    refresh_token: str = ""

    def is_valid(self, now: datetime | None = None) -> bool:
        """Return True while the token has not expired."""
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at

    def to_dict(self) -> dict[str, str]:
        return {
            "accessToken": self.access_token,
            "expiresAt": format_timestamp(self.expires_at),
            "refreshToken": self.refresh_token,
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "startUrl": self.start_url,
            "region": self.region,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedToken":
        return cls(
            access_token=data["accessToken"],
            expires_at=parse_timestamp(data["expiresAt"]),
            refresh_token=data.get("refreshToken") or "",
            client_id=data.get("clientId", ""),
            client_secret=data.get("clientSecret", ""),
            start_url=data.get("startUrl", ""),
            region=data.get("region", ""),
        )


class TokenCache:
    """Stores one JSON file per SSO start URL."""

    def __init__(self, cache_dir: Path | str | None = None):
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR

    def path_for(self, start_url: str) -> Path:
        """Return the cache file path for a start URL (SHA-1 of the URL)."""
        digest = hashlib.sha1(start_url.encode("utf-8")).hexdigest()  # noqa: S324
        return self.cache_dir / f"{digest}.json"

    def load(self, start_url: str) -> CachedToken | None:
        """Load the cached token for ``start_url``.

        Returns:
            The cached token, or None if nothing is cached.

        Raises:
            TokenCacheError: If the file exists but cannot be read or parsed.
        """
        path = self.path_for(start_url)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise TokenCacheError(f"Could not read token cache {path}: {e}") from e

        try:
            return CachedToken.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise TokenCacheError(f"Malformed token cache {path}: {e}") from e

    def save(self, token: CachedToken) -> Path:
        """Write ``token`` atomically with 0600 permissions, replacing any prior entry."""
        self.cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        path = self.path_for(token.start_url)

        temp_fd, temp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".token.", suffix=".tmp")
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(token.to_dict(), f)
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        logger.debug("Cached SSO token for %s at %s", token.start_url, path)
        return path

    def clear(self) -> int:
        """Remove every cached token file.

        Returns:
            Number of files removed. A missing cache directory removes nothing.
        """
        if not self.cache_dir.is_dir():
            return 0

        removed = 0
        for entry in self.cache_dir.glob("*.json"):
            if entry.is_file():
                entry.unlink(missing_ok=True)
                removed += 1
        return removed
