# ABOUTME: Configuration management for Bifrost
# ABOUTME: Global SSO/connection profiles in ~/.bifrost, local connection profiles per project

"""Configuration management for Bifrost.

SSO profiles always live in the global file. Connection profiles may live in
either file; when a name exists in both, the local one wins.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from bifrost.errors import ProfileNotFoundError

GLOBAL_CONFIG_FILE = Path.home() / ".bifrost" / "config.yaml"
LOCAL_CONFIG_FILE = Path(".bifrost.config.yaml")

ENVIRONMENTS = ["dev", "stg", "prd"]
SERVICE_TYPES = ["rds", "redis"]
DEFAULT_PORTS = {"rds": "3306", "redis": "6379"}


@dataclass
class SSOProfile:
    """SSO authentication settings (start URL and Identity Center region)."""

    sso_url: str
    sso_region: str

    @property
    def start_url(self) -> str:
        return self.sso_url

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SSOProfile":
        return cls(sso_url=data.get("sso_url", ""), sso_region=data.get("sso_region", ""))


@dataclass
class ConnectionProfile:
    """Connection settings combining an SSO profile with a target data store."""

    sso_profile: str = ""
    account_id: str = ""
    role_name: str = ""
    region: str = ""
    environment: str = ""
    service: str = ""
    port: str = ""
    bastion_instance_id: str = ""
    rds_instance_name: str = ""
    redis_cluster_name: str = ""

    @property
    def resource_name(self) -> str:
        """Configured RDS instance or Redis cluster name for the profile's service."""
        if self.service == "redis":
            return self.redis_cluster_name
        if self.service == "rds":
            return self.rds_instance_name
        return ""

    def to_dict(self) -> dict[str, Any]:
        # Empty values are left out to keep the YAML readable
        return {key: value for key, value in asdict(self).items() if value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionProfile":
        known = {f.name for f in fields(cls)}
        return cls(**{key: str(value) for key, value in (data or {}).items() if key in known and value is not None})


@dataclass
class BifrostConfig:
    """Merged view of global and local configuration."""

    sso_profiles: dict[str, SSOProfile] = field(default_factory=dict)
    connection_profiles: dict[str, ConnectionProfile] = field(default_factory=dict)


class ConfigManager:
    """Reads and writes the global and local configuration files."""

    def __init__(self, global_path: Path | str | None = None, local_path: Path | str | None = None):
        self.global_path = Path(global_path) if global_path else GLOBAL_CONFIG_FILE
        self.local_path = Path(local_path) if local_path else LOCAL_CONFIG_FILE

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Could not parse {path}: {e}") from e
        return data or {}

    @staticmethod
    def _write_yaml(path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)

    def _ensure_global_file(self) -> None:
        if not self.global_path.exists():
            self._write_yaml(self.global_path, {"sso_profiles": {}, "connection_profiles": {}})

    def _load_global(self) -> BifrostConfig:
        self._ensure_global_file()
        data = self._read_yaml(self.global_path)
        return BifrostConfig(
            sso_profiles={
                name: SSOProfile.from_dict(value or {}) for name, value in (data.get("sso_profiles") or {}).items()
            },
            connection_profiles={
                name: ConnectionProfile.from_dict(value)
                for name, value in (data.get("connection_profiles") or {}).items()
            },
        )

    def _load_local_profiles(self) -> dict[str, ConnectionProfile]:
        if not self.local_path.exists():
            return {}
        data = self._read_yaml(self.local_path)
        return {
            name: ConnectionProfile.from_dict(value) for name, value in (data.get("connection_profiles") or {}).items()
        }

    def load(self) -> BifrostConfig:
        """Load global configuration merged with local connection profiles."""
        config = self._load_global()
        config.connection_profiles.update(self._load_local_profiles())
        return config

    def save_global(self, config: BifrostConfig) -> None:
        self._write_yaml(
            self.global_path,
            {
                "sso_profiles": {name: p.to_dict() for name, p in config.sso_profiles.items()},
                "connection_profiles": {name: p.to_dict() for name, p in config.connection_profiles.items()},
            },
        )

    def save_local(self, profiles: dict[str, ConnectionProfile]) -> None:
        self._write_yaml(self.local_path, {"connection_profiles": {name: p.to_dict() for name, p in profiles.items()}})

    def get_sso_profile(self, name: str) -> SSOProfile:
        """Return an SSO profile by name.

        Raises:
            ProfileNotFoundError: If no SSO profile has that name.
        """
        profiles = self.load().sso_profiles
        if name not in profiles:
            raise ProfileNotFoundError(f"SSO profile '{name}' not found")
        return profiles[name]

    def get_connection_profile(self, name: str) -> ConnectionProfile:
        """Return a connection profile by name, local profiles first.

        Raises:
            ProfileNotFoundError: If no connection profile has that name.
        """
        profiles = self.load().connection_profiles
        if name not in profiles:
            raise ProfileNotFoundError(f"connection profile '{name}' not found")
        return profiles[name]

    def default_sso_profile(self) -> str | None:
        """Return the SSO profile name if exactly one is configured."""
        profiles = self.load().sso_profiles
        if len(profiles) == 1:
            return next(iter(profiles))
        return None

    def add_sso_profile(self, name: str, profile: SSOProfile) -> None:
        config = self._load_global()
        config.sso_profiles[name] = profile
        self.save_global(config)

    def add_connection_profile(self, name: str, profile: ConnectionProfile, local: bool = False) -> None:
        """Add or replace a connection profile in the local or global file."""
        if local:
            profiles = self._load_local_profiles()
            profiles[name] = profile
            self.save_local(profiles)
        else:
            config = self._load_global()
            config.connection_profiles[name] = profile
            self.save_global(config)

    def delete_connection_profile(self, name: str) -> str:
        """Delete a connection profile, looking in the local file first.

        Returns:
            "local" or "global", depending on where the profile was removed from.

        Raises:
            ProfileNotFoundError: If neither file holds the profile.
        """
        local_profiles = self._load_local_profiles()
        if name in local_profiles:
            del local_profiles[name]
            self.save_local(local_profiles)
            return "local"

        config = self._load_global()
        if name not in config.connection_profiles:
            raise ProfileNotFoundError(f"connection profile '{name}' not found")
        del config.connection_profiles[name]
        self.save_global(config)
        return "global"
