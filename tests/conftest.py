"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime, timedelta, timezone

import pytest

from bifrost.sso.client import DelegatedCredentials


# Set AWS region for all tests to avoid NoRegionError
@pytest.fixture(autouse=True, scope="session")
def set_aws_region():
    """Set AWS region for all tests."""
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config files and the token cache out of the real home directory."""
    global_config = tmp_path / "home" / ".bifrost" / "config.yaml"
    local_config = tmp_path / "project" / ".bifrost.config.yaml"
    cache_dir = tmp_path / "home" / ".aws" / "sso" / "cache"

    monkeypatch.setattr("bifrost.config.GLOBAL_CONFIG_FILE", global_config)
    monkeypatch.setattr("bifrost.config.LOCAL_CONFIG_FILE", local_config)
    monkeypatch.setattr("bifrost.sso.cache.DEFAULT_CACHE_DIR", cache_dir)

    return {"global": global_config, "local": local_config, "cache": cache_dir}


@pytest.fixture
def credentials():
    """Delegated role credentials as returned by GetRoleCredentials."""
    return DelegatedCredentials(
        access_key_id="ASIATESTKEY",
        secret_access_key="test-secret",
        session_token="test-session-token",
        expiration=datetime.now(timezone.utc) + timedelta(hours=1),
    )
