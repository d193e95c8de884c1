# ABOUTME: Tests for the auth command group
# ABOUTME: Covers SSO profile configuration, region auto-detection, login, list, and logout

"""Tests for auth commands."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from cleo.testers.command_tester import CommandTester

from bifrost.cli.commands.auth import AuthConfigureCommand, AuthListCommand, AuthLoginCommand, AuthLogoutCommand
from bifrost.config import ConfigManager, SSOProfile
from bifrost.errors import AuthenticationTimeout, RegionDetectionError
from bifrost.sso.cache import CachedToken, TokenCache
from bifrost.sso.client import SSOToken

MALFORMED_CONFIG = "sso_profiles: [unclosed\n"


def _token(from_cache=False):
    return SSOToken("token", datetime.now(timezone.utc) + timedelta(hours=1), from_cache=from_cache)


class TestAuthConfigureCommand:
    """Tests for auth configure."""

    def test_all_flags_saves_profile(self):
        tester = CommandTester(AuthConfigureCommand())

        exit_code = tester.execute("--profile work --sso-url https://work.awsapps.com/start --sso-region eu-west-1")

        assert exit_code == 0
        profile = ConfigManager().get_sso_profile("work")
        assert profile.sso_url == "https://work.awsapps.com/start"
        assert profile.sso_region == "eu-west-1"

    @patch("bifrost.cli.commands.auth.prompts")
    @patch("bifrost.cli.commands.auth.detect_sso_region", return_value="ap-southeast-2")
    def test_detected_region_is_offered_as_default(self, mock_detect, mock_prompts):
        mock_prompts.text.side_effect = lambda message, default="": default

        exit_code = CommandTester(AuthConfigureCommand()).execute(
            "--profile work --sso-url https://work.awsapps.com/start"
        )

        assert exit_code == 0
        mock_detect.assert_called_once_with("https://work.awsapps.com/start")
        assert ConfigManager().get_sso_profile("work").sso_region == "ap-southeast-2"

    @patch("bifrost.cli.commands.auth.prompts")
    @patch("bifrost.cli.commands.auth.detect_sso_region")
    def test_no_auto_detect_skips_detection(self, mock_detect, mock_prompts):
        mock_prompts.text.return_value = "us-east-1"

        exit_code = CommandTester(AuthConfigureCommand()).execute(
            "--profile work --sso-url https://work.awsapps.com/start --no-auto-detect"
        )

        assert exit_code == 0
        mock_detect.assert_not_called()

    @patch("bifrost.cli.commands.auth.prompts")
    @patch("bifrost.cli.commands.auth.detect_sso_region", side_effect=RegionDetectionError("no header"))
    def test_detection_failure_falls_back_to_prompt(self, mock_detect, mock_prompts, capsys):
        mock_prompts.text.return_value = "us-west-2"

        exit_code = CommandTester(AuthConfigureCommand()).execute(
            "--profile work --sso-url https://work.awsapps.com/start"
        )

        assert exit_code == 0
        assert "Could not auto-detect region" in capsys.readouterr().out
        assert ConfigManager().get_sso_profile("work").sso_region == "us-west-2"


class TestAuthLoginCommand:
    """Tests for auth login."""

    def test_no_profiles(self, capsys):
        assert CommandTester(AuthLoginCommand()).execute("") == 1
        assert "No SSO profiles found" in capsys.readouterr().out

    @patch("bifrost.cli.commands.auth.create_sso_client")
    def test_single_profile_is_used(self, mock_create):
        ConfigManager().add_sso_profile("work", SSOProfile(sso_url="https://w", sso_region="us-east-1"))
        mock_create.return_value.authenticate.return_value = _token()

        assert CommandTester(AuthLoginCommand()).execute("") == 0

        assert mock_create.call_args.args[0].sso_url == "https://w"
        mock_create.return_value.authenticate.assert_called_once()

    @patch("bifrost.cli.commands.auth.create_sso_client")
    def test_authentication_failure(self, mock_create, capsys):
        ConfigManager().add_sso_profile("work", SSOProfile(sso_url="https://w", sso_region="us-east-1"))
        mock_create.return_value.authenticate.side_effect = AuthenticationTimeout("not approved")

        assert CommandTester(AuthLoginCommand()).execute("--profile work") == 1
        assert "Authentication failed: not approved" in capsys.readouterr().out

    def test_unknown_profile(self, capsys):
        ConfigManager().add_sso_profile("work", SSOProfile(sso_url="https://w", sso_region="us-east-1"))

        assert CommandTester(AuthLoginCommand()).execute("--profile other") == 1
        assert "SSO profile 'other' not found" in capsys.readouterr().out

    @patch("bifrost.cli.commands.auth.create_sso_client")
    def test_cached_token_reports_already_authenticated(self, mock_create, capsys):
        ConfigManager().add_sso_profile("work", SSOProfile(sso_url="https://w", sso_region="us-east-1"))
        mock_create.return_value.authenticate.return_value = _token(from_cache=True)

        assert CommandTester(AuthLoginCommand()).execute("--profile work") == 0

        out = capsys.readouterr().out
        assert "Already authenticated with profile 'work'" in out
        assert "Successfully authenticated" not in out

    @patch("bifrost.cli.commands.auth.create_sso_client")
    def test_new_token_reports_success(self, mock_create, capsys):
        ConfigManager().add_sso_profile("work", SSOProfile(sso_url="https://w", sso_region="us-east-1"))
        mock_create.return_value.authenticate.return_value = _token()

        assert CommandTester(AuthLoginCommand()).execute("--profile work") == 0
        assert "Successfully authenticated with profile 'work'" in capsys.readouterr().out

    @patch("bifrost.cli.commands.auth.create_sso_client")
    def test_malformed_config_is_reported(self, mock_create, capsys):
        manager = ConfigManager()
        manager.global_path.parent.mkdir(parents=True, exist_ok=True)
        manager.global_path.write_text(MALFORMED_CONFIG)

        assert CommandTester(AuthLoginCommand()).execute("") == 1

        assert "Error loading config" in capsys.readouterr().out
        mock_create.assert_not_called()


class TestAuthListAndLogout:
    """Tests for auth list and auth logout."""

    def test_list_shows_profiles(self, capsys):
        ConfigManager().add_sso_profile(
            "work", SSOProfile(sso_url="https://w.awsapps.com/start", sso_region="eu-west-1")
        )

        assert CommandTester(AuthListCommand()).execute("") == 0

        out = capsys.readouterr().out
        assert "work" in out
        assert "https://w.awsapps.com/start" in out
        assert "eu-west-1" in out

    def test_list_without_profiles(self, capsys):
        assert CommandTester(AuthListCommand()).execute("") == 0
        assert "No SSO profiles configured" in capsys.readouterr().out

    def test_logout_clears_cache(self):
        cache = TokenCache()
        cache.save(
            CachedToken(
                access_token="t",
                expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
                client_id="c",
                client_secret="s",
                start_url="https://w.awsapps.com/start",
                region="us-east-1",
            )
        )

        assert CommandTester(AuthLogoutCommand()).execute("") == 0
        assert cache.load("https://w.awsapps.com/start") is None

    @patch("bifrost.cli.commands.auth.TokenCache")
    def test_logout_reports_failure(self, mock_cache, capsys):
        mock_cache.return_value.clear.side_effect = PermissionError("denied")

        assert CommandTester(AuthLogoutCommand()).execute("") == 1
        assert "Error clearing token cache" in capsys.readouterr().out


def test_login_prompts_when_several_profiles():
    manager = ConfigManager()
    manager.add_sso_profile("a", SSOProfile(sso_url="https://a", sso_region="us-east-1"))
    manager.add_sso_profile("b", SSOProfile(sso_url="https://b", sso_region="us-east-1"))

    with (
        patch("bifrost.cli.commands.auth.prompts") as mock_prompts,
        patch("bifrost.cli.commands.auth.create_sso_client", return_value=MagicMock()) as mock_create,
    ):
        mock_create.return_value.authenticate.return_value = _token()
        mock_prompts.select.return_value = "b"
        assert CommandTester(AuthLoginCommand()).execute("") == 0

    mock_prompts.select.assert_called_once_with("Select SSO profile to login with", ["a", "b"])
    assert mock_create.call_args.args[0].sso_url == "https://b"
