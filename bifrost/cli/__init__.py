# ABOUTME: CLI module for Bifrost
# ABOUTME: Builds the cleo application and wires logging before dispatch

"""Command-line interface for Bifrost."""

import sys

from cleo.application import Application

from bifrost import __version__
from bifrost.log import configure_logging

from .commands.auth import AuthConfigureCommand, AuthListCommand, AuthLoginCommand, AuthLogoutCommand
from .commands.connect import ConnectCommand
from .commands.profile import ProfileCreateCommand, ProfileDeleteCommand, ProfileListCommand
from .commands.version import VersionCommand

VERBOSE_FLAGS = ("-v", "-vv", "-vvv", "--verbose")


def create_application() -> Application:
    """Create the CLI application."""
    application = Application("bifrost", __version__)

    application.add(ConnectCommand())
    application.add(VersionCommand())

    # SSO profile commands
    application.add(AuthLoginCommand())
    application.add(AuthConfigureCommand())
    application.add(AuthListCommand())
    application.add(AuthLogoutCommand())

    # Connection profile commands
    application.add(ProfileCreateCommand())
    application.add(ProfileListCommand())
    application.add(ProfileDeleteCommand())

    return application


def main():
    """Main entry point for the CLI."""
    configure_logging(verbose=any(arg in VERBOSE_FLAGS for arg in sys.argv[1:]))
    application = create_application()
    application.run()


if __name__ == "__main__":
    main()
