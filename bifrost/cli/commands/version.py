# ABOUTME: Version command for Bifrost
# ABOUTME: Prints the installed package version

"""Version command."""

from cleo.commands.command import Command
from rich.console import Console

from bifrost import __version__


class VersionCommand(Command):
    """Display the version information."""

    name = "version"
    description = "Display the version information"

    def handle(self) -> int:
        """Execute the version command."""
        Console().print(f"Bifrost version: {__version__}")
        return 0
