# ABOUTME: Logging setup for the Bifrost CLI
# ABOUTME: Routes module loggers through a rich handler on stderr

"""Logging configuration."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

DEBUG_ENV_VAR = "BIFROST_DEBUG"


def debug_enabled() -> bool:
    """Return True if debug logging was requested through the environment."""
    return os.getenv(DEBUG_ENV_VAR, "").lower() in ("1", "true", "yes")


def configure_logging(verbose: bool = False) -> None:
    """Configure the ``bifrost`` logger hierarchy.

    Warnings are always shown; ``verbose`` or BIFROST_DEBUG enables debug output.
    Library loggers (boto3, urllib3) stay at their defaults.
    """
    level = logging.DEBUG if verbose or debug_enabled() else logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=level == logging.DEBUG,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("bifrost")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
