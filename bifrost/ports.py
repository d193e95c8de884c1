# ABOUTME: Local port validation for the forwarding endpoint
# ABOUTME: Checks numeric range and that nothing is currently bound to the port

"""Port validation shared by flag parsing and interactive prompts."""

import logging
import socket

from bifrost.errors import PortValidationError

logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535


def is_port_in_use(port: int) -> bool:
    """Return True if binding ``port`` on all interfaces fails.

    The probe socket is closed before returning, so a free port stays free.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            probe.bind(("", port))
    except OSError as e:
        logger.debug("Port %d bind failed: %s", port, e)
        return True
    return False


def validate_port(value: int | str) -> int:
    """Validate a local forwarding port.

    Args:
        value: Port as given on the command line or typed at a prompt.

    Returns:
        The port as an integer.

    Raises:
        PortValidationError: If the value is not an integer, is outside
            1-65535, or is already bound by another listener.
    """
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        raise PortValidationError(f"invalid port number: {value}") from None

    if port < MIN_PORT or port > MAX_PORT:
        raise PortValidationError(f"port number must be between {MIN_PORT} and {MAX_PORT}")

    if is_port_in_use(port):
        raise PortValidationError(f"port {port} is already in use")

    return port


def port_validator(value: str) -> bool | str:
    """Prompt validator wrapping validate_port.

    Returns:
        True if valid, error message if invalid
    """
    try:
        validate_port(value)
    except PortValidationError as e:
        return str(e)
    return True
