"""
Shared utility functions for Mockly.
"""

import logging
from typing import Any, Dict

import jwt
from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO", rich: bool = False) -> None:
    """
    Configure the ``mockly`` logger hierarchy.

    Args:
        level: Logging level name
        rich: Use a rich console handler (CLI) instead of a plain stream handler
    """
    logger = logging.getLogger("mockly")
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if rich:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True), rich_tracebacks=True, show_path=False
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False


def inspect_key(token: str) -> Dict[str, Any]:
    """
    Decode the claims of a Supabase API key without verifying it.

    Args:
        token: JWT-formatted API key

    Returns:
        Claims dictionary, or an empty dict if the token cannot be decoded
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}


def is_service_role_key(token: str) -> bool:
    """Check whether a key carries the privileged ``service_role`` role."""
    return inspect_key(token).get("role") == "service_role"


def redact_secret(secret: str, show_chars: int = 4) -> str:
    """
    Redact a secret, showing only first and last few characters.

    Args:
        secret: Secret string to redact
        show_chars: Number of characters to show at start and end

    Returns:
        Redacted string (e.g., "eyJh...9xQc")
    """
    if len(secret) <= show_chars * 2:
        return "*" * len(secret)

    return f"{secret[:show_chars]}...{secret[-show_chars:]}"


__all__ = [
    "setup_logging",
    "inspect_key",
    "is_service_role_key",
    "redact_secret",
]
