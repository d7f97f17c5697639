"""
OTP Codec
=========
Code and correlation id generation.
"""

import secrets
import string
import time

import structlog

from .exceptions import InvalidArgumentError

logger = structlog.get_logger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_code(length: int = 6) -> str:
    """
    Generate a random numeric OTP.

    Args:
        length: Number of digits

    Returns:
        OTP string of exactly ``length`` decimal digits

    Raises:
        InvalidArgumentError: If length is not positive
    """
    if not isinstance(length, int) or length <= 0:
        raise InvalidArgumentError(f"OTP length must be a positive integer, got {length!r}")

    otp = str(secrets.randbelow(10 ** length)).zfill(length)
    logger.debug("otp.code.generated", length=length)
    return otp


def generate_correlation_id(prefix: str = "otp") -> str:
    """Generate an id of the form ``<prefix>-<epoch ms>-<5 char suffix>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"
