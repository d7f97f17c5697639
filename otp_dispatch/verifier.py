"""
OTP Verifier
============
Comparison of a submitted code against the code that was sent.
"""

import hmac
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


def verify(
    provided: Optional[str],
    expected: Optional[str],
    case_sensitive: bool = True,
) -> bool:
    """
    Verify a user-provided OTP.

    Uses constant-time comparison to prevent timing attacks. Missing or
    empty values only match when both sides are exactly equal.

    Args:
        provided: Code submitted by the user
        expected: Code that was dispatched
        case_sensitive: Compare case-insensitively when False

    Returns:
        True if the codes match
    """
    if not provided or not expected:
        is_valid = provided == expected
    else:
        left, right = str(provided), str(expected)
        if not case_sensitive:
            left, right = left.casefold(), right.casefold()
        is_valid = hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))

    if is_valid:
        logger.info("otp.verify.passed")
    else:
        logger.warning("otp.verify.failed")

    return is_valid
