"""
Sensitive Data Masking
======================
Redaction helpers for phone numbers and codes in log events.
"""

from typing import Any


def mask(value: Any, visible_start: int = 2, visible_end: int = 2) -> Any:
    """
    Mask the middle of a string for safe display.

    Args:
        value: Value to mask
        visible_start: Characters kept at the start
        visible_end: Characters kept at the end

    Returns:
        Masked string of the same length (e.g., "9876****10"), or ``value``
        unchanged if it is not a non-empty string longer than the visible span
    """
    if not value or not isinstance(value, str):
        return value
    if len(value) <= visible_start + visible_end:
        return value

    hidden = len(value) - visible_start - visible_end
    tail = value[len(value) - visible_end:] if visible_end else ""
    return value[:visible_start] + "*" * hidden + tail


def mask_mobile(value: Any) -> Any:
    """Mask a mobile number keeping the first 4 and last 2 digits."""
    return mask(value, visible_start=4, visible_end=2)


def mask_code(value: Any, reveal: bool = False) -> Any:
    """Hide an OTP entirely unless ``reveal`` is set (development logging)."""
    if reveal or not value or not isinstance(value, str):
        return value
    return "*" * len(value)
