"""
Dispatch Exceptions
===================
Exception taxonomy for the OTP dispatch pipeline.

Raised inside components and mapped to ``DispatchResponse`` failures at the
dispatcher boundary.
"""

from typing import Any, Optional

from .models import FailureReason


class OtpDispatchError(Exception):
    """Base exception for all OTP dispatch errors."""

    reason: FailureReason = FailureReason.TRANSPORT_ERROR

    def __init__(
        self,
        message: str,
        reason: Optional[FailureReason] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        self.message = message
        if reason is not None:
            self.reason = reason
        self.status_code = status_code
        self.details = details
        super().__init__(f"[{self.reason.value}] {message}")

    @property
    def retryable(self) -> bool:
        return self.reason.retryable


class InvalidInputError(OtpDispatchError):
    """Raised when the mobile number fails validation."""
    reason = FailureReason.INVALID_INPUT


class InvalidArgumentError(OtpDispatchError, ValueError):
    """Raised on programmer errors such as a non-positive code length."""
    reason = FailureReason.INVALID_INPUT


class TransportError(OtpDispatchError):
    """Raised on DNS, connection, proxy or TLS failures."""
    reason = FailureReason.TRANSPORT_ERROR


class DispatchTimeoutError(TransportError):
    """Raised specifically when the request deadline is exceeded."""
    reason = FailureReason.TIMEOUT


class GatewayError(OtpDispatchError):
    """Raised when the gateway answers with a status it does not accept."""
    reason = FailureReason.GATEWAY_ERROR


class ResponseParseError(OtpDispatchError):
    """Raised when the gateway response body cannot be decoded."""
    reason = FailureReason.RESPONSE_PARSE_ERROR
