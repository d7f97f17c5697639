"""
Dispatch Models
===============
Result types and enums for the OTP dispatch pipeline.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class FailureReason(str, Enum):
    """Why a dispatch attempt did not succeed."""
    INVALID_INPUT = "invalid_input"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"
    GATEWAY_ERROR = "gateway_error"
    RESPONSE_PARSE_ERROR = "response_parse_error"

    @property
    def retryable(self) -> bool:
        # A malformed phone number cannot succeed on a second try.
        return self is not FailureReason.INVALID_INPUT


class DispatchState(str, Enum):
    """Per-call dispatcher states."""
    VALIDATING = "validating"
    SENDING = "sending"
    COMPLETED = "completed"  # terminal
    REJECTED = "rejected"    # terminal
    FAILED = "failed"        # terminal


@dataclass(frozen=True)
class Success:
    """A response was received from the gateway (any status 100-599)."""
    status: int
    body: str
    duration_ms: float
    request_id: str
    content_type: str = ""
    gateway: Optional[str] = None

    is_success = True


@dataclass(frozen=True)
class Failure:
    """No response was received (transport level failure)."""
    reason: FailureReason
    duration_ms: float
    request_id: str
    message: str = ""
    code: Optional[str] = None
    gateway: Optional[str] = None

    is_success = False


DispatchResult = Union[Success, Failure]


@dataclass(frozen=True)
class DispatchResponse:
    """
    Normalized outcome of one ``dispatch`` call.

    ``otp`` is returned for demo/test parity only; routing layers in a
    production deployment should drop it before answering clients.
    """
    success: bool
    message: str
    request_id: str
    otp: Optional[str] = None
    reason: Optional[FailureReason] = None
    status_code: Optional[int] = None
    duration_ms: float = 0.0
    gateway: Optional[str] = None
    data: Any = None

    @property
    def retryable(self) -> bool:
        if self.success or self.reason is None:
            return False
        return self.reason.retryable

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["reason"] = self.reason.value if self.reason else None
        return payload


@dataclass(frozen=True)
class RetryOutcome:
    """Result of a ``retry_dispatch`` session."""
    succeeded: bool
    attempts: int
    total_duration_ms: float
    last_result: DispatchResponse
    retry_id: str
    backoff_ms: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        if self.succeeded:
            return f"OTP sent successfully on attempt {self.attempts}"
        return (
            f"Failed to send OTP after {self.attempts} attempt(s): "
            f"{self.last_result.message} [retry_id={self.retry_id}]"
        )

    @property
    def otp(self) -> Optional[str]:
        return self.last_result.otp
