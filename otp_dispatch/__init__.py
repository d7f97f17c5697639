"""
OTP Dispatch Library
====================
OTP generation, proxy-aware delivery through SMS gateways, retry with
backoff, and verification.
"""

__version__ = "0.1.0"

# Codec
from otp_dispatch.codec import generate_code, generate_correlation_id

# Masking
from otp_dispatch.masking import mask, mask_code, mask_mobile

# Verification
from otp_dispatch.verifier import verify

# Configuration
from otp_dispatch.config import (
    DispatchConfig,
    DispatchOptions,
    GovGatewayConfig,
    ProxyConfig,
    RequestSettings,
    TlsPolicy,
)

# Models
from otp_dispatch.models import (
    DispatchResponse,
    DispatchResult,
    DispatchState,
    Failure,
    FailureReason,
    RetryOutcome,
    Success,
)

# Errors
from otp_dispatch.exceptions import (
    DispatchTimeoutError,
    GatewayError,
    InvalidArgumentError,
    InvalidInputError,
    OtpDispatchError,
    ResponseParseError,
    TransportError,
)

# Transport
from otp_dispatch.transport import ProxyTransport

# Gateways
from otp_dispatch.gateways import (
    BaseGateway,
    DispatchRequest,
    JsonGateway,
    SignedGovGateway,
)

# Orchestration
from otp_dispatch.dispatcher import OtpDispatcher
from otp_dispatch.retry import RetryController

# Logging
from otp_dispatch.observability import configure_logging

__all__ = [
    # Codec
    "generate_code",
    "generate_correlation_id",
    # Masking
    "mask",
    "mask_code",
    "mask_mobile",
    # Verification
    "verify",
    # Configuration
    "DispatchConfig",
    "DispatchOptions",
    "GovGatewayConfig",
    "ProxyConfig",
    "RequestSettings",
    "TlsPolicy",
    # Models
    "DispatchResponse",
    "DispatchResult",
    "DispatchState",
    "Failure",
    "FailureReason",
    "RetryOutcome",
    "Success",
    # Errors
    "DispatchTimeoutError",
    "GatewayError",
    "InvalidArgumentError",
    "InvalidInputError",
    "OtpDispatchError",
    "ResponseParseError",
    "TransportError",
    # Transport
    "ProxyTransport",
    # Gateways
    "BaseGateway",
    "DispatchRequest",
    "JsonGateway",
    "SignedGovGateway",
    # Orchestration
    "OtpDispatcher",
    "RetryController",
    # Logging
    "configure_logging",
]
