"""
OTP Service Functions
=====================
Call contract for routing layers that do not hold a dispatcher.

Each call builds a short-lived dispatcher from the environment (or the
given gateway/config) and closes it on return.
"""

from typing import Optional

from .config import DispatchConfig
from .dispatcher import Options, OtpDispatcher
from .gateways import BaseGateway, JsonGateway
from .models import DispatchResponse, RetryOutcome
from .retry import RetryController
from .verifier import verify

__all__ = ["dispatch", "retry_dispatch", "verify"]


async def dispatch(
    mobile_number: str,
    otp: Optional[str] = None,
    options: Options = None,
    gateway: Optional[BaseGateway] = None,
    config: Optional[DispatchConfig] = None,
) -> DispatchResponse:
    """Send one OTP. Defaults to the JSON gateway configured from the environment."""
    async with OtpDispatcher(gateway or JsonGateway.from_env(), config) as dispatcher:
        return await dispatcher.dispatch(mobile_number, otp, options)


async def retry_dispatch(
    mobile_number: str,
    options: Options = None,
    max_attempts: int = 3,
    gateway: Optional[BaseGateway] = None,
    config: Optional[DispatchConfig] = None,
) -> RetryOutcome:
    """Send one OTP with exponential-backoff retry."""
    async with OtpDispatcher(gateway or JsonGateway.from_env(), config) as dispatcher:
        controller = RetryController(dispatcher, max_attempts=max_attempts)
        return await controller.retry_dispatch(mobile_number, options)
